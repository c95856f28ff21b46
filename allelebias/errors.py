"""
Error types for allelebias.

This module provides the exception classes raised by the statistical core:
- AlleleBiasError: base class carrying structured details
- ConfigurationError: a requested statistic cannot be computed because a
  required input field is absent (raised once, before any variant is processed)
- InvariantViolationError: the host supplied per-sample data in an
  unexpected encoding or shape

Per-variant numeric edge cases are never raised; they degrade to sentinel
p-values inside the tests themselves.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Optional

logger = logging.getLogger("allelebias")


class AlleleBiasError(Exception):
    """Base exception for all allelebias errors."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        """Initialize error.

        Parameters
        ----------
        message : str
            Error message
        details : dict, optional
            Additional error details
        """
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(AlleleBiasError):
    """Raised when a requested analysis lacks a required input field."""

    def __init__(self, analysis: str, missing_fields: list):
        """Initialize configuration error."""
        message = (
            f"Field(s) {', '.join(missing_fields)} not present, "
            f"cannot perform {analysis} analysis"
        )
        super().__init__(message, {"analysis": analysis, "missing_fields": list(missing_fields)})
        self.analysis = analysis
        self.missing_fields = list(missing_fields)


class InvariantViolationError(AlleleBiasError):
    """Raised when per-sample data violates the expected encoding or shape."""

    def __init__(self, message: str, field: Optional[str] = None):
        """Initialize invariant violation error."""
        super().__init__(message, {"field": field})
        self.field = field


@contextmanager
def fatal_on_error(context: str, log: Optional[logging.Logger] = None):
    """Log allelebias errors with their context before letting them propagate.

    Parameters
    ----------
    context : str
        Description of the step being executed (e.g. a variant identifier)
    log : logging.Logger, optional
        Logger instance

    Examples
    --------
    >>> with fatal_on_error("chr1:12345"):
    ...     aggregator.process_variant(signals)
    """
    _logger = log or logger
    try:
        yield
    except AlleleBiasError as e:
        _logger.error(f"{context}: {e}")
        raise
