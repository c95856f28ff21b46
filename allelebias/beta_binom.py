"""
Beta-binomial log-likelihood terms with an incremental cache.

For fixed parameters ``(p, rho)`` the beta-binomial log-probability mass of
``k`` successes out of ``n`` trials factorizes into three terms of the form

    f(n, x) = log( Gamma(n + x) / Gamma(x) / n! )

evaluated at ``x = alpha``, ``x = beta`` and ``x = alpha + beta`` where
``alpha = p * s``, ``beta = (1 - p) * s`` and ``s = (1 - rho) / rho``
(``s`` is the overdispersion of Artieri et al. 2017)::

    log P(k | n) = f(k, alpha) + f(n - k, beta) - f(n, alpha + beta)

The same ``(p, rho)`` pair is typically queried over and over with slowly
increasing ``n`` across a genome scan, so the terms are tabulated as prefix
sums of ``log((x + n - 1) / n)`` and only ever extended. ``rho == 0`` is the
ordinary binomial distribution and uses ``log(p)`` / ``log(1 - p)`` directly.

See https://en.wikipedia.org/wiki/Beta-binomial_distribution#As_a_compound_distribution
"""

from __future__ import annotations

import logging
import math

import numpy as np

logger = logging.getLogger("allelebias")


def _ensure_capacity(buf: np.ndarray, length: int) -> np.ndarray:
    """Return ``buf`` or a copy with room for at least ``length`` entries."""
    if len(buf) >= length:
        return buf
    capacity = max(length, 2 * len(buf))
    grown = np.empty(capacity, dtype=float)
    grown[: len(buf)] = buf
    return grown


def _extend(buf: np.ndarray, last: int, target: int, increments: np.ndarray) -> np.ndarray:
    """Write prefix sums ``buf[last+1 .. target]`` continuing from ``buf[last]``.

    The accumulation runs strictly left to right, so extending in several
    steps gives exactly the same values as extending once.
    """
    buf = _ensure_capacity(buf, target + 1)
    seeded = np.concatenate(([buf[last]], increments))
    buf[last + 1 : target + 1] = np.add.accumulate(seeded)[1:]
    return buf


class LogGammaIncrementalCache:
    """
    Growable tables of log-gamma ratio terms for one ``(p, rho)`` pair.

    Attributes
    ----------
    p : float
        Probability of success the tables were built for (NaN before the
        first update).
    rho : float
        Intra-class correlation the tables were built for (NaN before the
        first update).
    n1 : int
        Largest count covered by ``terms_alpha`` and ``terms_beta``.
    n2 : int
        Largest count covered by ``terms_alpha_beta``.
    """

    def __init__(self) -> None:
        self.p = math.nan
        self.rho = math.nan
        self.n1 = 0
        self.n2 = 0
        self._alpha = np.zeros(1, dtype=float)
        self._beta = np.zeros(1, dtype=float)
        self._alpha_beta = np.zeros(1, dtype=float)

    @property
    def terms_alpha(self) -> np.ndarray:
        """f(n, alpha) for n = 0..n1 (read-only snapshot)."""
        return self._snapshot(self._alpha, self.n1)

    @property
    def terms_beta(self) -> np.ndarray:
        """f(n, beta) for n = 0..n1 (read-only snapshot)."""
        return self._snapshot(self._beta, self.n1)

    @property
    def terms_alpha_beta(self) -> np.ndarray:
        """f(n, alpha + beta) for n = 0..n2 (read-only snapshot)."""
        return self._snapshot(self._alpha_beta, self.n2)

    @staticmethod
    def _snapshot(buf: np.ndarray, n: int) -> np.ndarray:
        # buffers are rewritten in place when (p, rho) changes
        snapshot = buf[: n + 1].copy()
        snapshot.flags.writeable = False
        return snapshot

    def update(self, p: float, rho: float, n1: int, n2: int) -> None:
        """
        Make sure the tables cover counts up to ``n1`` and ``n2``.

        Parameters
        ----------
        p : float
            Probability of success, in [0, 1].
        rho : float
            Intra-class correlation, in [0, 1). ``rho == 0`` selects the
            binomial distribution.
        n1 : int
            Largest count needed in the alpha and beta tables.
        n2 : int
            Largest count needed in the alpha + beta table.

        Raises
        ------
        ValueError
            If a count is negative or a parameter is out of range.
        """
        if n1 < 0 or n2 < 0:
            raise ValueError(f"Counts must be non-negative, got n1={n1}, n2={n2}")
        if not (0.0 <= p <= 1.0) or not (0.0 <= rho < 1.0):
            raise ValueError(f"Parameters out of range: p={p}, rho={rho}")

        # NaN never compares equal, so the first update always resets
        if self.p != p or self.rho != rho:
            logger.debug(f"Resetting log-gamma tables for p={p}, rho={rho}")
            self.p = p
            self.rho = rho
            self.n1 = 0
            self.n2 = 0

        with np.errstate(divide="ignore"):
            if rho == 0:
                log_alpha = math.log(p) if p > 0 else -math.inf
                log_beta = math.log(1.0 - p) if p < 1 else -math.inf
                if self.n1 < n1:
                    log_n = np.log(np.arange(self.n1 + 1, n1 + 1, dtype=float))
                    self._alpha = _extend(self._alpha, self.n1, n1, log_alpha - log_n)
                    self._beta = _extend(self._beta, self.n1, n1, log_beta - log_n)
                    self.n1 = n1
                if self.n2 < n2:
                    log_n = np.log(np.arange(self.n2 + 1, n2 + 1, dtype=float))
                    self._alpha_beta = _extend(self._alpha_beta, self.n2, n2, -log_n)
                    self.n2 = n2
            else:
                s = (1.0 - rho) / rho
                alpha = p * s
                beta = (1.0 - p) * s
                if self.n1 < n1:
                    k = np.arange(self.n1 + 1, n1 + 1, dtype=float)
                    self._alpha = _extend(self._alpha, self.n1, n1, np.log((alpha + k - 1.0) / k))
                    self._beta = _extend(self._beta, self.n1, n1, np.log((beta + k - 1.0) / k))
                    self.n1 = n1
                if self.n2 < n2:
                    k = np.arange(self.n2 + 1, n2 + 1, dtype=float)
                    self._alpha_beta = _extend(
                        self._alpha_beta, self.n2, n2, np.log((alpha + beta + k - 1.0) / k)
                    )
                    self.n2 = n2

    def release(self) -> None:
        """Drop the tables and forget the parameters."""
        self.p = math.nan
        self.rho = math.nan
        self.n1 = 0
        self.n2 = 0
        self._alpha = np.zeros(1, dtype=float)
        self._beta = np.zeros(1, dtype=float)
        self._alpha_beta = np.zeros(1, dtype=float)


class BetaBinomialEngine:
    """Beta-binomial log-likelihoods backed by a LogGammaIncrementalCache."""

    def __init__(self) -> None:
        self.cache = LogGammaIncrementalCache()

    def log_likelihood(self, p: float, rho: float, k: int, n: int) -> float:
        """Log-probability of ``k`` successes among ``n`` trials."""
        if k < 0 or k > n:
            raise ValueError(f"Invalid count: k={k}, n={n}")
        self.cache.update(p, rho, n, n)
        cache = self.cache
        return float(cache._alpha[k] + cache._beta[n - k] - cache._alpha_beta[n])

    def log_likelihood_counts(self, p: float, rho: float, successes, failures) -> float:
        """
        Sum of log-probabilities over paired success/failure counts.

        Parameters
        ----------
        p, rho : float
            Distribution parameters.
        successes, failures : array-like of int
            Per-observation counts (e.g. alternate and reference allelic
            depths of each heterozygous sample).

        Returns
        -------
        float
            The total log-likelihood; 0.0 for empty input.
        """
        a = np.asarray(successes, dtype=np.int64)
        b = np.asarray(failures, dtype=np.int64)
        if a.shape != b.shape:
            raise ValueError(f"Count arrays differ in shape: {a.shape} vs {b.shape}")
        if a.size == 0:
            return 0.0
        if (a < 0).any() or (b < 0).any():
            raise ValueError("Counts must be non-negative")
        n = a + b
        self.cache.update(p, rho, int(max(a.max(), b.max())), int(n.max()))
        cache = self.cache
        return float(
            np.sum(cache._alpha[a] + cache._beta[b] - cache._alpha_beta[n])
        )

    def release(self) -> None:
        """Release the cached tables."""
        self.cache.release()
