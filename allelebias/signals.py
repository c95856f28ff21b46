"""
Per-sample signals for one variant.

This module provides the container handed to the aggregation pipeline and
the helpers used to fill it from genotype strings and format fields:
- parse_genotype: split a GT string into allele indices and phase
- select_numeric_source: pick, once per field, how raw values are read
- allelic_depth_pair: reference/alternate depths of a genotype from an AD vector
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import numpy as np
import pandas as pd
from pandas.api import types as ptypes

from .errors import InvariantViolationError

logger = logging.getLogger("allelebias")


class Phase(enum.IntEnum):
    """
    Parental origin of the alternate allele at a phased heterozygous site.

    Phased genotypes are read as ``paternal|maternal``: ``0|1`` carries the
    alternate allele on the maternal haplotype, ``1|0`` on the paternal one.
    """

    PATERNAL = -1
    UNKNOWN = 0
    MATERNAL = 1

    @property
    def bucket(self) -> int:
        """Index of the phase bucket (0 maternal, 1 paternal, -1 unknown)."""
        if self is Phase.UNKNOWN:
            return -1
        return (1 - int(self)) // 2


def parse_genotype(gt: Optional[str]) -> tuple[Optional[int], Optional[int], Phase]:
    """
    Parse a genotype string into allele indices and phase.

    Parameters
    ----------
    gt : str
        Genotype string (e.g., "0/1", "1|0", "./.", "1")

    Returns
    -------
    Tuple[Optional[int], Optional[int], Phase]
        (allele1, allele2, phase) where None indicates a missing allele.
        Haploid calls are returned as homozygous. Only phased heterozygous
        calls with exactly one reference allele carry a known phase.
    """
    if gt is None or (isinstance(gt, float) and math.isnan(gt)):
        return (None, None, Phase.UNKNOWN)
    gt = str(gt).strip()
    if not gt or gt in (".", "./.", ".|."):
        return (None, None, Phase.UNKNOWN)

    phased = "|" in gt
    separator = "|" if phased else "/"
    parts = gt.split(separator)

    if len(parts) == 1:
        parts = [parts[0], parts[0]]
    if len(parts) != 2:
        return (None, None, Phase.UNKNOWN)

    try:
        allele1 = None if parts[0] == "." else int(parts[0])
        allele2 = None if parts[1] == "." else int(parts[1])
    except ValueError:
        return (None, None, Phase.UNKNOWN)

    phase = Phase.UNKNOWN
    if phased and allele1 is not None and allele2 is not None:
        if allele1 == 0 and allele2 > 0:
            phase = Phase.MATERNAL
        elif allele1 > 0 and allele2 == 0:
            phase = Phase.PATERNAL
    return (allele1, allele2, phase)


def is_het(allele1: Optional[int], allele2: Optional[int]) -> bool:
    """Check if a call is heterozygous with exactly one reference allele."""
    if allele1 is None or allele2 is None:
        return False
    return allele1 != allele2 and (allele1 == 0 or allele2 == 0)


class NumericKind(enum.Enum):
    """Storage class of a numeric per-sample field."""

    INTEGER = "integer"
    FLOAT = "float"


@dataclass(frozen=True)
class NumericSource:
    """How raw values of one per-sample field are read.

    Chosen once per field before processing, so per-sample reads do not
    need to inspect the value type.
    """

    field: str
    kind: NumericKind

    def value(self, raw: Any) -> Optional[float]:
        """Return the value as a float, or None when missing."""
        if raw is None or raw is pd.NA:
            return None
        # integer columns turn into floats once absent samples are filled in
        if self.kind is NumericKind.FLOAT or isinstance(raw, float):
            value = float(raw)
            return None if math.isnan(value) else value
        return float(int(raw))

    def sign(self, raw: Any) -> Optional[int]:
        """Return -1, 0 or 1 for the value's sign, or None when missing."""
        value = self.value(raw)
        if value is None:
            return None
        if value > 0:
            return 1
        if value < 0:
            return -1
        return 0

    def signs(self, values: Sequence[Any]) -> List[Optional[int]]:
        """Sign classification of every sample."""
        return [self.sign(v) for v in values]

    def floats(self, values: Sequence[Any]) -> np.ndarray:
        """Float array of every sample, NaN where missing."""
        out = np.full(len(values), np.nan, dtype=float)
        for i, v in enumerate(values):
            value = self.value(v)
            if value is not None:
                out[i] = value
        return out


def select_numeric_source(field: str, dtype: Any) -> NumericSource:
    """
    Select the reader for a per-sample field from its storage dtype.

    Parameters
    ----------
    field : str
        Field name, used in error messages.
    dtype : numpy or pandas dtype
        Storage dtype of the field's values.

    Returns
    -------
    NumericSource

    Raises
    ------
    InvariantViolationError
        If the dtype is neither integer nor floating point.
    """
    if ptypes.is_bool_dtype(dtype):
        raise InvariantViolationError(f"Unexpected type {dtype} for field {field}", field)
    if ptypes.is_integer_dtype(dtype):
        return NumericSource(field, NumericKind.INTEGER)
    if ptypes.is_float_dtype(dtype):
        return NumericSource(field, NumericKind.FLOAT)
    raise InvariantViolationError(f"Unexpected type {dtype} for field {field}", field)


def parse_allelic_depth(ad: Any) -> Optional[List[Optional[int]]]:
    """Parse an AD value such as "12,7" into per-allele depths."""
    if ad is None or ad is pd.NA or (isinstance(ad, float) and math.isnan(ad)):
        return None
    text = str(ad).strip()
    if not text or text == ".":
        return None
    depths: List[Optional[int]] = []
    for part in text.split(","):
        part = part.strip()
        if part == ".":
            depths.append(None)
            continue
        try:
            depths.append(int(part))
        except ValueError:
            raise InvariantViolationError(f"Unexpected AD value '{ad}'", "AD")
    return depths


def allelic_depth_pair(
    depths: Optional[Sequence[Optional[int]]], allele1: Optional[int], allele2: Optional[int]
) -> tuple[Optional[int], Optional[int]]:
    """
    Reference and alternate depth of a call.

    The reference depth is read at the smaller allele index and the alternate
    depth at the larger one. Missing alleles, out-of-range indices and
    missing depths give (None, None).
    """
    if depths is None or allele1 is None or allele2 is None:
        return (None, None)
    lo, hi = min(allele1, allele2), max(allele1, allele2)
    if hi >= len(depths):
        return (None, None)
    ref, alt = depths[lo], depths[hi]
    if ref is None or alt is None:
        return (None, None)
    return (ref, alt)


@dataclass
class PerSampleSignals:
    """
    Per-sample inputs of one variant.

    All lists have one entry per sample, in the same sample order. Optional
    fields are None when the variant does not carry the field at all.

    Fields
    ------
    gt0, gt1 : list of Optional[int]
        Allele indices of the genotype, None when missing.
    phase : list of Phase
        Parental origin of the alternate allele of phased heterozygous calls.
    fmt_sign : list of Optional[int] | None
        Sign (-1, 0, 1) of the balance format field, None when missing.
    ad_ref, ad_alt : list of Optional[int] | None
        Reference and alternate allelic depth of the called alleles.
    baf : np.ndarray | None
        B-allele frequency, NaN when missing.
    lrr : np.ndarray | None
        Log R ratio, NaN when missing.
    """

    gt0: List[Optional[int]]
    gt1: List[Optional[int]]
    phase: List[Phase]
    fmt_sign: Optional[List[Optional[int]]] = None
    ad_ref: Optional[List[Optional[int]]] = None
    ad_alt: Optional[List[Optional[int]]] = None
    baf: Optional[np.ndarray] = None
    lrr: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        n = len(self.gt0)
        for name in ("gt1", "phase", "fmt_sign", "ad_ref", "ad_alt", "baf", "lrr"):
            values = getattr(self, name)
            if values is not None and len(values) != n:
                raise InvariantViolationError(
                    f"Field {name} has {len(values)} values for {n} samples", name
                )
        if (self.ad_ref is None) != (self.ad_alt is None):
            raise InvariantViolationError("Allelic depths need both reference and alternate", "AD")
        if self.fmt_sign is not None:
            for value in self.fmt_sign:
                if value not in (-1, 0, 1, None):
                    raise InvariantViolationError(
                        f"Unexpected value {value!r} for field fmt_sign", "fmt_sign"
                    )
        phases = []
        for value in self.phase:
            try:
                phases.append(Phase(value))
            except ValueError:
                raise InvariantViolationError(
                    f"Unexpected value {value!r} for field phase", "phase"
                ) from None
        self.phase = phases
        if self.baf is not None:
            self.baf = np.asarray(self.baf, dtype=float)
        if self.lrr is not None:
            self.lrr = np.asarray(self.lrr, dtype=float)

    @property
    def n_samples(self) -> int:
        """Number of samples."""
        return len(self.gt0)

    @property
    def has_ad(self) -> bool:
        """Whether allelic depths are available."""
        return self.ad_ref is not None

    @classmethod
    def from_genotypes(
        cls,
        genotypes: Sequence[Optional[str]],
        fmt_sign: Optional[List[Optional[int]]] = None,
        allelic_depths: Optional[Sequence[Any]] = None,
        baf: Optional[Sequence[float]] = None,
        lrr: Optional[Sequence[float]] = None,
    ) -> "PerSampleSignals":
        """
        Build signals from GT strings and raw per-sample fields.

        Parameters
        ----------
        genotypes : sequence of str
            GT strings, one per sample.
        fmt_sign : list of Optional[int], optional
            Already classified balance field signs.
        allelic_depths : sequence, optional
            AD strings (e.g. "10,5") or per-allele depth lists.
        baf, lrr : sequence of float, optional
            B-allele frequencies and log R ratios.
        """
        parsed = [parse_genotype(gt) for gt in genotypes]
        gt0 = [p[0] for p in parsed]
        gt1 = [p[1] for p in parsed]
        phase = [p[2] for p in parsed]

        ad_ref = ad_alt = None
        if allelic_depths is not None:
            if len(allelic_depths) != len(parsed):
                raise InvariantViolationError(
                    f"Field AD has {len(allelic_depths)} values for {len(parsed)} samples", "AD"
                )
            ad_ref, ad_alt = [], []
            for (a0, a1, _), raw in zip(parsed, allelic_depths):
                depths = raw if isinstance(raw, (list, tuple)) else parse_allelic_depth(raw)
                ref, alt = allelic_depth_pair(depths, a0, a1)
                ad_ref.append(ref)
                ad_alt.append(alt)

        return cls(
            gt0=gt0,
            gt1=gt1,
            phase=phase,
            fmt_sign=fmt_sign,
            ad_ref=ad_ref,
            ad_alt=ad_alt,
            baf=None if baf is None else np.asarray(baf, dtype=float),
            lrr=None if lrr is None else np.asarray(lrr, dtype=float),
        )
