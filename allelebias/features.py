"""
Feature extensions computed from the same per-sample signals.

Provides:
- infer_baf_alleles: decide which alleles are A and B from the BAF medians of
  homozygous samples
- cor_baf_lrr: Pearson correlation of BAF and LRR per genotype class
- gc_cpg_content: GC and CpG ratio of a reference sequence window
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from .errors import InvariantViolationError
from .signals import PerSampleSignals

logger = logging.getLogger("allelebias")

# Candidate (A, B) alleles by number of alleles at the site
_CANDIDATE_ALLELES = {1: (-1, -1), 2: (0, 1), 3: (1, 2)}


def _nan_median(values: np.ndarray) -> float:
    finite = values[~np.isnan(values)]
    if len(finite) == 0:
        return math.nan
    return float(np.median(finite))


def infer_baf_alleles(
    signals: PerSampleSignals, n_alleles: int, site: Optional[str] = None
) -> Tuple[int, int]:
    """
    Infer the A and B alleles of a site from BAF.

    Samples homozygous for a candidate allele should sit near BAF 0 if it is
    the A allele and near BAF 1 if it is the B allele.

    Parameters
    ----------
    signals : PerSampleSignals
        Signals of the site; ``baf`` must be set.
    n_alleles : int
        Number of alleles of the site (reference included), 1 to 3.
    site : str, optional
        Site label used in log messages.

    Returns
    -------
    Tuple[int, int]
        (allele_a, allele_b), or (-1, -1) when they cannot be told apart.

    Raises
    ------
    InvariantViolationError
        If the site has more than three alleles or no BAF values.
    """
    if n_alleles not in _CANDIDATE_ALLELES:
        raise InvariantViolationError(f"Observed wrong number of alleles ({n_alleles}) at {site}")
    if signals.baf is None:
        raise InvariantViolationError("BAF values are required to infer alleles", "BAF")
    if n_alleles == 1:
        logger.debug(f"No alternate allele to infer at the site {site}")
        return (-1, -1)
    candidates = _CANDIDATE_ALLELES[n_alleles]

    inferred = [-1, -1]
    for i, allele in enumerate(candidates):
        idx = [
            j
            for j in range(signals.n_samples)
            if signals.gt0[j] == allele and signals.gt1[j] == allele
        ]
        median = _nan_median(signals.baf[idx])
        if median < 0.5:
            inferred[i] = candidates[0]
        elif median > 0.5:
            inferred[i] = candidates[1]

    if inferred[0] == inferred[1]:
        logger.warning(f"Unable to infer the A and B alleles while parsing the site {site}")
        return (-1, -1)
    if inferred[0] == -1:
        inferred[0] = candidates[1] if inferred[1] == candidates[0] else candidates[0]
    elif inferred[1] == -1:
        inferred[1] = candidates[1] if inferred[0] == candidates[0] else candidates[0]
    return (inferred[0], inferred[1])


def _pearson(x: np.ndarray, y: np.ndarray) -> float:
    keep = ~(np.isnan(x) | np.isnan(y))
    x, y = x[keep], y[keep]
    if len(x) < 2:
        return math.nan
    dx = x - x.mean()
    dy = y - y.mean()
    xss = float(np.dot(dx, dx))
    yss = float(np.dot(dy, dy))
    if xss == 0 or yss == 0:
        return math.nan
    return float(np.dot(dx, dy)) / math.sqrt(xss * yss)


def cor_baf_lrr(
    signals: PerSampleSignals, allele_a: int, allele_b: int
) -> Tuple[float, float, float]:
    """
    Pearson correlation between BAF and LRR at AA, AB and BB genotypes.

    Returns
    -------
    Tuple[float, float, float]
        Correlations for the AA, AB and BB classes; NaN where fewer than two
        complete observations exist or either value is constant.
    """
    if signals.baf is None or signals.lrr is None:
        raise InvariantViolationError("BAF and LRR values are required for correlation")

    rho = []
    for n_b in range(3):
        idx = []
        for j in range(signals.n_samples):
            alleles = (signals.gt0[j], signals.gt1[j])
            count_a = sum(1 for a in alleles if a == allele_a)
            count_b = sum(1 for a in alleles if a == allele_b)
            if count_a == 2 - n_b and count_b == n_b:
                idx.append(j)
        rho.append(_pearson(signals.baf[idx], signals.lrr[idx]))
    return (rho[0], rho[1], rho[2])


def gc_cpg_content(sequence: str) -> Tuple[float, float]:
    """
    GC and CpG ratio of a sequence window.

    Parameters
    ----------
    sequence : str
        Reference sequence around the variant (any case).

    Returns
    -------
    Tuple[float, float]
        (C+G)/(A+C+G+T) and twice the number of CG dinucleotides over the
        window length; NaN for empty input.
    """
    seq = sequence.upper()
    at_cnt = seq.count("A") + seq.count("T")
    cg_cnt = seq.count("C") + seq.count("G")
    cpg_cnt = 2 * seq.count("CG")
    gc = cg_cnt / (at_cnt + cg_cnt) if at_cnt + cg_cnt else math.nan
    cpg = cpg_cnt / len(seq) if seq else math.nan
    return (gc, cpg)
