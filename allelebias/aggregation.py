"""
Per-variant aggregation of sample signals into allelic balance statistics.

Provides:
- RunContext: owns the sign test table and the beta-binomial cache of a run
- AggregatedCounts: counters and BAF lists collected during one variant scan
- AggregatedStatistics: the named statistics of one variant
- VariantAggregator: the single-pass scan and the dispatch to the tests

Statistics
----------
- AC_Het: number of heterozygous genotypes
- AC_Het_Sex / AC_Sex_Test: heterozygous genotypes by sex and Fisher's exact
  test of reference/alternate homozygous dosage against sex
- AC_Het_Phase / AC_Het_Phase_Test: heterozygous genotypes by transmission
  type and the binomial test for transmission bias
- Bal / Bal_Test: sign counts of the balance format field and binomial test
- Bal_Phase / Bal_Phase_Test: the same counts stratified by phase
- AD_Het / AD_Het_Test: summed reference/alternate allelic depth across
  heterozygous genotypes and binomial test
- BAF_Phase_Test: median BAF of both phase buckets, Welch's t-test and
  Mann-Whitney U test between them
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import fisher_exact

from .beta_binom import BetaBinomialEngine
from .config import AnalysisConfig
from .errors import ConfigurationError, InvariantViolationError
from .features import cor_baf_lrr, infer_baf_alleles
from .rank_tests import mann_whitney_u, welch_t_test
from .sign_test import ExactBinomialSignTest
from .signals import PerSampleSignals, is_het

logger = logging.getLogger("allelebias")


class RunContext:
    """
    Mutable state shared by all variants of one run.

    Not thread-safe; give each worker its own context.
    """

    def __init__(self) -> None:
        self.sign_test = ExactBinomialSignTest()
        self.beta_binom = BetaBinomialEngine()

    def close(self) -> None:
        """Release the cached tables."""
        self.sign_test.test(-1, -1)
        self.beta_binom.release()

    def __enter__(self) -> "RunContext":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


@dataclass
class AggregatedCounts:
    """Counters collected while scanning the samples of one variant."""

    ac_het: int = 0
    ac_het_sex: List[int] = field(default_factory=lambda: [0, 0])
    # reference dosage by sex 1/2, then alternate dosage by sex 1/2
    ac_sex: List[int] = field(default_factory=lambda: [0, 0, 0, 0])
    ac_het_phase: List[int] = field(default_factory=lambda: [0, 0])
    fmt_bal: List[int] = field(default_factory=lambda: [0, 0])
    fmt_bal_phase: List[int] = field(default_factory=lambda: [0, 0])
    ad_het: List[int] = field(default_factory=lambda: [0, 0])
    baf_phase: Tuple[List[float], List[float]] = field(default_factory=lambda: ([], []))


def _neg_log10(p: float) -> float:
    if math.isnan(p):
        return math.nan
    if p <= 0:
        return math.inf
    # 0.0 - x keeps p == 1 at +0.0
    return 0.0 - math.log10(p)


@dataclass
class AggregatedStatistics:
    """
    Statistics of one variant.

    Test results are raw p-values. Fields left at None were not requested
    (or, for ``baf_phase``, a phase bucket was empty).
    """

    ac_het: int
    ac_het_sex: Optional[Tuple[int, int]] = None
    sex_test: Optional[float] = None
    ac_het_phase: Optional[Tuple[int, int]] = None
    phase_test: Optional[float] = None
    bal: Optional[Tuple[int, int]] = None
    bal_test: Optional[float] = None
    bal_phase: Optional[Tuple[int, int]] = None
    bal_phase_test: Optional[float] = None
    ad_het: Optional[Tuple[int, int]] = None
    ad_het_test: Optional[float] = None
    baf_median: Optional[Tuple[float, float]] = None
    baf_welch_test: Optional[float] = None
    baf_mann_whitney_test: Optional[float] = None
    allele_ab: Optional[Tuple[int, int]] = None
    cor_baf_lrr: Optional[Tuple[float, float, float]] = None

    def to_info(self) -> Dict[str, Any]:
        """
        Render the statistics as INFO-style annotations.

        Counts are kept as tuples; test results are reported as -log10(P).
        """
        info: Dict[str, Any] = {"AC_Het": self.ac_het}
        if self.ac_het_sex is not None:
            info["AC_Het_Sex"] = self.ac_het_sex
            info["AC_Sex_Test"] = _neg_log10(self.sex_test)
        if self.ac_het_phase is not None:
            info["AC_Het_Phase"] = self.ac_het_phase
            info["AC_Het_Phase_Test"] = _neg_log10(self.phase_test)
        if self.bal is not None:
            info["Bal"] = self.bal
            info["Bal_Test"] = _neg_log10(self.bal_test)
        if self.bal_phase is not None:
            info["Bal_Phase"] = self.bal_phase
            info["Bal_Phase_Test"] = _neg_log10(self.bal_phase_test)
        if self.ad_het is not None:
            info["AD_Het"] = self.ad_het
            info["AD_Het_Test"] = _neg_log10(self.ad_het_test)
        if self.baf_median is not None:
            info["BAF_Phase_Test"] = (
                self.baf_median[0],
                self.baf_median[1],
                _neg_log10(self.baf_welch_test),
                _neg_log10(self.baf_mann_whitney_test),
            )
        if self.allele_ab is not None:
            info["ALLELE_A"] = self.allele_ab[0]
            info["ALLELE_B"] = self.allele_ab[1]
        if self.cor_baf_lrr is not None:
            info["Cor_BAF_LRR"] = self.cor_baf_lrr
        return info


def _median(values: Sequence[float]) -> float:
    arr = np.asarray(values, dtype=float)
    arr = arr[~np.isnan(arr)]
    if len(arr) == 0:
        return math.nan
    return float(np.median(arr))


class VariantAggregator:
    """
    Scan the samples of a variant once and run the configured tests.

    Parameters
    ----------
    config : AnalysisConfig
        Which analyses to run.
    sexes : sequence of int, optional
        Per-sample sex (1 or 2; anything else is unknown), in the sample
        order of the signals. None disables the sex analyses.
    context : RunContext, optional
        Shared caches. A private context is created when omitted.
    """

    def __init__(
        self,
        config: AnalysisConfig,
        sexes: Optional[Sequence[int]] = None,
        context: Optional[RunContext] = None,
    ):
        self.config = config
        self.sexes = None if sexes is None else [int(s) for s in sexes]
        self.context = context or RunContext()
        self.n_variants = 0

    def check_fields(self, available: Sequence[str]) -> None:
        """
        Verify once, before processing, that every requested analysis has its inputs.

        Parameters
        ----------
        available : sequence of str
            Names of the per-sample and per-site fields the host can supply
            ("GT", "AD", "BAF", "LRR", "ALLELE_A", "ALLELE_B", format fields).

        Raises
        ------
        ConfigurationError
            For the first analysis whose inputs are missing.
        """
        fields = set(available)
        cfg = self.config

        def require(analysis: str, names: Sequence[str]) -> None:
            missing = [n for n in names if n not in fields]
            if missing:
                raise ConfigurationError(analysis, missing)

        require("genotype", ["GT"])
        if cfg.balance_field:
            require("--balance", [cfg.balance_field])
        if cfg.ad_het:
            require("--ad-het", ["AD"])
        if cfg.phase and not ({"AD", "BAF"} & fields or cfg.balance_field in fields):
            alternatives = "AD/BAF" + (f"/{cfg.balance_field}" if cfg.balance_field else "")
            raise ConfigurationError("--phase", [alternatives])
        if cfg.infer_baf_alleles:
            require("--infer-baf-alleles", ["BAF"])
        if cfg.cor_baf_lrr:
            require("--cor-baf-lrr", ["BAF", "LRR"])
            if not cfg.infer_baf_alleles:
                require("--cor-baf-lrr", ["ALLELE_A", "ALLELE_B"])

    def _scan(self, signals: PerSampleSignals) -> AggregatedCounts:
        counts = AggregatedCounts()
        sexes = self.sexes
        use_sign = bool(self.config.balance_field) and signals.fmt_sign is not None
        has_ad = signals.has_ad
        baf = signals.baf

        for i in range(signals.n_samples):
            gt0, gt1 = signals.gt0[i], signals.gt1[i]
            if gt0 is None and gt1 is None:
                continue

            sign = signals.fmt_sign[i] if use_sign else None
            idx_sign = (1 - sign) // 2 if sign else -1
            if idx_sign >= 0:
                counts.fmt_bal[idx_sign] += 1

            sex = sexes[i] if sexes is not None else 0
            if sex in (1, 2):
                if gt0 == 0 and gt1 == 0:
                    counts.ac_sex[sex - 1] += 1
                elif gt0 is not None and gt1 is not None and gt0 > 0 and gt1 > 0:
                    counts.ac_sex[2 + sex - 1] += 1

            if not is_het(gt0, gt1):
                continue

            phase = int(signals.phase[i])
            idx_phase = (1 - phase) // 2 if phase else -1
            counts.ac_het += 1
            if sex in (1, 2):
                counts.ac_het_sex[sex - 1] += 1
            if idx_phase >= 0:
                counts.ac_het_phase[idx_phase] += 1
            if idx_phase >= 0 and idx_sign >= 0:
                counts.fmt_bal_phase[(1 - sign * phase) // 2] += 1

            curr_baf = math.nan
            if has_ad:
                ref_cnt, alt_cnt = signals.ad_ref[i], signals.ad_alt[i]
                if ref_cnt is not None and alt_cnt is not None:
                    counts.ad_het[0] += ref_cnt
                    counts.ad_het[1] += alt_cnt
                    curr_baf = (alt_cnt + 0.5) / (ref_cnt + alt_cnt + 1.0)
            if baf is not None:
                curr_baf = float(baf[i])
            if idx_phase >= 0:
                counts.baf_phase[idx_phase].append(curr_baf)

        return counts

    def process_variant(
        self,
        signals: PerSampleSignals,
        n_alleles: int = 2,
        allele_ab: Optional[Tuple[int, int]] = None,
        site: Optional[str] = None,
    ) -> AggregatedStatistics:
        """
        Compute the statistics of one variant.

        Parameters
        ----------
        signals : PerSampleSignals
            Per-sample inputs of the variant.
        n_alleles : int
            Number of alleles of the site, used to infer A/B alleles.
        allele_ab : tuple of int, optional
            Known (A, B) alleles for the BAF/LRR correlation when they are not
            inferred here.
        site : str, optional
            Site label used in log messages.

        Returns
        -------
        AggregatedStatistics
        """
        if self.sexes is not None and len(self.sexes) != signals.n_samples:
            raise InvariantViolationError(
                f"{len(self.sexes)} sex annotations for {signals.n_samples} samples", "sex"
            )
        cfg = self.config
        sign_test = self.context.sign_test
        counts = self._scan(signals)
        self.n_variants += 1

        stats = AggregatedStatistics(ac_het=counts.ac_het)

        if self.sexes is not None:
            stats.ac_het_sex = tuple(counts.ac_het_sex)
            ac_sex = counts.ac_sex
            _, pval = fisher_exact([[ac_sex[0], ac_sex[1]], [ac_sex[2], ac_sex[3]]])
            stats.sex_test = float(pval)

        phase = counts.ac_het_phase
        if cfg.phase:
            stats.ac_het_phase = tuple(phase)
            stats.phase_test = sign_test.test(phase[0], phase[0] + phase[1])

        if cfg.balance_field:
            bal = counts.fmt_bal
            stats.bal = tuple(bal)
            stats.bal_test = sign_test.test(bal[0], bal[0] + bal[1])
            if cfg.phase:
                bal_phase = counts.fmt_bal_phase
                stats.bal_phase = tuple(bal_phase)
                stats.bal_phase_test = sign_test.test(bal_phase[0], bal_phase[0] + bal_phase[1])

        if cfg.ad_het:
            ad = counts.ad_het
            stats.ad_het = tuple(ad)
            stats.ad_het_test = sign_test.test(ad[0], ad[0] + ad[1])

        if cfg.phase and phase[0] and phase[1]:
            bucket0, bucket1 = counts.baf_phase
            stats.baf_median = (_median(bucket0), _median(bucket1))
            stats.baf_welch_test = welch_t_test(bucket0, bucket1)
            stats.baf_mann_whitney_test = mann_whitney_u(
                [v for v in bucket0 if not math.isnan(v)],
                [v for v in bucket1 if not math.isnan(v)],
            )

        if signals.baf is not None and signals.lrr is not None:
            if cfg.infer_baf_alleles:
                allele_ab = infer_baf_alleles(signals, n_alleles, site)
                stats.allele_ab = allele_ab
            if cfg.cor_baf_lrr and allele_ab is not None:
                stats.cor_baf_lrr = cor_baf_lrr(signals, allele_ab[0], allele_ab[1])

        logger.debug(f"Variant {site}: {counts.ac_het} heterozygous genotypes")
        return stats

    def close(self) -> None:
        """Release the run's cached tables."""
        logger.info(f"Processed {self.n_variants} variants")
        self.context.close()
