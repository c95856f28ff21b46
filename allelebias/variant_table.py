"""
Tabular host for the aggregation pipeline.

Reads a long-format variant table (one row per variant and sample), builds the
per-sample signals of each variant in input order, runs the aggregation
pipeline and returns one annotated row per variant.

Expected columns (names configurable through AnalysisConfig):

- CHROM, POS, REF, ALT, SAMPLE, GT: required
- AD: allelic depths per allele, e.g. "12,7"
- BAF, LRR: B-allele frequency and log R ratio
- the balance format field, e.g. Bdev_Phase
- ALLELE_A, ALLELE_B: known A/B alleles of the site
- CONTEXT: reference sequence around the variant, for GC/CpG content
"""

import logging
import math
from typing import Any, Dict, List, Optional

import pandas as pd

from .aggregation import RunContext, VariantAggregator
from .config import AnalysisConfig
from .errors import ConfigurationError, InvariantViolationError, fatal_on_error
from .features import gc_cpg_content
from .sex_reader import sexes_for_samples
from .signals import PerSampleSignals, select_numeric_source

logger = logging.getLogger("allelebias")


def read_variant_table(path: str, config: AnalysisConfig, sep: str = "\t") -> pd.DataFrame:
    """
    Read a long-format variant table.

    Parameters
    ----------
    path : str
        Path to the tab-separated table.
    config : AnalysisConfig
        Provides the column names.
    sep : str
        Field separator.

    Returns
    -------
    pd.DataFrame
        The table with text columns kept as strings and "." or empty cells read as missing.
    """
    text_columns = [
        config.chrom_column,
        config.ref_column,
        config.alt_column,
        config.sample_column,
        config.gt_column,
        config.ad_column,
        config.context_column,
    ]
    df = pd.read_csv(
        path,
        sep=sep,
        dtype={c: str for c in text_columns},
        na_values=[".", ""],
        keep_default_na=False,
    )
    logger.info(f"Read {len(df)} sample rows from {path}")
    return df


def available_fields(df: pd.DataFrame, config: AnalysisConfig) -> List[str]:
    """Names of the per-sample and per-site fields present in the table."""
    mapping = {
        "GT": config.gt_column,
        "AD": config.ad_column,
        "BAF": config.baf_column,
        "LRR": config.lrr_column,
        "ALLELE_A": "ALLELE_A",
        "ALLELE_B": "ALLELE_B",
    }
    fields = [name for name, column in mapping.items() if column in df.columns]
    if config.balance_field and config.balance_field in df.columns:
        fields.append(config.balance_field)
    return fields


def _n_alleles(alt: Any) -> int:
    if alt is None or pd.isna(alt) or alt in ("", "."):
        return 1
    return 1 + len(str(alt).split(","))


def _first_value(values: pd.Series) -> Any:
    values = values.dropna()
    return values.iloc[0] if len(values) else None


def _format_value(value: Any) -> Any:
    if isinstance(value, tuple):
        return ",".join(_format_value(v) if isinstance(v, float) else str(v) for v in value)
    if isinstance(value, float):
        if math.isnan(value):
            return "nan"
        return f"{value:g}"
    return value


def annotate_variant_table(
    df: pd.DataFrame,
    config: AnalysisConfig,
    sex_map: Optional[Dict[str, int]] = None,
    context: Optional[RunContext] = None,
) -> pd.DataFrame:
    """
    Compute the per-variant statistics of a long-format table.

    Steps
    -----
    1. Check that the table supplies every field the configured analyses need.
    2. Select the numeric readers of the balance, BAF and LRR fields.
    3. For each variant, in input order, build PerSampleSignals over the
       cohort's samples (absent samples count as missing genotypes) and run
       the aggregation pipeline.

    Parameters
    ----------
    df : pd.DataFrame
        Long-format table, one row per variant and sample.
    config : AnalysisConfig
        Analyses to run and column names.
    sex_map : dict, optional
        Sample ID to sex code. None disables the sex analyses.
    context : RunContext, optional
        Shared caches; a private one is created and released when omitted.

    Returns
    -------
    pd.DataFrame
        One row per variant with CHROM, POS, REF, ALT and the INFO-style
        statistics (tuples rendered as comma-separated strings).

    Raises
    ------
    ConfigurationError
        If a required column or field is missing.
    InvariantViolationError
        If a field has an unexpected type or a sample occurs twice in a variant.
    """
    key_columns = [config.chrom_column, config.pos_column, config.ref_column, config.alt_column]
    required = key_columns + [config.sample_column]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ConfigurationError("variant table", missing)

    samples = list(pd.unique(df[config.sample_column].dropna()))
    sexes = sexes_for_samples(sex_map, samples) if sex_map is not None else None

    owns_context = context is None
    aggregator = VariantAggregator(config, sexes=sexes, context=context)
    fields = available_fields(df, config)
    aggregator.check_fields(fields)

    fmt_source = None
    if config.balance_field:
        fmt_source = select_numeric_source(config.balance_field, df[config.balance_field].dtype)
    baf_source = lrr_source = None
    if "BAF" in fields:
        baf_source = select_numeric_source("BAF", df[config.baf_column].dtype)
    if "LRR" in fields:
        lrr_source = select_numeric_source("LRR", df[config.lrr_column].dtype)
    has_ad = "AD" in fields
    has_ab = "ALLELE_A" in fields and "ALLELE_B" in fields
    has_context = config.gc_content and config.context_column in df.columns
    if config.gc_content and not has_context:
        raise ConfigurationError("--gc-content", [config.context_column])

    logger.info(f"Processing variants across {len(samples)} samples; fields available: {fields}")

    rows = []
    try:
        for key, group in df.groupby(key_columns, sort=False, dropna=False):
            chrom, pos, ref, alt = key
            site = f"{chrom}:{pos}"
            if group[config.sample_column].duplicated().any():
                raise InvariantViolationError(f"Duplicate samples at {site}", config.sample_column)
            sub = group.set_index(config.sample_column).reindex(samples)

            with fatal_on_error(site, logger):
                signals = PerSampleSignals.from_genotypes(
                    sub[config.gt_column].tolist(),
                    fmt_sign=(
                        fmt_source.signs(sub[config.balance_field].tolist()) if fmt_source else None
                    ),
                    allelic_depths=sub[config.ad_column].tolist() if has_ad else None,
                    baf=baf_source.floats(sub[config.baf_column].tolist()) if baf_source else None,
                    lrr=lrr_source.floats(sub[config.lrr_column].tolist()) if lrr_source else None,
                )
                allele_ab = None
                if has_ab:
                    a, b = _first_value(group["ALLELE_A"]), _first_value(group["ALLELE_B"])
                    if a is not None and b is not None:
                        allele_ab = (int(a), int(b))
                stats = aggregator.process_variant(
                    signals, n_alleles=_n_alleles(alt), allele_ab=allele_ab, site=site
                )

            row: Dict[str, Any] = dict(zip(key_columns, key))
            if has_context:
                sequence = _first_value(group[config.context_column])
                if sequence is not None:
                    gc, cpg = gc_cpg_content(sequence)
                    row["GC"] = _format_value(gc)
                    row["CpG"] = _format_value(cpg)
            for name, value in stats.to_info().items():
                row[name] = _format_value(value)
            rows.append(row)
    finally:
        if owns_context:
            aggregator.close()

    logger.info(f"Annotated {len(rows)} variants")
    return pd.DataFrame(rows)
