# File: allelebias/config.py
# Location: allelebias/allelebias/config.py

"""
Configuration management module.

This module handles loading configuration from a JSON file.
All default values reside in config.json, which is included in
the installed package directory.

If no config_file is provided, this module attempts to load the default
config.json from the package installation directory.
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

logger = logging.getLogger("allelebias")


def load_config(config_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a JSON file.

    If no config_file is provided, the function attempts to load the
    'config.json' from the installed package directory. If it fails
    to find or parse the file, it raises an error.

    Parameters
    ----------
    config_file : str, optional
        Path to a configuration file in JSON format. If None, defaults to
        the package-installed 'config.json'.

    Returns
    -------
    dict
        Configuration dictionary loaded from the JSON file.

    Raises
    ------
    FileNotFoundError
        If the specified configuration file does not exist.
    ValueError
        If there is an error parsing the JSON configuration file.
    """
    if not config_file:
        config_file = os.path.join(os.path.dirname(__file__), "config.json")

    if not os.path.exists(config_file):
        raise FileNotFoundError(f"Configuration file '{config_file}' not found.")

    with open(config_file, "r", encoding="utf-8") as f:
        try:
            config = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Error parsing JSON configuration: {e}")

    return config


@dataclass
class AnalysisConfig:
    """
    Runtime options for the per-variant analyses.

    Fields
    ------
    balance_field : str | None
        Format field whose per-sample sign is tested for balance
        (e.g. "Bdev_Phase"). None disables the sign-balance tests.
    phase : bool
        Integrate genotype phase in the balance tests and run the
        transmission-bias and BAF phase tests.
    ad_het : bool
        Run the binomial test on reference/alternate allelic depth across
        heterozygous genotypes.
    infer_baf_alleles : bool
        Infer which alleles are A and B from BAF medians of homozygous samples.
    cor_baf_lrr : bool
        Compute BAF/LRR Pearson correlations per genotype class.
    gc_content : bool
        Compute GC and CpG ratios from the sequence context column.
    """

    balance_field: Optional[str] = None
    phase: bool = False
    ad_het: bool = False
    infer_baf_alleles: bool = False
    cor_baf_lrr: bool = False
    gc_content: bool = False

    chrom_column: str = "CHROM"
    pos_column: str = "POS"
    ref_column: str = "REF"
    alt_column: str = "ALT"
    sample_column: str = "SAMPLE"
    gt_column: str = "GT"
    ad_column: str = "AD"
    baf_column: str = "BAF"
    lrr_column: str = "LRR"
    context_column: str = "CONTEXT"

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> "AnalysisConfig":
        """Build an AnalysisConfig from a config dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in cfg if k not in known)
        if unknown:
            logger.debug(f"Ignoring configuration keys not used by the analysis: {unknown}")
        return cls(**{k: v for k, v in cfg.items() if k in known})
