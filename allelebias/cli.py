"""Command-line interface for allelebias."""

import argparse
import datetime
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import AnalysisConfig, load_config
from .errors import AlleleBiasError
from .sex_reader import read_sex_file
from .variant_table import annotate_variant_table, read_variant_table
from .version import __version__

logger = logging.getLogger("allelebias")


def create_parser() -> argparse.ArgumentParser:
    """Create and return the argument parser for the allelebias CLI."""
    parser = argparse.ArgumentParser(
        description="allelebias: Annotate cohort variants with allelic balance statistics."
    )

    # General Options
    general_group = parser.add_argument_group("General Options")
    general_group.add_argument(
        "--version",
        action="version",
        version=f"allelebias {__version__}",
        help="Show the current version and exit",
    )
    general_group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARN", "ERROR"],
        default="INFO",
        help="Set the logging level",
    )
    general_group.add_argument(
        "--log-file", help="Path to a file to write logs to (in addition to stderr)."
    )
    general_group.add_argument(
        "-c",
        "--config",
        help="Path to configuration file",
        default=None,
    )

    # Core Input/Output
    io_group = parser.add_argument_group("Core Input/Output")
    io_group.add_argument(
        "-i",
        "--input",
        required=True,
        help="Long-format variant table (one row per variant and sample)",
    )
    io_group.add_argument(
        "-o",
        "--output",
        default="-",
        help="Output file for the annotated variants ('-' for stdout)",
    )

    # Analyses
    analysis_group = parser.add_argument_group("Analyses")
    analysis_group.add_argument(
        "-b",
        "--balance",
        metavar="FIELD",
        help="Format field whose per-sample sign is tested for balance (e.g. Bdev_Phase)",
    )
    analysis_group.add_argument(
        "-p",
        "--phase",
        action="store_true",
        default=None,
        help="Integrate genotype phase (transmission bias and BAF phase tests)",
    )
    analysis_group.add_argument(
        "-a",
        "--ad-het",
        action="store_true",
        default=None,
        help="Binomial test on allelic depths across heterozygous genotypes",
    )
    analysis_group.add_argument(
        "-x",
        "--sex",
        metavar="FILE",
        help="PED file or two-column sample/sex file enabling the sex dosage tests",
    )
    analysis_group.add_argument(
        "--infer-baf-alleles",
        action="store_true",
        default=None,
        help="Infer A and B alleles from BAF medians of homozygous samples",
    )
    analysis_group.add_argument(
        "--cor-baf-lrr",
        action="store_true",
        default=None,
        help="Pearson correlation of BAF and LRR per genotype class",
    )
    analysis_group.add_argument(
        "--gc-content",
        action="store_true",
        default=None,
        help="GC and CpG ratios of the sequence context column",
    )
    return parser


def merge_cli_options(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Override configuration values with the options given on the command line."""
    merged = dict(cfg)
    overrides = {
        "balance_field": args.balance,
        "phase": args.phase,
        "ad_het": args.ad_het,
        "infer_baf_alleles": args.infer_baf_alleles,
        "cor_baf_lrr": args.cor_baf_lrr,
        "gc_content": args.gc_content,
    }
    for key, value in overrides.items():
        if value is not None:
            merged[key] = value
    return merged


def main(argv: Optional[List[str]] = None) -> int:
    """Run main entry point for the allelebias CLI.

    Steps:
        1. Parse arguments.
        2. Configure logging and load config.
        3. Validate the input files.
        4. Read the variant table and the sex annotations.
        5. Annotate every variant and write the result.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    start_time: datetime.datetime = datetime.datetime.now()

    parser = create_parser()
    args = parser.parse_args(argv)

    # Configure logging level
    log_level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARN": logging.WARNING,
        "ERROR": logging.ERROR,
    }
    logging.getLogger("allelebias").setLevel(log_level_map[args.log_level])

    # If a log file is specified, add a file handler
    if args.log_file:
        log_file_path = Path(args.log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        fh = logging.FileHandler(args.log_file)
        fh.setLevel(log_level_map[args.log_level])
        fh.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        logger.addHandler(fh)
        logger.debug(f"Logging to file enabled: {args.log_file}")

    logger.info(f"Run started at {start_time.isoformat()}")
    logger.debug(f"CLI arguments: {args}")

    try:
        cfg: Dict[str, Any] = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 1
    logger.debug(f"Configuration loaded: {cfg}")

    cfg = merge_cli_options(cfg, args)
    config = AnalysisConfig.from_dict(cfg)
    separator = cfg.get("output_separator", "\t")

    for path in (args.input, args.sex):
        if path and not os.path.exists(path):
            logger.error(f"Input file not found: {path}")
            return 1

    sex_map = None
    if args.sex:
        try:
            sex_map = read_sex_file(args.sex)
        except ValueError as e:
            logger.error(str(e))
            return 1

    try:
        df = read_variant_table(args.input, config)
        result = annotate_variant_table(df, config, sex_map=sex_map)
    except AlleleBiasError as e:
        logger.error(f"Annotation failed: {e}")
        return 1

    if args.output == "-":
        result.to_csv(sys.stdout, sep=separator, index=False)
    else:
        result.to_csv(args.output, sep=separator, index=False)
        logger.info(f"Annotated variants written to {args.output}")

    elapsed = datetime.datetime.now() - start_time
    logger.info(f"Run finished in {elapsed.total_seconds():.1f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
