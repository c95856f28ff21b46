"""Shared pytest fixtures for all test modules."""

import textwrap

import pandas as pd
import pytest

from allelebias.config import AnalysisConfig


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests of a single module")


@pytest.fixture
def trio_like_table() -> pd.DataFrame:
    """Long-format table with two variants and four samples.

    The first variant carries two maternal (0|1) and two paternal (1|0)
    heterozygous calls; the second lacks sample S4 entirely.
    """
    rows = [
        # CHROM, POS, REF, ALT, SAMPLE, GT, AD, BAF, LRR, Bdev_Phase
        ("1", 100, "A", "G", "S1", "0|1", "10,12", 0.30, 0.01, 0.2),
        ("1", 100, "A", "G", "S2", "0|1", "11,10", 0.35, -0.02, 0.1),
        ("1", 100, "A", "G", "S3", "1|0", "12,11", 0.60, 0.03, -0.3),
        ("1", 100, "A", "G", "S4", "1|0", "9,13", 0.65, 0.00, 0.4),
        ("1", 200, "C", "T", "S1", "0/0", "20,0", 0.01, 0.10, 0.0),
        ("1", 200, "C", "T", "S2", "0/1", "8,9", 0.50, 0.05, 0.3),
        ("1", 200, "C", "T", "S3", "1/1", "0,18", 0.98, -0.10, -0.2),
    ]
    return pd.DataFrame(
        rows,
        columns=["CHROM", "POS", "REF", "ALT", "SAMPLE", "GT", "AD", "BAF", "LRR", "Bdev_Phase"],
    )


@pytest.fixture
def default_config() -> AnalysisConfig:
    """Configuration with every analysis switched off."""
    return AnalysisConfig()


@pytest.fixture
def write_text(tmp_path):
    """Write dedented text to a file under tmp_path and return its path."""

    def _write(filename: str, content: str) -> str:
        path = tmp_path / filename
        path.write_text(textwrap.dedent(content).lstrip("\n"))
        return str(path)

    return _write
