# File: tests/test_cli.py
# Location: allelebias/tests/test_cli.py

"""
Tests for CLI module.

This file contains tests ensuring the CLI runs, shows help and reports
configuration errors correctly.
"""

import json
import logging
import subprocess
import sys
from unittest.mock import patch

import pandas as pd
import pytest

from allelebias.cli import create_parser, main, merge_cli_options

VARIANTS = """
CHROM\tPOS\tREF\tALT\tSAMPLE\tGT\tAD\tBAF\tBdev_Phase
1\t100\tA\tG\tS1\t0|1\t10,12\t0.30\t0.2
1\t100\tA\tG\tS2\t0|1\t11,10\t0.35\t0.1
1\t100\tA\tG\tS3\t1|0\t12,11\t0.60\t-0.3
1\t100\tA\tG\tS4\t1|0\t9,13\t0.65\t0.4
2\t500\tT\tC\tS1\t0/0\t20,0\t0.01\t.
2\t500\tT\tC\tS2\t0/1\t9,8\t0.48\t.
"""


@pytest.fixture
def variants_file(write_text):
    return write_text("variants.tsv", VARIANTS)


def test_cli_help():
    """Test that the CLI help message can be displayed."""
    cmd = [sys.executable, "-m", "allelebias.cli", "--help"]
    result = subprocess.run(cmd, capture_output=True, text=True)
    assert result.returncode == 0
    assert "usage:" in result.stdout
    assert "--balance" in result.stdout


def test_merge_cli_options_overrides_config():
    args = create_parser().parse_args(["-i", "in.tsv", "--phase", "-b", "Bdev"])
    merged = merge_cli_options({"phase": False, "ad_het": True, "balance_field": None}, args)
    assert merged["phase"] is True
    assert merged["balance_field"] == "Bdev"
    # options left off the command line keep the configured value
    assert merged["ad_het"] is True


class TestMain:
    def test_annotates_variants(self, variants_file, tmp_path):
        output = tmp_path / "out.tsv"
        code = main(["-i", variants_file, "-o", str(output), "-b", "Bdev_Phase", "-p", "-a"])
        assert code == 0

        result = pd.read_csv(output, sep="\t", dtype=str)
        assert len(result) == 2
        assert result.loc[0, "AC_Het_Phase"] == "2,2"
        assert result.loc[0, "Bal"] == "3,1"
        assert result.loc[0, "AD_Het"] == "42,46"
        assert result.loc[1, "AC_Het"] == "1"

    def test_sex_file(self, variants_file, write_text, tmp_path):
        sex_file = write_text("samples.txt", "S1 1\nS2 2\nS3 1\nS4 2\n")
        output = tmp_path / "out.tsv"
        assert main(["-i", variants_file, "-o", str(output), "-x", sex_file]) == 0
        result = pd.read_csv(output, sep="\t", dtype=str)
        assert result.loc[0, "AC_Het_Sex"] == "2,2"

    def test_config_file(self, variants_file, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"ad_het": True, "output_separator": ","}))
        output = tmp_path / "out.csv"
        assert main(["-i", variants_file, "-o", str(output), "-c", str(config)]) == 0
        result = pd.read_csv(output, sep=",", dtype=str)
        # comma-joined pairs are quoted by the writer
        assert result.loc[1, "AD_Het"] == "9,8"

    def test_missing_field_fails(self, variants_file, tmp_path, caplog):
        with caplog.at_level(logging.ERROR, logger="allelebias"):
            code = main(["-i", variants_file, "-o", str(tmp_path / "o.tsv"), "--cor-baf-lrr"])
        assert code == 1
        assert "not present" in caplog.text

    def test_missing_input_file(self, tmp_path):
        assert main(["-i", str(tmp_path / "absent.tsv")]) == 1

    def test_bad_sex_file(self, variants_file, write_text):
        sex_file = write_text("bad.txt", "S1 1 extra\n")
        assert main(["-i", variants_file, "-x", sex_file]) == 1

    def test_log_file(self, variants_file, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        code = main(
            ["-i", variants_file, "-o", str(tmp_path / "o.tsv"), "--log-file", str(log_file)]
        )
        assert code == 0
        assert "Annotated 2 variants" in log_file.read_text()
        logger = logging.getLogger("allelebias")
        for handler in list(logger.handlers):
            if isinstance(handler, logging.FileHandler):
                handler.close()
                logger.removeHandler(handler)

    def test_stdout_output(self, variants_file, capsys):
        assert main(["-i", variants_file]) == 0
        out = capsys.readouterr().out
        assert out.splitlines()[0].startswith("CHROM\tPOS\tREF\tALT\tAC_Het")

    def test_version(self):
        with patch("sys.stdout"), pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
