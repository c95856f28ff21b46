"""
Sex annotation reader.

This module parses per-sample sex annotations from either a standard
6-column PED file or a 2-column sample/sex file, and lines them up with the
sample order of the variant table.
"""

import logging
from typing import Dict, List, Sequence

import pandas as pd

logger = logging.getLogger("allelebias")

PED_COLUMNS = ["family_id", "sample_id", "father_id", "mother_id", "sex", "affected_status"]

_SEX_CODES = {
    "1": 1,
    "m": 1,
    "male": 1,
    "2": 2,
    "f": 2,
    "female": 2,
}


def parse_sex_code(value: str) -> int:
    """
    Map a sex annotation to 1 (male), 2 (female) or 0 (unknown).

    Args:
        value: Sex code as found in the file ("1", "2", "M", "F", "male", ...)

    Returns:
        1, 2 or 0
    """
    if value is None or pd.isna(value):
        return 0
    return _SEX_CODES.get(str(value).strip().lower(), 0)


def read_sex_file(file_path: str) -> Dict[str, int]:
    """
    Parses a sex annotation file into a dictionary keyed by sample ID.

    Args:
        file_path: Path to a PED file (6 columns) or a two-column file
            with sample ID and sex

    Returns:
        Dictionary mapping sample IDs to 1 (male), 2 (female) or 0 (unknown)

    Raises:
        ValueError: If the file is invalid or cannot be parsed
    """
    try:
        try:
            raw_df = pd.read_csv(file_path, sep=r"\s+", header=None, dtype=str, comment="#")
        except pd.errors.EmptyDataError:
            raise ValueError("Sex file is empty")

        if raw_df.empty:
            raise ValueError("Sex file is empty")

        if raw_df.shape[1] == 6:
            raw_df.columns = PED_COLUMNS
        elif raw_df.shape[1] == 2:
            raw_df.columns = ["sample_id", "sex"]
        else:
            raise ValueError(
                f"Sex file must have 2 columns or 6 PED columns, found {raw_df.shape[1]}"
            )

        sexes = {}
        for sample_id, sex in zip(raw_df["sample_id"], raw_df["sex"]):
            if pd.isna(sample_id) or sample_id == "":
                logger.warning("Skipping row with empty sample ID")
                continue
            sexes[sample_id] = parse_sex_code(sex)

        n_known = sum(1 for s in sexes.values() if s)
        logger.info(f"Successfully parsed sex file with {len(sexes)} samples ({n_known} with known sex)")
        return sexes

    except Exception as e:
        raise ValueError(f"Failed to parse sex file: {e}")


def sexes_for_samples(sex_map: Dict[str, int], samples: Sequence[str]) -> List[int]:
    """
    Line up sex annotations with a sample order.

    Args:
        sex_map: Mapping from sample ID to sex code
        samples: Sample IDs in the order used by the variant signals

    Returns:
        List of sex codes, 0 for samples absent from the mapping
    """
    missing = [s for s in samples if s not in sex_map]
    if missing:
        logger.warning(
            f"{len(missing)} samples have no sex annotation (first: {missing[0]}); "
            f"treating them as unknown"
        )
    return [sex_map.get(s, 0) for s in samples]
