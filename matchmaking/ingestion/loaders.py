"""
Reading upload files into row dictionaries.

All cells are read as strings so that type inference happens in column
detection, not in the file reader.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xls"}


def load_upload_file(filepath: str) -> List[Dict[str, Any]]:
    """
    Load a CSV or Excel file as a list of string-valued rows.

    Args:
        filepath: Path to a .csv, .xlsx or .xls file

    Returns:
        One dictionary per data row, keyed by header

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Upload file not found: {filepath}")

    if path.suffix.lower() in EXCEL_SUFFIXES:
        df = pd.read_excel(path, dtype=str, keep_default_na=False)
    else:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)

    df.columns = [str(c).strip() for c in df.columns]
    logger.info(f"Loaded {len(df)} rows with {len(df.columns)} columns from {filepath}")
    return df.to_dict(orient="records")
