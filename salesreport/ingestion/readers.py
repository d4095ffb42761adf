"""Read order sheets and product catalogs into plain records.

Every cell is kept as text; numeric coercion happens later through the
field resolver so that alias resolution sees exactly what the sheet held.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd

MAX_FILE_SIZE_MB = 50
MAX_ROWS = 200_000

# Taobao/Jushuitan CSV exports are often GBK-encoded
CSV_ENCODINGS = ("utf-8-sig", "gb18030")


def _read_csv(file_path: Path) -> pd.DataFrame:
    last_error: UnicodeDecodeError | None = None
    for encoding in CSV_ENCODINGS:
        try:
            return pd.read_csv(
                file_path, dtype=str, keep_default_na=False, encoding=encoding
            )
        except UnicodeDecodeError as exc:
            last_error = exc
    raise ValueError(f"Could not decode {file_path.name}: {last_error}")


def read_records(file_path: Path) -> list[dict[str, Any]]:
    """Load a CSV or XLSX file as a list of column -> text records.

    Args:
        file_path: Path to CSV or XLSX file

    Returns:
        One dict per non-empty row, keyed by stripped header names

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If the format is unsupported or limits are exceeded
    """
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    file_size_mb = file_path.stat().st_size / (1024 * 1024)
    if file_size_mb > MAX_FILE_SIZE_MB:
        raise ValueError(
            f"File too large ({file_size_mb:.1f}MB). Maximum allowed: {MAX_FILE_SIZE_MB}MB"
        )

    suffix = file_path.suffix.lower()
    if suffix == ".csv":
        df = _read_csv(file_path)
    elif suffix in (".xlsx", ".xls"):
        df = pd.read_excel(file_path, dtype=str).fillna("")
    else:
        raise ValueError(f"Unsupported file format: {file_path.suffix}. Use CSV or XLSX.")

    if len(df) > MAX_ROWS:
        raise ValueError(f"Too many rows ({len(df):,}). Maximum allowed: {MAX_ROWS:,}")

    df.columns = [str(column).strip() for column in df.columns]
    df = df.apply(lambda col: col.str.strip())
    df = df[(df != "").any(axis=1)]

    return df.to_dict(orient="records")
