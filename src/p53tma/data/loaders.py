"""Data loading functions for TMA spot tables.

This module provides table loading for CSV, TSV and Parquet files and the
schema-aware loader that returns the canonical six-column spot table.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, List, Union

import numpy as np
import pandas as pd

from p53tma.data.spec import (
    CANONICAL_COLUMNS,
    CASE_COL,
    SPOT_COL,
    SUBTYPE_COL,
    GRADE_COL,
    METHODS,
    ColumnMap,
    DataFormat,
)
from p53tma.data.validation import (
    validate_columns,
    validate_scores,
    validate_grades,
    validate_spots,
    validate_unique_spots,
)

logger = logging.getLogger(__name__)

# Flag to track PyArrow availability
_PYARROW_AVAILABLE: Optional[bool] = None


def validate_parquet_available() -> None:
    """
    Check if PyArrow is available for Parquet operations.

    Raises
    ------
    ImportError
        If PyArrow is not installed with helpful installation message
    """
    global _PYARROW_AVAILABLE

    if _PYARROW_AVAILABLE is None:
        try:
            import pyarrow  # noqa: F401

            _PYARROW_AVAILABLE = True
        except ImportError:
            _PYARROW_AVAILABLE = False

    if not _PYARROW_AVAILABLE:
        raise ImportError(
            "PyArrow is required for Parquet support but is not installed.\n"
            "Install with: pip install p53tma[parquet] or pip install pyarrow"
        )


def infer_format(path: Path) -> DataFormat:
    """Infer data format from file path."""
    return DataFormat.from_path(path)


def load_table(path: Union[Path, str], columns: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Load a raw table from a CSV, TSV or Parquet file.

    Parameters
    ----------
    path : Path or str
        Path to data file
    columns : List[str], optional
        Subset of columns to load

    Returns
    -------
    pd.DataFrame
        Loaded data, without any schema processing

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    ValueError
        If the format cannot be inferred
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    fmt = infer_format(path)
    logger.info(f"Loading table from {path} (format: {fmt.value})")

    if fmt == DataFormat.CSV:
        return pd.read_csv(path, usecols=columns)
    elif fmt == DataFormat.TSV:
        return pd.read_csv(path, sep="\t", usecols=columns)
    elif fmt == DataFormat.PARQUET:
        validate_parquet_available()
        return pd.read_parquet(path, columns=columns)
    else:
        raise ValueError(f"Unsupported format: {fmt}")


def coerce_tma_types(df: pd.DataFrame, subtype_order: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Coerce canonical columns to their analysis dtypes.

    case_id -> str, spot -> Int64, subtype -> category, grade -> Int64,
    scores -> float.
    """
    df = df.copy()
    df[CASE_COL] = df[CASE_COL].astype(str).str.strip()
    df[SPOT_COL] = pd.to_numeric(df[SPOT_COL], errors="raise").astype("Int64")
    df[GRADE_COL] = pd.to_numeric(df[GRADE_COL], errors="coerce").astype("Int64")

    for method in METHODS:
        df[method] = pd.to_numeric(df[method], errors="coerce").astype(float)

    subtypes = df[SUBTYPE_COL].map(lambda v: str(v).strip() if pd.notna(v) else np.nan)
    if subtype_order is not None:
        unknown = sorted(set(subtypes.dropna()) - set(subtype_order))
        if unknown:
            raise ValueError(
                f"Subtypes {unknown} not in configured subtype order {subtype_order}"
            )
        categories = list(subtype_order)
    else:
        categories = list(pd.unique(subtypes.dropna()))
    df[SUBTYPE_COL] = pd.Categorical(subtypes, categories=categories)

    return df


def load_tma_table(
    path: Union[Path, str],
    columns: Optional[ColumnMap] = None,
    subtype_order: Optional[List[str]] = None,
    expected_rows: Optional[int] = None,
) -> pd.DataFrame:
    """
    Load and validate a TMA spot table.

    The returned frame has exactly the canonical columns
    ``case_id, spot, subtype, grade, visual, digital`` in that order.

    Parameters
    ----------
    path : Path or str
        Path to the spot table
    columns : ColumnMap, optional
        Source column names; defaults to the canonical names
    subtype_order : List[str], optional
        Category order for the subtype column
    expected_rows : int, optional
        If given, the number of rows the table must contain

    Returns
    -------
    pd.DataFrame
        Canonical spot table

    Raises
    ------
    ValueError
        If columns are missing, values are invalid or the row count is wrong
    """
    columns = columns or ColumnMap()
    df = load_table(path)

    logger.info(f"Loaded {len(df)} rows, {len(df.columns)} columns")

    validate_columns(df, columns.source_columns())

    extra = [c for c in df.columns if c not in columns.source_columns()]
    if extra:
        logger.warning(f"Dropping {len(extra)} columns not in the TMA schema: {extra[:10]}")

    df = df[columns.source_columns()].rename(columns=columns.to_rename())

    if df[CASE_COL].isna().any():
        raise ValueError(f"{int(df[CASE_COL].isna().sum())} rows have no case identifier")

    validate_scores(df, METHODS)
    validate_grades(df, GRADE_COL)
    validate_spots(df, SPOT_COL)
    validate_unique_spots(df, CASE_COL, SPOT_COL)

    df = coerce_tma_types(df, subtype_order)

    if expected_rows is not None and len(df) != expected_rows:
        raise ValueError(f"Expected {expected_rows} rows, found {len(df)}")

    for method in METHODS:
        n_missing = int(df[method].isna().sum())
        if n_missing:
            logger.warning(f"{n_missing} rows have a missing '{method}' score")

    n_missing_grade = int(df[GRADE_COL].isna().sum())
    if n_missing_grade:
        logger.info(f"{n_missing_grade} rows have no grade")

    return df[CANONICAL_COLUMNS].reset_index(drop=True)
