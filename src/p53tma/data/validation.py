"""Data validation utilities for TMA spot tables."""

from __future__ import annotations

import logging
from typing import List, Sequence

import numpy as np
import pandas as pd

from p53tma.data.spec import SCORE_RANGE, VALID_GRADES

logger = logging.getLogger(__name__)


def validate_columns(df: pd.DataFrame, required: Sequence[str]) -> None:
    """
    Validate that required columns exist in DataFrame.

    Parameters
    ----------
    df : pd.DataFrame
        Input dataframe
    required : Sequence[str]
        Column names that must be present

    Raises
    ------
    ValueError
        If any required column is missing
    """
    missing = [c for c in required if c not in df.columns]
    if missing:
        available = sorted(map(str, df.columns))
        raise ValueError(
            f"Required columns not found: {missing}. Available: {available[:10]}"
        )


def validate_scores(df: pd.DataFrame, cols: Sequence[str]) -> None:
    """
    Validate that score columns are numeric percentages.

    Missing values are allowed; anything non-numeric or outside
    the [0, 100] range is rejected.

    Raises
    ------
    ValueError
        If a column has non-numeric or out-of-range values
    """
    lo, hi = SCORE_RANGE
    errors = []

    for col in cols:
        raw = df[col]
        values = pd.to_numeric(raw, errors="coerce")

        bad_type = values.isna() & raw.notna()
        if bad_type.any():
            examples = raw[bad_type].astype(str).unique().tolist()[:5]
            errors.append(f"Column '{col}' has non-numeric values: {examples}")
            continue

        if np.isinf(values.dropna().to_numpy(dtype=float)).any():
            errors.append(f"Column '{col}' contains infinite values")
            continue

        out_of_range = values.notna() & ((values < lo) | (values > hi))
        if out_of_range.any():
            examples = values[out_of_range].unique().tolist()[:5]
            errors.append(
                f"Column '{col}' has values outside [{lo:g}, {hi:g}]: {examples}"
            )

    if errors:
        raise ValueError("\n".join(errors))


def validate_grades(df: pd.DataFrame, col: str) -> None:
    """
    Validate histologic grade values (1, 2 or 3; missing allowed).

    Raises
    ------
    ValueError
        If any non-missing value is not a valid grade
    """
    raw = df[col]
    values = pd.to_numeric(raw, errors="coerce")
    present = raw.notna()

    invalid = present & ~values.isin(VALID_GRADES)
    if invalid.any():
        examples = raw[invalid].astype(str).unique().tolist()[:5]
        raise ValueError(
            f"Column '{col}' has invalid grades {examples}; expected one of {list(VALID_GRADES)}"
        )


def validate_spots(df: pd.DataFrame, col: str) -> None:
    """
    Validate spot indices: whole numbers, missing allowed.

    Raises
    ------
    ValueError
        If any non-missing value is non-numeric or has a fractional part
    """
    raw = df[col]
    values = pd.to_numeric(raw, errors="coerce")
    present = raw.notna()

    invalid = present & (values.isna() | (values % 1 != 0))
    if invalid.any():
        examples = raw[invalid].astype(str).unique().tolist()[:5]
        raise ValueError(f"Column '{col}' has non-integer spot indices: {examples}")


def validate_unique_spots(df: pd.DataFrame, case_col: str, spot_col: str) -> List[str]:
    """Return warnings for (case, spot) keys that occur more than once."""
    warnings = []
    dup = df.duplicated(subset=[case_col, spot_col], keep=False)
    if dup.any():
        keys = df.loc[dup, [case_col, spot_col]].drop_duplicates().astype(str)
        examples = [f"{c}/{s}" for c, s in keys.itertuples(index=False)][:5]
        warnings.append(f"{int(dup.sum())} rows share a case/spot key: {examples}")
    for msg in warnings:
        logger.warning(msg)
    return warnings


def generate_missingness_report(df: pd.DataFrame) -> pd.DataFrame:
    """
    Generate missing-value counts per column.

    Returns
    -------
    pd.DataFrame
        Columns: column, n_missing, pct_missing
    """
    n = len(df)
    rows = []
    for col in df.columns:
        n_missing = int(df[col].isna().sum())
        rows.append(
            {
                "column": col,
                "n_missing": n_missing,
                "pct_missing": 100.0 * n_missing / n if n > 0 else np.nan,
            }
        )
    return pd.DataFrame(rows, columns=["column", "n_missing", "pct_missing"])
