"""Descriptive statistics with missing-value annotation."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence
import numpy as np
import pandas as pd

DESCRIPTIVE_COLUMNS = [
    "n",
    "n_missing",
    "mean",
    "sd",
    "median",
    "q25",
    "q75",
    "iqr",
    "min",
    "max",
]


def summarize_values(x) -> Dict[str, Any]:
    """Summarize a numeric vector.

    Args:
        x: Array-like of values; missing values are excluded and counted

    Returns:
        Dictionary with keys: n, n_missing, mean, sd, median, q25, q75, iqr, min, max

    Notes:
        - sd uses ddof=1 and is NaN when fewer than 2 values are present
        - all statistics are NaN when no values are present
    """
    arr = pd.to_numeric(pd.Series(x), errors="coerce").astype(float).to_numpy()
    valid = arr[np.isfinite(arr)]
    n_valid = len(valid)
    n_missing = len(arr) - n_valid

    if n_valid > 0:
        q25 = float(np.percentile(valid, 25))
        q75 = float(np.percentile(valid, 75))
        stats = {
            "mean": float(np.mean(valid)),
            "sd": float(np.std(valid, ddof=1)) if n_valid > 1 else np.nan,
            "median": float(np.median(valid)),
            "q25": q25,
            "q75": q75,
            "iqr": q75 - q25,
            "min": float(np.min(valid)),
            "max": float(np.max(valid)),
        }
    else:
        stats = {k: np.nan for k in DESCRIPTIVE_COLUMNS[2:]}

    return {"n": n_valid, "n_missing": n_missing, **stats}


def describe_methods(
    df: pd.DataFrame, value_cols: Sequence[str], level: Optional[str] = None
) -> pd.DataFrame:
    """Describe each value column over the whole table.

    Returns:
        DataFrame with columns: [level,] variable, n, n_missing, mean, sd, ...
    """
    rows = []
    for col in value_cols:
        row = {"variable": col, **summarize_values(df[col])}
        if level is not None:
            row = {"level": level, **row}
        rows.append(row)

    columns = (["level"] if level is not None else []) + ["variable"] + DESCRIPTIVE_COLUMNS
    return pd.DataFrame(rows, columns=columns)


def describe_by_group(
    df: pd.DataFrame,
    value_cols: Sequence[str],
    group_col: str,
    levels: Optional[List[Any]] = None,
    level: Optional[str] = None,
) -> pd.DataFrame:
    """Describe value columns within each level of a grouping column.

    Args:
        df: Input dataframe
        value_cols: Numeric columns to describe
        group_col: Grouping column (subtype, grade, quantile group, ...)
        levels: Optional level order; levels absent from the data are
            reported with n = 0. Defaults to the observed levels
            (categorical order if categorical, sorted otherwise).
        level: Optional label (e.g. "spot" or "case") put in a leading
            ``level`` column

    Returns:
        DataFrame with columns: [level,] variable, group, n, n_missing, mean, sd, median,
        q25, q75, iqr, min, max. Rows with a missing group value are left out.
    """
    if levels is None:
        groups = df[group_col]
        if isinstance(groups.dtype, pd.CategoricalDtype):
            levels = list(groups.cat.categories)
        else:
            levels = sorted(groups.dropna().unique().tolist())

    rows = []
    for col in value_cols:
        for group in levels:
            mask = (df[group_col] == group).fillna(False).astype(bool)
            x = df.loc[mask, col]
            rows.append({"variable": col, "group": group, **summarize_values(x)})

    out = pd.DataFrame(rows, columns=["variable", "group"] + DESCRIPTIVE_COLUMNS)
    out["group"] = out["group"].astype(str)
    if level is not None:
        out.insert(0, "level", level)
    return out
