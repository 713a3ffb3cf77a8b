"""Derived views of the spot table: log scores, per-case aggregates and reshapes."""

from __future__ import annotations

from typing import List, Optional, Sequence, Union
import pandas as pd
import numpy as np

from p53tma.data.spec import (
    CASE_COL,
    SPOT_COL,
    SUBTYPE_COL,
    GRADE_COL,
    METHODS,
)

LOG_SUFFIX = "_log1p"


def log1p_transform(values: Union[pd.Series, np.ndarray, Sequence[float]]):
    """Apply log(1 + x) elementwise.

    Args:
        values: Non-negative values (missing values allowed)

    Returns:
        Transformed values, same container type as a Series input,
        otherwise a float ndarray

    Raises:
        ValueError: If any non-missing value is negative
    """
    if isinstance(values, pd.Series):
        arr = values.astype(float)
        if (arr.dropna() < 0).any():
            raise ValueError("log1p transform requires non-negative values")
        return np.log1p(arr)

    arr = np.asarray(values, dtype=float)
    if np.any(arr[~np.isnan(arr)] < 0):
        raise ValueError("log1p transform requires non-negative values")
    return np.log1p(arr)


def add_log_scores(df: pd.DataFrame, methods: Sequence[str] = METHODS) -> pd.DataFrame:
    """Return a copy with a ``<method>_log1p`` column per scoring method."""
    df = df.copy()
    for method in methods:
        df[f"{method}{LOG_SUFFIX}"] = log1p_transform(df[method])
    return df


def subtype_levels(df: pd.DataFrame, order: Optional[List[str]] = None) -> List[str]:
    """Return the subtype levels to report, in order.

    A configured order wins; otherwise categorical order, else order of
    first appearance.
    """
    if order is not None:
        return list(order)
    col = df[SUBTYPE_COL]
    if isinstance(col.dtype, pd.CategoricalDtype):
        return [str(c) for c in col.cat.categories]
    return [str(c) for c in pd.unique(col.dropna())]


def case_max_grade(df: pd.DataFrame) -> pd.Series:
    """Per-case histologic grade: the highest grade seen on any spot.

    Missing grades are ignored; a case with no graded spot gets <NA>.
    """
    grades = df[GRADE_COL].astype("Int64")
    out = grades.groupby(df[CASE_COL], sort=False).max()
    out.name = GRADE_COL
    return out.astype("Int64")


def case_means(df: pd.DataFrame, methods: Sequence[str] = METHODS) -> pd.DataFrame:
    """Collapse spots to one row per case.

    Columns: case_id, subtype, grade (max), n_spots, one mean column per
    method (missing spots excluded) and ``n_<method>`` counts of the
    spots that contributed to each mean.
    """
    grouped = df.groupby(CASE_COL, sort=False)

    agg = {
        SUBTYPE_COL: (SUBTYPE_COL, "first"),
        "n_spots": (SPOT_COL, "size"),
    }
    for method in methods:
        agg[method] = (method, "mean")
        agg[f"n_{method}"] = (method, "count")

    cases = grouped.agg(**agg)
    cases.insert(1, GRADE_COL, case_max_grade(df))
    cases = cases.reset_index()

    if isinstance(df[SUBTYPE_COL].dtype, pd.CategoricalDtype):
        cases[SUBTYPE_COL] = pd.Categorical(
            cases[SUBTYPE_COL].astype(object), categories=df[SUBTYPE_COL].cat.categories
        )

    return cases


def wide_by_case(df: pd.DataFrame, methods: Sequence[str] = METHODS) -> pd.DataFrame:
    """Pivot spots into columns: one row per case, ``<method>_spot<k>`` columns."""
    wide = df.pivot_table(
        index=CASE_COL,
        columns=SPOT_COL,
        values=list(methods),
        aggfunc="mean",
        dropna=False,
    )
    # pivot_table orders the value level alphabetically
    wide = wide[list(methods)]
    wide.columns = [f"{method}_spot{spot}" for method, spot in wide.columns]

    meta = case_means(df, methods)[[CASE_COL, SUBTYPE_COL, GRADE_COL]].set_index(CASE_COL)
    return meta.join(wide).reset_index()


def long_by_method(df: pd.DataFrame, methods: Sequence[str] = METHODS) -> pd.DataFrame:
    """Stack method scores: one row per (spot, method) with a ``score`` column."""
    id_vars = [c for c in (CASE_COL, SPOT_COL, SUBTYPE_COL, GRADE_COL) if c in df.columns]
    long = df.melt(
        id_vars=id_vars,
        value_vars=list(methods),
        var_name="method",
        value_name="score",
    )
    long["method"] = pd.Categorical(long["method"], categories=list(methods))
    return long


def quantile_groups(values: Union[pd.Series, np.ndarray, Sequence[float]], n: int = 4) -> pd.Series:
    """Assign values to quantile bins labelled ``Q1`` .. ``Qk``.

    Bins with duplicated edges are merged, so k can be smaller than n.
    Missing values stay missing.

    Raises:
        ValueError: If n < 2 or fewer than two distinct values are present
    """
    if n < 2:
        raise ValueError(f"Need at least 2 quantile groups, got {n}")

    s = values if isinstance(values, pd.Series) else pd.Series(np.asarray(values, dtype=float))
    s = s.astype(float)

    if s.dropna().nunique() < 2:
        raise ValueError("Quantile grouping needs at least two distinct values")

    binned = pd.qcut(s, q=n, duplicates="drop")
    k = len(binned.cat.categories)
    return binned.cat.rename_categories([f"Q{i + 1}" for i in range(k)])


def quantile_edges(values: Union[pd.Series, np.ndarray], n: int = 4) -> pd.DataFrame:
    """Return the bin edges used by quantile_groups().

    Edges are the observed quantiles, not the widened interval bounds
    pandas uses to include the minimum. Fewer than two distinct values
    give an empty table.

    Columns: group, lower, upper
    """
    s = values if isinstance(values, pd.Series) else pd.Series(np.asarray(values, dtype=float))
    s = s.astype(float)

    if s.dropna().nunique() < 2:
        return pd.DataFrame(columns=["group", "lower", "upper"])

    _, bins = pd.qcut(s, q=n, retbins=True, duplicates="drop")
    return pd.DataFrame(
        {
            "group": [f"Q{i + 1}" for i in range(len(bins) - 1)],
            "lower": bins[:-1].astype(float),
            "upper": bins[1:].astype(float),
        }
    )
