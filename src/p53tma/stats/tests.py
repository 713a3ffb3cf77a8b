"""Rank-based hypothesis tests (Wilcoxon, Kruskal-Wallis, Dunn, Spearman)."""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats
import scikit_posthocs as sp
from statsmodels.stats.multitest import multipletests

from p53tma.data.spec import VISUAL_COL, DIGITAL_COL, METHODS
from p53tma.stats.agreement import paired_complete
from p53tma.stats.effects import cliff_delta, matched_pairs_rank_biserial

logger = logging.getLogger(__name__)


def _finite(x) -> np.ndarray:
    x = np.asarray(x, dtype=float)
    return x[np.isfinite(x)]


def _clean(value) -> float:
    value = float(value)
    return value if np.isfinite(value) else np.nan


def _group_levels(series: pd.Series, levels: Optional[List[Any]] = None) -> List[Any]:
    if levels is not None:
        return list(levels)
    if isinstance(series.dtype, pd.CategoricalDtype):
        return list(series.cat.categories)
    return sorted(series.dropna().unique().tolist())


def _level_mask(series: pd.Series, level: Any) -> pd.Series:
    return (series == level).fillna(False).astype(bool)


def adjust_pvalues(pvals, method: str = "holm") -> np.ndarray:
    """Adjust p-values with statsmodels multipletests, leaving NaN in place."""
    pvals = np.asarray(pvals, dtype=float)
    p_adj = np.full_like(pvals, np.nan, dtype=float)
    mask = np.isfinite(pvals)
    if mask.any():
        _, adj, _, _ = multipletests(pvals[mask], method=method)
        p_adj[mask] = adj
    return p_adj


def wilcoxon_signed_rank(x, y) -> Dict[str, Any]:
    """Perform the Wilcoxon signed-rank test on paired values.

    Args:
        x: First measurement per pair
        y: Second measurement per pair

    Returns:
        Dictionary with keys: statistic, p_value, n_pairs, median_diff, effect_size

    Notes:
        Incomplete pairs are dropped. Zero differences are discarded
        (``zero_method="wilcox"``). Returns NaN statistic/p-value when no
        pair differs.
    """
    x, y = paired_complete(x, y)
    n = len(x)
    d = x - y

    stat, p_val = np.nan, np.nan
    if n > 0 and np.any(d != 0):
        try:
            res = stats.wilcoxon(x, y, zero_method="wilcox", alternative="two-sided")
            stat, p_val = res.statistic, res.pvalue
        except ValueError as exc:
            logger.debug(f"Wilcoxon signed-rank not computed: {exc}")

    return {
        "statistic": _clean(stat),
        "p_value": _clean(p_val),
        "n_pairs": n,
        "median_diff": float(np.median(d)) if n > 0 else np.nan,
        "effect_size": matched_pairs_rank_biserial(x, y),
    }


def wilcoxon_rank_sum(x, y) -> Dict[str, Any]:
    """Perform the two-sided Wilcoxon rank-sum (Mann-Whitney U) test.

    Args:
        x: First group values
        y: Second group values

    Returns:
        Dictionary with keys: statistic, p_value, n1, n2, median1, median2, cliff_delta
    """
    x, y = _finite(x), _finite(y)

    stat, p_val = np.nan, np.nan
    if len(x) > 0 and len(y) > 0:
        try:
            stat, p_val = stats.mannwhitneyu(x, y, alternative="two-sided")
        except ValueError as exc:
            logger.debug(f"Rank-sum test not computed: {exc}")

    return {
        "statistic": _clean(stat),
        "p_value": _clean(p_val),
        "n1": len(x),
        "n2": len(y),
        "median1": float(np.median(x)) if len(x) > 0 else np.nan,
        "median2": float(np.median(y)) if len(y) > 0 else np.nan,
        "cliff_delta": cliff_delta(x, y),
    }


def kruskal_wallis(groups: List[np.ndarray]) -> Dict[str, Any]:
    """Perform Kruskal-Wallis H test.

    Args:
        groups: List of group arrays; empty groups are ignored

    Returns:
        Dictionary with keys: statistic, p_value, k_groups, N, df
    """
    groups = [g for g in (_finite(g) for g in groups) if len(g) > 0]
    k = len(groups)
    N = sum(len(g) for g in groups)

    H_stat, p_val = np.nan, np.nan
    if k >= 2:
        try:
            H_stat, p_val = stats.kruskal(*groups)
        except ValueError as exc:
            logger.debug(f"Kruskal-Wallis not computed: {exc}")

    return {
        "statistic": _clean(H_stat),
        "p_value": _clean(p_val),
        "k_groups": k,
        "N": N,
        "df": k - 1 if k > 0 else np.nan,
    }


def dunn_posthoc(
    df: pd.DataFrame,
    value_col: str,
    group_col: str,
    p_adjust: str = "holm",
    alpha: float = 0.05,
) -> List[Dict[str, Any]]:
    """Perform Dunn's post-hoc test with p-value adjustment.

    Args:
        df: Dataframe with value and group columns
        value_col: Value column name
        group_col: Group column name
        p_adjust: P-value adjustment method
        alpha: Significance level (for reject flag)

    Returns:
        List of dictionaries, one per pairwise comparison
        Keys: variable, posthoc, group1, group2, p_adj, reject
    """
    sub = df[[value_col, group_col]].dropna().copy()
    sub[value_col] = sub[value_col].astype(float)
    sub[group_col] = sub[group_col].astype(str)

    if sub[group_col].nunique() < 2 or sub[value_col].nunique() < 2:
        return []

    ph = sp.posthoc_dunn(sub, val_col=value_col, group_col=group_col, p_adjust=p_adjust)

    rows = []
    for g1, g2 in itertools.combinations(ph.index, 2):
        p_adj = _clean(ph.loc[g1, g2])
        rows.append(
            {
                "variable": value_col,
                "posthoc": f"Dunn ({p_adjust})",
                "group1": str(g1),
                "group2": str(g2),
                "p_adj": p_adj,
                "reject": bool(p_adj < alpha) if np.isfinite(p_adj) else False,
            }
        )
    return rows


def spearman_correlation(x, y) -> Dict[str, Any]:
    """Spearman rank correlation on complete pairs.

    Returns:
        Dictionary with keys: n, rho, p_value (NaN when n < 3 or an input is constant)
    """
    x, y = paired_complete(x, y)
    n = len(x)

    rho, p_val = np.nan, np.nan
    if n >= 3 and np.ptp(x) > 0 and np.ptp(y) > 0:
        rho, p_val = stats.spearmanr(x, y)

    return {"n": n, "rho": _clean(rho), "p_value": _clean(p_val)}


def compare_methods_paired(
    df: pd.DataFrame,
    x_col: str = VISUAL_COL,
    y_col: str = DIGITAL_COL,
    group_col: Optional[str] = None,
    levels: Optional[List[Any]] = None,
    p_adjust: str = "holm",
) -> pd.DataFrame:
    """Signed-rank comparison of two methods, overall or within each group.

    Returns:
        DataFrame with columns: group, test, n_pairs, median1, median2, median_diff,
        statistic, p_value, effect_size, p_adj. Per-group p-values are adjusted
        across groups; the overall row has p_adj == p_value.
    """
    columns = [
        "group",
        "test",
        "n_pairs",
        "median1",
        "median2",
        "median_diff",
        "statistic",
        "p_value",
        "effect_size",
        "p_adj",
    ]

    def _row(sub: pd.DataFrame, label: str) -> Dict[str, Any]:
        x, y = paired_complete(sub[x_col], sub[y_col])
        return {
            "group": label,
            "test": "Wilcoxon signed-rank",
            "median1": float(np.median(x)) if len(x) else np.nan,
            "median2": float(np.median(y)) if len(y) else np.nan,
            **wilcoxon_signed_rank(x, y),
        }

    if group_col is None:
        out = pd.DataFrame([_row(df, "all")], columns=columns[:-1])
        out["p_adj"] = out["p_value"]
        return out[columns]

    rows = [
        _row(df.loc[_level_mask(df[group_col], level)], str(level))
        for level in _group_levels(df[group_col], levels)
    ]
    out = pd.DataFrame(rows, columns=columns[:-1])
    out["p_adj"] = adjust_pvalues(out["p_value"].to_numpy(), p_adjust)
    return out[columns]


def compare_methods_unpaired(
    long_df: pd.DataFrame,
    value_col: str = "score",
    method_col: str = "method",
    methods: Sequence[str] = METHODS,
) -> pd.DataFrame:
    """Rank-sum comparison of score distributions between two methods.

    Treats the long-by-method table as two independent samples.
    """
    if len(methods) != 2:
        raise ValueError(f"Exactly two methods are compared, got {list(methods)}")

    m1, m2 = methods
    x = long_df.loc[_level_mask(long_df[method_col], m1), value_col]
    y = long_df.loc[_level_mask(long_df[method_col], m2), value_col]

    result = wilcoxon_rank_sum(x, y)
    return pd.DataFrame(
        [{"test": "Wilcoxon rank-sum", "group1": m1, "group2": m2, **result}]
    )


def compare_across_groups(
    df: pd.DataFrame,
    value_cols: Sequence[str],
    group_col: str,
    levels: Optional[List[Any]] = None,
) -> pd.DataFrame:
    """Omnibus test of each value column across the levels of a grouping.

    Two non-empty groups use the Wilcoxon rank-sum test, three or more use
    Kruskal-Wallis. Fewer than two non-empty groups give a "Not tested" row.

    Returns:
        DataFrame with columns: variable, grouping, test, k_groups, N, df,
        statistic, p_value
    """
    levels = _group_levels(df[group_col], levels)
    rows = []

    for col in value_cols:
        groups = []
        for level in levels:
            values = _finite(df.loc[_level_mask(df[group_col], level), col])
            if len(values) > 0:
                groups.append(values)

        k = len(groups)
        N = sum(len(g) for g in groups)

        if k == 2:
            res = wilcoxon_rank_sum(groups[0], groups[1])
            test, statistic, p_value = "Wilcoxon rank-sum", res["statistic"], res["p_value"]
        elif k >= 3:
            res = kruskal_wallis(groups)
            test, statistic, p_value = "Kruskal-Wallis", res["statistic"], res["p_value"]
        else:
            test, statistic, p_value = "Not tested", np.nan, np.nan

        rows.append(
            {
                "variable": col,
                "grouping": group_col,
                "test": test,
                "k_groups": k,
                "N": N,
                "df": k - 1 if k > 0 else np.nan,
                "statistic": statistic,
                "p_value": p_value,
            }
        )

    return pd.DataFrame(
        rows,
        columns=["variable", "grouping", "test", "k_groups", "N", "df", "statistic", "p_value"],
    )


def posthoc_across_groups(
    df: pd.DataFrame,
    value_cols: Sequence[str],
    group_col: str,
    p_adjust: str = "holm",
    alpha: float = 0.05,
) -> pd.DataFrame:
    """Dunn post-hoc comparisons for value columns with three or more groups.

    Returns:
        DataFrame with columns: variable, grouping, posthoc, group1, group2, p_adj, reject
    """
    rows = []
    for col in value_cols:
        sub = df[[col, group_col]].dropna()
        if sub[group_col].nunique() < 3:
            continue
        for row in dunn_posthoc(sub, col, group_col, p_adjust, alpha):
            rows.append({"grouping": group_col, **row})

    return pd.DataFrame(
        rows,
        columns=["variable", "grouping", "posthoc", "group1", "group2", "p_adj", "reject"],
    )


def correlate_methods(
    df: pd.DataFrame,
    x_col: str = VISUAL_COL,
    y_col: str = DIGITAL_COL,
    group_col: Optional[str] = None,
    levels: Optional[List[Any]] = None,
) -> pd.DataFrame:
    """Spearman correlation between two methods, overall and optionally per group.

    Returns:
        DataFrame with columns: group, variable1, variable2, n, rho, p_value
    """
    rows = [{"group": "all", **spearman_correlation(df[x_col], df[y_col])}]

    if group_col is not None:
        for level in _group_levels(df[group_col], levels):
            sub = df.loc[_level_mask(df[group_col], level)]
            rows.append({"group": str(level), **spearman_correlation(sub[x_col], sub[y_col])})

    out = pd.DataFrame(rows)
    out.insert(1, "variable1", x_col)
    out.insert(2, "variable2", y_col)
    return out
