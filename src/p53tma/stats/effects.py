"""Rank-based effect sizes for method and group comparisons."""

from __future__ import annotations

import numpy as np
from scipy import stats as sp_stats


def _finite(x) -> np.ndarray:
    x = np.asarray(x, dtype=float)
    return x[np.isfinite(x)]


def cliff_delta(x: np.ndarray, y: np.ndarray) -> float:
    """Calculate Cliff's Delta effect size.

    Args:
        x: First group values
        y: Second group values

    Returns:
        Cliff's Delta in range [-1, 1]

    Notes:
        - Delta = (# pairs where x > y - # pairs where x < y) / (nx * ny)
        - Returns NaN if either group is empty
        - Interpretation: |delta| < 0.147: negligible, < 0.33: small,
          < 0.474: medium, >= 0.474: large
    """
    x, y = _finite(x), _finite(y)
    nx, ny = len(x), len(y)

    if nx == 0 or ny == 0:
        return np.nan

    greater = np.sum(x[:, None] > y[None, :])
    less = np.sum(x[:, None] < y[None, :])

    return float((greater - less) / (nx * ny))


def rank_biserial(x: np.ndarray, y: np.ndarray) -> float:
    """Calculate rank-biserial correlation from Mann-Whitney U.

    Args:
        x: First group values
        y: Second group values

    Returns:
        Rank-biserial correlation in range [-1, 1]

    Notes:
        Computed as: r = 1 - (2*U) / (nx * ny), with U the statistic for x.
        Positive values mean y tends to exceed x.
        Returns NaN if either group is empty
    """
    x, y = _finite(x), _finite(y)
    nx, ny = len(x), len(y)

    if nx == 0 or ny == 0:
        return np.nan

    U, _ = sp_stats.mannwhitneyu(x, y, alternative="two-sided")
    return float(1.0 - (2.0 * U) / (nx * ny))


def matched_pairs_rank_biserial(x: np.ndarray, y: np.ndarray) -> float:
    """Matched-pairs rank-biserial correlation for a signed-rank test.

    Args:
        x: First measurement per pair
        y: Second measurement per pair (same length as x)

    Returns:
        (R+ - R-) / (R+ + R-) in [-1, 1], where R+ / R- are the rank sums of
        positive / negative differences x - y. NaN when no pair differs.

    Notes:
        Pairs with a missing value and zero differences are dropped.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape:
        raise ValueError(f"Paired inputs differ in length: {len(x)} vs {len(y)}")

    d = x - y
    d = d[np.isfinite(d)]
    d = d[d != 0]
    if len(d) == 0:
        return np.nan

    ranks = sp_stats.rankdata(np.abs(d))
    r_plus = ranks[d > 0].sum()
    r_minus = ranks[d < 0].sum()

    return float((r_plus - r_minus) / (r_plus + r_minus))
