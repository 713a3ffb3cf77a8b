"""Agreement between paired measurements (Bland-Altman)."""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import numpy as np
import pandas as pd

# Two-sided 95% normal quantile for limits of agreement
LOA_Z = 1.96


def paired_complete(x, y) -> tuple[np.ndarray, np.ndarray]:
    """Return x, y restricted to pairs where both values are finite."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape:
        raise ValueError(f"Paired inputs differ in length: {len(x)} vs {len(y)}")
    mask = np.isfinite(x) & np.isfinite(y)
    return x[mask], y[mask]


def bland_altman(x, y) -> Dict[str, Any]:
    """Bland-Altman agreement statistics for paired measurements.

    Args:
        x: First method (e.g. visual score)
        y: Second method (e.g. digital score)

    Returns:
        Dictionary with keys: n, bias, sd_diff, loa_low, loa_high,
        mean_abs_diff

    Notes:
        bias = mean(x - y); limits of agreement are bias +/- 1.96 * sd_diff.
        Incomplete pairs are dropped. sd_diff and the limits are NaN for n < 2.
    """
    x, y = paired_complete(x, y)
    n = len(x)

    if n == 0:
        return {
            "n": 0,
            "bias": np.nan,
            "sd_diff": np.nan,
            "loa_low": np.nan,
            "loa_high": np.nan,
            "mean_abs_diff": np.nan,
        }

    d = x - y
    bias = float(np.mean(d))
    sd = float(np.std(d, ddof=1)) if n > 1 else np.nan

    return {
        "n": n,
        "bias": bias,
        "sd_diff": sd,
        "loa_low": bias - LOA_Z * sd,
        "loa_high": bias + LOA_Z * sd,
        "mean_abs_diff": float(np.mean(np.abs(d))),
    }


def agreement_table(
    df: pd.DataFrame,
    x_col: str,
    y_col: str,
    scales: Optional[Dict[str, Sequence[str]]] = None,
) -> pd.DataFrame:
    """Bland-Altman rows for one or more scales.

    Args:
        df: Table holding the paired columns
        x_col: First method column
        y_col: Second method column
        scales: Optional mapping scale name -> (x column, y column); defaults
            to {"raw": (x_col, y_col)}

    Returns:
        DataFrame with columns: scale, method1, method2, n, bias, sd_diff,
        loa_low, loa_high, mean_abs_diff
    """
    scales = scales or {"raw": (x_col, y_col)}
    rows = []
    for scale, (xc, yc) in scales.items():
        rows.append(
            {
                "scale": scale,
                "method1": x_col,
                "method2": y_col,
                **bland_altman(df[xc], df[yc]),
            }
        )
    return pd.DataFrame(rows)
