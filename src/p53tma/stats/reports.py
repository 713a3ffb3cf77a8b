"""Build result tables for the visual vs digital comparison."""

from __future__ import annotations

from typing import Dict, List, Any
from datetime import datetime
from pathlib import Path

import pandas as pd

from p53tma import __version__
from p53tma.data.spec import SUBTYPE_COL, GRADE_COL, METHODS
from p53tma.stats.descriptives import describe_methods, describe_by_group
from p53tma.stats.preprocess import LOG_SUFFIX


def build_run_manifest(
    data_path: Path,
    alpha: float,
    p_adjust: str,
    n_quantiles: int,
    n_rows: int,
    n_cases: int,
    subtype_counts: Dict[str, int],
) -> pd.DataFrame:
    """Build run manifest sheet.

    Returns:
        DataFrame with metadata about the analysis run
    """
    rows = [
        {"parameter": "dataset", "value": str(Path(data_path).name)},
        {"parameter": "timestamp", "value": datetime.now().strftime("%Y-%m-%d %H:%M:%S")},
        {"parameter": "package_version", "value": __version__},
        {"parameter": "alpha", "value": alpha},
        {"parameter": "p_adjust", "value": p_adjust},
        {"parameter": "n_quantiles", "value": n_quantiles},
        {"parameter": "n_spots", "value": n_rows},
        {"parameter": "n_cases", "value": n_cases},
        {"parameter": "subtypes_order", "value": ", ".join(subtype_counts)},
    ]

    for subtype, cnt in subtype_counts.items():
        rows.append({"parameter": f"n_{subtype}", "value": cnt})

    return pd.DataFrame(rows, columns=["parameter", "value"])


def build_overall_descriptives(spots: pd.DataFrame, cases: pd.DataFrame) -> pd.DataFrame:
    """Describe both methods at spot and case level, raw and log1p.

    Returns:
        DataFrame with columns: level, variable, n, n_missing, mean, sd, median,
        q25, q75, iqr, min, max
    """
    value_cols = list(METHODS) + [f"{m}{LOG_SUFFIX}" for m in METHODS]
    return pd.concat(
        [
            describe_methods(spots, value_cols, level="spot"),
            describe_methods(cases, value_cols, level="case"),
        ],
        ignore_index=True,
    )


def build_group_descriptives(
    spots: pd.DataFrame,
    cases: pd.DataFrame,
    subtypes: List[str],
    quantile_col: str,
) -> Dict[str, pd.DataFrame]:
    """Descriptives of both methods by subtype, by case grade and by visual quantile group.

    Returns:
        Dictionary of table name -> DataFrame
    """
    methods = list(METHODS)

    return {
        "Descriptives_By_Subtype": pd.concat(
            [
                describe_by_group(spots, methods, SUBTYPE_COL, subtypes, level="spot"),
                describe_by_group(cases, methods, SUBTYPE_COL, subtypes, level="case"),
            ],
            ignore_index=True,
        ),
        "Descriptives_By_Grade": describe_by_group(cases, methods, GRADE_COL, level="case"),
        "Descriptives_By_Quantile": describe_by_group(spots, methods, quantile_col, level="spot"),
    }


def build_case_grade_table(cases: pd.DataFrame) -> pd.DataFrame:
    """Case counts per max grade, with ungraded cases counted separately."""
    counts = cases[GRADE_COL].value_counts(dropna=False).sort_index()
    return pd.DataFrame(
        {
            "grade": ["missing" if pd.isna(g) else str(g) for g in counts.index],
            "n_cases": counts.to_numpy(),
        }
    )


def build_key_results(tables: Dict[str, pd.DataFrame]) -> pd.DataFrame:
    """Collect the headline p-values and coefficients into one table.

    Args:
        tables: Result tables keyed by sheet name, as produced by the api

    Returns:
        DataFrame with columns: analysis, test, statistic, p_value
    """
    rows: List[Dict[str, Any]] = []

    paired = tables.get("Paired_Methods")
    if paired is not None:
        for _, r in paired.iterrows():
            rows.append(
                {
                    "analysis": f"visual vs digital ({r['level']}, {r['group']})",
                    "test": r["test"],
                    "statistic": r["statistic"],
                    "p_value": r["p_value"],
                }
            )

    unpaired = tables.get("Unpaired_Methods")
    if unpaired is not None:
        for _, r in unpaired.iterrows():
            rows.append(
                {
                    "analysis": f"{r['group1']} vs {r['group2']} (pooled)",
                    "test": r["test"],
                    "statistic": r["statistic"],
                    "p_value": r["p_value"],
                }
            )

    groups = tables.get("Group_Tests")
    if groups is not None:
        for _, r in groups.iterrows():
            rows.append(
                {
                    "analysis": f"{r['variable']} by {r['grouping']} ({r['level']})",
                    "test": r["test"],
                    "statistic": r["statistic"],
                    "p_value": r["p_value"],
                }
            )

    corr = tables.get("Correlation")
    if corr is not None:
        overall = corr[corr["group"] == "all"]
        for _, r in overall.iterrows():
            rows.append(
                {
                    "analysis": f"{r['variable1']} ~ {r['variable2']} ({r['level']})",
                    "test": "Spearman",
                    "statistic": r["rho"],
                    "p_value": r["p_value"],
                }
            )

    return pd.DataFrame(rows, columns=["analysis", "test", "statistic", "p_value"])
