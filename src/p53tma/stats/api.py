"""Public API for the visual vs digital p53 analysis."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Any, Optional, List

import numpy as np
import pandas as pd

from p53tma.config import ReportConfig
from p53tma.data import load_tma_table, generate_missingness_report
from p53tma.data.spec import (
    CASE_COL,
    SUBTYPE_COL,
    GRADE_COL,
    VISUAL_COL,
    DIGITAL_COL,
    METHODS,
    ColumnMap,
)
from p53tma.stats.preprocess import (
    LOG_SUFFIX,
    add_log_scores,
    case_means,
    long_by_method,
    quantile_edges,
    quantile_groups,
    subtype_levels,
    wide_by_case,
)
from p53tma.stats.tests import (
    compare_across_groups,
    compare_methods_paired,
    compare_methods_unpaired,
    correlate_methods,
    posthoc_across_groups,
)
from p53tma.stats.agreement import agreement_table
from p53tma.stats import reports
from p53tma.stats.excel import write_result_workbook, write_result_csvs

logger = logging.getLogger(__name__)

QUANTILE_COL = f"{VISUAL_COL}_quantile"
VISUAL_LOG = f"{VISUAL_COL}{LOG_SUFFIX}"
DIGITAL_LOG = f"{DIGITAL_COL}{LOG_SUFFIX}"


def _at(level: str, table: pd.DataFrame) -> pd.DataFrame:
    table = table.copy()
    table.insert(0, "level", level)
    return table


def _concat(tables: List[pd.DataFrame]) -> pd.DataFrame:
    tables = [t for t in tables if not t.empty]
    if not tables:
        return pd.DataFrame()
    return pd.concat(tables, ignore_index=True)


def build_views(
    spots: pd.DataFrame, n_quantiles: int = 4
) -> Dict[str, pd.DataFrame]:
    """Derive the analysis views from a canonical spot table.

    Returns:
        Dictionary with keys: spots (with log1p and quantile columns),
        cases (per-case means with log1p), wide, long
    """
    enriched = add_log_scores(spots)
    try:
        enriched[QUANTILE_COL] = quantile_groups(enriched[VISUAL_COL], n_quantiles)
    except ValueError as exc:
        logger.warning(f"No visual quantile groups formed: {exc}")
        enriched[QUANTILE_COL] = pd.Categorical([np.nan] * len(enriched), categories=[])

    cases = add_log_scores(case_means(spots))

    return {
        "spots": enriched,
        "cases": cases,
        "wide": wide_by_case(spots),
        "long": long_by_method(spots),
    }


def analyze(
    spots: pd.DataFrame,
    subtype_order: Optional[List[str]] = None,
    alpha: float = 0.05,
    p_adjust: str = "holm",
    n_quantiles: int = 4,
) -> Dict[str, Any]:
    """Run every descriptive and inferential step on an in-memory spot table.

    Args:
        spots: Canonical spot table (see load_tma_table)
        subtype_order: Optional subtype level order
        alpha: Significance threshold for post-hoc reject flags
        p_adjust: Adjustment method for per-group and post-hoc p-values
        n_quantiles: Number of visual-score quantile groups

    Returns:
        Dictionary with ``tables`` (sheet name -> DataFrame) and the derived views
    """
    views = build_views(spots, n_quantiles)
    s, c = views["spots"], views["cases"]
    subtypes = subtype_levels(spots, subtype_order)
    methods = list(METHODS)

    tables: Dict[str, pd.DataFrame] = {}

    logger.info("[1/6] Descriptive statistics...")
    tables["Missingness"] = generate_missingness_report(spots)
    tables["Case_Grades"] = reports.build_case_grade_table(c)
    tables["Descriptives_Overall"] = reports.build_overall_descriptives(s, c)
    tables.update(reports.build_group_descriptives(s, c, subtypes, QUANTILE_COL))
    tables["Quantile_Groups"] = quantile_edges(s[VISUAL_COL], n_quantiles)

    logger.info("[2/6] Paired method comparison (Wilcoxon signed-rank)...")
    tables["Paired_Methods"] = _concat(
        [
            _at("spot", compare_methods_paired(s, p_adjust=p_adjust)),
            _at(
                "spot",
                compare_methods_paired(
                    s, group_col=SUBTYPE_COL, levels=subtypes, p_adjust=p_adjust
                ),
            ),
            _at("case", compare_methods_paired(c, p_adjust=p_adjust)),
        ]
    )

    logger.info("[3/6] Pooled method comparison (Wilcoxon rank-sum)...")
    tables["Unpaired_Methods"] = compare_methods_unpaired(views["long"])

    logger.info("[4/6] Group comparisons (rank-sum / Kruskal-Wallis + Dunn)...")
    groupings = [
        ("spot", s, methods, SUBTYPE_COL, subtypes),
        ("case", c, methods, SUBTYPE_COL, subtypes),
        ("case", c, methods, GRADE_COL, None),
        ("spot", s, [DIGITAL_COL], QUANTILE_COL, None),
    ]
    tables["Group_Tests"] = _concat(
        [
            _at(level, compare_across_groups(frame, cols, group_col, levels))
            for level, frame, cols, group_col, levels in groupings
        ]
    )
    tables["PostHoc_Dunn"] = _concat(
        [
            _at(level, posthoc_across_groups(frame, cols, group_col, p_adjust, alpha))
            for level, frame, cols, group_col, _ in groupings
        ]
    )

    logger.info("[5/6] Spearman correlation...")
    tables["Correlation"] = _concat(
        [
            _at("spot", correlate_methods(s, group_col=SUBTYPE_COL, levels=subtypes)),
            _at("spot", correlate_methods(s, VISUAL_LOG, DIGITAL_LOG)),
            _at("case", correlate_methods(c)),
        ]
    )

    logger.info("[6/6] Method agreement (Bland-Altman)...")
    scales = {"raw": (VISUAL_COL, DIGITAL_COL), "log1p": (VISUAL_LOG, DIGITAL_LOG)}
    tables["Agreement"] = _concat(
        [
            _at("spot", agreement_table(s, VISUAL_COL, DIGITAL_COL, scales)),
            _at("case", agreement_table(c, VISUAL_COL, DIGITAL_COL, scales)),
        ]
    )

    tables["Key_Results"] = reports.build_key_results(tables)

    return {"tables": tables, "subtypes": subtypes, **views}


def run_analysis(
    data_path: Path | str,
    outdir: Path | str = "derived",
    columns: Optional[ColumnMap] = None,
    subtype_order: Optional[List[str]] = None,
    alpha: float = 0.05,
    p_adjust: str = "holm",
    n_quantiles: int = 4,
    expected_rows: Optional[int] = None,
    write_csv: bool = True,
    write_xlsx: bool = True,
) -> Dict[str, Any]:
    """Run the complete analysis pipeline.

    Args:
        data_path: Path to the spot table (.csv, .tsv, .parquet)
        outdir: Output directory for results
        columns: Source column names (defaults to canonical names)
        subtype_order: Optional subtype level order
        alpha: Significance threshold (default: 0.05)
        p_adjust: P-value adjustment method (default: "holm")
        n_quantiles: Number of visual-score quantile groups (default: 4)
        expected_rows: If set, the table must contain exactly this many rows
        write_csv: Write one CSV per result table
        write_xlsx: Write the results workbook

    Returns:
        Dictionary with result tables and output paths

    Example:
        >>> from p53tma.stats import run_analysis
        >>> results = run_analysis("p53_tma.csv", outdir="derived", expected_rows=156)
        >>> results["tables"]["Key_Results"]
    """
    config = ReportConfig(
        data_path=Path(data_path),
        outdir=Path(outdir),
        columns=columns or ColumnMap(),
        subtype_order=subtype_order,
        alpha=alpha,
        p_adjust=p_adjust,
        n_quantiles=n_quantiles,
        expected_rows=expected_rows,
        write_csv=write_csv,
        write_xlsx=write_xlsx,
    )

    return run_analysis_from_config(config)


def run_analysis_from_config(config: ReportConfig) -> Dict[str, Any]:
    """Run the analysis from a ReportConfig object.

    Args:
        config: ReportConfig object

    Returns:
        Dictionary with keys: tables, spots, cases, wide, long, subtypes,
        results_dir, xlsx, csvs, n_spots, n_cases
    """
    logger.info(f"Loading data from {config.data_path}...")
    spots = load_tma_table(
        config.data_path,
        columns=config.columns,
        subtype_order=config.subtype_order,
        expected_rows=config.expected_rows,
    )

    n_cases = int(spots[CASE_COL].nunique())
    logger.info(f"  • Spots: {len(spots)}")
    logger.info(f"  • Cases: {n_cases}")

    result = analyze(
        spots,
        subtype_order=config.subtype_order,
        alpha=config.alpha,
        p_adjust=config.p_adjust,
        n_quantiles=config.n_quantiles,
    )

    subtype_counts = {
        str(st): int((spots[SUBTYPE_COL] == st).sum()) for st in result["subtypes"]
    }
    manifest = reports.build_run_manifest(
        config.data_path,
        config.alpha,
        config.p_adjust,
        config.n_quantiles,
        len(spots),
        n_cases,
        subtype_counts,
    )
    tables = {"Run_Manifest": manifest, **result["tables"]}

    results_dir = config.results_dir
    xlsx_path = None
    csv_paths: List[Path] = []

    if config.write_xlsx:
        xlsx_path = write_result_workbook(results_dir, tables, alpha=config.alpha)
        logger.info(f"  • {xlsx_path}")

    if config.write_csv:
        csv_paths = write_result_csvs(results_dir, tables)
        logger.info(f"  • {len(csv_paths)} CSV tables in {results_dir}")

    logger.info("Analysis complete.")

    return {
        **result,
        "tables": tables,
        "results_dir": results_dir,
        "xlsx": xlsx_path,
        "csvs": csv_paths,
        "n_spots": len(spots),
        "n_cases": n_cases,
    }
