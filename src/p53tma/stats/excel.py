"""Excel workbook and CSV output of result tables."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Any, List, Optional
import pandas as pd

WORKBOOK_NAME = "p53_results.xlsx"

# Excel rejects sheet names longer than this
MAX_SHEET_NAME = 31

PVALUE_COLUMNS = {"p_value", "p_adj"}
DECIMAL3_COLUMNS = {
    "mean",
    "sd",
    "median",
    "q25",
    "q75",
    "iqr",
    "min",
    "max",
    "median1",
    "median2",
    "median_diff",
    "statistic",
    "effect_size",
    "cliff_delta",
    "rho",
    "bias",
    "sd_diff",
    "loa_low",
    "loa_high",
    "mean_abs_diff",
    "pct_missing",
    "lower",
    "upper",
}


def column_width(values: pd.Series, header: str, lo: int = 10, hi: int = 50) -> int:
    """Width that fits the header and the longest rendered cell, clipped to [lo, hi]."""
    longest = int(values.astype(str).str.len().max()) if len(values) else 0
    return max(lo, min(hi, max(len(str(header)), longest) + 2))


def sheet_formats(workbook: Any) -> Dict[str, Any]:
    """Number and highlight formats shared by every sheet."""
    return {
        "p": workbook.add_format({"num_format": "0.00E+00"}),
        "num": workbook.add_format({"num_format": "0.000"}),
        "significant": workbook.add_format({"bg_color": "#FFEB9C", "font_color": "#9C5700"}),
    }


def _number_format(column: str, formats: Dict[str, Any]) -> Optional[Any]:
    if column in PVALUE_COLUMNS:
        return formats["p"]
    if column in DECIMAL3_COLUMNS:
        return formats["num"]
    return None


def write_table_sheet(
    writer: pd.ExcelWriter,
    table: pd.DataFrame,
    name: str,
    formats: Dict[str, Any],
    alpha: Optional[float] = None,
) -> None:
    """Write one result table as a sheet.

    The header row is frozen and filterable, numeric columns get a fixed
    number format and, when ``alpha`` is given, p-values below it are
    highlighted. Empty tables are skipped.
    """
    if table.empty:
        return

    name = name[:MAX_SHEET_NAME]
    table.to_excel(writer, sheet_name=name, index=False)
    ws = writer.sheets[name]

    n_rows = len(table)
    ws.freeze_panes(1, 0)
    ws.autofilter(0, 0, n_rows, table.shape[1] - 1)

    for idx, column in enumerate(table.columns):
        width = column_width(table[column], column)
        ws.set_column(idx, idx, width, _number_format(column, formats))

        if alpha is not None and column in PVALUE_COLUMNS:
            ws.conditional_format(
                1,
                idx,
                n_rows,
                idx,
                {
                    "type": "cell",
                    "criteria": "<",
                    "value": alpha,
                    "format": formats["significant"],
                },
            )


def write_result_workbook(
    outdir: Path, tables: Dict[str, pd.DataFrame], alpha: Optional[float] = None
) -> Path:
    """Write all result tables to one Excel workbook, one sheet per table.

    Args:
        outdir: Output directory
        tables: Mapping of sheet name -> DataFrame, written in order
        alpha: Significance threshold used to highlight p-values

    Returns:
        Path to the workbook
    """
    outdir.mkdir(parents=True, exist_ok=True)
    path = outdir / WORKBOOK_NAME

    with pd.ExcelWriter(path, engine="xlsxwriter") as writer:
        formats = sheet_formats(writer.book)
        for name, table in tables.items():
            write_table_sheet(writer, table, name, formats, alpha=alpha)

    return path


def write_result_csvs(outdir: Path, tables: Dict[str, pd.DataFrame]) -> List[Path]:
    """Write each non-empty result table to ``<name>.csv``."""
    outdir.mkdir(parents=True, exist_ok=True)

    paths = []
    for name, table in tables.items():
        if table.empty:
            continue
        path = outdir / f"{name}.csv"
        table.to_csv(path, index=False)
        paths.append(path)
    return paths
