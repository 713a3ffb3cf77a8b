"""Main CLI entrypoint using Typer."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional, List

import typer

from p53tma import __version__
from p53tma.data.spec import ColumnMap, METHODS

app = typer.Typer(
    name="p53tma",
    help="Visual vs digital p53 scoring on tissue microarray spots.",
    add_completion=False,
)

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def column_option(field: str) -> Any:
    """Option naming the source column for one canonical column."""
    return typer.Option(
        None,
        f"--{field}-col",
        help=f"Source column holding '{getattr(ColumnMap, field)}' (default: same name)",
    )


def with_columns(base: ColumnMap, **names: Optional[str]) -> ColumnMap:
    """Return base with the given (non-None) source column names replaced."""
    return replace(base, **{k: v for k, v in names.items() if v is not None})


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"p53tma {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """p53tma: compare visual and digital p53 scores on TMA spots."""
    pass


@app.command()
def run(
    data: Optional[Path] = typer.Option(
        None,
        "--data",
        help="Path to the spot table (.csv, .tsv, .parquet).",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        help="YAML config file. Command-line options override its values.",
    ),
    outdir: Optional[Path] = typer.Option(None, "--outdir", help="Output directory [default: derived]"),
    alpha: Optional[float] = typer.Option(None, "--alpha", help="Significance threshold [default: 0.05]"),
    p_adjust: Optional[str] = typer.Option(
        None, "--p-adjust", help="P-value adjustment (holm, bonferroni, fdr_bh, fdr_by, sidak)"
    ),
    n_quantiles: Optional[int] = typer.Option(
        None, "--n-quantiles", help="Number of visual-score quantile groups [default: 4]"
    ),
    subtype_order: Optional[List[str]] = typer.Option(
        None, "--subtype-order", help="Subtype level order (repeat the option)"
    ),
    expected_rows: Optional[int] = typer.Option(
        None, "--expected-rows", help="Fail unless the table has exactly this many rows"
    ),
    no_csv: bool = typer.Option(False, "--no-csv", help="Skip CSV result tables"),
    no_xlsx: bool = typer.Option(False, "--no-xlsx", help="Skip the results workbook"),
    case_col: Optional[str] = column_option("case"),
    spot_col: Optional[str] = column_option("spot"),
    subtype_col: Optional[str] = column_option("subtype"),
    grade_col: Optional[str] = column_option("grade"),
    visual_col: Optional[str] = column_option("visual"),
    digital_col: Optional[str] = column_option("digital"),
):
    """
    Run the complete visual vs digital comparison.

    Computes descriptives, paired and pooled Wilcoxon tests, subtype, grade
    and quantile group tests with Dunn post-hoc, Spearman correlation and
    Bland-Altman agreement, and writes the result tables.

    Examples:
        # Defaults
        p53tma run --data p53_tma.csv --expected-rows 156

        # From a YAML config, overriding alpha
        p53tma run --config analysis.yaml --alpha 0.01

        # Fixed subtype order
        p53tma run --data p53_tma.csv --subtype-order HGSC --subtype-order LGSC

        # Source file with its own column names
        p53tma run --data study.csv --case-col "Case ID" --visual-col "Visual LI"
    """
    from p53tma.config import ReportConfig, load_config
    from p53tma.stats import run_analysis_from_config

    overrides = {
        "data_path": data,
        "outdir": outdir,
        "alpha": alpha,
        "p_adjust": p_adjust,
        "n_quantiles": n_quantiles,
        "subtype_order": subtype_order or None,
        "expected_rows": expected_rows,
        "write_csv": False if no_csv else None,
        "write_xlsx": False if no_xlsx else None,
    }

    try:
        if config is not None:
            cfg = load_config(config, **overrides)
        elif data is None:
            raise ValueError("Provide --data or --config")
        else:
            cfg = ReportConfig(**{k: v for k, v in overrides.items() if v is not None})
        cfg.columns = with_columns(
            cfg.columns,
            case=case_col,
            spot=spot_col,
            subtype=subtype_col,
            grade=grade_col,
            visual=visual_col,
            digital=digital_col,
        )
    except (FileNotFoundError, ValueError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        typer.echo(f"Running p53 analysis on {cfg.data_path}...")

        results = run_analysis_from_config(cfg)

        typer.secho("\n✓ Analysis complete!", fg=typer.colors.GREEN)
        if results["xlsx"]:
            typer.echo(f"  Workbook: {results['xlsx']}")
        typer.echo(f"  Results directory: {results['results_dir']}")
        typer.echo(f"\n  Spots: {results['n_spots']}")
        typer.echo(f"  Cases: {results['n_cases']}")
        typer.echo(f"  Subtypes: {', '.join(map(str, results['subtypes']))}")

    except Exception as e:
        typer.secho(f"\n✗ Analysis failed: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


@app.command()
def describe(
    data: Path = typer.Option(..., "--data", help="Path to the spot table (.csv, .tsv, .parquet)."),
    subtype_order: Optional[List[str]] = typer.Option(
        None, "--subtype-order", help="Subtype level order (repeat the option)"
    ),
    case_col: Optional[str] = column_option("case"),
    spot_col: Optional[str] = column_option("spot"),
    subtype_col: Optional[str] = column_option("subtype"),
    grade_col: Optional[str] = column_option("grade"),
    visual_col: Optional[str] = column_option("visual"),
    digital_col: Optional[str] = column_option("digital"),
):
    """Print spot and case counts and descriptives of both methods."""
    from p53tma.data import load_tma_table
    from p53tma.stats.api import build_views
    from p53tma.stats.reports import build_overall_descriptives

    try:
        columns = with_columns(
            ColumnMap(),
            case=case_col,
            spot=spot_col,
            subtype=subtype_col,
            grade=grade_col,
            visual=visual_col,
            digital=digital_col,
        )
        spots = load_tma_table(data, columns=columns, subtype_order=subtype_order or None)
        views = build_views(spots)
    except Exception as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Spots: {len(views['spots'])}")
    typer.echo(f"Cases: {len(views['cases'])}")
    typer.echo("")
    table = build_overall_descriptives(views["spots"], views["cases"])
    table = table[table["variable"].isin(METHODS)]
    typer.echo(table.to_string(index=False, float_format=lambda v: f"{v:.3f}"))


@app.command()
def validate(
    data: Path = typer.Option(..., "--data", help="Path to the spot table (.csv, .tsv, .parquet)."),
    expected_rows: Optional[int] = typer.Option(
        None, "--expected-rows", help="Fail unless the table has exactly this many rows"
    ),
    case_col: Optional[str] = column_option("case"),
    spot_col: Optional[str] = column_option("spot"),
    subtype_col: Optional[str] = column_option("subtype"),
    grade_col: Optional[str] = column_option("grade"),
    visual_col: Optional[str] = column_option("visual"),
    digital_col: Optional[str] = column_option("digital"),
):
    """Load and validate a spot table without running any statistics."""
    from p53tma.data import load_tma_table

    columns = with_columns(
        ColumnMap(),
        case=case_col,
        spot=spot_col,
        subtype=subtype_col,
        grade=grade_col,
        visual=visual_col,
        digital=digital_col,
    )
    try:
        spots = load_tma_table(data, columns=columns, expected_rows=expected_rows)
    except Exception as e:
        typer.secho(f"✗ Invalid: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.secho(f"✓ Valid: {len(spots)} spots, {spots['case_id'].nunique()} cases", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
