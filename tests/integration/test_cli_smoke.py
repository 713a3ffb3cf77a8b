from __future__ import annotations

from pathlib import Path

import pandas as pd
import yaml
from typer.testing import CliRunner

from p53tma.cli.main import app


def test_cli_version_flag() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "p53tma" in result.stdout


def test_cli_run_smoke(tma_csv: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    outdir = tmp_path / "derived"

    result = runner.invoke(
        app,
        [
            "run",
            "--data",
            str(tma_csv),
            "--outdir",
            str(outdir),
            "--expected-rows",
            "156",
            "--p-adjust",
            "fdr_bh",
        ],
    )
    assert result.exit_code == 0, result.stdout
    assert "Analysis complete" in result.stdout
    assert "Cases: 52" in result.stdout

    results_dir = outdir / "results"
    assert (results_dir / "p53_results.xlsx").exists()
    manifest = pd.read_csv(results_dir / "Run_Manifest.csv").set_index("parameter")["value"]
    assert manifest["p_adjust"] == "fdr_bh"


def test_cli_run_from_config(tma_csv: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    config_path = tmp_path / "analysis.yaml"
    config_path.write_text(
        yaml.safe_dump({"data": tma_csv.name, "outdir": "from_yaml", "n_quantiles": 3}),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["run", "--config", str(config_path), "--no-xlsx"])
    assert result.exit_code == 0, result.stdout

    results_dir = tmp_path / "from_yaml" / "results"
    assert not (results_dir / "p53_results.xlsx").exists()
    edges = pd.read_csv(results_dir / "Quantile_Groups.csv")
    assert len(edges) <= 3


def test_cli_run_requires_data() -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["run"])
    assert result.exit_code == 1


def test_cli_run_bad_alpha(tma_csv: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["run", "--data", str(tma_csv), "--alpha", "2"])
    assert result.exit_code == 1


def test_cli_validate(tma_csv: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["validate", "--data", str(tma_csv), "--expected-rows", "156"])
    assert result.exit_code == 0
    assert "156 spots, 52 cases" in result.stdout


def test_cli_validate_wrong_row_count(tma_csv: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["validate", "--data", str(tma_csv), "--expected-rows", "100"])
    assert result.exit_code == 1


def test_cli_validate_renamed_columns(tma_csv: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    path = tmp_path / "renamed.csv"
    pd.read_csv(tma_csv).rename(columns={"case_id": "Case"}).to_csv(path, index=False)

    result = runner.invoke(app, ["validate", "--data", str(path)])
    assert result.exit_code == 1

    result = runner.invoke(app, ["validate", "--data", str(path), "--case-col", "Case"])
    assert result.exit_code == 0


def test_cli_describe(tma_csv: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["describe", "--data", str(tma_csv)])
    assert result.exit_code == 0
    assert "Spots: 156" in result.stdout
    assert "Cases: 52" in result.stdout
    assert "digital" in result.stdout


def _study_named_csv(tma_csv: Path, tmp_path: Path) -> Path:
    path = tmp_path / "study.csv"
    pd.read_csv(tma_csv).rename(
        columns={
            "case_id": "Case ID",
            "spot": "Core",
            "subtype": "Histotype",
            "grade": "FIGO",
            "visual": "Visual LI",
            "digital": "Digital LI",
        }
    ).to_csv(path, index=False)
    return path


STUDY_COLUMN_ARGS = [
    "--case-col",
    "Case ID",
    "--spot-col",
    "Core",
    "--subtype-col",
    "Histotype",
    "--grade-col",
    "FIGO",
    "--visual-col",
    "Visual LI",
    "--digital-col",
    "Digital LI",
]


def test_cli_validate_full_column_mapping(tma_csv: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    path = _study_named_csv(tma_csv, tmp_path)

    result = runner.invoke(app, ["validate", "--data", str(path), "--case-col", "Case ID"])
    assert result.exit_code == 1

    result = runner.invoke(app, ["validate", "--data", str(path), *STUDY_COLUMN_ARGS])
    assert result.exit_code == 0, result.stdout
    assert "156 spots, 52 cases" in result.stdout


def test_cli_describe_full_column_mapping(tma_csv: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    path = _study_named_csv(tma_csv, tmp_path)

    result = runner.invoke(app, ["describe", "--data", str(path), *STUDY_COLUMN_ARGS])
    assert result.exit_code == 0, result.stdout
    assert "Cases: 52" in result.stdout
    assert "visual" in result.stdout


def test_cli_run_full_column_mapping(tma_csv: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    path = _study_named_csv(tma_csv, tmp_path)
    outdir = tmp_path / "derived"

    result = runner.invoke(
        app,
        ["run", "--data", str(path), "--outdir", str(outdir), "--no-xlsx", *STUDY_COLUMN_ARGS],
    )
    assert result.exit_code == 0, result.stdout
    assert (outdir / "results" / "Paired_Methods.csv").exists()


def test_cli_describe_constant_visual_scores(tma_csv: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    path = tmp_path / "flat.csv"
    pd.read_csv(tma_csv).assign(visual=0.0).to_csv(path, index=False)

    result = runner.invoke(app, ["describe", "--data", str(path)])
    assert result.exit_code == 0, result.stdout
    assert "Spots: 156" in result.stdout
