"""Tests for the end-to-end analysis API."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from p53tma.data import load_tma_table
from p53tma.stats import analyze, run_analysis
from p53tma.stats.api import build_views, QUANTILE_COL
from p53tma.stats.excel import WORKBOOK_NAME

EXPECTED_TABLES = [
    "Missingness",
    "Case_Grades",
    "Descriptives_Overall",
    "Descriptives_By_Subtype",
    "Descriptives_By_Grade",
    "Descriptives_By_Quantile",
    "Quantile_Groups",
    "Paired_Methods",
    "Unpaired_Methods",
    "Group_Tests",
    "PostHoc_Dunn",
    "Correlation",
    "Agreement",
    "Key_Results",
]


@pytest.fixture
def spots(tma_csv):
    return load_tma_table(tma_csv, expected_rows=156)


def test_build_views(spots):
    """Test derived view shapes."""
    views = build_views(spots, n_quantiles=4)

    assert len(views["spots"]) == 156
    assert {"visual_log1p", "digital_log1p", QUANTILE_COL} <= set(views["spots"].columns)
    assert len(views["cases"]) == 52
    assert "visual_log1p" in views["cases"].columns
    assert len(views["wide"]) == 52
    assert len(views["long"]) == 312


def test_analyze_tables(spots):
    """Test every result table is produced in order."""
    result = analyze(spots)
    tables = result["tables"]

    assert list(tables) == EXPECTED_TABLES
    assert result["subtypes"] == ["serous", "endometrioid", "clear_cell", "mucinous", "other"]


def test_analyze_paired_rows(spots):
    """Test overall, per-subtype and case-level paired comparisons."""
    paired = analyze(spots)["tables"]["Paired_Methods"]

    assert len(paired) == 1 + 5 + 1
    assert list(paired["level"]) == ["spot"] * 6 + ["case"]
    assert paired.loc[0, "n_pairs"] == 154


def test_analyze_pvalues_in_range(spots):
    """Test all reported p-values lie in [0, 1]."""
    tables = analyze(spots)["tables"]

    for name in ["Paired_Methods", "Unpaired_Methods", "Group_Tests", "Correlation", "Key_Results"]:
        p = tables[name]["p_value"].dropna()
        assert len(p) > 0, name
        assert ((p >= 0) & (p <= 1)).all(), name

    dunn = tables["PostHoc_Dunn"]["p_adj"]
    assert ((dunn >= 0) & (dunn <= 1)).all()


def test_analyze_is_deterministic(spots):
    """Test repeated runs give identical tables."""
    first = analyze(spots)["tables"]
    second = analyze(spots)["tables"]

    for name in ["Paired_Methods", "Group_Tests", "Correlation", "Agreement"]:
        pd.testing.assert_frame_equal(first[name], second[name])


def test_analyze_group_tests(spots):
    """Test subtype, grade and quantile groupings use the right omnibus test."""
    groups = analyze(spots)["tables"]["Group_Tests"]

    by_subtype = groups[groups["grouping"] == "subtype"]
    assert (by_subtype["test"] == "Kruskal-Wallis").all()
    assert set(by_subtype["k_groups"]) == {5}

    by_grade = groups[groups["grouping"] == "grade"]
    assert list(by_grade["level"].unique()) == ["case"]
    assert by_grade["N"].max() <= 51


def test_analyze_case_grades(spots):
    """Test case grade counts cover every case, ungraded ones included."""
    grades = analyze(spots)["tables"]["Case_Grades"]

    assert grades["n_cases"].sum() == 52
    assert grades.set_index("grade").loc["missing", "n_cases"] == 1


def test_analyze_agreement(spots):
    """Test Bland-Altman bias matches the mean spot difference."""
    agreement = analyze(spots)["tables"]["Agreement"]
    raw_spot = agreement[(agreement["level"] == "spot") & (agreement["scale"] == "raw")].iloc[0]

    d = (spots["visual"] - spots["digital"]).dropna()
    assert raw_spot["bias"] == pytest.approx(d.mean())
    assert raw_spot["n"] == len(d)


def test_analyze_spearman_log_invariance(spots):
    """Test raw and log1p spot-level rho agree."""
    corr = analyze(spots)["tables"]["Correlation"]
    overall = corr[(corr["group"] == "all") & (corr["level"] == "spot")]

    raw = overall[overall["variable1"] == "visual"]["rho"].iloc[0]
    logged = overall[overall["variable1"] == "visual_log1p"]["rho"].iloc[0]
    assert logged == pytest.approx(raw)


def test_analyze_single_observation_subtype(spots):
    """Test a subtype with one spot yields NaN SD, not an error."""
    spots = spots.copy()
    spots["subtype"] = spots["subtype"].cat.add_categories(["rare"])
    spots.loc[0, "subtype"] = "rare"

    desc = analyze(spots)["tables"]["Descriptives_By_Subtype"]
    rare = desc[(desc["level"] == "spot") & (desc["group"] == "rare") & (desc["variable"] == "visual")]

    assert rare["n"].iloc[0] == 1
    assert np.isnan(rare["sd"].iloc[0])


def test_run_analysis_writes_outputs(tma_csv, temp_outdir):
    """Test run_analysis writes the workbook and one CSV per table."""
    results = run_analysis(tma_csv, outdir=temp_outdir, expected_rows=156)

    results_dir = temp_outdir / "results"
    assert results["results_dir"] == results_dir
    assert results["xlsx"] == results_dir / WORKBOOK_NAME
    assert results["xlsx"].exists()
    assert results["n_spots"] == 156
    assert results["n_cases"] == 52

    assert (results_dir / "Run_Manifest.csv").exists()
    key = pd.read_csv(results_dir / "Key_Results.csv")
    assert list(key.columns) == ["analysis", "test", "statistic", "p_value"]
    assert len(results["csvs"]) == len(results["tables"])

    manifest = results["tables"]["Run_Manifest"].set_index("parameter")["value"]
    assert manifest["n_spots"] == 156
    assert manifest["n_serous"] == 33


def test_run_analysis_skip_outputs(tma_csv, temp_outdir):
    """Test output switches."""
    results = run_analysis(tma_csv, outdir=temp_outdir, write_csv=False, write_xlsx=False)

    assert results["xlsx"] is None
    assert results["csvs"] == []
    assert not (temp_outdir / "results").exists()


def test_run_analysis_invalid_config(tma_csv, temp_outdir):
    """Test invalid parameters are rejected before loading."""
    with pytest.raises(ValueError, match="p_adjust"):
        run_analysis(tma_csv, outdir=temp_outdir, p_adjust="nonsense")


def test_analyze_constant_visual_scores(spots, caplog):
    """Test identical visual scores leave quantile groups empty instead of failing."""
    spots = spots.copy()
    spots["visual"] = 0.0

    result = analyze(spots)
    tables = result["tables"]

    assert result["spots"][QUANTILE_COL].isna().all()
    assert "No visual quantile groups formed" in caplog.text
    assert tables["Quantile_Groups"].empty
    assert tables["Descriptives_By_Quantile"].empty

    groups = tables["Group_Tests"]
    by_quantile = groups[groups["grouping"] == QUANTILE_COL].iloc[0]
    assert by_quantile["test"] == "Not tested"
    assert np.isnan(by_quantile["p_value"])

    corr = tables["Correlation"]
    assert corr[corr["variable1"] == "visual"]["rho"].isna().all()


def test_run_analysis_constant_visual_scores(tmp_path, tma_table, temp_outdir):
    """Test a file with one repeated visual score still produces results."""
    tma_table["visual"] = 0.0
    path = tmp_path / "flat.csv"
    tma_table.to_csv(path, index=False)

    results = run_analysis(path, outdir=temp_outdir)

    assert results["xlsx"].exists()
    assert not (temp_outdir / "results" / "Quantile_Groups.csv").exists()
