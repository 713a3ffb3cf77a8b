"""Tests for TMA table validation."""

import numpy as np
import pandas as pd
import pytest

from p53tma.data.validation import (
    validate_columns,
    validate_scores,
    validate_grades,
    validate_spots,
    validate_unique_spots,
    generate_missingness_report,
)


def test_validate_columns_ok():
    """Test all required columns present."""
    df = pd.DataFrame({"a": [1], "b": [2]})
    validate_columns(df, ["a", "b"])


def test_validate_columns_missing():
    """Test missing column names appear in the error."""
    df = pd.DataFrame({"a": [1]})
    with pytest.raises(ValueError, match=r"\['b'\]"):
        validate_columns(df, ["a", "b"])


def test_validate_scores_allows_missing():
    """Test missing scores and the range bounds are accepted."""
    df = pd.DataFrame({"visual": [0.0, 100.0, np.nan, 55.5]})
    validate_scores(df, ["visual"])


def test_validate_scores_non_numeric():
    """Test text scores are rejected."""
    df = pd.DataFrame({"visual": ["10", "high", "5"]})
    with pytest.raises(ValueError, match="non-numeric"):
        validate_scores(df, ["visual"])


def test_validate_scores_negative():
    """Test negative scores are rejected."""
    df = pd.DataFrame({"digital": [1.0, -0.5]})
    with pytest.raises(ValueError, match="outside"):
        validate_scores(df, ["digital"])


def test_validate_scores_infinite():
    """Test infinite scores are rejected."""
    df = pd.DataFrame({"digital": [1.0, np.inf]})
    with pytest.raises(ValueError, match="infinite"):
        validate_scores(df, ["digital"])


def test_validate_grades():
    """Test grades 1-3 and missing pass, anything else fails."""
    validate_grades(pd.DataFrame({"grade": [1, 2, 3, None]}), "grade")
    validate_grades(pd.DataFrame({"grade": [1.0, 3.0, np.nan]}), "grade")

    with pytest.raises(ValueError, match="invalid grades"):
        validate_grades(pd.DataFrame({"grade": [1, 0]}), "grade")
    with pytest.raises(ValueError, match="invalid grades"):
        validate_grades(pd.DataFrame({"grade": ["1", "G2"]}), "grade")


def test_validate_unique_spots():
    """Test duplicated case/spot keys are reported."""
    df = pd.DataFrame({"case_id": ["a", "a", "b"], "spot": [1, 1, 1]})
    warnings = validate_unique_spots(df, "case_id", "spot")
    assert len(warnings) == 1
    assert "a/1" in warnings[0]

    assert validate_unique_spots(df.iloc[1:], "case_id", "spot") == []


def test_missingness_report():
    """Test missing counts and percentages per column."""
    df = pd.DataFrame({"x": [1.0, np.nan, 3.0, np.nan], "y": [1, 2, 3, 4]})
    report = generate_missingness_report(df)

    assert list(report.columns) == ["column", "n_missing", "pct_missing"]
    row = report.set_index("column").loc["x"]
    assert row["n_missing"] == 2
    assert row["pct_missing"] == pytest.approx(50.0)
    assert report.set_index("column").loc["y", "n_missing"] == 0


def test_validate_spots():
    """Test whole-number spot indices pass, fractional or text ones fail."""
    validate_spots(pd.DataFrame({"spot": [1, 2, 3]}), "spot")
    validate_spots(pd.DataFrame({"spot": [1.0, 2.0, np.nan]}), "spot")

    with pytest.raises(ValueError, match="'spot'.*1.5"):
        validate_spots(pd.DataFrame({"spot": [1.0, 1.5]}), "spot")
    with pytest.raises(ValueError, match="'spot'"):
        validate_spots(pd.DataFrame({"spot": ["1", "A"]}), "spot")
