"""Pytest configuration and fixtures."""

import pytest
import numpy as np
import pandas as pd
from pathlib import Path

SUBTYPES = ["serous", "endometrioid", "clear_cell", "mucinous", "other"]
N_CASES = 52
N_SPOTS = 3


def make_tma_table(seed: int = 42) -> pd.DataFrame:
    """Synthetic spot table in the study layout: 52 cases x 3 spots = 156 rows."""
    rng = np.random.default_rng(seed)

    rows = []
    for i in range(N_CASES):
        case_id = f"C{i + 1:03d}"
        subtype = SUBTYPES[i % len(SUBTYPES)]
        level = rng.gamma(shape=1.5, scale=12.0)
        for spot in range(1, N_SPOTS + 1):
            visual = float(np.clip(np.round(level + rng.normal(0, 4)), 0, 100))
            digital = float(np.clip(0.9 * visual + rng.normal(2, 3), 0, 100))
            grade = rng.choice([1, 2, 3])
            rows.append(
                {
                    "case_id": case_id,
                    "spot": spot,
                    "subtype": subtype,
                    "grade": grade,
                    "visual": visual,
                    "digital": round(digital, 2),
                }
            )

    df = pd.DataFrame(rows)
    df["grade"] = df["grade"].astype("Int64")

    # Last case has no graded spot, a few other spots are ungraded
    df.loc[df["case_id"] == f"C{N_CASES:03d}", "grade"] = pd.NA
    df.loc[[4, 17, 40], "grade"] = pd.NA

    # One missing score per method
    df.loc[10, "visual"] = np.nan
    df.loc[25, "digital"] = np.nan

    return df


@pytest.fixture
def tma_table():
    """Canonical spot table held in memory."""
    return make_tma_table()


@pytest.fixture
def tma_csv(tmp_path) -> Path:
    """Spot table written as CSV."""
    path = tmp_path / "p53_tma.csv"
    make_tma_table().to_csv(path, index=False)
    return path


@pytest.fixture
def temp_outdir(tmp_path):
    """Provide temporary output directory."""
    outdir = tmp_path / "derived"
    outdir.mkdir()
    return outdir
