"""
p53tma: statistical comparison of visual and digital p53 scoring on tissue microarrays.

This package provides:
- Loading and validation of fixed-schema TMA spot tables
- Derived views (log1p scores, per-case grade/means, wide and long layouts)
- Descriptive statistics with missing-value annotation
- Rank-based hypothesis tests (Wilcoxon, Kruskal-Wallis, Dunn, Spearman)
- Method agreement (Bland-Altman) and result tables (CSV/xlsx)
- A Typer CLI
"""

__version__ = "0.1.0"

from p53tma.config import ColumnMap, ReportConfig, load_config
from p53tma.data import load_tma_table
from p53tma.stats import run_analysis

__all__ = [
    "__version__",
    "ColumnMap",
    "ReportConfig",
    "load_config",
    "load_tma_table",
    "run_analysis",
]
