"""Statistics subsystem for the visual vs digital p53 comparison.

This module provides:

- Derived views of the spot table (log1p scores, per-case grade and means,
  wide-by-case and long-by-method layouts, quantile groups)
- Descriptive statistics with missing-value annotation
- Wilcoxon signed-rank and rank-sum tests, Kruskal-Wallis with Dunn post-hoc
- Spearman correlation and Bland-Altman agreement
- Result tables as CSV files and an Excel workbook

Public API:
-----------
from p53tma.stats import run_analysis

results = run_analysis(
    data_path="p53_tma.csv",
    outdir="derived",
    expected_rows=156,
)
results["tables"]["Key_Results"]
"""

from p53tma.stats.api import analyze, run_analysis, run_analysis_from_config

__all__ = ["analyze", "run_analysis", "run_analysis_from_config"]
