"""
Data loading layer for TMA spot tables.

Example usage:
    from p53tma.data import ColumnMap, load_tma_table

    df = load_tma_table(
        Path("p53_tma.csv"),
        columns=ColumnMap(case="ID", digital="QuPath"),
    )
"""

from p53tma.data.spec import (
    CANONICAL_COLUMNS,
    METHODS,
    ColumnMap,
    DataFormat,
)
from p53tma.data.loaders import (
    load_table,
    load_tma_table,
    infer_format,
    validate_parquet_available,
)
from p53tma.data.validation import (
    validate_columns,
    validate_scores,
    validate_grades,
    validate_spots,
    generate_missingness_report,
)

__all__ = [
    # Schema
    "CANONICAL_COLUMNS",
    "METHODS",
    "ColumnMap",
    "DataFormat",
    # Loaders
    "load_table",
    "load_tma_table",
    "infer_format",
    "validate_parquet_available",
    # Validation
    "validate_columns",
    "validate_scores",
    "validate_grades",
    "validate_spots",
    "generate_missingness_report",
]
