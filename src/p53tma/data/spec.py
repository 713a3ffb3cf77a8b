"""Table schema and format types for TMA spot data."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from pathlib import Path
from typing import Dict, List

CASE_COL = "case_id"
SPOT_COL = "spot"
SUBTYPE_COL = "subtype"
GRADE_COL = "grade"
VISUAL_COL = "visual"
DIGITAL_COL = "digital"

CANONICAL_COLUMNS: List[str] = [
    CASE_COL,
    SPOT_COL,
    SUBTYPE_COL,
    GRADE_COL,
    VISUAL_COL,
    DIGITAL_COL,
]

# Scoring methods compared throughout the analysis, in reporting order
METHODS: List[str] = [VISUAL_COL, DIGITAL_COL]

VALID_GRADES = (1, 2, 3)
SCORE_RANGE = (0.0, 100.0)


class DataFormat(str, Enum):
    """Supported input formats."""

    CSV = "csv"
    TSV = "tsv"
    PARQUET = "parquet"

    @classmethod
    def from_path(cls, path: Path) -> DataFormat:
        """
        Infer format from path.

        Parameters
        ----------
        path : Path
            Path to data file

        Returns
        -------
        DataFormat
            Inferred format

        Raises
        ------
        ValueError
            If format cannot be inferred
        """
        suffix = Path(path).suffix.lower()
        if suffix == ".csv":
            return cls.CSV
        elif suffix in (".tsv", ".txt"):
            return cls.TSV
        elif suffix == ".parquet":
            return cls.PARQUET
        else:
            raise ValueError(
                f"Cannot infer data format from path: {path}. "
                f"Expected a .csv, .tsv/.txt or .parquet file."
            )


@dataclass
class ColumnMap:
    """
    Source column names for each canonical TMA column.

    Defaults match the canonical names, so a file already using
    ``case_id, spot, subtype, grade, visual, digital`` needs no mapping.
    """

    case: str = CASE_COL
    spot: str = SPOT_COL
    subtype: str = SUBTYPE_COL
    grade: str = GRADE_COL
    visual: str = VISUAL_COL
    digital: str = DIGITAL_COL

    def to_rename(self) -> Dict[str, str]:
        """Return the source -> canonical rename mapping."""
        return dict(zip(self.source_columns(), CANONICAL_COLUMNS))

    def source_columns(self) -> List[str]:
        return [self.case, self.spot, self.subtype, self.grade, self.visual, self.digital]

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> ColumnMap:
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(
                f"Unknown column mapping keys: {sorted(unknown)}. "
                f"Expected a subset of {list(cls.__dataclass_fields__)}"
            )
        return cls(**{k: str(v) for k, v in data.items()})
