"""Configuration dataclasses for the analysis pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from p53tma.data.spec import ColumnMap

logger = logging.getLogger(__name__)

VALID_ADJUSTMENTS = ["holm", "bonferroni", "fdr_bh", "fdr_by", "sidak"]


@dataclass
class ReportConfig:
    """Configuration for a full analysis run.

    Attributes:
        data_path: Path to the spot table (.csv, .tsv, .parquet)
        outdir: Output directory for result tables
        columns: Source column names for the canonical columns
        subtype_order: Optional order of histologic subtypes (None = order of appearance)
        alpha: Significance threshold (default: 0.05)
        p_adjust: Multiple-testing adjustment for per-group and post-hoc p-values
            Options: holm, bonferroni, fdr_bh, fdr_by, sidak
        n_quantiles: Number of quantile groups for the visual score (default: 4)
        expected_rows: If set, the loaded table must have exactly this many rows
        write_csv: Whether to write one CSV per result table (default: True)
        write_xlsx: Whether to write the results workbook (default: True)
    """

    data_path: Path
    outdir: Path = Path("derived")
    columns: ColumnMap = field(default_factory=ColumnMap)
    subtype_order: Optional[List[str]] = None
    alpha: float = 0.05
    p_adjust: str = "holm"
    n_quantiles: int = 4
    expected_rows: Optional[int] = None
    write_csv: bool = True
    write_xlsx: bool = True

    def __post_init__(self):
        """Validate configuration."""
        self.data_path = Path(self.data_path)
        self.outdir = Path(self.outdir)

        if isinstance(self.columns, dict):
            self.columns = ColumnMap.from_dict(self.columns)

        if not self.data_path.exists():
            raise FileNotFoundError(f"Data file not found: {self.data_path}")

        if self.alpha <= 0 or self.alpha >= 1:
            raise ValueError(f"Alpha must be in (0, 1), got {self.alpha}")

        if self.p_adjust not in VALID_ADJUSTMENTS:
            raise ValueError(
                f"p_adjust must be one of {VALID_ADJUSTMENTS}, got {self.p_adjust}"
            )

        if self.n_quantiles < 2:
            raise ValueError(f"n_quantiles must be >= 2, got {self.n_quantiles}")

        if self.expected_rows is not None and self.expected_rows < 1:
            raise ValueError(f"expected_rows must be positive, got {self.expected_rows}")

        if self.subtype_order is not None:
            self.subtype_order = [str(s) for s in self.subtype_order]
            if len(set(self.subtype_order)) != len(self.subtype_order):
                raise ValueError(f"subtype_order has duplicates: {self.subtype_order}")

    @property
    def results_dir(self) -> Path:
        return self.outdir / "results"

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dict with Path objects as strings."""
        d = asdict(self)
        d["data_path"] = str(self.data_path)
        d["outdir"] = str(self.outdir)
        return d


# YAML keys accepted by load_config, mapped to ReportConfig fields
_YAML_KEYS = {
    "data": "data_path",
    "data_path": "data_path",
    "outdir": "outdir",
    "columns": "columns",
    "subtype_order": "subtype_order",
    "alpha": "alpha",
    "p_adjust": "p_adjust",
    "n_quantiles": "n_quantiles",
    "expected_rows": "expected_rows",
    "write_csv": "write_csv",
    "write_xlsx": "write_xlsx",
}


def load_yaml(path: Path) -> Any:
    """Load YAML from disk."""
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def load_config(path: Path | str, **overrides: Any) -> ReportConfig:
    """
    Build a ReportConfig from a YAML file.

    Relative ``data`` and ``outdir`` entries resolve against the directory
    containing the YAML file. Keyword overrides that are not None replace
    values from the file.

    Example:
        >>> config = load_config("analysis.yaml", alpha=0.01)

    Raises:
        FileNotFoundError: If the YAML file or the data file does not exist
        ValueError: If the YAML contains unknown keys or invalid values
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    payload = load_yaml(path)
    if not isinstance(payload, dict):
        raise ValueError(f"Config file must contain a mapping, got {type(payload).__name__}")

    unknown = sorted(set(payload) - set(_YAML_KEYS))
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {unknown}")

    kwargs: Dict[str, Any] = {_YAML_KEYS[k]: v for k, v in payload.items()}

    for key in ("data_path", "outdir"):
        if key in kwargs and kwargs[key] is not None:
            p = Path(kwargs[key])
            kwargs[key] = p if p.is_absolute() else path.parent / p

    for key, value in overrides.items():
        if value is not None:
            kwargs[key] = value

    if "data_path" not in kwargs:
        raise ValueError(f"Config file {path} does not name a data file ('data')")

    logger.info(f"Loaded config from {path}")
    return ReportConfig(**kwargs)
