from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import pandas as pd

from core.aggregate import get_categorical_values, pivot
from core.constants import NO_ANIMATION
from core.errors import ConfigurationError, DataUnavailable
from core.filters import PivotFilter, apply_filter, normalize_filter
from core.metadata import DatasetMetadata, MetadataRegistry
from core.pipeline import process
from core.whatif import LoadTable

logger = logging.getLogger(__name__)

MODES = ("csv", "all", "increment")


@dataclass
class DatasetResult:
    categorical_values: Dict[str, List[Any]] = field(default_factory=dict)
    pivoted_data: List[Dict[str, Any]] = field(default_factory=list)
    processed_data: List[Dict[str, Any]] = field(default_factory=list)

    def as_state(self) -> Dict[str, Any]:
        return {
            "categoricalValues": self.categorical_values,
            "pivotedData": self.pivoted_data,
            "processedData": self.processed_data,
        }


class RowSource(Protocol):
    def read(self, dataset: str) -> List[Dict[str, Any]]:
        ...


def is_file_dataset(dataset: Optional[str]) -> bool:
    return bool(dataset) and dataset.lower().endswith((".csv", ".json"))


def _frame_to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


@lru_cache(maxsize=8)
def _read_file_cached(path: str, mtime: float) -> Tuple[Dict[str, Any], ...]:
    if path.lower().endswith(".json"):
        df = pd.read_json(path, orient="records")
    else:
        # Cells stay text; blanks become None.
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        df = df.where(df != "")
    return tuple(_frame_to_records(df))


class FileRowSource:
    """Reads ``<data_dir>/<dataset>`` CSV or JSON files."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def read(self, dataset: str) -> List[Dict[str, Any]]:
        path = self.data_dir / dataset
        try:
            rows = _read_file_cached(str(path), path.stat().st_mtime)
        except (OSError, ValueError) as exc:
            raise DataUnavailable(f"Failed reading {path}: {exc}") from exc
        return [dict(r) for r in rows]


class InMemoryRowSource:
    """Rows supplied up front, keyed by dataset name."""

    def __init__(self, tables: Optional[Mapping[str, Sequence[Mapping[str, Any]]]] = None):
        self.tables = {k: list(v) for k, v in (tables or {}).items()}

    def read(self, dataset: str) -> List[Dict[str, Any]]:
        if dataset not in self.tables:
            raise DataUnavailable(f"No rows for {dataset!r}")
        return [dict(r) for r in self.tables[dataset]]


def get_transformed_data(
    graphtype: Optional[str],
    pivot_filter: PivotFilter,
    datapoint_col: str,
    animation_col: Optional[str],
    rows: Sequence[Mapping[str, Any]],
    metadata: DatasetMetadata,
) -> List[Dict[str, Any]]:
    animate = animation_col if graphtype == "bubble" and animation_col != NO_ANIMATION else None
    return pivot(apply_filter(rows, pivot_filter), datapoint_col, metadata, animate)


def read_dataset(
    mode: str,
    dataset: Optional[str],
    pivot_filter: Optional[Mapping[str, object]],
    load_table: Optional[LoadTable],
    datapoint_col: Optional[str],
    graphtype: Optional[str],
    animation_col: Optional[str],
    *,
    registry: MetadataRegistry,
    source: Optional[RowSource] = None,
    raw_data: Optional[Any] = None,
    categorical_values: Optional[Dict[str, List[Any]]] = None,
) -> DatasetResult:
    """Fetch, pivot and process one dataset.

    ``csv`` and ``all`` compute categorical values from the full row set;
    ``increment`` keeps the ``categorical_values`` it is given. ``raw_data``
    bypasses the source entirely.
    """
    if mode not in MODES:
        raise ConfigurationError(f"Unknown read mode {mode!r}")
    metadata = registry.get(dataset)
    if not datapoint_col:
        raise ConfigurationError("There was no default datapoint col specified")

    flt = normalize_filter(pivot_filter, metadata)

    if raw_data is not None:
        rows = list(raw_data) if isinstance(raw_data, (list, tuple)) else []
    else:
        if source is None:
            raise ConfigurationError(f"No data source configured for {dataset!r}")
        try:
            rows = source.read(dataset)
        except DataUnavailable as exc:
            logger.warning("read failed for %s: %s", dataset, exc)
            return DatasetResult(categorical_values=dict(categorical_values or {}))

    if mode == "increment" and raw_data is None:
        cats = dict(categorical_values or {})
    else:
        cats = get_categorical_values(rows, metadata)

    pivoted = get_transformed_data(graphtype, flt, datapoint_col, animation_col, rows, metadata)
    processed = process(pivoted, load_table, datapoint_col, metadata)
    return DatasetResult(categorical_values=cats, pivoted_data=pivoted, processed_data=processed)
