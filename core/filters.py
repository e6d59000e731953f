from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import quote

from core.metadata import DatasetMetadata

PivotFilter = Dict[str, List[Any]]


def _as_value_list(values: Optional[Iterable[object]]) -> List[Any]:
    if values is None:
        return []
    if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        return [values]
    return [v for v in values if v is not None]


def normalize_filter(raw: Optional[Mapping[str, object]], metadata: DatasetMetadata) -> PivotFilter:
    """Keep only known columns with at least one value; fall back to the dataset's default filter."""
    source = raw if raw else metadata.get_filters()
    out: PivotFilter = {}
    for col, values in (source or {}).items():
        if not metadata.has_column(col):
            continue
        vals = _as_value_list(values)
        if vals:
            out[col] = vals
    return out


def row_matches(row: Mapping[str, Any], pivot_filter: Mapping[str, List[Any]]) -> bool:
    for col, values in pivot_filter.items():
        wanted = {str(v) for v in values}
        if str(row.get(col)) not in wanted:
            return False
    return True


def apply_filter(rows: Iterable[Mapping[str, Any]], pivot_filter: Optional[Mapping[str, List[Any]]]) -> List[Mapping[str, Any]]:
    if not pivot_filter:
        return list(rows)
    return [r for r in rows if row_matches(r, pivot_filter)]


def get_query_string(pivot_filter: Optional[Mapping[str, List[Any]]]) -> str:
    """``{"State": ["NY", "CA"]}`` -> ``State=NY&State=CA``."""
    pairs = []
    for col, values in (pivot_filter or {}).items():
        for v in values:
            pairs.append(f"{quote(str(col))}={quote(str(v))}")
    return "&".join(pairs)
