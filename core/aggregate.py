"""Group raw rows by a datapoint column.

Each group gets categorical value counts (``"<alias>:<value>"``), numeric
sums, first-seen singleton values, distinct vector values and a record count.
This is the hot path for large datasets, so it runs as one explicit loop that
mutates a single accumulator per group.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.constants import NO_ANIMATION, SUM_RECORDS
from core.dates import date_string_to_epoch, month_start
from core.errors import ConfigurationError
from core.metadata import DatasetMetadata

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]


def to_number(value: Any) -> float:
    """Numeric value of a raw cell; missing or non-numeric cells count as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        out = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return 0.0 if math.isnan(out) else out


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _group_key(value: Any) -> Any:
    # JSON rows can carry lists or objects; group those by their text.
    try:
        hash(value)
    except TypeError:
        return str(value)
    return value


def _unique(cols: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for c in cols:
        seen.setdefault(c, None)
    return list(seen)


def get_values_by_datapoint(
    rows: Sequence[Row],
    datapoint_col: Optional[str],
    metadata: DatasetMetadata,
) -> Dict[Any, Dict[str, Any]]:
    """Datapoint value -> aggregated record (without the datapoint field itself)."""
    if not datapoint_col:
        raise ConfigurationError("There was no datapoint column specified")

    nrec_alias = metadata.get_alias(SUM_RECORDS)
    by_month = metadata.get_binner(datapoint_col) == "byMonth"

    cat_cols = [c for c in _unique(metadata.get_aggregate_categoricals() + metadata.get_searchable()) if c != datapoint_col]
    cats: List[Tuple[str, str]] = [(c, metadata.get_alias(c)) for c in cat_cols]
    nums: List[Tuple[str, str]] = [
        (c, metadata.get_alias(c)) for c in metadata.get_averageable_numerics() if c != SUM_RECORDS
    ]
    singles: List[Tuple[str, str]] = [(c, metadata.get_alias(c)) for c in metadata.get_singletons_for(datapoint_col)]
    vectors: List[Tuple[str, str]] = [(c, metadata.get_alias(c)) for c in metadata.get_vectors()]

    groups: Dict[Any, Dict[str, Any]] = {}
    for row in rows:
        key = _group_key(row.get(datapoint_col))
        if by_month:
            key = month_start(key)
        acc = groups.get(key)
        if acc is None:
            acc = groups[key] = {}

        for col, alias in cats:
            value = row.get(col)
            if _is_missing(value):
                continue
            name = f"{alias}:{value}"
            acc[name] = acc.get(name, 0) + 1

        for col, alias in nums:
            acc[alias] = acc.get(alias, 0) + to_number(row.get(col))

        for col, alias in singles:
            if acc.get(alias) is None:
                value = row.get(col)
                if not _is_missing(value):
                    acc[alias] = value

        for col, alias in vectors:
            value = row.get(col)
            if _is_missing(value):
                continue
            seen = acc.setdefault(alias, [])
            if value not in seen:
                seen.append(value)

        acc[nrec_alias] = acc.get(nrec_alias, 0) + 1

    return groups


def pivot(
    rows: Sequence[Row],
    datapoint_col: Optional[str],
    metadata: DatasetMetadata,
    animation_col: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Aggregated records, one per datapoint value (per animation value when animating)."""
    if not datapoint_col:
        raise ConfigurationError("There was no datapoint column specified")

    datapoint_alias = metadata.get_alias(datapoint_col)
    by_month = metadata.get_binner(datapoint_col) == "byMonth"

    def finish(groups: Dict[Any, Dict[str, Any]], extra: Dict[str, Any]) -> List[Dict[str, Any]]:
        out = []
        for value, acc in groups.items():
            dp_value = date_string_to_epoch(value) if by_month else value
            out.append({datapoint_alias: dp_value, **extra, **acc})
        return out

    if not animation_col or animation_col == NO_ANIMATION or not metadata.has_column(animation_col):
        return finish(get_values_by_datapoint(rows, datapoint_col, metadata), {})

    animation_alias = metadata.get_alias(animation_col)
    frames: Dict[Any, List[Row]] = {}
    for row in rows:
        frames.setdefault(_group_key(row.get(animation_col)), []).append(row)

    out: List[Dict[str, Any]] = []
    for frame_value, frame_rows in frames.items():
        groups = get_values_by_datapoint(frame_rows, datapoint_col, metadata)
        out.extend(finish(groups, {animation_alias: frame_value}))
    logger.debug("pivoted %d rows into %d records over %d frames", len(rows), len(out), len(frames))
    return out


def get_categorical_values(rows: Iterable[Row], metadata: DatasetMetadata) -> Dict[str, List[Any]]:
    """Distinct non-null values of every Categorical and IsoDate column, sorted."""
    cols = metadata.get_categoricals() + metadata.get_cols_with_type("IsoDate")
    found: Dict[str, set] = {c: set() for c in cols}
    for row in rows:
        for col in cols:
            value = row.get(col)
            if not _is_missing(value):
                found[col].add(_group_key(value))
    return {col: sorted(values, key=str) for col, values in found.items()}
