"""Row-wise and dataset-wide post-processing of pivoted data.

``process`` runs a fixed sequence of stages over raw or aggregated records:

    preprocess (what-if) -> dates -> averages -> categorical counts
        -> dataset transform -> formats -> calculated fields

Every stage returns new row dicts, so running ``process`` twice on the same
inputs gives the same output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from core.constants import AVG_SUFFIX, SUM_RECORDS
from core.dates import date_string_to_epoch
from core.errors import TransformFailure
from core.metadata import DatasetMetadata
from core.whatif import LoadTable, preprocess

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


@dataclass(frozen=True)
class FieldResult:
    value: Any = None
    error: Optional[TransformFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CalcColumn:
    alias: str
    aliases: List[str]
    transform: Optional[Callable[..., Any]]
    data: Sequence[Mapping[str, Any]]
    idx: int = 0


def with_dates(data: Sequence[Mapping[str, Any]], metadata: DatasetMetadata) -> List[Record]:
    """Convert DateString columns (MM/DD/YYYY or MM/YYYY) to epoch ms in their output column."""
    targets = []
    for col in metadata.get_cols_with_type("DateString"):
        alias = metadata.get_alias(col)
        output_col = metadata.get_attr_value(col, "output")
        targets.append((alias, metadata.get_alias(output_col) if output_col else alias))
    if not targets:
        return [dict(r) for r in data]

    out = []
    for row in data:
        rec = dict(row)
        for alias, output_alias in targets:
            # Already-binned datapoints arrive as epoch ms.
            if isinstance(row.get(alias), str):
                rec[output_alias] = date_string_to_epoch(row[alias])
        out.append(rec)
    return out


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return None


def with_averages(data: Sequence[Mapping[str, Any]], metadata: DatasetMetadata) -> List[Record]:
    nrec = metadata.get_alias(SUM_RECORDS)
    aliases = [metadata.get_alias(c) for c in metadata.get_averageable_numerics() if c != SUM_RECORDS]

    out = []
    for row in data:
        rec = dict(row)
        denominator = _as_float(row.get(nrec))
        for alias in aliases:
            numerator = _as_float(row[alias]) if alias in row else None
            avg = numerator / denominator if denominator and numerator is not None else None
            rec[alias + AVG_SUFFIX] = avg
        out.append(rec)
    return out


def with_categorical_counts(data: Sequence[Mapping[str, Any]], metadata: DatasetMetadata) -> List[Record]:
    """Add ``"# <alias>"``: how many distinct values of a summary categorical the row holds."""
    summary_aliases = {
        metadata.get_alias(c) for c in metadata.get_categoricals() if metadata.is_true(c, "summary")
    }
    if not summary_aliases:
        return [dict(r) for r in data]

    out = []
    for row in data:
        counts: Dict[str, int] = {}
        for key in row:
            if ":" not in key:
                continue
            var_name = key[: key.index(":")]
            if var_name in summary_aliases:
                name = f"# {var_name}"
                counts[name] = counts.get(name, 0) + 1
        out.append({**row, **counts})
    return out


def with_dataset_transform(data: Sequence[Mapping[str, Any]], metadata: DatasetMetadata) -> List[Record]:
    transform = metadata.dataset_transform
    fields = metadata.get_dataset_attr("transformFields")
    if transform is None or not fields:
        return [dict(r) for r in data]
    aliases = [metadata.get_alias(f) for f in fields]
    return transform(aliases, data, metadata.get_alias_map(), metadata.get_numeric_type_map())


def with_formats(data: Sequence[Mapping[str, Any]], metadata: DatasetMetadata) -> List[Record]:
    cols = [(c, metadata.get_alias(c)) for c in metadata.get_columns_with_attr_true("useFormat")]
    out = []
    for row in data:
        rec = dict(row)
        for col, alias in cols:
            if alias in rec:
                rec[alias] = metadata.get_formatted_value(col, rec[alias])
        out.append(rec)
    return out


def evaluate_field(column: CalcColumn, row: Record, prev: Record) -> FieldResult:
    if column.transform is None:
        return FieldResult()
    try:
        return FieldResult(column.transform(row, column.aliases, column.data, prev))
    except Exception as exc:  # noqa: BLE001
        return FieldResult(error=TransformFailure(column.alias, exc))


def apply_calculations(data: Sequence[Mapping[str, Any]], columns: Sequence[CalcColumn]) -> List[Record]:
    """Fill calculated columns row by row.

    Each transform sees the row including fields already calculated in this
    pass, and the previous fully calculated row.
    """
    out: List[Record] = []
    prev: Record = {}
    for row in data:
        rec = dict(row)
        for column in columns:
            result = evaluate_field(column, rec, prev)
            if not result.ok:
                logger.warning("transform FAIL for %s: %s", column.alias, result.error.cause)
            rec[column.alias] = result.value
        out.append(rec)
        prev = rec
    return out


def _calc_columns(data: Sequence[Mapping[str, Any]], datapoint_col: Optional[str], metadata: DatasetMetadata, pre: bool) -> List[CalcColumn]:
    columns = []
    for col in metadata.get_columns_with_attr("calculated"):
        spec = metadata.get_attr_value(col, "calculated")
        if (spec.pre_transform is not None) != pre or not metadata.is_allowed_for_datapoint(datapoint_col, col):
            continue
        aliases = [metadata.get_alias(f) for f in spec.fields]
        transformed: Sequence[Mapping[str, Any]] = data
        if pre and spec.pre_fn is not None:
            try:
                transformed = spec.pre_fn(data, aliases)
            except Exception as exc:  # noqa: BLE001
                logger.warning("preTransform %s FAIL for %s: %s", spec.pre_transform, col, exc)
                transformed = []
        columns.append(CalcColumn(metadata.get_alias(col), aliases, spec.fn, transformed, spec.idx))
    return sorted(columns, key=lambda c: c.idx)


def with_calculated_fields(data: Sequence[Mapping[str, Any]], datapoint_col: Optional[str], metadata: DatasetMetadata) -> List[Record]:
    # Columns with a preTransform (e.g. a sort for deciles) may depend on the
    # plain calculated columns, so they run second, over the first pass' output.
    pass1 = apply_calculations(data, _calc_columns(data, datapoint_col, metadata, pre=False))
    return apply_calculations(pass1, _calc_columns(pass1, datapoint_col, metadata, pre=True))


def process(
    data: Sequence[Mapping[str, Any]],
    load_table: Optional[LoadTable],
    datapoint_col: Optional[str],
    metadata: DatasetMetadata,
) -> List[Record]:
    if not isinstance(data, (list, tuple)):
        return []
    rows = preprocess(data, load_table, metadata)
    rows = with_dates(rows, metadata)
    rows = with_averages(rows, metadata)
    rows = with_categorical_counts(rows, metadata)
    rows = with_dataset_transform(rows, metadata)
    rows = with_formats(rows, metadata)
    rows = with_calculated_fields(rows, datapoint_col, metadata)
    logger.debug("processed %d records for datapoint %s", len(rows), datapoint_col)
    return rows
