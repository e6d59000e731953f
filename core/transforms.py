"""Named transforms referenced from dataset metadata.

Metadata never embeds code: a calculated column says ``"transform": "ratio"``
and the name is resolved against the registries below when the catalog is
built. Three kinds exist:

- calculation: ``fn(row, fields, data, prev) -> value`` computes one field of
  one row. ``fields`` are the aliased input names, ``data`` the (possibly
  pre-transformed) whole dataset and ``prev`` the previous fully calculated
  row, which makes running totals possible.
- pre-transform: ``fn(data, fields) -> data`` reshapes the dataset handed to a
  calculation, typically a sort used for deciles.
- dataset transform: ``fn(fields, data, alias_map, numeric_map) -> data``
  builds a synthetic dataset from an existing one.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from core.constants import SUM_RECORDS
from core.dates import epoch_to_timestamp
from core.errors import ConfigurationError

Row = Mapping[str, Any]
Calculation = Callable[[Row, Sequence[str], Sequence[Row], Row], Any]
PreTransform = Callable[[Sequence[Row], Sequence[str]], List[Row]]
DatasetTransform = Callable[[Sequence[str], Sequence[Row], Mapping[str, str], Mapping[str, dict]], List[dict]]

CALCULATIONS: Dict[str, Calculation] = {}
PRE_TRANSFORMS: Dict[str, PreTransform] = {}
DATASET_TRANSFORMS: Dict[str, DatasetTransform] = {}


def _register(table: Dict[str, Callable], name: str):
    def wrap(fn):
        table[name] = fn
        return fn

    return wrap


def calculation(name: str):
    return _register(CALCULATIONS, name)


def pre_transform(name: str):
    return _register(PRE_TRANSFORMS, name)


def dataset_transform(name: str):
    return _register(DATASET_TRANSFORMS, name)


def _lookup(table: Dict[str, Callable], kind: str, name: Optional[str]) -> Optional[Callable]:
    if name is None:
        return None
    if name not in table:
        raise ConfigurationError(f"Unknown {kind} transform {name!r}")
    return table[name]


def get_calculation(name: Optional[str]) -> Optional[Calculation]:
    return _lookup(CALCULATIONS, "calculation", name)


def get_pre_transform(name: Optional[str]) -> Optional[PreTransform]:
    return _lookup(PRE_TRANSFORMS, "pre", name)


def get_dataset_transform(name: Optional[str]) -> Optional[DatasetTransform]:
    return _lookup(DATASET_TRANSFORMS, "dataset", name)


def _num(row: Row, key: str) -> float:
    value = row.get(key)
    if value is None:
        return 0.0
    return float(value)


# ---------------- calculations ----------------
@calculation("ratio")
def ratio(row: Row, fields: Sequence[str], data: Sequence[Row], prev: Row) -> Optional[float]:
    numerator, denominator = row.get(fields[0]), row.get(fields[1])
    if numerator is None or not denominator:
        return None
    return float(numerator) / float(denominator)


@calculation("percent")
def percent(row: Row, fields: Sequence[str], data: Sequence[Row], prev: Row) -> Optional[float]:
    value = ratio(row, fields, data, prev)
    return None if value is None else value * 100


@calculation("difference")
def difference(row: Row, fields: Sequence[str], data: Sequence[Row], prev: Row) -> float:
    return _num(row, fields[0]) - _num(row, fields[1])


@calculation("sum")
def total(row: Row, fields: Sequence[str], data: Sequence[Row], prev: Row) -> float:
    return sum(_num(row, f) for f in fields)


@calculation("product")
def product(row: Row, fields: Sequence[str], data: Sequence[Row], prev: Row) -> float:
    out = 1.0
    for f in fields:
        out *= _num(row, f)
    return out


@calculation("cumulative_sum")
def cumulative_sum(row: Row, fields: Sequence[str], data: Sequence[Row], prev: Row) -> float:
    # fields: [source, this calculated column]
    return _num(prev, fields[1]) + _num(row, fields[0])


@calculation("share_of_total")
def share_of_total(row: Row, fields: Sequence[str], data: Sequence[Row], prev: Row) -> Optional[float]:
    whole = sum(_num(r, fields[0]) for r in data)
    return None if not whole else _num(row, fields[0]) / whole


@calculation("decile")
def decile(row: Row, fields: Sequence[str], data: Sequence[Row], prev: Row) -> Optional[int]:
    """Decile (1-10) of the row's value by its position in ``data``'s order."""
    value = row.get(fields[0])
    if value is None or not data:
        return None
    values = [r.get(fields[0]) for r in data]
    position = values.index(value)
    return position * 10 // len(values) + 1


# ---------------- pre-transforms ----------------
def _sorted(data: Sequence[Row], field: str, reverse: bool) -> List[Row]:
    present = [r for r in data if r.get(field) is not None]
    missing = [r for r in data if r.get(field) is None]
    return sorted(present, key=lambda r: r[field], reverse=reverse) + missing


@pre_transform("sort_ascending")
def sort_ascending(data: Sequence[Row], fields: Sequence[str]) -> List[Row]:
    return _sorted(data, fields[0], reverse=False)


@pre_transform("sort_descending")
def sort_descending(data: Sequence[Row], fields: Sequence[str]) -> List[Row]:
    return _sorted(data, fields[0], reverse=True)


# ---------------- dataset transforms ----------------
@dataset_transform("monthly_timeline")
def monthly_timeline(
    fields: Sequence[str],
    data: Sequence[Row],
    alias_map: Mapping[str, str],
    numeric_map: Mapping[str, dict],
) -> List[dict]:
    """Turn entity rows with a start and an (optional) end date into one row per month.

    Each output row holds the month's epoch ms under ``"Month"``, the number of
    entities active that month and the sums of their plain (non-calculated)
    numerics.
    """
    start_field, end_field = fields[0], fields[1]
    numerics = [
        alias_map.get(col, col)
        for col, info in numeric_map.items()
        if col != SUM_RECORDS and not (info or {}).get("calculated")
    ]
    spans = []
    for row in data:
        start = epoch_to_timestamp(row.get(start_field))
        if start is None:
            continue
        end = epoch_to_timestamp(row.get(end_field))
        spans.append((start, end, row))
    if not spans:
        return []

    first = min(s for s, _, _ in spans).tz_convert(None).to_period("M")
    last = max((s if e is None else e) for s, e, _ in spans).tz_convert(None).to_period("M")
    out: List[dict] = []
    for period in pd.period_range(first, last, freq="M"):
        month_begin = period.start_time.tz_localize("UTC")
        month_end = period.end_time.tz_localize("UTC")
        active = [r for s, e, r in spans if s <= month_end and (e is None or e >= month_begin)]
        rec: Dict[str, Any] = {"Month": month_begin.value // 1_000_000, SUM_RECORDS: len(active)}
        for alias in numerics:
            rec[alias] = sum(_num(r, alias) for r in active)
        out.append(rec)
    return out
