"""What-if load redistribution.

A load table is a list of rows such as ``{"value": "Gender:F", "Load": 50}``:
"what if the load coming from Gender:F were 50% of what it is today?". Each
header (``"Load"``) names a ``whatIfTarget`` tag; every numeric column carrying
that tag is scaled in proportion to the share of the row the categorical value
accounts for.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from core.aggregate import to_number
from core.constants import GENERAL_IMPROVEMENT
from core.metadata import DatasetMetadata

logger = logging.getLogger(__name__)

LoadTable = Sequence[Mapping[str, Any]]
TargetTable = Dict[str, List[Tuple[str, float]]]


def get_target_table(
    load_table: Optional[LoadTable],
    table_map: Optional[Mapping[str, Sequence[str]]],
    metadata: DatasetMetadata,
) -> Optional[TargetTable]:
    """Categorical value -> [(target alias, percentage), ...] in load table order.

    Returns None when there is nothing to apply.
    """
    if not load_table or not table_map:
        return None

    out: TargetTable = {}
    for entry in load_table:
        key = entry.get("value")
        if key is None:
            continue
        changes: List[Tuple[str, float]] = []
        for header, pct in entry.items():
            if header == "value":
                continue
            try:
                pct_value = float(pct)
            except (TypeError, ValueError):
                logger.warning("ignoring non-numeric load %r for %s/%s", pct, key, header)
                continue
            for col in table_map.get(header, []):
                changes.append((metadata.get_alias(col), pct_value))
        out[key] = changes

    if not any(out.values()):
        return None
    return out


def get_fraction_of_total(cat_value: str, row: Mapping[str, Any]) -> float:
    """Share of ``row``'s aggregate attributable to ``cat_value`` (``"<alias>:<value>"``)."""
    if cat_value == GENERAL_IMPROVEMENT:
        return 1.0

    alias, _, value_name = cat_value.partition(":")

    # Grouped by this variable: the row is either all of the value or none of it.
    if alias in row:
        return 1.0 if str(row[alias]) == value_name else 0.0

    total = 0.0
    for key in row:
        if key.split(":")[0] == alias:
            total += to_number(row[key])
    if total == 0:
        return 0.0
    return to_number(row.get(cat_value)) / total


def redistribute_row(row: Mapping[str, Any], target_table: TargetTable) -> Dict[str, Any]:
    out = dict(row)
    for cat_value, changes in target_table.items():
        fraction = get_fraction_of_total(cat_value, out)
        new_values: Dict[str, float] = {}
        for alias, pct in changes:
            if alias not in row:
                continue
            old_value = to_number(out[alias])
            unchanged_part = old_value * (1 - fraction)
            changed_part = old_value * fraction * (pct / 100)
            new_values[alias] = unchanged_part + changed_part
        out.update(new_values)
    return out


def preprocess(data: Sequence[Mapping[str, Any]], load_table: Optional[LoadTable], metadata: DatasetMetadata) -> List[Dict[str, Any]]:
    """Apply the load table to every row; rows are copied, never mutated."""
    table_map = metadata.get_reverse_map("whatIfTarget")
    target_table = get_target_table(load_table, table_map, metadata)
    if target_table is None:
        return [dict(r) for r in data]
    return [redistribute_row(r, target_table) for r in data]


def new_load_row(value: str, metadata: DatasetMetadata) -> Dict[str, Any]:
    """A fresh load table row for ``value`` with every header at 100%."""
    row: Dict[str, Any] = {"value": value}
    for header in metadata.get_reverse_map("whatIfTarget"):
        row[header] = 100
    return row


def get_load_choices(metadata: DatasetMetadata, categorical_values: Optional[Mapping[str, Sequence[Any]]]) -> List[Dict[str, Any]]:
    """Values a load can be entered for: general improvement first, then every categorical value."""
    head = [{"name": GENERAL_IMPROVEMENT, "label": "General Improvement--All Calls"}]
    cats = metadata.get_categorical_list(categorical_values, "noWhatIf")
    return head + [{"name": c["alias"], "label": c["alias"]} for c in cats]


def load_table_changed(old: Optional[LoadTable], new: Optional[LoadTable]) -> bool:
    old_is_list = isinstance(old, (list, tuple))
    new_is_list = isinstance(new, (list, tuple))
    if not old_is_list and not new_is_list:
        return False
    if old_is_list != new_is_list:
        return True
    old_map = {r.get("value"): dict(r) for r in old}
    new_map = {r.get("value"): dict(r) for r in new}
    return old_map != new_map
