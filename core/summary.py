from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from core.metadata import DatasetMetadata


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == value


def get_load_comparison_data(processed: Sequence[Mapping[str, Any]]) -> Dict[str, float]:
    """Totals of every numeric field over all processed rows."""
    totals: Dict[str, float] = {}
    for row in processed:
        for key, value in row.items():
            if _is_number(value):
                totals[key] = totals.get(key, 0) + value
    return totals


def get_summary_data(processed: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """Chart totals: summed numerics and value counts, plus ``# <alias>`` distinct value counts."""
    totals = get_load_comparison_data(processed)
    distinct: Dict[str, int] = {}
    for key, value in totals.items():
        if ":" in key and value:
            name = f"# {key[: key.index(':')]}"
            distinct[name] = distinct.get(name, 0) + 1
    return {**totals, **distinct}


def get_summary_list(summary: Mapping[str, Any], metadata: DatasetMetadata) -> List[Dict[str, Any]]:
    allowed = set(metadata.get_columns_with_attr_true("summary"))
    cats = {f"# {metadata.get_alias(c)}" for c in metadata.get_categoricals() if c in allowed}
    numerics = {metadata.get_alias(c) for c in metadata.get_numerics() if c in allowed}

    out = []
    for name in sorted(summary):
        if name not in cats and name not in numerics:
            continue
        value = summary[name]
        if name in numerics and _is_number(value) and not float(value).is_integer():
            value = round(value, 2)
        out.append({"name": name, "value": value})
    return out
