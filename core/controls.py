"""User-selectable chart controls.

Given the current pivot state and the dataset catalog, work out which
controls are enabled for the graph type, what each control may be set to, and
which axis values to draw with when a stored selection has gone stale.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from core.constants import GRAPHTYPE_CONTROLS, GRAPHTYPE_ENABLE, NO_ANIMATION
from core.metadata import DatasetMetadata

Choice = Dict[str, Any]

AXIS_CONTROLS = ("xAxis", "yAxis", "radiusAxis", "colorAxis")
AXIS_NAMES = AXIS_CONTROLS + ("datapoint", "animate")

DEFAULT_CONTROLS: Dict[str, Dict[str, Any]] = {
    "animate": {"id": "a-axis", "name": "animate", "label": "Time Animation", "headerClass": "control-header"},
    "datapoint": {"id": "datapoint", "name": "datapoint", "label": "Aggregate By", "headerClass": "control-header"},
    "xAxis": {"id": "x-axis", "name": "xAxis", "label": "X Axis", "headerClass": "control-header"},
    "yAxis": {"id": "y-axis", "name": "yAxis", "label": "Y Axis", "headerClass": "control-header"},
    "radiusAxis": {"id": "r-axis", "name": "radiusAxis", "label": "Size", "headerClass": "control-smallheader"},
    "colorAxis": {"id": "c-axis", "name": "colorAxis", "label": "Color", "headerClass": "control-smallheader"},
}

_NO_ATTRS = {"all": "noAxis", "xAxis": "noXAxis", "yAxis": "noYAxis", "colorAxis": "noColor", "radiusAxis": "noRadius"}

_DEFAULT_VALUE_ATTRS = {
    "xAxis": "defaultXValue",
    "yAxis": "defaultYValue",
    "colorAxis": "defaultColorValue",
    "radiusAxis": "defaultRadiusValue",
}


def _by_alias(choices: List[Choice]) -> List[Choice]:
    return sorted(choices, key=lambda c: str(c["alias"]))


def is_enabled(graphtype: Optional[str], control: str) -> bool:
    enabled = GRAPHTYPE_ENABLE.get(graphtype) if graphtype in GRAPHTYPE_ENABLE else GRAPHTYPE_ENABLE["default"]
    return control in enabled


def get_graphtype_default() -> str:
    for item in GRAPHTYPE_CONTROLS["list"]:
        if item.get("default"):
            return item["value"]
    return ""


def get_graphtype_controls(graphtype: Optional[str], datapoint_col: Optional[str], metadata: DatasetMetadata) -> Dict[str, Any]:
    """Graph type radio list; pareto is disabled for ``noPareto`` datapoints."""
    items = []
    for item in GRAPHTYPE_CONTROLS["list"]:
        enabled = item["value"] != "pareto" or not metadata.get_attr_value(datapoint_col, "noPareto", False)
        items.append({**item, "checked": item["value"] == graphtype, "disabled": not enabled})
    return {**GRAPHTYPE_CONTROLS, "list": items}


def _axis_filter(control: str, datapoint_col: Optional[str], metadata: DatasetMetadata) -> Callable[[str], bool]:
    excluded_all = set(metadata.get_columns_with_attr_true(_NO_ATTRS["all"]))
    excluded_axis = set(metadata.get_columns_with_attr_true(_NO_ATTRS[control]))

    def allowed(col: str) -> bool:
        return metadata.is_allowed_for_datapoint(datapoint_col, col) and col not in excluded_all and col not in excluded_axis

    return allowed


def _date_choices(control: str, datapoint_col: Optional[str], metadata: DatasetMetadata, allowed: Callable[[str], bool]) -> List[Choice]:
    if control not in ("xAxis", "yAxis") or not metadata.has_column(datapoint_col):
        return []
    out: List[Choice] = []
    dp_type = metadata.get_attr_value(datapoint_col, "type")
    if dp_type in ("Date", "IsoDate") and allowed(datapoint_col):
        out.append({"col": datapoint_col, "alias": metadata.get_alias(datapoint_col)})
    output_col = metadata.get_date_output_col(datapoint_col)
    if output_col and allowed(output_col):
        out.append({"col": output_col, "alias": metadata.get_alias(output_col)})
    return out


def get_control_choices(
    graphtype: Optional[str],
    control: str,
    categorical_values: Optional[Mapping[str, Sequence[Any]]],
    datapoint_col: Optional[str],
    metadata: DatasetMetadata,
) -> List[Choice]:
    """``[{col, alias}]`` choices for ``control``, sorted by alias (graphtype keeps its order)."""
    if control == "graphtype":
        return [{"col": i["value"], "alias": i["label"]} for i in GRAPHTYPE_CONTROLS["list"]]

    if control == "datapoint":
        cols = metadata.get_columns_with_attr_true("datapoint")
        if graphtype == "pareto":
            cols = [c for c in cols if not metadata.get_attr_value(c, "noPareto", False)]
        return _by_alias([{"col": c, "alias": metadata.get_datapoint_alias(c)} for c in cols])

    if control in AXIS_CONTROLS:
        allowed = _axis_filter(control, datapoint_col, metadata)
        numerics = [{"col": c, "alias": metadata.get_alias(c)} for c in metadata.get_numerics() if allowed(c)]
        dates = _date_choices(control, datapoint_col, metadata, allowed)
        cats = metadata.get_categorical_list(categorical_values, predicate=allowed)
        seen = set()
        unique = []
        for c in numerics + dates + cats:
            if (c["col"], c["alias"]) not in seen:
                seen.add((c["col"], c["alias"]))
                unique.append(c)
        return _by_alias(unique)

    if control == "animate":
        cols = metadata.get_columns_with_attr_true("animation")
        return [{"col": NO_ANIMATION, "alias": NO_ANIMATION}] + _by_alias(
            [{"col": c, "alias": metadata.get_alias(c)} for c in cols]
        )

    return []


def is_default_pivot_value(control: str, col: str, alias: str, metadata: DatasetMetadata) -> bool:
    attr = _DEFAULT_VALUE_ATTRS.get(control)
    if attr is None:
        return False
    dflt = metadata.get_attr_value(col, attr)
    if not dflt:
        return False
    wanted = alias if dflt == "self" else f"{metadata.get_alias(col)}:{dflt}"
    return wanted == alias


def get_init_control_state(
    categorical_values: Optional[Mapping[str, Sequence[Any]]],
    datapoint_col: Optional[str],
    graphtype: Optional[str],
    metadata: DatasetMetadata,
) -> Dict[str, Any]:
    """Initial selection for every control: metadata defaults, else the first choice."""
    state: Dict[str, Any] = {}

    choices = get_control_choices(graphtype, "graphtype", categorical_values, datapoint_col, metadata)
    picked = next((c for c in choices if c["col"] == graphtype), choices[0] if choices else None)
    state["graphtype"] = picked["col"] if picked else ""

    choices = get_control_choices(graphtype, "animate", categorical_values, datapoint_col, metadata)
    state["animate"] = choices[0]["alias"] if choices else ""

    choices = get_control_choices(graphtype, "datapoint", categorical_values, datapoint_col, metadata)
    picked = next((c for c in choices if c["col"] == datapoint_col), choices[0] if choices else None)
    state["datapoint"] = picked["col"] if picked else ""

    for control in AXIS_CONTROLS:
        choices = get_control_choices(graphtype, control, categorical_values, datapoint_col, metadata)
        selected = 0
        for i, c in enumerate(choices):
            if is_default_pivot_value(control, c["col"], c["alias"], metadata):
                selected = i
        state[control] = choices[selected]["alias"] if choices else ""
    return state


def get_control_items(
    graphtype: Optional[str],
    control: str,
    state: Mapping[str, Any],
    categorical_values: Optional[Mapping[str, Sequence[Any]]],
    datapoint_col: Optional[str],
    metadata: DatasetMetadata,
    geo_cols: Optional[set] = None,
) -> List[Dict[str, Any]]:
    """Choice list for one control with name/label/disabled/selected flags."""
    enabled = is_enabled(graphtype, control)
    choices = get_control_choices(graphtype, control, categorical_values, datapoint_col, metadata)

    if control == "animate":
        # Anything but the first entry ("None") needs the control enabled.
        return [
            {
                "name": c["col"],
                "label": c["alias"],
                "value": c["col"],
                "checked": (c["col"] == state.get(control)) if enabled else i == 0,
                "disabled": not enabled,
            }
            for i, c in enumerate(choices)
        ]

    if control == "datapoint":
        geo = geo_cols if geo_cols is not None else set(metadata.get_geo_cols())
        return [
            {
                "name": c["col"],
                "label": c["alias"],
                "disabled": not enabled or (graphtype == "map" and c["col"] not in geo),
                "selected": c["col"] == state.get(control),
            }
            for c in choices
        ]

    if control in AXIS_CONTROLS:
        return [
            {
                "col": c["col"],
                "name": c["alias"],
                "label": c["alias"],
                "disabled": not enabled,
                "selected": c["alias"] == state.get(control),
            }
            for c in choices
        ]
    return []


def get_chart_control_state(
    state: Mapping[str, Any],
    graphtype: Optional[str],
    categorical_values: Optional[Mapping[str, Sequence[Any]]],
    datapoint_col: Optional[str],
    metadata: DatasetMetadata,
) -> Dict[str, Dict[str, Any]]:
    geo = set(metadata.get_geo_cols())
    out = {}
    for name, proto in DEFAULT_CONTROLS.items():
        out[name] = {
            **proto,
            "disabled": not is_enabled(graphtype, name),
            "list": get_control_items(graphtype, name, state, categorical_values, datapoint_col, metadata, geo),
        }
    return out


def get_control_state(
    state: Mapping[str, Any],
    datapoint_col: Optional[str],
    categorical_values: Optional[Mapping[str, Sequence[Any]]],
    metadata: DatasetMetadata,
    datasets: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, Any]:
    """State of every control, including the dataset and graph type selectors."""
    graphtype = state.get("graphtype") or get_graphtype_default()
    datapoint = datapoint_col or state.get("datapoint")
    dataset_list = [
        {**d, "label": d["alias"], "selected": d["name"] == metadata.name} for d in (datasets or [])
    ]
    return {
        "dataset": {"id": "dataset", "name": "dataset", "label": "Select a dataset", "headerClass": "dataset", "list": dataset_list},
        "graphtype": get_graphtype_controls(graphtype, datapoint, metadata),
        **get_chart_control_state(state, graphtype, categorical_values, datapoint, metadata),
    }


def resolve_axes(state: Mapping[str, Any], control_state: Optional[Mapping[str, Mapping[str, Any]]]) -> Dict[str, Any]:
    """Axis values to draw with; stale selections fall back to the first choice."""
    if not control_state:
        axes = {name: state.get(name) for name in AXIS_NAMES}
        return {**axes, "graphtype": state.get("graphtype")}

    axes: Dict[str, Any] = {}
    for name in AXIS_NAMES:
        control = control_state.get(name) or {}
        items = control.get("list") or []
        names = [i["name"] for i in items]
        old_value = state.get(name)
        if name == "animate" and control.get("disabled"):
            axes[name] = names[0] if names else NO_ANIMATION
        elif old_value in names:
            axes[name] = old_value
        else:
            axes[name] = names[0] if names else None
    return {**axes, "graphtype": state.get("graphtype")}
