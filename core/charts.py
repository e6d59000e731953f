from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence

import altair as alt
import pandas as pd

from core.constants import NO_ANIMATION

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _field(name: str) -> str:
    # Altair treats ':' as a type shorthand and '.' as nesting.
    return name.replace(":", "\\:").replace(".", "\\.")


def _encoding(df: pd.DataFrame, name: Optional[str]) -> Optional[str]:
    if not name or name not in df.columns:
        return None
    kind = "Q" if pd.api.types.is_numeric_dtype(df[name]) else "N"
    return f"{_field(name)}:{kind}"


def build_chart(
    processed: Sequence[Mapping[str, Any]],
    axes: Mapping[str, Any],
    datapoint_alias: str,
) -> Optional[alt.Chart]:
    """Chart for the selected graph type; ``None`` for types drawn elsewhere (map, force)."""
    df = pd.DataFrame(list(processed))
    graphtype = axes.get("graphtype")
    x = _encoding(df, axes.get("xAxis"))
    y = _encoding(df, axes.get("yAxis"))
    if df.empty or x is None or y is None:
        return None

    label = _encoding(df, datapoint_alias) or datapoint_alias
    tooltip = [t for t in (label, x, y) if t]

    if graphtype == "bubble":
        encode: Dict[str, Any] = {"x": alt.X(x, title=axes.get("xAxis")), "y": alt.Y(y, title=axes.get("yAxis")), "tooltip": tooltip}
        size = _encoding(df, axes.get("radiusAxis"))
        color = _encoding(df, axes.get("colorAxis"))
        if size:
            encode["size"] = alt.Size(size, title=axes.get("radiusAxis"))
        if color:
            encode["color"] = alt.Color(color, title=axes.get("colorAxis"))
        animate = axes.get("animate")
        if animate and animate != NO_ANIMATION and animate in df.columns:
            # CSV frames arrive as text ("2020").
            frames = pd.to_numeric(df[animate], errors="coerce")
            if frames.notna().all():
                df[animate] = frames
        chart = alt.Chart(df).mark_circle(opacity=0.7).encode(**encode)
        if animate and animate != NO_ANIMATION and animate in df.columns and pd.api.types.is_numeric_dtype(df[animate]):
            lo, hi = float(df[animate].min()), float(df[animate].max())
            frame = alt.param(name="frame", value=lo, bind=alt.binding_range(min=lo, max=hi, step=1, name=animate))
            chart = chart.add_params(frame).transform_filter(f"datum['{animate}'] == frame")
        return chart

    if graphtype == "line":
        return (
            alt.Chart(df)
            .mark_line(point=True)
            .encode(x=alt.X(x, title=axes.get("xAxis")), y=alt.Y(y, title=axes.get("yAxis")), tooltip=tooltip)
        )

    if graphtype == "pareto":
        return (
            alt.Chart(df)
            .mark_bar()
            .encode(
                x=alt.X(label, sort="-y", title=datapoint_alias),
                y=alt.Y(y, title=axes.get("yAxis")),
                tooltip=tooltip,
            )
        )
    return None
