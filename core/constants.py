from __future__ import annotations

from typing import Dict, List

SUM_RECORDS = "# Records"
AVG_SUFFIX = " (Avg)"
GENERAL_IMPROVEMENT = "__general__"
NO_ANIMATION = "None"
MAX_HISTORY = 5

COLUMN_TYPES = ("Numeric", "Categorical", "DateString", "IsoDate", "Date", "Vector", "Singleton")

GRAPHTYPE_CONTROLS: Dict[str, object] = {
    "id": "graphtype",
    "name": "graphtype",
    "label": "Graph Type",
    "headerClass": "control-header",
    "disabled": False,
    "list": [
        {"value": "bubble", "label": "Bubble", "default": True},
        {"value": "pareto", "label": "Pareto"},
        {"value": "line", "label": "Line"},
        {"value": "force", "label": "Force"},
        {"value": "forceStatus", "label": "Force Status"},
        {"value": "map", "label": "Map"},
    ],
}

# Controls enabled per graph type; unknown graph types use "default".
GRAPHTYPE_ENABLE: Dict[str, List[str]] = {
    "bubble": ["xAxis", "yAxis", "colorAxis", "radiusAxis", "animate", "datapoint"],
    "pareto": ["yAxis", "colorAxis", "datapoint"],
    "line": ["xAxis", "yAxis", "datapoint", "colorAxis"],
    "force": ["datapoint"],
    "forceStatus": ["datapoint"],
    "map": ["datapoint", "colorAxis"],
    "default": ["xAxis", "yAxis", "colorAxis", "radiusAxis", "animate", "datapoint"],
}
