"""Core (UI-agnostic) pivot logic.

This package contains:
- dataset catalogs (metadata JSON -> DatasetMetadata)
- aggregation of raw rows by a datapoint column
- the post-aggregation pipeline (what-if, dates, averages, calculated fields)
- control/axis resolution and the undo/redo history
- chart helpers (Altair -> Vega-Lite spec dict)
"""
