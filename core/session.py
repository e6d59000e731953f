from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

from core.config import Settings, get_settings
from core.controls import get_control_state, get_graphtype_default, get_init_control_state, resolve_axes
from core.dataread import FileRowSource, RowSource, is_file_dataset, read_dataset
from core.errors import ConfigurationError
from core.history import PivotHistory
from core.metadata import DatasetMetadata, MetadataRegistry
from core.summary import get_load_comparison_data, get_summary_data, get_summary_list
from core.whatif import get_load_choices, load_table_changed

logger = logging.getLogger(__name__)


def get_datapoint_col(state: Optional[Mapping[str, Any]], metadata: DatasetMetadata) -> Optional[str]:
    """Synthetic datasets pin their datapoint; otherwise the state's, else the catalog default."""
    pinned = metadata.get_dataset_attr("datapointCol")
    from_state = state.get("datapoint") if state else None
    return pinned or from_state or metadata.get_default_datapoint_col()


def _dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def _derived(processed) -> Dict[str, Any]:
    return {
        "summaryData": get_summary_data(processed),
        "loadComparisonData": get_load_comparison_data(processed),
    }


class PivotSession:
    """One user's pivot: history, the active catalog, and the data reads that follow each event."""

    def __init__(self, registry: MetadataRegistry, settings: Optional[Settings] = None, source: Optional[RowSource] = None):
        self.registry = registry
        self.settings = settings or get_settings()
        self.history = PivotHistory(self.settings.max_history)
        self.file_source = FileRowSource(self.settings.data_dir)
        self.source = source or self.file_source
        self.metadata: Optional[DatasetMetadata] = None
        # Rows posted with a dataset load, reused for that dataset's refetches.
        self.raw_data: Dict[str, Any] = {}

    def _source_for(self, dataset: str) -> RowSource:
        return self.file_source if is_file_dataset(dataset) else self.source

    def _default_dataset(self) -> str:
        if self.settings.default_dataset:
            return self.settings.default_dataset
        datasets = self.registry.datasets()
        if not datasets:
            raise ConfigurationError("No datasets are configured")
        return datasets[0]["name"]

    # ---------- loading ----------
    def load(self, dataset: Optional[str] = None, raw_data: Optional[Any] = None) -> Mapping[str, Any]:
        """Switch to ``dataset``: push a change marker, read everything, push the full snapshot."""
        name = dataset or self._default_dataset()
        metadata = self.registry.get(name)
        previous = self.history.current_state() or {}

        self.history.change_dataset(name)
        self.metadata = metadata
        if raw_data is None:
            self.raw_data.pop(name, None)
        else:
            self.raw_data[name] = raw_data

        graphtype = previous.get("graphtype") or get_graphtype_default()
        datapoint = metadata.get_dataset_attr("datapointCol") or metadata.get_default_datapoint_col()
        pivot_filter = metadata.get_filters()
        mode = "csv" if is_file_dataset(name) else "all"
        result = read_dataset(
            mode, name, pivot_filter, None, datapoint, graphtype, None,
            registry=self.registry, source=self._source_for(name), raw_data=raw_data,
        )
        controls = get_init_control_state(result.categorical_values, datapoint, graphtype, metadata)
        state = {
            **controls,
            "dataset": name,
            "datapoint": datapoint,
            "filter": pivot_filter,
            "loadTable": None,
            **result.as_state(),
            **_derived(result.processed_data),
        }
        logger.info("loaded %s: %d pivoted records", name, len(result.pivoted_data))
        return self.history.push(state)

    # ---------- events ----------
    def apply(self, event: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        if event.get("type") == "change_dataset":
            return self.load(event["dataset"])
        old = self.history.current_state()
        self.history.dispatch(event)
        return self.refresh(old)

    def refresh(self, old: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
        """Re-read data when the datapoint, filter, load table or animation moved away from ``old``."""
        current = self.history.current_state()
        if current is None:
            return None
        if self.history.is_marker():
            return self.load(current.get("to"), raw_data=self.raw_data.get(current.get("to")))

        dataset = current.get("dataset")
        if self.metadata is None or self.metadata.name != dataset:
            # Undo/redo across a dataset change: the snapshot already holds the data.
            self.metadata = self.registry.get(dataset)
            return current

        if not old:
            return current

        metadata = self.metadata
        pivot_filter = current.get("filter") or metadata.get_filters()
        filter_changed = _dumps(old.get("filter") or {}) != _dumps(current.get("filter") or {})
        datapoint = get_datapoint_col(current, metadata)
        datapoint_changed = get_datapoint_col(old, metadata) != datapoint
        load_changed = load_table_changed(old.get("loadTable"), current.get("loadTable"))
        animation_changed = old.get("animate") != current.get("animate")
        if not (filter_changed or datapoint_changed or load_changed or animation_changed):
            return current

        token = self.history.begin_request()
        mode = "csv" if is_file_dataset(dataset) else "increment"
        result = read_dataset(
            mode, dataset, pivot_filter, current.get("loadTable"), datapoint,
            current.get("graphtype") or get_graphtype_default(), current.get("animate"),
            registry=self.registry, source=self._source_for(dataset),
            raw_data=self.raw_data.get(dataset), categorical_values=current.get("categoricalValues"),
        )
        self.history.merge(
            {"loadTable": current.get("loadTable"), **result.as_state(), **_derived(result.processed_data)},
            token=token,
        )
        return self.history.current_state()

    # ---------- read side ----------
    def view(self) -> Dict[str, Any]:
        state = self.history.current_state()
        if state is None or self.metadata is None or self.history.is_marker():
            return {"loading": True}
        metadata = self.metadata
        datapoint = get_datapoint_col(state, metadata)
        cats = state.get("categoricalValues") or {}
        controls = get_control_state(state, datapoint, cats, metadata, self.registry.datasets())
        return {
            "loading": False,
            "dataset": metadata.name,
            "title": f"Visualizing {metadata.label} Data",
            "datapointCol": datapoint,
            "controls": controls,
            "axes": resolve_axes(state, controls),
            "processedData": list(state.get("processedData") or []),
            "summary": get_summary_list(state.get("summaryData") or {}, metadata),
            "loadComparisonData": state.get("loadComparisonData") or {},
            "loadChoices": get_load_choices(metadata, cats),
            "loadTable": state.get("loadTable"),
            "current": self.history.current,
            "historyLength": len(self.history),
        }
