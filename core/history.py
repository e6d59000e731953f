"""Undo/redo log of pivot state snapshots.

The log is linear: pushing after an undo drops the snapshots past the cursor.
Only the newest ``capacity`` snapshots are kept. A ``change_dataset`` record
is a marker telling the consumer to fetch the new dataset; undo and redo step
over markers.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from core.constants import MAX_HISTORY, NO_ANIMATION
from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

Snapshot = Mapping[str, Any]

CHANGE_DATASET = "change_dataset"


def _freeze(state: Mapping[str, Any]) -> Snapshot:
    return MappingProxyType(dict(state))


class PivotHistory:
    def __init__(self, capacity: int = MAX_HISTORY):
        if capacity < 1:
            raise ConfigurationError("history capacity must be at least 1")
        self.capacity = capacity
        self.history: List[Snapshot] = []
        self.current = -1
        self._request_seq = 0

    def __len__(self) -> int:
        return len(self.history)

    def current_state(self) -> Optional[Snapshot]:
        if 0 <= self.current < len(self.history):
            return self.history[self.current]
        return None

    def is_marker(self) -> bool:
        state = self.current_state()
        return state is not None and state.get("last") == CHANGE_DATASET

    def _current_dict(self) -> Dict[str, Any]:
        state = self.current_state()
        return dict(state) if state is not None else {}

    def _push(self, new_state: Mapping[str, Any]) -> Snapshot:
        new_current = self.current + 1
        history = self.history[:new_current] + [_freeze(new_state)]
        self.history = history[-self.capacity :]
        self.current = min(new_current, len(self.history) - 1)
        return self.history[self.current]

    def _push_change(self, changed: Mapping[str, Any], last: str) -> Snapshot:
        new_state = {**self._current_dict(), **changed}
        # Animation only applies to bubble charts.
        if new_state.get("graphtype") != "bubble":
            new_state["animate"] = NO_ANIMATION
        new_state["last"] = last
        return self._push(new_state)

    # ---------- transitions ----------
    def push(self, state: Mapping[str, Any]) -> Snapshot:
        return self._push({**state, "last": "init"})

    def begin_request(self) -> int:
        """Token for an async fetch; only the newest token may merge."""
        self._request_seq += 1
        return self._request_seq

    def merge(self, partial: Mapping[str, Any], token: Optional[int] = None) -> bool:
        if token is not None and token != self._request_seq:
            logger.warning("dropping stale merge (token %s, latest %s)", token, self._request_seq)
            return False
        if self.current_state() is None:
            self._push(partial)
            return True
        merged = {**self._current_dict(), **partial}
        history = list(self.history)
        history[self.current] = _freeze(merged)
        self.history = history
        return True

    def change_dataset(self, dataset: str) -> Snapshot:
        current = self.current_state()
        origin = current.get("dataset") if current is not None else None
        return self._push({"last": CHANGE_DATASET, "from": origin, "to": dataset})

    def change_dataset_and_datapoint(self, dataset: str, datapoint: str) -> Snapshot:
        return self._push_change({"dataset": dataset, "datapoint": datapoint}, "dataset_and_datapoint")

    def change_control(self, name: str, value: Any) -> Snapshot:
        return self._push_change({name: value}, name)

    def change_control_vector(self, controls: Mapping[str, Any]) -> Snapshot:
        return self._push_change(dict(controls), "control_vector")

    def change_filter(self, pivot_filter: Mapping[str, Any]) -> Snapshot:
        return self._push_change({"filter": pivot_filter}, "filter")

    def change_load(self, load_table: Optional[List[Mapping[str, Any]]]) -> Snapshot:
        return self._push_change({"loadTable": load_table}, "change_load")

    def undo(self) -> Optional[Snapshot]:
        if not self.history:
            return None
        prev = self.current - 1 if self.current > 0 else 0
        if self.history[prev].get("last") == CHANGE_DATASET:
            prev = prev - 1 if prev > 1 else 0
        self.current = prev
        return self.current_state()

    def redo(self) -> Optional[Snapshot]:
        if not self.history:
            return None
        last_index = len(self.history) - 1
        nxt = self.current + 1 if self.current < last_index else self.current
        if self.history[nxt].get("last") == CHANGE_DATASET:
            nxt = nxt + 1 if nxt < last_index else nxt
        self.current = nxt
        return self.current_state()

    def press_button(self, button: str) -> Optional[Snapshot]:
        if button == "Undo":
            return self.undo()
        if button == "Redo":
            return self.redo()
        raise ConfigurationError(f"Unknown button {button!r}")

    def dispatch(self, event: Mapping[str, Any]) -> Any:
        """Apply one ``{"type": ..., ...}`` event."""
        kind = event.get("type")
        if kind == "push":
            return self.push(event["state"])
        if kind == "merge":
            return self.merge(event["state"], event.get("token"))
        if kind == "change_control":
            return self.change_control(event["name"], event["value"])
        if kind == "change_control_vector":
            return self.change_control_vector(event["controls"])
        if kind == "change_filter":
            return self.change_filter(event["filter"])
        if kind == "change_dataset":
            return self.change_dataset(event["dataset"])
        if kind == "change_dataset_and_datapoint":
            return self.change_dataset_and_datapoint(event["dataset"], event["datapoint"])
        if kind == "press_button":
            return self.press_button(event["button"])
        if kind == "change_load":
            return self.change_load(event["loadTable"])
        raise ConfigurationError(f"Unknown history event {kind!r}")
