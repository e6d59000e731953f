from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ControlChange(BaseModel):
    name: str
    value: Any


class ControlVector(BaseModel):
    controls: Dict[str, Any] = Field(default_factory=dict)


class FilterModel(BaseModel):
    filter: Dict[str, List[Any]] = Field(default_factory=dict)


class LoadRowModel(BaseModel):
    value: str
    percent: Dict[str, Any] = Field(default_factory=dict)

    def as_row(self) -> Dict[str, Any]:
        return {"value": self.value, **self.percent}


class LoadTableModel(BaseModel):
    rows: Optional[List[LoadRowModel]] = None

    def as_table(self) -> Optional[List[Dict[str, Any]]]:
        if self.rows is None:
            return None
        return [r.as_row() for r in self.rows]


class DatasetLoadModel(BaseModel):
    datapoint: Optional[str] = None
    rows: Optional[List[Dict[str, Any]]] = None


class DatasetInfo(BaseModel):
    name: str
    alias: str


class DatasetListResponse(BaseModel):
    datasets: List[DatasetInfo]


Button = Literal["Undo", "Redo"]
