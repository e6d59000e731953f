"""Per-dataset column catalog.

A ``DatasetMetadata`` is built once when a dataset is selected and is passed
explicitly into every aggregation, pipeline and control call. Nothing here is
mutated after construction.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from core.constants import COLUMN_TYPES, SUM_RECORDS
from core.errors import ConfigurationError
from core.transforms import (
    Calculation,
    DatasetTransform,
    PreTransform,
    get_calculation,
    get_dataset_transform,
    get_pre_transform,
)

logger = logging.getLogger(__name__)

FLAGS = frozenset(
    {
        "noAxis",
        "noXAxis",
        "noYAxis",
        "noColor",
        "noRadius",
        "noPareto",
        "noAggregate",
        "noWhatIf",
        "datapoint",
        "animation",
        "summary",
        "summaryValues",
        "searchable",
        "useFormat",
    }
)

_RESERVED = {"alias", "type", "flags", "calculated"}


@dataclass(frozen=True)
class CalculatedSpec:
    fields: Tuple[str, ...]
    transform: str
    pre_transform: Optional[str] = None
    idx: int = 0
    fn: Optional[Calculation] = field(default=None, compare=False, repr=False)
    pre_fn: Optional[PreTransform] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CalculatedSpec":
        fields = raw.get("fields") or []
        transform = raw.get("transform")
        pre = raw.get("preTransform")
        return cls(
            fields=tuple(fields) if isinstance(fields, (list, tuple)) else (),
            transform=transform,
            pre_transform=pre,
            idx=int(raw.get("idx") or 0),
            fn=get_calculation(transform),
            pre_fn=get_pre_transform(pre),
        )


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    alias: str
    type: str
    flags: FrozenSet[str] = frozenset()
    attrs: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    calculated: Optional[CalculatedSpec] = None

    @classmethod
    def from_dict(cls, name: str, raw: Mapping[str, Any]) -> "ColumnDescriptor":
        col_type = raw.get("type", "Categorical")
        if col_type not in COLUMN_TYPES:
            raise ConfigurationError(f"Column {name!r} has unknown type {col_type!r}")
        flags = set(raw.get("flags") or [])
        attrs: Dict[str, Any] = {}
        for key, value in raw.items():
            if key in _RESERVED:
                continue
            if key in FLAGS:
                if value:
                    flags.add(key)
                continue
            attrs[key] = value
        calc = raw.get("calculated")
        return cls(
            name=name,
            alias=raw.get("alias") or name,
            type=col_type,
            flags=frozenset(flags),
            attrs=MappingProxyType(attrs),
            calculated=CalculatedSpec.from_dict(calc) if calc else None,
        )

    def get(self, attr: str, default: Any = None) -> Any:
        if attr == "alias":
            return self.alias
        if attr == "type":
            return self.type
        if attr == "calculated":
            return self.calculated if self.calculated is not None else default
        if attr in self.flags:
            return True
        return self.attrs.get(attr, default)

    @property
    def is_singleton(self) -> bool:
        return self.type == "Singleton" or "singleton" in self.attrs or "singleton" in self.flags


class DatasetMetadata:
    """Immutable catalog of column descriptors for one dataset."""

    def __init__(self, name: str, columns: Iterable[ColumnDescriptor], attrs: Optional[Mapping[str, Any]] = None):
        cols = list(columns)
        if not any(c.name == SUM_RECORDS for c in cols):
            cols.append(ColumnDescriptor(name=SUM_RECORDS, alias=SUM_RECORDS, type="Numeric"))
        self._name = name
        self._columns: Tuple[ColumnDescriptor, ...] = tuple(cols)
        self._by_name: Mapping[str, ColumnDescriptor] = MappingProxyType({c.name: c for c in cols})
        self._attrs: Mapping[str, Any] = MappingProxyType(dict(attrs or {}))
        self._dataset_transform: Optional[DatasetTransform] = get_dataset_transform(self._attrs.get("transform"))

    @classmethod
    def from_dict(cls, name: str, spec: Mapping[str, Any]) -> "DatasetMetadata":
        raw_columns = spec.get("columns") or {}
        columns = [ColumnDescriptor.from_dict(col, raw or {}) for col, raw in raw_columns.items()]
        attrs = {k: v for k, v in spec.items() if k != "columns"}
        return cls(name, columns, attrs)

    def __repr__(self) -> str:
        return f"DatasetMetadata({self._name!r}, {len(self._columns)} columns)"

    @property
    def name(self) -> str:
        return self._name

    @property
    def label(self) -> str:
        return self._attrs.get("alias") or self._name

    @property
    def columns(self) -> Tuple[ColumnDescriptor, ...]:
        return self._columns

    @property
    def dataset_transform(self) -> Optional[DatasetTransform]:
        return self._dataset_transform

    def column(self, col: Optional[str]) -> Optional[ColumnDescriptor]:
        return self._by_name.get(col) if col is not None else None

    def has_column(self, col: Optional[str]) -> bool:
        return col is not None and col in self._by_name

    def get_all(self) -> List[str]:
        return [c.name for c in self._columns]

    # ---------- attribute queries ----------
    def get_alias(self, col: Optional[str]) -> Optional[str]:
        desc = self.column(col)
        return desc.alias if desc is not None else col

    def get_attr_value(self, col: Optional[str], attr: str, default: Any = None) -> Any:
        desc = self.column(col)
        return desc.get(attr, default) if desc is not None else default

    def has_attribute_value(self, col: Optional[str], attr: str, value: Any) -> bool:
        return self.has_column(col) and self.get_attr_value(col, attr) == value

    def is_true(self, col: Optional[str], attr: str) -> bool:
        return bool(self.get_attr_value(col, attr, False))

    def _select(self, pred: Callable[[ColumnDescriptor], bool]) -> List[str]:
        return [c.name for c in self._columns if pred(c)]

    def get_columns_with_attr_true(self, attr: str) -> List[str]:
        return self._select(lambda c: bool(c.get(attr, False)))

    def get_columns_with_attr(self, attr: str) -> List[str]:
        return self._select(lambda c: c.get(attr) is not None)

    def get_columns_by_attr_value(self, attr: str, value: Any) -> List[str]:
        def matches(c: ColumnDescriptor) -> bool:
            v = c.get(attr)
            return value in v if isinstance(v, (list, tuple)) else v == value

        return self._select(matches)

    def get_reverse_map(self, attr: str) -> Dict[str, List[str]]:
        out: Dict[str, List[str]] = {}
        for c in self._columns:
            v = c.get(attr)
            if v is None:
                continue
            for key in v if isinstance(v, (list, tuple)) else [v]:
                out.setdefault(key, []).append(c.name)
        return out

    def is_allowed_for_datapoint(self, datapoint_col: Optional[str], col: Optional[str]) -> bool:
        only = self.get_attr_value(col, "onlyWithDatapoint")
        if not only:
            return True
        allowed = only if isinstance(only, (list, tuple)) else [only]
        return datapoint_col in allowed

    # ---------- column groups ----------
    def get_cols_with_type(self, col_type: str) -> List[str]:
        return self._select(lambda c: c.type == col_type)

    def get_numerics(self) -> List[str]:
        return self.get_cols_with_type("Numeric")

    def get_categoricals(self) -> List[str]:
        return self.get_cols_with_type("Categorical")

    def get_vectors(self) -> List[str]:
        return self.get_cols_with_type("Vector")

    def get_averageable_numerics(self) -> List[str]:
        return self._select(lambda c: c.type == "Numeric" and not c.is_singleton and c.calculated is None)

    def get_aggregate_categoricals(self) -> List[str]:
        return self._select(lambda c: c.type == "Categorical" and "noAggregate" not in c.flags)

    def get_searchable(self) -> List[str]:
        return self._select(lambda c: c.type == "Categorical" and "searchable" in c.flags)

    def get_singletons_for(self, datapoint_col: Optional[str]) -> List[str]:
        def applies(c: ColumnDescriptor) -> bool:
            if c.name == SUM_RECORDS or not c.is_singleton:
                return False
            target = c.attrs.get("singleton", "")
            if target in ("", None, True):
                return True
            return datapoint_col in target if isinstance(target, (list, tuple)) else target == datapoint_col

        return self._select(applies)

    def get_geo_cols(self) -> List[str]:
        return self._select(lambda c: c.attrs.get("subtype") == "Geo")

    def get_binner(self, col: Optional[str]) -> Optional[str]:
        return self.get_attr_value(col, "binner")

    def get_date_output_col(self, col: Optional[str]) -> Optional[str]:
        if not self.has_attribute_value(col, "type", "DateString"):
            return None
        return self.get_attr_value(col, "output") or None

    def get_datapoint_alias(self, col: Optional[str]) -> Optional[str]:
        return self.get_attr_value(col, "datapointAlias") or self.get_alias(col)

    def get_alias_map(self) -> Dict[str, str]:
        return {c.name: c.alias for c in self._columns}

    def get_numeric_type_map(self) -> Dict[str, dict]:
        return {
            c.name: {"subtype": c.attrs.get("subtype"), "calculated": c.calculated}
            for c in self._columns
            if c.type == "Numeric"
        }

    def get_categorical_list(
        self,
        categorical_values: Optional[Mapping[str, Iterable[Any]]],
        exclude_flag: Optional[str] = None,
        predicate: Optional[Callable[[str], bool]] = None,
    ) -> List[Dict[str, str]]:
        """``[{col, alias}]`` with one entry per ``"<alias>:<value>"`` pair."""
        out: List[Dict[str, str]] = []
        for col, values in (categorical_values or {}).items():
            if not self.has_attribute_value(col, "type", "Categorical"):
                continue
            if exclude_flag and self.is_true(col, exclude_flag):
                continue
            if predicate is not None and not predicate(col):
                continue
            alias = self.get_alias(col)
            out.extend({"col": col, "alias": f"{alias}:{v}"} for v in values)
        return out

    def get_formatted_value(self, col: Optional[str], value: Any) -> Any:
        fmt = self.get_attr_value(col, "format")
        if not fmt or value is None:
            return value
        try:
            return fmt.format(value) if "{" in fmt else format(value, fmt)
        except (ValueError, TypeError):
            return value

    # ---------- dataset attributes ----------
    def get_dataset_attr(self, attr: str, default: Any = None) -> Any:
        return self._attrs.get(attr, default)

    def get_default_datapoint_col(self) -> Optional[str]:
        dflt = self.get_dataset_attr("defaultDatapoint")
        if dflt:
            return dflt
        cols = self.get_columns_with_attr_true("datapoint")
        return cols[0] if cols else None

    def get_filters(self) -> Dict[str, List[Any]]:
        return dict(self.get_dataset_attr("filters") or {})


class MetadataRegistry:
    """Dataset name -> catalog."""

    def __init__(self, catalogs: Optional[Mapping[str, DatasetMetadata]] = None):
        self._catalogs: Dict[str, DatasetMetadata] = dict(catalogs or {})

    def __contains__(self, name: object) -> bool:
        return name in self._catalogs

    def exists(self, name: Optional[str]) -> bool:
        return name is not None and name in self._catalogs

    def get(self, name: Optional[str]) -> DatasetMetadata:
        if not self.exists(name):
            raise ConfigurationError(f'Dataset "{name}" does not exist')
        return self._catalogs[name]

    def add(self, catalog: DatasetMetadata) -> None:
        self._catalogs[catalog.name] = catalog

    def datasets(self) -> List[Dict[str, str]]:
        out = [{"name": n, "alias": m.label} for n, m in self._catalogs.items()]
        return sorted(out, key=lambda d: d["alias"])


def load_registry(metadata_dir: Path) -> MetadataRegistry:
    """Read one ``<dataset>.json`` catalog per file in ``metadata_dir``."""
    registry = MetadataRegistry()
    if not metadata_dir.exists():
        logger.warning("metadata dir %s does not exist", metadata_dir)
        return registry
    for path in sorted(metadata_dir.glob("*.json")):
        spec = json.loads(path.read_text(encoding="utf-8"))
        name = spec.get("name") or path.stem
        registry.add(DatasetMetadata.from_dict(name, spec))
        logger.debug("loaded metadata for %s from %s", name, path.name)
    return registry
