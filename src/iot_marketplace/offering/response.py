"""Access responses and their mapping onto caller dataclasses"""

from __future__ import annotations

import dataclasses
import json
import types
import typing
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

T = TypeVar("T")

_MISSING = object()


@dataclass(frozen=True)
class OutputMapping:
    """Explicit routing of response values onto dataclass fields

    Args:
        type_mappings: semantic type (e.g. ``schema:geoCoordinates``) -> target field
        name_mappings: dotted source path (e.g. ``geoCoordinates.latitude``)
            -> dotted target path (e.g. ``coordinates.latitude``)
    """

    type_mappings: Mapping[str, str] = field(default_factory=dict)
    name_mappings: Mapping[str, str] = field(default_factory=dict)


def _get_path(item: Mapping, path: str) -> Any:
    value: Any = item
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _set_path(target: Dict, path: str, value: Any) -> None:
    parts = path.split(".")
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def _build(cls: Type[T], data: Mapping) -> T:
    """Instantiate a dataclass from a dict, recursing into dataclass-typed fields"""
    hints = typing.get_type_hints(cls)
    kwargs = {}
    for f in dataclasses.fields(cls):
        if f.name not in data or not f.init:
            continue
        value = data[f.name]
        field_type = hints.get(f.name)
        # Optional[X] -> X
        args = [a for a in typing.get_args(field_type) if a is not type(None)]
        if typing.get_origin(field_type) in (typing.Union, types.UnionType) and len(args) == 1:
            field_type = args[0]
        if dataclasses.is_dataclass(field_type) and isinstance(value, Mapping):
            value = _build(field_type, value)
        kwargs[f.name] = value
    return cls(**kwargs)


class AccessResponse:
    """Body of one offering access call"""

    def __init__(self, body: str, status_code: int = 200, output_types: Optional[Dict[str, str]] = None):
        self.body = body
        self.status_code = status_code
        # Output name -> semantic type, as declared by the offering
        self.output_types = dict(output_types or {})
        self._json: Any = _MISSING

    def as_json(self) -> Any:
        if self._json is _MISSING:
            self._json = json.loads(self.body) if self.body else []
        return self._json

    def size(self) -> int:
        data = self.as_json()
        return len(data) if isinstance(data, (list, dict)) else 1

    def _items(self) -> List[Mapping]:
        data = self.as_json()
        if isinstance(data, Mapping):
            return [data]
        return [item for item in data if isinstance(item, Mapping)]

    def map(self, cls: Type[T], mapping: Optional[OutputMapping] = None) -> List[T]:
        """
        Map every element of the response onto ``cls`` (a dataclass).

        Without a mapping, fields declaring ``metadata={"rdf_type": ...}``
        take the output carrying that semantic type and all other fields take
        the output of the same name.
        """
        if not dataclasses.is_dataclass(cls):
            raise TypeError(f"{cls!r} is not a dataclass")

        names_by_type = {rdf_type: name for name, rdf_type in self.output_types.items()}
        return [_build(cls, self._route(item, cls, mapping, names_by_type)) for item in self._items()]

    def _route(self, item: Mapping, cls: type, mapping: Optional[OutputMapping], names_by_type: Dict[str, str]) -> Dict:
        routed: Dict[str, Any] = {}
        if mapping is None:
            for f in dataclasses.fields(cls):
                rdf_type = f.metadata.get("rdf_type")
                source = names_by_type.get(rdf_type, f.name) if rdf_type else f.name
                if source in item:
                    routed[f.name] = item[source]
            return routed

        for rdf_type, target in mapping.type_mappings.items():
            source = names_by_type.get(rdf_type)
            if source is not None and source in item:
                _set_path(routed, target, item[source])
        for source_path, target in mapping.name_mappings.items():
            value = _get_path(item, source_path)
            if value is not _MISSING:
                _set_path(routed, target, value)
        return routed

    def __repr__(self) -> str:
        return f"AccessResponse(status={self.status_code}, {len(self.body)} bytes)"
