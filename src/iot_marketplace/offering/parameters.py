from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional


class AccessParameters(Mapping):
    """
    Immutable tree of access parameters.

    Nested mappings become nested AccessParameters:

        AccessParameters({
            "areaSpecification": {
                "geoCoordinates": {"latitude": 50.22, "longitude": 8.11},
                "radius": 777,
            }
        })
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        items: Dict[str, Any] = {}
        for name, value in {**dict(values or {}), **kwargs}.items():
            if isinstance(value, Mapping) and not isinstance(value, AccessParameters):
                value = AccessParameters(value)
            items[str(name)] = value
        self._items = MappingProxyType(items)

    def __getitem__(self, name: str) -> Any:
        return self._items[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return self.to_dict() == (other.to_dict() if isinstance(other, AccessParameters) else dict(other))
        return NotImplemented

    __hash__ = None

    def with_value(self, name: str, value: Any) -> "AccessParameters":
        """Copy of these parameters with one entry added or replaced"""
        return AccessParameters({**self._items, name: value})

    def to_dict(self) -> Dict[str, Any]:
        return {
            name: value.to_dict() if isinstance(value, AccessParameters) else value
            for name, value in self._items.items()
        }

    def flatten(self, prefix: str = "") -> Dict[str, Any]:
        """Leaf values keyed by dotted path, e.g. ``areaSpecification.radius``"""
        flat: Dict[str, Any] = {}
        for name, value in self._items.items():
            path = f"{prefix}.{name}" if prefix else name
            if isinstance(value, AccessParameters):
                flat.update(value.flatten(path))
            else:
                flat[path] = value
        return flat

    def __repr__(self) -> str:
        return f"AccessParameters({self.to_dict()!r})"
