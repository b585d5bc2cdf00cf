"""Resource and collection wrappers around decoded records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from doc_query.mapping.schema import EntityType

DEFAULT_PAGE_SIZE = 25


class Resource:
    """Attribute-backed record of one entity type.

    Declared attributes are read and written as Python attributes. Values for
    undeclared names are kept too, and are reachable through ``get()`` and
    ``to_dict()``.
    """

    def __init__(self, entity: EntityType, values: Mapping[str, Any] | None = None) -> None:
        object.__setattr__(self, "entity", entity)
        object.__setattr__(self, "_values", {})
        object.__setattr__(self, "_snapshot", {})
        self.reset(values or {})

    def __getattr__(self, name: str) -> Any:
        values = self.__dict__["_values"]
        if name in values:
            return values[name]
        if self.__dict__["entity"].attribute(name) is not None:
            return None
        raise AttributeError(name)

    def __setattr__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resource):
            return NotImplemented
        return self.entity is other.entity and self._values == other._values

    def __repr__(self) -> str:
        return f"Resource({self.entity.name}, {self._values!r})"

    @property
    def primary(self) -> Any:
        return self._values.get(self.entity.primary_key)

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def set(self, name: str, value: Any) -> Resource:
        self._values[name] = value
        return self

    def reset(self, values: Mapping[str, Any]) -> Resource:
        """Replace every value and mark the resource unchanged."""
        values = dict(values)
        self._values.clear()
        self._values.update(values)
        object.__setattr__(self, "_snapshot", dict(self._values))
        return self

    def is_new(self) -> bool:
        """True while the resource has no primary key value."""
        return self.primary is None

    def changed(self) -> dict[str, Any]:
        """Values set since the last reset, keyed by attribute name."""
        return {
            name: value
            for name, value in self._values.items()
            if name not in self._snapshot or self._snapshot[name] != value
        }

    def to_dict(self) -> dict[str, Any]:
        return {name: _plain(value) for name, value in self._values.items()}


class Collection(list):
    """A page of resources with its pagination window."""

    def __init__(
        self,
        items: Iterable[Any] = (),
        from_: int = 0,
        size: int = DEFAULT_PAGE_SIZE,
        count: int | None = None,
    ) -> None:
        super().__init__(items)
        self.from_ = from_
        self.size = size
        self.count = count

    def to_dict(self) -> list[Any]:
        return [_plain(item) for item in self]


def _plain(value: Any) -> Any:
    if isinstance(value, (Resource, Collection)):
        return value.to_dict()
    return value


def wrap_record(entity: EntityType, record: Mapping[str, Any]) -> Resource:
    """Wrap a decoded record, turning stitched relation slots into resources."""
    values = dict(record)
    for name, relation in entity.relations().items():
        if name not in values:
            continue
        related = values[name]
        if isinstance(related, list):
            values[name] = Collection(
                (wrap_record(relation.target, item) for item in related),
                size=len(related),
            )
        elif isinstance(related, Mapping):
            values[name] = wrap_record(relation.target, related)
    return Resource(entity, values)
