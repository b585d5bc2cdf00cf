"""Entity type schema classes.

Frozen dataclasses describing entity types, their attributes and their
relations. Schemas are declared once at setup and read-only afterwards.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Union

from doc_query.core.enums import RelationKind
from doc_query.core.exceptions import PrimaryKeyError, RelationError


class _NoDefault:
    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT: Any = _NoDefault()


class TargetRef:
    """Lazily resolved reference to an entity type.

    Holds either an ``EntityType`` or a zero-argument callable returning one.
    The callable is invoked once, on first access, which lets two entity
    types reference each other regardless of declaration order.
    """

    def __init__(self, target: EntityType | Callable[[], EntityType]) -> None:
        self._target = target
        self._resolved: EntityType | None = target if isinstance(target, EntityType) else None

    @property
    def resolved(self) -> bool:
        return self._resolved is not None

    def resolve(self) -> EntityType:
        if self._resolved is None:
            value = self._target()  # type: ignore[operator]
            if not isinstance(value, EntityType):
                raise TypeError(f"Relation target resolved to {value!r}, expected an EntityType")
            self._resolved = value
        return self._resolved

    def __repr__(self) -> str:
        if self._resolved is not None:
            return f"TargetRef({self._resolved.name})"
        return "TargetRef(<unresolved>)"


TargetLike = Union["EntityType", Callable[[], "EntityType"], TargetRef]


def as_target_ref(target: TargetLike) -> TargetRef:
    if isinstance(target, TargetRef):
        return target
    return TargetRef(target)


@dataclass(frozen=True)
class Relation:
    """A declared association to another entity type.

    ``foreign_key`` names an attribute on the local entity for ``BELONGS_TO``
    and an attribute on the target entity for ``HAS_ONE``/``HAS_MANY``. When
    ``through`` is set, ``foreign_key`` is the through entity's attribute
    pointing at the local primary key and ``through_key`` the one pointing at
    the target primary key.
    """

    kind: RelationKind
    target_ref: TargetRef
    foreign_key: str
    through_ref: TargetRef | None = None
    through_key: str | None = None
    nested: bool = False

    @property
    def target(self) -> EntityType:
        return self.target_ref.resolve()

    @property
    def through(self) -> EntityType | None:
        if self.through_ref is None:
            return None
        return self.through_ref.resolve()


@dataclass(frozen=True)
class Attribute:
    """Attribute descriptor."""

    name: str
    alias: str | None = None
    primary: bool = False
    identifier: bool = False
    transient: bool = False
    default: Any = NO_DEFAULT
    relation: Relation | None = None

    @property
    def storage_name(self) -> str:
        return self.alias or self.name

    @property
    def persisted(self) -> bool:
        """False for relation and transient attributes."""
        return self.relation is None and not self.transient

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    def default_value(self) -> Any:
        """Return the default, calling it first when it is computed."""
        if callable(self.default):
            return self.default()
        return self.default


@dataclass(frozen=True, eq=False)
class EntityType:
    """A named schema: attribute name -> attribute descriptor."""

    name: str
    attributes: dict[str, Attribute] = field(default_factory=dict)
    collection: str | None = None

    def __post_init__(self) -> None:
        primary = [a.name for a in self.attributes.values() if a.primary]
        if len(primary) != 1:
            raise PrimaryKeyError(self.name, primary)

    @property
    def primary_key(self) -> str:
        return next(a.name for a in self.attributes.values() if a.primary)

    @property
    def primary_attribute(self) -> Attribute:
        return self.attributes[self.primary_key]

    def attribute(self, name: str) -> Attribute | None:
        return self.attributes.get(name)

    def storage_name(self, name: str) -> str:
        """Storage field name for *name*; undeclared names map to themselves."""
        attr = self.attributes.get(name)
        return attr.storage_name if attr is not None else name

    def relation(self, name: str) -> Relation | None:
        attr = self.attributes.get(name)
        return attr.relation if attr is not None else None

    def relations(self) -> dict[str, Relation]:
        return {
            name: attr.relation
            for name, attr in self.attributes.items()
            if attr.relation is not None
        }

    def persisted_attributes(self) -> list[Attribute]:
        return [attr for attr in self.attributes.values() if attr.persisted]

    def require_relation(self, name: str) -> Relation:
        relation = self.relation(name)
        if relation is None:
            raise RelationError(self.name, name, "is not a declared relation")
        return relation
