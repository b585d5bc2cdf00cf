"""Entity type DSL builder.

Provides a fluent builder for declaring entity types and their relations.
"""

from __future__ import annotations

from typing import Any

from doc_query.core.enums import RelationKind
from doc_query.core.exceptions import RelationError, SchemaError
from doc_query.mapping.schema import (
    NO_DEFAULT,
    Attribute,
    EntityType,
    Relation,
    TargetLike,
    as_target_ref,
)


def entity(name: str, collection: str | None = None) -> EntityBuilder:
    """Entry point for the entity type DSL.

    Args:
        name: Entity type name.
        collection: Store collection for this entity type. Defaults to the
                    collection configured in the store settings.

    Returns:
        A builder for chaining attribute and relation declarations.
    """
    return EntityBuilder(name, collection)


class EntityBuilder:
    """Fluent builder for entity type definitions."""

    def __init__(self, name: str, collection: str | None = None) -> None:
        self._name = name
        self._collection = collection
        self._attributes: dict[str, dict[str, Any]] = {}
        self._relations: dict[str, dict[str, Any]] = {}

    def _declare(self, name: str) -> None:
        if name in self._attributes or name in self._relations:
            raise SchemaError(f"Duplicate attribute '{name}' on entity '{self._name}'")

    def attribute(
        self,
        name: str,
        *,
        alias: str | None = None,
        primary: bool = False,
        identifier: bool = False,
        transient: bool = False,
        default: Any = NO_DEFAULT,
    ) -> EntityBuilder:
        """Declare a scalar or structured attribute."""
        self._declare(name)
        self._attributes[name] = {
            "alias": alias,
            "primary": primary,
            "identifier": identifier,
            "transient": transient,
            "default": default,
        }
        return self

    def key(
        self,
        name: str = "id",
        alias: str | None = "_id",
        identifier: bool = True,
    ) -> EntityBuilder:
        """Declare the primary attribute, stored as ``_id`` by default."""
        return self.attribute(name, alias=alias, primary=True, identifier=identifier)

    def belongs_to(
        self,
        name: str,
        target: TargetLike,
        foreign_key: str,
        *,
        nested: bool = False,
    ) -> EntityBuilder:
        """Declare a relation resolved through a local foreign key."""
        return self._relation(name, RelationKind.BELONGS_TO, target, foreign_key, nested=nested)

    def has_one(
        self,
        name: str,
        target: TargetLike,
        foreign_key: str,
        *,
        through: TargetLike | None = None,
        through_key: str | None = None,
        nested: bool = False,
    ) -> EntityBuilder:
        """Declare a single related entity holding a foreign key to this one."""
        return self._relation(
            name,
            RelationKind.HAS_ONE,
            target,
            foreign_key,
            through=through,
            through_key=through_key,
            nested=nested,
        )

    def has_many(
        self,
        name: str,
        target: TargetLike,
        foreign_key: str,
        *,
        through: TargetLike | None = None,
        through_key: str | None = None,
        nested: bool = False,
    ) -> EntityBuilder:
        """Declare a collection of related entities holding a foreign key to this one."""
        return self._relation(
            name,
            RelationKind.HAS_MANY,
            target,
            foreign_key,
            through=through,
            through_key=through_key,
            nested=nested,
        )

    def _relation(
        self,
        name: str,
        kind: RelationKind,
        target: TargetLike,
        foreign_key: str,
        *,
        through: TargetLike | None = None,
        through_key: str | None = None,
        nested: bool = False,
    ) -> EntityBuilder:
        self._declare(name)
        self._relations[name] = {
            "kind": kind,
            "target": target,
            "foreign_key": foreign_key,
            "through": through,
            "through_key": through_key,
            "nested": nested,
        }
        return self

    def build(self) -> EntityType:
        """Compile and validate the declarations into an EntityType."""
        attributes: dict[str, Attribute] = {}
        for name, spec in self._attributes.items():
            attributes[name] = Attribute(name=name, **spec)

        for name, spec in self._relations.items():
            kind: RelationKind = spec["kind"]
            through = spec["through"]

            if kind is RelationKind.BELONGS_TO and spec["foreign_key"] not in attributes:
                raise RelationError(
                    self._name,
                    name,
                    f"foreign key '{spec['foreign_key']}' is not declared on '{self._name}'",
                )
            if through is not None and not spec["through_key"]:
                raise RelationError(self._name, name, "through relations need a through_key")

            relation = Relation(
                kind=kind,
                target_ref=as_target_ref(spec["target"]),
                foreign_key=spec["foreign_key"],
                through_ref=as_target_ref(through) if through is not None else None,
                through_key=spec["through_key"],
                nested=spec["nested"],
            )
            attributes[name] = Attribute(name=name, relation=relation)

        return EntityType(name=self._name, attributes=attributes, collection=self._collection)
