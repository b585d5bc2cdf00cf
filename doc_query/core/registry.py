"""Entity registry - binds entity types to their store gateways.

The planner follows relations into other entity types, so every entity type
taking part in a read must be bound here first. Bindings are made once at
setup and read-only afterwards.
"""

from __future__ import annotations

from doc_query.core.connection import (
    ConnectionRegistry,
    StoreGateway,
    StoreSettings,
    default_registry,
    validate_settings,
)
from doc_query.core.exceptions import DuplicateEntityError, UnboundEntityError
from doc_query.mapping.schema import EntityType


class EntityRegistry:
    """Entity type -> StoreGateway bindings.

    Args:
        connections: Connection pool registry. Defaults to the process-wide
            registry so entity types sharing a settings object share a pool.
    """

    def __init__(self, connections: ConnectionRegistry | None = None) -> None:
        self.connections = connections if connections is not None else default_registry
        self._gateways: dict[EntityType, StoreGateway] = {}
        self._entities: dict[str, EntityType] = {}

    def bind(self, entity: EntityType, settings: StoreSettings) -> StoreGateway:
        """Bind *entity* to the store described by *settings*.

        Raises:
            MissingCollectionError: If no collection name is configured.
            MissingConnectionError: If neither a url nor a db handle is configured.
            DuplicateEntityError: If another entity type is bound under the same name.
        """
        validate_settings(settings, entity.name, entity.collection)

        existing = self._entities.get(entity.name)
        if existing is not None and existing is not entity:
            raise DuplicateEntityError(entity.name)

        pool = self.connections.pool_for(settings)
        gateway = StoreGateway(pool, entity.collection or settings.collection or "")
        self._gateways[entity] = gateway
        self._entities[entity.name] = entity
        return gateway

    def gateway(self, entity: EntityType) -> StoreGateway:
        """Look up the gateway bound to *entity*.

        Raises:
            UnboundEntityError: If the entity type was never bound.
        """
        try:
            return self._gateways[entity]
        except KeyError:
            raise UnboundEntityError(entity.name) from None

    def get(self, name: str) -> EntityType:
        """Look up a bound entity type by name."""
        try:
            return self._entities[name]
        except KeyError:
            raise UnboundEntityError(name) from None

    def has(self, entity: EntityType | str) -> bool:
        """Check if an entity type (or name) is bound."""
        if isinstance(entity, str):
            return entity in self._entities
        return entity in self._gateways

    @property
    def entity_names(self) -> list[str]:
        """List all bound entity names, sorted alphabetically."""
        return sorted(self._entities.keys())

    def __len__(self) -> int:
        """Number of bound entity types."""
        return len(self._gateways)


default_entities = EntityRegistry()
