"""Document engine.

The DocumentEngine runs reads through the relation planner and mutations
through the transcoder and the store gateway, for one entity type. Every
call connects lazily, so it is safe to use before a connection exists.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from doc_query.core.connection import ResultSet, StoreGateway, StoreSettings
from doc_query.core.events import QUERY_EVENT, EventEmitter
from doc_query.core.options import build_query_options
from doc_query.core.planner import QueryPlanner, storage_options
from doc_query.core.query import Query
from doc_query.core.registry import EntityRegistry, default_entities
from doc_query.mapping.schema import EntityType
from doc_query.mapping.transcoder import from_storage, is_operator, to_storage


class DocumentEngine:
    """Asynchronous document engine for one entity type."""

    def __init__(
        self,
        entity: EntityType,
        registry: EntityRegistry,
        events: EventEmitter | None = None,
    ) -> None:
        self.entity = entity
        self._registry = registry
        self._events = events
        self._planner = QueryPlanner(entity, registry.gateway)

    @classmethod
    def from_settings(
        cls,
        entity: EntityType,
        settings: StoreSettings,
        registry: EntityRegistry | None = None,
        events: EventEmitter | None = None,
    ) -> DocumentEngine:
        """Bind *entity* to the store and create an engine for it.

        Args:
            entity: The entity type.
            settings: StoreSettings instance, shared between entity types
                      that should share a connection pool.
            registry: EntityRegistry instance. Defaults to the process-wide one.

        Returns:
            DocumentEngine instance
        """
        registry = registry if registry is not None else default_entities
        registry.bind(entity, settings)
        return cls(entity, registry, events)

    @property
    def gateway(self) -> StoreGateway:
        return self._registry.gateway(self.entity)

    @property
    def planner(self) -> QueryPlanner:
        return self._planner

    def _emit_query(self, query: Query) -> None:
        if self._events is not None:
            self._events.emit(QUERY_EVENT, query)

    async def _predicate(self, query: Query) -> dict[str, Any]:
        return await self._planner.build_predicate(self.entity, query.where)

    def _changes(self, changes: Mapping[str, Any]) -> dict[str, Any]:
        """Transcode a change set, leaving the primary key out of it."""
        update = to_storage(changes, self.entity, strict=True)
        primary = self.entity.primary_attribute.storage_name
        update.pop(primary, None)
        for key, value in update.items():
            if is_operator(key) and isinstance(value, dict):
                value.pop(primary, None)
        return update

    # --- reads ---

    async def find(self, query: Any = None) -> ResultSet:
        """Find records matching *query*, resolving relations."""
        query = Query.coerce(query, self.entity)
        self._emit_query(query)
        return await self._planner.find(query)

    async def find_one(self, query: Any) -> dict[str, Any] | None:
        """Find one record. A bare value is looked up by primary key.

        Returns None if nothing matches.
        """
        query = Query.coerce(query, self.entity)
        self._emit_query(query)
        return await self._planner.find_one(query)

    async def count(self, query: Any = None) -> int:
        query = Query.coerce(query, self.entity)
        return await self.gateway.count(await self._predicate(query))

    # --- mutations ---

    def prepare(self, body: Mapping[str, Any]) -> dict[str, Any]:
        """Apply defaults and transcode a new document for insertion.

        Undeclared, relation and transient attributes are dropped, as is an
        unset primary key so the store generates one.
        """
        values = dict(body)
        for attr in self.entity.persisted_attributes():
            if attr.name not in values and attr.has_default:
                values[attr.name] = attr.default_value()
        if values.get(self.entity.primary_key) is None:
            values.pop(self.entity.primary_key, None)
        return to_storage(values, self.entity, strict=True)

    async def create(self, body: Mapping[str, Any]) -> dict[str, Any]:
        """Insert one document and return it, generated identifier included."""
        inserted = await self.gateway.insert([self.prepare(body)])
        return from_storage(inserted[0], self.entity)  # type: ignore[return-value]

    async def create_many(self, bodies: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Insert several documents with a single batched insert."""
        documents = [self.prepare(body) for body in bodies]
        if not documents:
            return []
        inserted = await self.gateway.insert(documents)
        return [from_storage(doc, self.entity) for doc in inserted]  # type: ignore[misc]

    async def update(self, query: Any, changes: Mapping[str, Any]) -> dict[str, Any] | None:
        """Atomically patch one document and return the updated version.

        Returns None if nothing matches.
        """
        query = Query.coerce(query, self.entity)
        predicate = await self._predicate(query)
        update = self._changes(changes)
        if not update:
            return from_storage(await self.gateway.find_one(predicate), self.entity)
        if not all(is_operator(key) for key in update):
            update = {"$set": update}

        options = storage_options(self.entity, build_query_options(query))
        document = await self.gateway.find_and_modify(
            predicate, update, sort=options.get("sort"), new=True
        )
        return from_storage(document, self.entity)

    async def update_many(self, query: Any, changes: Mapping[str, Any]) -> int:
        """Patch every matching document. Returns the number matched."""
        query = Query.coerce(query, self.entity)
        self._emit_query(query)
        predicate = await self._predicate(query)
        update = self._changes(changes)
        if not update:
            return 0
        if not all(is_operator(key) for key in update):
            update = {"$set": update}
        return await self.gateway.update(predicate, update, multi=True)

    async def replace(self, query: Any, representation: Mapping[str, Any]) -> dict[str, Any] | None:
        """Atomically replace one document and return the new version."""
        query = Query.coerce(query, self.entity)
        predicate = await self._predicate(query)
        document = await self.gateway.find_and_modify(
            predicate, self._changes(representation), new=True
        )
        return from_storage(document, self.entity)

    async def replace_many(self, query: Any, representation: Mapping[str, Any]) -> int:
        """Replace every matching document, inserting one if none match."""
        query = Query.coerce(query, self.entity)
        predicate = await self._predicate(query)
        return await self.gateway.update(
            predicate, self._changes(representation), multi=True, upsert=True
        )

    async def destroy(self, query: Any) -> int:
        """Remove one matching document."""
        query = Query.coerce(query, self.entity)
        return await self.gateway.remove(await self._predicate(query), multi=False)

    async def destroy_many(self, query: Any) -> int:
        """Remove every matching document."""
        query = Query.coerce(query, self.entity)
        self._emit_query(query)
        return await self.gateway.remove(await self._predicate(query), multi=True)
