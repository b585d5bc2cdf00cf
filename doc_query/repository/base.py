"""Repository base classes.

``use_store`` attaches an entity type to a document store by registering
before-hooks for every resource lifecycle event. ``Repository`` is a thin
wrapper that dispatches through those hooks for DDD-oriented usage.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from doc_query.core.connection import StoreSettings, validate_settings
from doc_query.core.engine import DocumentEngine
from doc_query.core.events import COLLECTION_EVENT
from doc_query.core.options import build_query_options
from doc_query.core.query import Query
from doc_query.core.registry import EntityRegistry
from doc_query.mapping.schema import EntityType
from doc_query.repository.hooks import HookRegistry
from doc_query.repository.resource import (
    DEFAULT_PAGE_SIZE,
    Collection,
    Resource,
    wrap_record,
)


def _body(value: Any) -> Mapping[str, Any]:
    return value.to_dict() if isinstance(value, Resource) else value


def use_store(
    hooks: HookRegistry,
    entity: EntityType,
    settings: StoreSettings,
    registry: EntityRegistry | None = None,
) -> DocumentEngine:
    """Persist *entity* through the store described by *settings*.

    Query and collection events are emitted on *hooks*.

    Raises:
        MissingCollectionError: If no collection name is configured.
        MissingConnectionError: If neither a url nor a db handle is configured.
    """
    validate_settings(settings, entity.name, entity.collection)
    engine = DocumentEngine.from_settings(entity, settings, registry, events=hooks)

    async def get(query: Any) -> Resource | None:
        record = await engine.find_one(query)
        return None if record is None else wrap_record(entity, record)

    async def get_collection(query: Any) -> Collection:
        query = Query.coerce(query, entity)
        records = await engine.find(query)
        options = build_query_options(query)
        collection = Collection(
            (wrap_record(entity, record) for record in records),
            from_=options["skip"],
            size=options.get("limit") or DEFAULT_PAGE_SIZE,
            count=records.count,
        )
        hooks.emit(COLLECTION_EVENT, collection)
        return collection

    async def post(body: Any, resource: Resource | None = None) -> Resource:
        record = await engine.create(_body(body))
        if resource is None:
            resource = Resource(entity)
        return resource.reset(record)

    async def put(
        query: Any, representation: Any, resource: Resource | None = None
    ) -> Resource | None:
        if resource is None:
            resource = Resource(entity, _body(representation))
        if resource.is_new():
            return await post(resource, resource)
        record = await engine.replace(query, _body(representation))
        return None if record is None else resource.reset(record)

    async def patch(
        query: Any, changes: Mapping[str, Any], resource: Resource | None = None
    ) -> Resource | None:
        record = await engine.update(query, changes)
        if record is None:
            return None
        if resource is None:
            resource = Resource(entity)
        return resource.reset(record)

    async def delete(query: Any) -> int:
        return await engine.destroy(query)

    async def patch_collection(query: Any, changes: Mapping[str, Any]) -> int:
        return await engine.update_many(query, changes)

    async def delete_collection(query: Any) -> int:
        return await engine.destroy_many(query)

    (
        hooks.before("get", get)
        .before("collection:get", get_collection)
        .before("post", post)
        .before("put", put)
        .before("patch", patch)
        .before("delete", delete)
        .before("collection:patch", patch_collection)
        .before("collection:delete", delete_collection)
    )
    return engine


class Repository:
    """Base repository class for DDD-oriented usage.

    Subclasses define concrete data access methods on top of the generic
    ones below, which dispatch through the lifecycle hooks.
    """

    def __init__(
        self,
        entity: EntityType,
        settings: StoreSettings,
        *,
        registry: EntityRegistry | None = None,
        hooks: HookRegistry | None = None,
    ) -> None:
        self.entity = entity
        self.hooks = hooks if hooks is not None else HookRegistry()
        self.engine = use_store(self.hooks, entity, settings, registry)

    async def get(self, query: Any) -> Resource | None:
        return await self.hooks.run("get", query)

    async def find(self, query: Any = None) -> Collection:
        return await self.hooks.run("collection:get", query)

    async def create(self, body: Mapping[str, Any] | Resource) -> Resource:
        resource = body if isinstance(body, Resource) else Resource(self.entity, body)
        await self.hooks.run("post", resource.to_dict(), resource)
        return resource

    async def save(self, resource: Resource) -> Resource | None:
        """Create *resource* when it is new, otherwise replace the stored copy."""
        return await self.hooks.run("put", resource.primary, resource.to_dict(), resource)

    async def update(
        self, query: Any, changes: Mapping[str, Any], resource: Resource | None = None
    ) -> Resource | None:
        return await self.hooks.run("patch", query, changes, resource)

    async def delete(self, query: Any) -> int:
        return await self.hooks.run("delete", query)

    async def update_many(self, query: Any, changes: Mapping[str, Any]) -> int:
        return await self.hooks.run("collection:patch", query, changes)

    async def delete_many(self, query: Any) -> int:
        return await self.hooks.run("collection:delete", query)
