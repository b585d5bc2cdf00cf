"""doc_query - relation-aware data mapping for document stores."""

from __future__ import annotations

from doc_query.core.connection import (
    ConnectionPool,
    ConnectionRegistry,
    ResultSet,
    StoreGateway,
    StoreSettings,
)
from doc_query.core.engine import DocumentEngine
from doc_query.core.enums import RelationKind, SortDirection
from doc_query.core.events import COLLECTION_EVENT, QUERY_EVENT, EventEmitter
from doc_query.core.exceptions import (
    AdapterError,
    DocQueryError,
    DuplicateEntityError,
    MissingCollectionError,
    MissingConnectionError,
    PrimaryKeyError,
    RelationError,
    SchemaError,
    SetupError,
    UnboundEntityError,
)
from doc_query.core.planner import QueryPlanner
from doc_query.core.query import Query, QueryBuilder, RelatedOptions, query
from doc_query.core.registry import EntityRegistry
from doc_query.mapping.builder import EntityBuilder, entity
from doc_query.mapping.schema import EntityType
from doc_query.repository.base import Repository, use_store
from doc_query.repository.hooks import HookRegistry
from doc_query.repository.resource import Collection, Resource

__all__ = [
    # Connection
    "StoreSettings",
    "ConnectionPool",
    "ConnectionRegistry",
    "StoreGateway",
    "ResultSet",
    # Engine
    "DocumentEngine",
    "QueryPlanner",
    "EntityRegistry",
    # Query
    "Query",
    "QueryBuilder",
    "RelatedOptions",
    "query",
    # Schema
    "EntityType",
    "EntityBuilder",
    "entity",
    # Repository
    "Repository",
    "use_store",
    "HookRegistry",
    "Resource",
    "Collection",
    # Events
    "EventEmitter",
    "QUERY_EVENT",
    "COLLECTION_EVENT",
    # Enums
    "RelationKind",
    "SortDirection",
    # Exceptions
    "DocQueryError",
    "SetupError",
    "MissingCollectionError",
    "MissingConnectionError",
    "UnboundEntityError",
    "DuplicateEntityError",
    "SchemaError",
    "PrimaryKeyError",
    "RelationError",
    "AdapterError",
]
