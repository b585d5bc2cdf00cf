"""Mapping layer - entity schemas and name/alias transcoding."""

from __future__ import annotations

from doc_query.mapping.builder import EntityBuilder, entity
from doc_query.mapping.schema import Attribute, EntityType, Relation
from doc_query.mapping.transcoder import field_path, from_storage, to_storage

__all__ = [
    "EntityType",
    "Attribute",
    "Relation",
    "EntityBuilder",
    "entity",
    "to_storage",
    "from_storage",
    "field_path",
]
