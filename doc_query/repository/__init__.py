"""Repository layer - resource lifecycle hooks backed by a document store."""

from __future__ import annotations

from doc_query.repository.base import Repository, use_store
from doc_query.repository.hooks import HookRegistry
from doc_query.repository.resource import Collection, Resource

__all__ = [
    "Repository",
    "use_store",
    "HookRegistry",
    "Resource",
    "Collection",
]
