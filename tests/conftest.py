"""Shared test fixtures.

``FakeDriver`` is an in-memory store driver implementing the adapter
protocols. It records every store call in ``driver.log`` as
``(collection, verb, predicate)`` so tests can assert on the number and
order of queries a read issues.
"""

from __future__ import annotations

import asyncio
import copy
from types import SimpleNamespace
from typing import Any

import pytest
from bson import ObjectId

from doc_query.core.connection import ConnectionRegistry, StoreSettings
from doc_query.core.engine import DocumentEngine
from doc_query.core.registry import EntityRegistry
from doc_query.mapping.builder import entity

_MISSING = object()


def _get(doc: dict[str, Any], path: str) -> Any:
    value: Any = doc
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _equals(value: Any, expected: Any) -> bool:
    if value is _MISSING:
        return expected is None
    if isinstance(value, list) and not isinstance(expected, list):
        return expected in value
    return bool(value == expected)


def _compare(value: Any, op: str, arg: Any) -> bool:
    if op == "$in":
        return any(_equals(value, item) for item in arg)
    if op == "$nin":
        return not any(_equals(value, item) for item in arg)
    if op == "$ne":
        return not _equals(value, arg)
    if value is _MISSING or value is None:
        return False
    if op == "$gt":
        return bool(value > arg)
    if op == "$gte":
        return bool(value >= arg)
    if op == "$lt":
        return bool(value < arg)
    if op == "$lte":
        return bool(value <= arg)
    raise NotImplementedError(op)


def matches(doc: dict[str, Any], predicate: dict[str, Any]) -> bool:
    for key, condition in predicate.items():
        if key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
            continue
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
            continue
        value = _get(doc, key)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            if not all(_compare(value, op, arg) for op, arg in condition.items()):
                return False
        elif not _equals(value, condition):
            return False
    return True


def _apply(doc: dict[str, Any], update: dict[str, Any]) -> None:
    if not all(key.startswith("$") for key in update):
        identifier = doc.get("_id")
        doc.clear()
        doc.update(copy.deepcopy(update))
        if identifier is not None:
            doc["_id"] = identifier
        return
    for field, value in update.get("$set", {}).items():
        doc[field] = value
    for field, value in update.get("$inc", {}).items():
        doc[field] = doc.get(field, 0) + value
    for field in update.get("$unset", {}):
        doc.pop(field, None)


def _sort_key(value: Any) -> tuple[bool, Any]:
    return (value is None, 0 if value is None else value)


def _sorted(documents: list[dict[str, Any]], sort: dict[str, int] | None) -> list[dict[str, Any]]:
    result = list(documents)
    for field, direction in reversed(list((sort or {}).items())):
        result.sort(key=lambda d: _sort_key(d.get(field)), reverse=direction < 0)
    return result


class FakeCursor:
    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self.documents = documents
        self.modifiers: list[tuple[str, Any]] = []

    def sort(self, sort: dict[str, int]) -> FakeCursor:
        self.modifiers.append(("sort", sort))
        self.documents = _sorted(self.documents, sort)
        return self

    def skip(self, skip: int) -> FakeCursor:
        self.modifiers.append(("skip", skip))
        self.documents = self.documents[skip:]
        return self

    def limit(self, limit: int) -> FakeCursor:
        self.modifiers.append(("limit", limit))
        self.documents = self.documents[:limit]
        return self

    async def to_list(self) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        return list(self.documents)


class FakeCollection:
    def __init__(self, name: str, log: list[tuple[str, str, Any]]) -> None:
        self.name = name
        self.documents: list[dict[str, Any]] = []
        self.cursors: list[FakeCursor] = []
        self.projections: list[dict[str, Any] | None] = []
        self.updates: list[dict[str, Any]] = []
        self._log = log
        self.error: Exception | None = None

    def _record(self, verb: str, predicate: Any) -> None:
        self._log.append((self.name, verb, copy.deepcopy(predicate)))
        if self.error is not None:
            raise self.error

    def _matching(self, predicate: dict[str, Any]) -> list[dict[str, Any]]:
        return [doc for doc in self.documents if matches(doc, predicate)]

    def find(
        self,
        predicate: dict[str, Any],
        projection: dict[str, Any] | None = None,
    ) -> FakeCursor:
        self._record("find", predicate)
        self.projections.append(projection)
        documents = [copy.deepcopy(doc) for doc in self._matching(predicate)]
        if projection:
            keep = {key for key, value in projection.items() if value} | {"_id"}
            documents = [{k: v for k, v in doc.items() if k in keep} for doc in documents]
        cursor = FakeCursor(documents)
        self.cursors.append(cursor)
        return cursor

    async def find_one(
        self,
        predicate: dict[str, Any],
        projection: dict[str, Any] | None = None,
        sort: dict[str, int] | None = None,
        skip: int = 0,
    ) -> dict[str, Any] | None:
        self._record("find_one", predicate)
        documents = _sorted(self._matching(predicate), sort)[skip:]
        return copy.deepcopy(documents[0]) if documents else None

    async def insert(self, documents: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self._record("insert", None)
        for document in documents:
            document.setdefault("_id", ObjectId())
            self.documents.append(copy.deepcopy(document))
        return documents

    async def update(
        self,
        predicate: dict[str, Any],
        update: dict[str, Any],
        *,
        multi: bool = False,
        upsert: bool = False,
    ) -> int:
        self._record("update", predicate)
        self.updates.append({"update": update, "multi": multi, "upsert": upsert})
        matched = self._matching(predicate)
        if not multi:
            matched = matched[:1]
        for doc in matched:
            _apply(doc, update)
        if not matched and upsert:
            doc = {"_id": ObjectId()}
            _apply(doc, update)
            self.documents.append(doc)
        return len(matched)

    async def find_and_modify(
        self,
        predicate: dict[str, Any],
        update: dict[str, Any],
        *,
        sort: dict[str, int] | None = None,
        new: bool = True,
        upsert: bool = False,
    ) -> dict[str, Any] | None:
        self._record("find_and_modify", predicate)
        self.updates.append({"update": update, "sort": sort, "new": new})
        matched = _sorted(self._matching(predicate), sort)
        if not matched:
            return None
        before = copy.deepcopy(matched[0])
        _apply(matched[0], update)
        return copy.deepcopy(matched[0]) if new else before

    async def remove(self, predicate: dict[str, Any], *, multi: bool = True) -> int:
        self._record("remove", predicate)
        matched = self._matching(predicate)
        if not multi:
            matched = matched[:1]
        for doc in matched:
            self.documents.remove(doc)
        return len(matched)

    async def count(self, predicate: dict[str, Any]) -> int:
        self._record("count", predicate)
        return len(self._matching(predicate))


class FakeConnection:
    def __init__(self, driver: FakeDriver) -> None:
        self._driver = driver
        self.closed = False

    def collection(self, name: str) -> FakeCollection:
        return self._driver.collection(name)

    async def close(self) -> None:
        self.closed = True


class FakeDriver:
    """In-memory StoreDriver. Data survives reconnects."""

    def __init__(self) -> None:
        self.connects = 0
        self.connections: list[FakeConnection] = []
        self.failures: list[Exception] = []
        self.log: list[tuple[str, str, Any]] = []
        self._collections: dict[str, FakeCollection] = {}

    async def connect(self, url: str, options: dict[str, Any]) -> FakeConnection:
        self.connects += 1
        await asyncio.sleep(0)
        if self.failures:
            raise self.failures.pop(0)
        connection = FakeConnection(self)
        self.connections.append(connection)
        return connection

    def collection(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(name, self.log)
        return self._collections[name]

    def seed(self, name: str, *documents: dict[str, Any]) -> list[dict[str, Any]]:
        collection = self.collection(name)
        for document in documents:
            document.setdefault("_id", ObjectId())
            collection.documents.append(document)
        return list(documents)

    def calls(self, verb: str | None = None) -> list[tuple[str, str, Any]]:
        return [call for call in self.log if verb is None or call[1] == verb]


def build_schema() -> SimpleNamespace:
    """Companies, authors, posts, comments and tags linked through post_tags."""
    ns = SimpleNamespace()
    ns.company = entity("company", "companies").key().attribute("name").attribute("city").build()
    ns.author = (
        entity("author", "authors")
        .key()
        .attribute("name")
        .attribute("company_id", alias="companyId", identifier=True)
        .belongs_to("company", ns.company, "company_id")
        .has_many("posts", lambda: ns.post, "author_id")
        .build()
    )
    ns.post = (
        entity("post", "posts")
        .key()
        .attribute("title")
        .attribute("status", default="draft")
        .attribute("views", default=lambda: 0)
        .attribute("preview", transient=True)
        .attribute("author_id", alias="authorId", identifier=True)
        .belongs_to("author", ns.author, "author_id")
        .has_many("comments", lambda: ns.comment, "post_id")
        .has_many(
            "tags", lambda: ns.tag, "post_id", through=lambda: ns.post_tag, through_key="tag_id"
        )
        .build()
    )
    ns.comment = (
        entity("comment", "comments")
        .key()
        .attribute("body")
        .attribute("post_id", alias="postId", identifier=True)
        .belongs_to("post", ns.post, "post_id")
        .build()
    )
    ns.tag = entity("tag", "tags").key().attribute("label").build()
    ns.post_tag = (
        entity("post_tag", "post_tags")
        .key()
        .attribute("post_id", alias="postId", identifier=True)
        .attribute("tag_id", alias="tagId", identifier=True)
        .build()
    )
    return ns


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def settings(driver: FakeDriver) -> StoreSettings:
    """Settings shared by every entity type, so they share one pool."""
    return StoreSettings(
        collection="documents", url="mongodb://localhost:27017/test", driver=driver
    )


@pytest.fixture
def connections() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def registry(connections: ConnectionRegistry) -> EntityRegistry:
    return EntityRegistry(connections)


@pytest.fixture
def schema() -> SimpleNamespace:
    return build_schema()


@pytest.fixture
def engines(
    schema: SimpleNamespace, settings: StoreSettings, registry: EntityRegistry
) -> SimpleNamespace:
    """One DocumentEngine per schema entity, all bound to the same settings."""
    return SimpleNamespace(
        **{
            name: DocumentEngine.from_settings(entity_type, settings, registry)
            for name, entity_type in vars(schema).items()
        }
    )
