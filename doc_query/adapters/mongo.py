"""MongoDB collection and cursor wrappers.

Shared by the Motor and PyMongo async adapters, whose collection APIs are
identical. Maps the narrow store verbs onto the current driver calls.
"""

from __future__ import annotations

import inspect
from typing import Any

from pymongo import ReturnDocument


def _is_operator_document(update: dict[str, Any]) -> bool:
    return bool(update) and all(key.startswith("$") for key in update)


def _sort_spec(sort: dict[str, int] | None) -> list[tuple[str, int]] | None:
    if not sort:
        return None
    return list(sort.items())


class MongoCursor:
    """StoreCursor over a driver cursor."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    def sort(self, sort: dict[str, int]) -> MongoCursor:
        self._cursor = self._cursor.sort(_sort_spec(sort))
        return self

    def skip(self, skip: int) -> MongoCursor:
        self._cursor = self._cursor.skip(skip)
        return self

    def limit(self, limit: int) -> MongoCursor:
        self._cursor = self._cursor.limit(limit)
        return self

    async def to_list(self) -> list[dict[str, Any]]:
        return list(await self._cursor.to_list(length=None))


class MongoCollection:
    """StoreCollection over a Motor or PyMongo async collection."""

    def __init__(self, collection: Any) -> None:
        self._collection = collection

    @property
    def name(self) -> str:
        return str(self._collection.name)

    def find(
        self,
        predicate: dict[str, Any],
        projection: dict[str, Any] | None = None,
    ) -> MongoCursor:
        return MongoCursor(self._collection.find(predicate, projection))

    async def find_one(
        self,
        predicate: dict[str, Any],
        projection: dict[str, Any] | None = None,
        sort: dict[str, int] | None = None,
        skip: int = 0,
    ) -> dict[str, Any] | None:
        return await self._collection.find_one(
            predicate, projection, sort=_sort_spec(sort), skip=skip
        )

    async def insert(self, documents: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not documents:
            return []
        # insert_many assigns generated _id values onto the given documents
        await self._collection.insert_many(documents)
        return documents

    async def update(
        self,
        predicate: dict[str, Any],
        update: dict[str, Any],
        *,
        multi: bool = False,
        upsert: bool = False,
    ) -> int:
        if _is_operator_document(update):
            method = self._collection.update_many if multi else self._collection.update_one
            result = await method(predicate, update, upsert=upsert)
        elif multi:
            # Replacement of several documents, expressed as a pipeline update
            result = await self._collection.update_many(
                predicate,
                [{"$replaceWith": {"$literal": update}}],
                upsert=upsert,
            )
        else:
            result = await self._collection.replace_one(predicate, update, upsert=upsert)
        return int(result.matched_count)

    async def find_and_modify(
        self,
        predicate: dict[str, Any],
        update: dict[str, Any],
        *,
        sort: dict[str, int] | None = None,
        new: bool = True,
        upsert: bool = False,
    ) -> dict[str, Any] | None:
        return_document = ReturnDocument.AFTER if new else ReturnDocument.BEFORE
        if _is_operator_document(update):
            method = self._collection.find_one_and_update
        else:
            method = self._collection.find_one_and_replace
        return await method(
            predicate,
            update,
            sort=_sort_spec(sort),
            upsert=upsert,
            return_document=return_document,
        )

    async def remove(self, predicate: dict[str, Any], *, multi: bool = True) -> int:
        method = self._collection.delete_many if multi else self._collection.delete_one
        result = await method(predicate)
        return int(result.deleted_count)

    async def count(self, predicate: dict[str, Any]) -> int:
        return int(await self._collection.count_documents(predicate))


class MongoConnection:
    """StoreConnection over a client and one of its databases."""

    def __init__(self, client: Any, database: Any) -> None:
        self.client = client
        self.database = database

    def collection(self, name: str) -> MongoCollection:
        return MongoCollection(self.database.get_collection(name))

    async def close(self) -> None:
        if self.client is None:
            return
        result = self.client.close()
        # PyMongo's async client closes asynchronously, Motor's does not
        if inspect.isawaitable(result):
            await result


def open_database(client: Any, options: dict[str, Any]) -> Any:
    """Select the configured database, or the default one from the URL."""
    database = options.get("database")
    if database:
        return client[database]
    return client.get_default_database()


def wrap_database(db: Any) -> Any:
    """Wrap a raw driver database handle; StoreConnections pass through."""
    if isinstance(db, MongoConnection):
        return db
    if hasattr(db, "get_collection"):
        # The caller owns the client of a pre-established handle
        return MongoConnection(None, db)
    return db
