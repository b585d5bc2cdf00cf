"""Store driver protocols.

Every driver adapter MUST implement these protocols. The gateway and the
planner only ever talk to a store through this narrow surface.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StoreCursor(Protocol):
    """Cursor returned by ``StoreCollection.find``. Modifiers return the cursor."""

    def sort(self, sort: dict[str, int]) -> StoreCursor:
        ...

    def skip(self, skip: int) -> StoreCursor:
        ...

    def limit(self, limit: int) -> StoreCursor:
        ...

    async def to_list(self) -> list[dict[str, Any]]:
        """Materialise the remaining documents."""
        ...


@runtime_checkable
class StoreCollection(Protocol):
    """Collection handle protocol."""

    def find(
        self,
        predicate: dict[str, Any],
        projection: dict[str, Any] | None = None,
    ) -> StoreCursor:
        ...

    async def find_one(
        self,
        predicate: dict[str, Any],
        projection: dict[str, Any] | None = None,
        sort: dict[str, int] | None = None,
        skip: int = 0,
    ) -> dict[str, Any] | None:
        ...

    async def insert(self, documents: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert documents and return them with their generated identifiers."""
        ...

    async def update(
        self,
        predicate: dict[str, Any],
        update: dict[str, Any],
        *,
        multi: bool = False,
        upsert: bool = False,
    ) -> int:
        """Apply an update (operator document) or a replacement. Returns matched count."""
        ...

    async def find_and_modify(
        self,
        predicate: dict[str, Any],
        update: dict[str, Any],
        *,
        sort: dict[str, int] | None = None,
        new: bool = True,
        upsert: bool = False,
    ) -> dict[str, Any] | None:
        """Atomically update or replace one document and return it."""
        ...

    async def remove(self, predicate: dict[str, Any], *, multi: bool = True) -> int:
        ...

    async def count(self, predicate: dict[str, Any]) -> int:
        ...


@runtime_checkable
class StoreConnection(Protocol):
    """An established connection to a database."""

    def collection(self, name: str) -> StoreCollection:
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class StoreDriver(Protocol):
    """Driver protocol: knows how to open a connection."""

    async def connect(self, url: str, options: dict[str, Any]) -> StoreConnection:
        ...
