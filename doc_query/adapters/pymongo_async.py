"""PyMongo async adapter (``pymongo.AsyncMongoClient``)."""

from __future__ import annotations

from typing import Any

from doc_query.adapters.mongo import MongoConnection, open_database


class PymongoAsyncDriver:
    """StoreDriver using PyMongo's native asyncio client."""

    async def connect(self, url: str, options: dict[str, Any]) -> MongoConnection:
        """Open a client and verify the server is reachable."""
        from pymongo import AsyncMongoClient

        client_options = {k: v for k, v in options.items() if k != "database"}
        client: Any = AsyncMongoClient(url, **client_options)
        try:
            await client.admin.command("ping")
        except Exception:
            await client.close()
            raise
        return MongoConnection(client, open_database(client, options))
