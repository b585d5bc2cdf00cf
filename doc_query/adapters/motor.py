"""Motor adapter (``motor.motor_asyncio``)."""

from __future__ import annotations

from typing import Any

from doc_query.adapters.mongo import MongoConnection, open_database


class MotorDriver:
    """StoreDriver using Motor's AsyncIOMotorClient."""

    async def connect(self, url: str, options: dict[str, Any]) -> MongoConnection:
        """Open a client and verify the server is reachable."""
        from motor.motor_asyncio import AsyncIOMotorClient

        client_options = {k: v for k, v in options.items() if k != "database"}
        client = AsyncIOMotorClient(url, **client_options)
        try:
            await client.admin.command("ping")
        except Exception:
            client.close()
            raise
        return MongoConnection(client, open_database(client, options))
