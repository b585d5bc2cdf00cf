"""Store settings, connection pools and the store gateway.

StoreSettings is a Pydantic model for type-safe store configuration.
ConnectionRegistry owns one ConnectionPool per settings object (or per
explicit pool name), so entity types sharing a settings object share one
client. StoreGateway connects lazily on first use and exposes the store verbs
for one collection.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from collections.abc import Callable
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from doc_query.adapters.mongo import wrap_database
from doc_query.adapters.protocol import StoreCollection, StoreConnection
from doc_query.core.exceptions import AdapterError, MissingCollectionError, MissingConnectionError

logger = logging.getLogger(__name__)


class StoreSettings(BaseModel):
    """Configuration for a store connection.

    Share one settings object between entity types to share a connection
    pool, or give them the same ``pool`` name.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    collection: str | None = None
    url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("url", "connection_string", "connectionString"),
    )
    connection_options: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("connection_options", "connectionOptions", "options"),
    )
    db: Any = None
    driver: Any = "pymongo"
    retry: int = 1000
    pool: str | None = None


def validate_settings(
    settings: StoreSettings,
    entity_name: str | None = None,
    collection: str | None = None,
) -> None:
    """Check the settings needed to attach a resource.

    Raises:
        MissingCollectionError: If no collection name is configured.
        MissingConnectionError: If neither a url nor a db handle is configured.
    """
    if not (collection or settings.collection):
        raise MissingCollectionError(entity_name)
    if not settings.url and settings.db is None:
        raise MissingConnectionError(entity_name)


# Driver name → (module_path, class_name)
_DRIVER_MAP: dict[str, tuple[str, str]] = {
    "motor": ("doc_query.adapters.motor", "MotorDriver"),
    "pymongo": ("doc_query.adapters.pymongo_async", "PymongoAsyncDriver"),
}


def load_driver(driver: Any) -> Any:
    """Load a driver by name. Driver instances are returned as given."""
    if not isinstance(driver, str):
        return driver

    driver_lower = driver.lower()
    if driver_lower not in _DRIVER_MAP:
        raise AdapterError(f"Unsupported store driver: {driver}")

    module_path, cls_name = _DRIVER_MAP[driver_lower]
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)()
    except (ImportError, AttributeError) as e:
        raise AdapterError(f"Failed to load store driver '{driver}': {e}") from e


class ConnectionPool:
    """A single lazily established store connection.

    Concurrent callers arriving while the connection is being established
    all await the same in-flight task; the driver's ``connect`` is called
    once. A failed attempt is reported to every waiting caller and the next
    call starts a fresh attempt.
    """

    def __init__(self, key: Any, settings: StoreSettings, driver: Any) -> None:
        self.key = key
        self.settings = settings
        self._driver = driver
        self._connection: StoreConnection | None = None
        self._connecting: asyncio.Task[StoreConnection] | None = None
        self._external = settings.db is not None
        if self._external:
            self._connection = wrap_database(settings.db)

    @property
    def connected(self) -> bool:
        return self._connection is not None

    @property
    def connecting(self) -> bool:
        return self._connecting is not None

    async def connection(self) -> StoreConnection:
        """Return the connection, establishing it on first use."""
        if self._connection is not None:
            return self._connection
        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._connect())
        # Shielded so a cancelled caller does not abort the shared attempt
        return await asyncio.shield(self._connecting)

    async def _connect(self) -> StoreConnection:
        logger.debug("Connecting store pool %r", self.key)
        try:
            connection = await self._driver.connect(
                self.settings.url, dict(self.settings.connection_options)
            )
        finally:
            self._connecting = None
        self._connection = connection
        logger.debug("Store pool %r connected", self.key)
        return connection

    async def close(self) -> None:
        """Close the connection. The next call reconnects."""
        if self._connection is None or self._external:
            return
        connection, self._connection = self._connection, None
        await connection.close()


class ConnectionRegistry:
    """Registry of connection pools keyed by pool name or settings identity.

    Args:
        on_unshared: Optional callback invoked with the settings when a new
            pool is opened for a url another pool already serves.
    """

    def __init__(self, on_unshared: Callable[[StoreSettings], None] | None = None) -> None:
        self._pools: dict[Any, ConnectionPool] = {}
        self._on_unshared = on_unshared

    @staticmethod
    def key_for(settings: StoreSettings) -> Any:
        if settings.pool:
            return ("pool", settings.pool)
        return ("settings", id(settings))

    def pool_for(self, settings: StoreSettings) -> ConnectionPool:
        """Return the pool for *settings*, creating it if needed."""
        key = self.key_for(settings)
        pool = self._pools.get(key)
        if pool is not None:
            return pool

        if settings.url and any(p.settings.url == settings.url for p in self._pools.values()):
            logger.warning(
                "resources should share a settings object to ensure they share "
                "a connection pool (url %s opened more than once)",
                _redact(settings.url),
            )
            if self._on_unshared is not None:
                self._on_unshared(settings)

        pool = ConnectionPool(key, settings, load_driver(settings.driver))
        self._pools[key] = pool
        return pool

    def __len__(self) -> int:
        return len(self._pools)

    def __contains__(self, settings: object) -> bool:
        return isinstance(settings, StoreSettings) and self.key_for(settings) in self._pools

    async def close_all(self) -> None:
        for pool in self._pools.values():
            await pool.close()


default_registry = ConnectionRegistry()


def _redact(url: str) -> str:
    """Strip credentials from a connection string for logging."""
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    return f"{scheme}://***@{rest.split('@', 1)[1]}"


class ResultSet(list):  # type: ignore[type-arg]
    """Documents returned by ``find``, with the total count when requested."""

    def __init__(self, documents: Any = (), count: int | None = None) -> None:
        super().__init__(documents)
        self.count = count


class StoreGateway:
    """Store access for one collection through a shared connection pool."""

    def __init__(self, pool: ConnectionPool, collection_name: str) -> None:
        self.pool = pool
        self.collection_name = collection_name
        self._connection: StoreConnection | None = None
        self._collection: StoreCollection | None = None

    async def collection(self) -> StoreCollection:
        """Resolve the collection handle, connecting first if needed."""
        connection = await self.pool.connection()
        if connection is not self._connection or self._collection is None:
            self._connection = connection
            self._collection = connection.collection(self.collection_name)
        return self._collection

    async def find(
        self,
        predicate: dict[str, Any],
        options: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
    ) -> ResultSet:
        """Run a find, applying sort, skip and limit in that order."""
        options = options or {}
        collection = await self.collection()
        logger.debug("find %s %r %r", self.collection_name, predicate, options)

        cursor = collection.find(predicate, projection)
        if options.get("sort"):
            cursor = cursor.sort(options["sort"])
        if options.get("skip"):
            cursor = cursor.skip(options["skip"])
        if options.get("limit"):
            cursor = cursor.limit(options["limit"])

        if options.get("with_count"):
            documents, count = await asyncio.gather(cursor.to_list(), collection.count(predicate))
            return ResultSet(documents, count=count)
        return ResultSet(await cursor.to_list())

    async def find_one(
        self,
        predicate: dict[str, Any],
        options: dict[str, Any] | None = None,
        projection: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        options = options or {}
        collection = await self.collection()
        logger.debug("find_one %s %r", self.collection_name, predicate)
        return await collection.find_one(
            predicate,
            projection,
            sort=options.get("sort") or None,
            skip=options.get("skip") or 0,
        )

    async def insert(self, documents: list[dict[str, Any]]) -> list[dict[str, Any]]:
        collection = await self.collection()
        logger.debug("insert %s (%d documents)", self.collection_name, len(documents))
        return await collection.insert(documents)

    async def update(
        self,
        predicate: dict[str, Any],
        update: dict[str, Any],
        *,
        multi: bool = False,
        upsert: bool = False,
    ) -> int:
        collection = await self.collection()
        logger.debug(
            "update %s %r multi=%s upsert=%s", self.collection_name, predicate, multi, upsert
        )
        return await collection.update(predicate, update, multi=multi, upsert=upsert)

    async def find_and_modify(
        self,
        predicate: dict[str, Any],
        update: dict[str, Any],
        *,
        sort: dict[str, int] | None = None,
        new: bool = True,
        upsert: bool = False,
    ) -> dict[str, Any] | None:
        collection = await self.collection()
        logger.debug("find_and_modify %s %r", self.collection_name, predicate)
        return await collection.find_and_modify(
            predicate, update, sort=sort, new=new, upsert=upsert
        )

    async def remove(self, predicate: dict[str, Any], *, multi: bool = True) -> int:
        collection = await self.collection()
        logger.debug("remove %s %r multi=%s", self.collection_name, predicate, multi)
        return await collection.remove(predicate, multi=multi)

    async def count(self, predicate: dict[str, Any]) -> int:
        collection = await self.collection()
        return await collection.count(predicate)
