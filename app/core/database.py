from __future__ import annotations

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo.errors import ConnectionFailure
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    wait_exponential,
)

from app.core.config import settings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Singleton MongoDB connection manager.

    Use the module-level ``db`` instance; do not instantiate directly.

    Lifecycle::

        await db.connect()   # call once at startup
        ...
        await db.disconnect()  # call once at shutdown
    """

    _instance: DatabaseManager | None = None
    _client: AsyncIOMotorClient | None = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Open the Motor client and verify connectivity with a ping.

        The ping is retried with exponential backoff so the service survives
        starting a few seconds ahead of its database container.
        """
        self._client = AsyncIOMotorClient(
            settings.mongo_uri,
            maxPoolSize=settings.mongo_max_pool_size,
        )
        await self._ping()
        logger.info("Connected to MongoDB at %s.", settings.mongo_uri)

    @retry(
        retry=retry_if_exception_type(ConnectionFailure),
        stop=lambda rs: rs.attempt_number >= settings.mongo_connect_retries + 1,
        wait=wait_exponential(multiplier=0.5, min=0.5, max=10),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _ping(self) -> None:
        await self._client.admin.command("ping")

    async def disconnect(self) -> None:
        """Close the Motor client and release all pooled connections."""
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Disconnected from MongoDB.")

    def get_collection(self, name: str) -> AsyncIOMotorCollection:
        """Return a Motor collection by name from the configured database."""
        if self._client is None:
            raise RuntimeError(
                "DatabaseManager is not connected. Call connect() first."
            )
        return self._client[settings.mongo_db][name]


#: Module-level singleton — import and use this everywhere.
db: DatabaseManager = DatabaseManager()
