from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from pymongo.errors import PyMongoError

from app.core.collections import CollectionNames
from app.core.config import settings
from app.models.favicon.document import CachedResponse
from app.repositories.base import BaseRepository
from app.repositories.memory import ExpiringStore

logger = logging.getLogger(__name__)


class ResponseCache(ABC):
    """Edge cache of final responses, addressed by a synthetic request URL.

    Implementations raise ``RuntimeError`` on backend failure.
    """

    @abstractmethod
    async def match(self, cache_key: str) -> Optional[CachedResponse]:
        """Return the live cached response for *cache_key*, or ``None``."""

    @abstractmethod
    async def put(
        self, cache_key: str, response: CachedResponse, ttl_seconds: int
    ) -> None:
        """Store *response* under *cache_key* for *ttl_seconds*."""

    @abstractmethod
    async def delete(self, cache_key: str) -> None:
        """Drop the entry for *cache_key* if present."""


class MongoResponseCache(BaseRepository, ResponseCache):
    """MongoDB repository for the ``response_cache`` collection."""

    COLLECTION_NAME = CollectionNames.RESPONSE_CACHE

    async def match(self, cache_key: str) -> Optional[CachedResponse]:
        try:
            doc = await self._col.find_one(self._live(cache_key))
        except PyMongoError as exc:
            logger.exception("MongoDB read failed for cache key=%s", cache_key)
            raise RuntimeError("Database read error") from exc
        if doc is None:
            return None
        return CachedResponse(
            status_code=doc["status_code"],
            headers=doc["headers"],
            body=bytes(doc["body"]),
        )

    async def put(
        self, cache_key: str, response: CachedResponse, ttl_seconds: int
    ) -> None:
        payload = response.model_dump()
        payload["key"] = cache_key
        payload["expires_at"] = self._expiry(ttl_seconds)
        try:
            await self._col.replace_one({"key": cache_key}, payload, upsert=True)
        except PyMongoError as exc:
            logger.exception("MongoDB write failed for cache key=%s", cache_key)
            raise RuntimeError("Database write error") from exc

    async def delete(self, cache_key: str) -> None:
        try:
            await self._col.delete_one({"key": cache_key})
        except PyMongoError as exc:
            logger.exception("MongoDB delete failed for cache key=%s", cache_key)
            raise RuntimeError("Database delete error") from exc


class MemoryResponseCache(ResponseCache):
    """Per-process response cache."""

    def __init__(self, max_entries: Optional[int] = None) -> None:
        self._items: ExpiringStore[CachedResponse] = ExpiringStore(
            max_entries or settings.memory_store_max_entries
        )

    async def match(self, cache_key: str) -> Optional[CachedResponse]:
        response = self._items.get(cache_key)
        if response is None:
            return None
        return response.model_copy(deep=True)

    async def put(
        self, cache_key: str, response: CachedResponse, ttl_seconds: int
    ) -> None:
        self._items.put(cache_key, response.model_copy(deep=True), ttl_seconds)

    async def delete(self, cache_key: str) -> None:
        self._items.delete(cache_key)
