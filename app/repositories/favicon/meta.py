from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError
from pymongo.errors import PyMongoError

from app.core.collections import CollectionNames
from app.core.config import settings
from app.models.favicon.document import FaviconMeta
from app.repositories.base import BaseRepository
from app.repositories.memory import ExpiringStore

logger = logging.getLogger(__name__)


def _decode(raw: str) -> Optional[FaviconMeta]:
    try:
        return FaviconMeta.model_validate_json(raw)
    except ValidationError:
        logger.warning("Ignoring malformed favicon metadata: %.200s", raw)
        return None


class MetaStore(ABC):
    """Key-value store of ``meta:{origin}`` → ``FaviconMeta`` JSON.

    Implementations raise ``RuntimeError`` on backend failure.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[FaviconMeta]:
        """Return the live record for *key*, or ``None``."""

    @abstractmethod
    async def put(self, key: str, meta: FaviconMeta, ttl_seconds: int) -> None:
        """Replace the record for *key*; it expires after *ttl_seconds*."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the record for *key* if present."""


class MongoMetaStore(BaseRepository, MetaStore):
    """MongoDB repository for the ``favicon_meta`` collection.

    Each document holds the record as a JSON string under ``value``.
    """

    COLLECTION_NAME = CollectionNames.FAVICON_META

    async def get(self, key: str) -> Optional[FaviconMeta]:
        try:
            doc = await self._col.find_one(self._live(key))
        except PyMongoError as exc:
            logger.exception("MongoDB read failed for key=%s", key)
            raise RuntimeError("Database read error") from exc
        if doc is None:
            return None
        return _decode(doc.get("value", ""))

    async def put(self, key: str, meta: FaviconMeta, ttl_seconds: int) -> None:
        try:
            await self._col.replace_one(
                {"key": key},
                {
                    "key": key,
                    "value": meta.model_dump_json(by_alias=True),
                    "expires_at": self._expiry(ttl_seconds),
                },
                upsert=True,
            )
        except PyMongoError as exc:
            logger.exception("MongoDB write failed for key=%s", key)
            raise RuntimeError("Database write error") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._col.delete_one({"key": key})
        except PyMongoError as exc:
            logger.exception("MongoDB delete failed for key=%s", key)
            raise RuntimeError("Database delete error") from exc


class MemoryMetaStore(MetaStore):
    """Per-process metadata store, for single-instance deployments and tests."""

    def __init__(self, max_entries: Optional[int] = None) -> None:
        self._items: ExpiringStore[str] = ExpiringStore(
            max_entries or settings.memory_store_max_entries
        )

    async def get(self, key: str) -> Optional[FaviconMeta]:
        raw = self._items.get(key)
        if raw is None:
            return None
        return _decode(raw)

    async def put(self, key: str, meta: FaviconMeta, ttl_seconds: int) -> None:
        self._items.put(key, meta.model_dump_json(by_alias=True), ttl_seconds)

    async def delete(self, key: str) -> None:
        self._items.delete(key)
