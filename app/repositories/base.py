"""Abstract base class for the MongoDB-backed stores.

Both favicon stores are key/value collections with a per-document expiry:
documents carry a unique ``key`` and an ``expires_at`` date.  MongoDB's TTL
monitor removes expired documents eventually (it runs about once a minute),
so reads must also filter on ``expires_at``; ``_live`` builds that filter.

Extending for a new collection:
    1. Add the collection name to ``CollectionNames``.
    2. Subclass ``BaseRepository`` and set ``COLLECTION_NAME``.
    3. Register the repository in the app lifespan (``main.py``).
"""

from __future__ import annotations

import logging
from abc import ABC
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, TypeVar

from motor.motor_asyncio import AsyncIOMotorCollection

from app.core.database import DatabaseManager

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="BaseRepository")


def utcnow() -> datetime:
    """Naive UTC now, the form BSON dates round-trip as."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseRepository(ABC):
    """Base class that wires a repository to its Motor collection.

    Subclasses declare ``COLLECTION_NAME``.  The ``from_db`` classmethod is
    the standard factory used throughout the app and in the lifespan startup
    hook.
    """

    COLLECTION_NAME: ClassVar[str]

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._col = collection

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def from_db(cls: type[T], db: DatabaseManager) -> T:
        """Instantiate the repository using the live ``DatabaseManager``.

        Usage::

            store = MongoMetaStore.from_db(db)
        """
        return cls(db.get_collection(cls.COLLECTION_NAME))

    # ------------------------------------------------------------------
    # Index management
    # ------------------------------------------------------------------

    async def ensure_indexes(self) -> None:
        """Create the key and TTL indexes.  Called once at startup.

        Motor / MongoDB make this idempotent (existing indexes are silently
        skipped).
        """
        await self._col.create_index("key", unique=True)
        await self._col.create_index("expires_at", expireAfterSeconds=0)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _live(key: str) -> dict[str, Any]:
        return {"key": key, "expires_at": {"$gt": utcnow()}}

    @staticmethod
    def _expiry(ttl_seconds: int) -> datetime:
        return utcnow() + timedelta(seconds=ttl_seconds)
