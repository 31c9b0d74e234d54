from __future__ import annotations

from functools import lru_cache

from app.core.config import settings
from app.core.database import db
from app.repositories.favicon.cache import (
    MemoryResponseCache,
    MongoResponseCache,
    ResponseCache,
)
from app.repositories.favicon.meta import MemoryMetaStore, MetaStore, MongoMetaStore


@lru_cache(maxsize=1)
def _memory_stores() -> tuple[MemoryMetaStore, MemoryResponseCache]:
    return MemoryMetaStore(), MemoryResponseCache()


def build_stores() -> tuple[MetaStore, ResponseCache]:
    """Return the metadata store and response cache for ``settings.store_backend``.

    The memory backend hands out the same instances on every call so state
    survives across requests within the process.
    """
    if settings.store_backend == "memory":
        return _memory_stores()
    return MongoMetaStore.from_db(db), MongoResponseCache.from_db(db)
