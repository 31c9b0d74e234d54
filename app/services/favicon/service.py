from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from app.core.config import settings
from app.models.favicon.document import CachedResponse, FaviconMeta
from app.models.favicon.schemas import SiteOrigin
from app.repositories.favicon.cache import ResponseCache
from app.repositories.favicon.meta import MetaStore
from app.workers.images import try_fetch_image
from app.workers.sources import fetch_favicon, to_cached_response

logger = logging.getLogger(__name__)

#: Registers a coroutine function to run after the response has been sent,
#: e.g. ``BackgroundTasks.add_task``.
Schedule = Callable[..., Any]


def with_common_headers(response: CachedResponse) -> CachedResponse:
    """Return a copy of *response* with CORS and caching headers applied."""
    headers = dict(response.headers)
    headers["access-control-allow-origin"] = "*"
    headers["cache-control"] = settings.cache_control
    return CachedResponse(
        status_code=response.status_code, headers=headers, body=response.body
    )


class FaviconService:
    """Icon resolution and cache maintenance for a single site origin.

    The two stores are injected so tests and single-process deployments can
    use in-memory implementations.
    """

    def __init__(self, meta_store: MetaStore, response_cache: ResponseCache) -> None:
        self._meta = meta_store
        self._cache = response_cache

    async def resolve(self, site: SiteOrigin, schedule: Schedule) -> CachedResponse:
        """Return the icon response for *site*.

        Lookup order: edge response cache, then the metadata hint
        (re-validated against the network), then the full source chain.
        Store writes are handed to *schedule* and never awaited here.
        """
        cache_key = site.cache_key(settings.cache_key_base)

        cached = await self._lookup_response(cache_key)
        if cached is not None:
            logger.debug("Edge cache hit for %s", site.origin)
            return with_common_headers(cached)

        meta = await self._lookup_meta(site.meta_key)
        if meta is not None:
            upstream = await try_fetch_image(meta.icon_url, settings.image_timeout)
            if upstream is not None:
                normalized = with_common_headers(to_cached_response(upstream))
                schedule(self.store_response, cache_key, normalized)
                return normalized
            logger.info(
                "Stored icon %s for %s no longer valid; re-resolving",
                meta.icon_url,
                site.origin,
            )

        fetched = await fetch_favicon(site)
        if fetched.resolved_source_url is not None:
            schedule(
                self.store_meta,
                site.meta_key,
                FaviconMeta(
                    icon_url=fetched.resolved_source_url,
                    updated_at=int(time.time() * 1000),
                ),
            )

        normalized = with_common_headers(fetched.response)
        schedule(self.store_response, cache_key, normalized)
        return normalized

    async def refresh(self, site: SiteOrigin) -> None:
        """Forget everything stored for *site* so the next request re-resolves.

        Raises:
            RuntimeError: raised by the stores on backend failure.
        """
        await self._meta.delete(site.meta_key)
        await self._cache.delete(site.cache_key(settings.cache_key_base))
        logger.info("Cleared stored icon for %s", site.origin)

    # ------------------------------------------------------------------
    # Store access; failures degrade to cache misses
    # ------------------------------------------------------------------

    async def _lookup_response(self, cache_key: str) -> Optional[CachedResponse]:
        try:
            return await self._cache.match(cache_key)
        except Exception as exc:
            logger.error("Response cache read failed for %s: %s", cache_key, exc)
            return None

    async def _lookup_meta(self, meta_key: str) -> Optional[FaviconMeta]:
        try:
            return await self._meta.get(meta_key)
        except Exception as exc:
            logger.error("Metadata read failed for %s: %s", meta_key, exc)
            return None

    async def store_response(self, cache_key: str, response: CachedResponse) -> None:
        """Background task: write *response* to the edge cache.

        Catches and logs all exceptions; a lost write only costs a future
        cache miss.
        """
        try:
            await self._cache.put(
                cache_key, response, settings.response_cache_ttl_seconds
            )
        except Exception as exc:
            logger.error("Response cache write failed for %s: %s", cache_key, exc)

    async def store_meta(self, meta_key: str, meta: FaviconMeta) -> None:
        """Background task: record which URL produced the icon."""
        try:
            await self._meta.put(meta_key, meta, settings.meta_ttl_seconds)
        except Exception as exc:
            logger.error("Metadata write failed for %s: %s", meta_key, exc)
