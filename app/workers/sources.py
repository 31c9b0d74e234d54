"""Source fallback orchestrator.

Tries third-party icon services and the site's own favicon, in the
configured order, until one yields a valid image.  When none does, a
generated letter badge is returned instead so callers always get an image.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Literal, Optional
from urllib.parse import quote

import httpx

from app.core.config import settings
from app.models.favicon.document import CachedResponse
from app.models.favicon.schemas import IconFetchResult, SiteOrigin
from app.workers.discovery import discover_favicon_url
from app.workers.images import try_fetch_image

logger = logging.getLogger(__name__)

SourceOrder = Literal["discovery_first", "services_first"]

# Headers describing the upstream transfer rather than the icon itself
_TRANSPORT_HEADERS = frozenset(
    {
        "connection",
        "content-encoding",
        "content-length",
        "keep-alive",
        "set-cookie",
        "transfer-encoding",
    }
)

_DEFAULT_ICON_SVG = """<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg" width="64" height="64" viewBox="0 0 64 64">
  <rect x="4" y="4" width="56" height="56" rx="14" fill="#3b82f6"/>
  <text x="32" y="40" text-anchor="middle" font-family="system-ui, -apple-system, Segoe UI, Roboto" font-size="28" font-weight="800" fill="#ffffff">{letter}</text>
</svg>"""


def to_cached_response(response: httpx.Response) -> CachedResponse:
    """Copy an upstream response into a ``CachedResponse``."""
    headers = {
        name.lower(): value
        for name, value in response.headers.items()
        if name.lower() not in _TRANSPORT_HEADERS
    }
    return CachedResponse(
        status_code=response.status_code,
        headers=headers,
        body=response.content,
    )


def default_icon_response(hostname: str) -> CachedResponse:
    """Letter badge for *hostname*, used when no real icon can be found."""
    letter = hostname.strip()[:1].upper() or "•"
    return CachedResponse(
        status_code=200,
        headers={"content-type": "image/svg+xml; charset=UTF-8"},
        body=_DEFAULT_ICON_SVG.format(letter=letter).encode("utf-8"),
    )


def duckduckgo_url(hostname: str) -> str:
    return f"https://icons.duckduckgo.com/ip3/{quote(hostname, safe='')}.ico"


def google_url(hostname: str) -> str:
    return f"https://www.google.com/s2/favicons?domain={quote(hostname, safe='')}&sz=64"


Candidate = Callable[[], Awaitable[Optional[IconFetchResult]]]


def _service_candidate(url: str, timeout: float) -> Candidate:
    async def attempt() -> Optional[IconFetchResult]:
        response = await try_fetch_image(url, timeout)
        if response is None:
            return None
        return IconFetchResult(
            response=to_cached_response(response), resolved_source_url=url
        )

    return attempt


def _discovery_candidate(origin: str, timeout: float) -> Candidate:
    async def attempt() -> Optional[IconFetchResult]:
        icon_url = await discover_favicon_url(origin)
        response = await try_fetch_image(icon_url, timeout)
        if response is None:
            return None
        return IconFetchResult(
            response=to_cached_response(response), resolved_source_url=icon_url
        )

    return attempt


def build_candidates(site: SiteOrigin, order: SourceOrder) -> list[Candidate]:
    """Return the ordered source attempts for *site*.

    ``services_first`` suits a proxy sharing an origin with the browser page:
    the cheap CDN lookups run before the multi-request discovery chain.
    ``discovery_first`` prefers the site's own icon.
    """
    if order == "services_first":
        service_timeout = settings.services_first_timeout
    else:
        service_timeout = settings.service_timeout
    services = [
        _service_candidate(duckduckgo_url(site.hostname), service_timeout),
        _service_candidate(google_url(site.hostname), service_timeout),
    ]
    discovery = _discovery_candidate(site.origin, settings.image_timeout)
    if order == "services_first":
        return [*services, discovery]
    return [discovery, *services]


async def fetch_favicon(
    site: SiteOrigin, order: SourceOrder | None = None
) -> IconFetchResult:
    """Resolve an icon for *site*, falling back to a generated badge."""
    for attempt in build_candidates(site, order or settings.source_order):
        result = await attempt()
        if result is not None:
            logger.info(
                "Resolved icon for %s from %s", site.origin, result.resolved_source_url
            )
            return result

    logger.info("No icon source for %s; serving default badge", site.origin)
    return IconFetchResult(response=default_icon_response(site.hostname))
