from __future__ import annotations

import logging
from typing import Optional

import httpx

from app.core.config import settings
from app.workers.fetcher import FetchError, fetch_with_timeout

logger = logging.getLogger(__name__)


def is_image_response(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.startswith("image/") or "svg" in content_type


def _declared_length(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _rejection(response: httpx.Response) -> Optional[str]:
    """Why the response headers rule this out as an icon, or ``None``."""
    if not response.is_success:
        return f"HTTP {response.status_code}"
    if not is_image_response(response):
        return f"content-type {response.headers.get('content-type')!r}"
    length = _declared_length(response)
    if length is not None and length > settings.max_icon_bytes:
        return f"declared length {length}"
    return None


def looks_like_icon(response: httpx.Response) -> bool:
    return _rejection(response) is None


async def try_fetch_image(url: str, timeout: float) -> Optional[httpx.Response]:
    """Fetch *url* and return the response only if it is a small image.

    Returns ``None`` on any failure (network error, timeout, non-2xx status,
    non-image content type, oversized body) so callers can use it as a
    filter in a fallback chain.  Headers are checked before the body is
    downloaded, and the download stops once it passes
    ``settings.max_icon_bytes``.
    """
    try:
        response = await fetch_with_timeout(
            url,
            timeout,
            read_body=looks_like_icon,
            max_bytes=settings.max_icon_bytes,
        )
    except FetchError as exc:
        logger.debug("Image fetch failed: %s", exc)
        return None

    reason = _rejection(response)
    if reason is not None:
        logger.debug("Image %s rejected: %s", url, reason)
        return None
    if len(response.content) > settings.max_icon_bytes:
        logger.debug("Image %s rejected: body is %d bytes", url, len(response.content))
        return None

    return response
