"""Bounded async HTTP fetcher.

Every outbound request made by the proxy goes through ``fetch_with_timeout``
so that no call outlives its per-hop budget.

Uses httpx.AsyncClient which is meant to be long-lived and reused.
A single shared client is managed by the module; see ``get_http_client``
and ``close_http_client`` for lifecycle hooks.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/avif,image/webp,image/apng,image/*,*/*;q=0.8"
)

# Module-level shared client
_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Return the shared AsyncClient.  Creates one if missing."""
    global _http_client  # noqa: PLW0603
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            follow_redirects=True,
            verify=settings.http_verify_ssl,
            headers={"User-Agent": settings.http_user_agent, "Accept": _ACCEPT},
        )
    return _http_client


async def close_http_client() -> None:
    """Close the shared AsyncClient gracefully."""
    global _http_client  # noqa: PLW0603
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
        _http_client = None
        logger.info("HTTP client closed.")


class FetchError(Exception):
    """Raised when an outbound request fails or exceeds its time budget."""


#: Decides, from status and headers alone, whether the body is worth reading.
BodyFilter = Callable[[httpx.Response], bool]

# Headers that no longer describe a body httpx has already decoded
_DECODED_HEADERS = frozenset({"content-encoding", "transfer-encoding"})


def skip_body(response: httpx.Response) -> bool:
    return False


async def _read_limited(
    client: httpx.AsyncClient,
    url: str,
    timeout: float,
    read_body: Optional[BodyFilter],
    max_bytes: Optional[int],
    truncate: bool,
) -> httpx.Response:
    async with client.stream("GET", url, timeout=httpx.Timeout(timeout)) as response:
        if read_body is not None and not read_body(response):
            return response

        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if max_bytes is not None and len(body) > max_bytes:
                if not truncate:
                    raise FetchError(f"Body of '{url}' exceeds {max_bytes} bytes")
                del body[max_bytes:]
                break

    headers = [
        (name, value)
        for name, value in response.headers.multi_items()
        if name.lower() not in _DECODED_HEADERS
    ]
    return httpx.Response(
        response.status_code,
        headers=headers,
        content=bytes(body),
        request=response.request,
    )


async def fetch_with_timeout(
    url: str,
    timeout: float,
    *,
    read_body: Optional[BodyFilter] = None,
    max_bytes: Optional[int] = None,
    truncate: bool = False,
) -> httpx.Response:
    """GET *url* and return the response, or raise :class:`FetchError`.

    *timeout* (seconds) bounds the whole call, redirects included.  When it
    fires the in-flight request is cancelled.  DNS failures, refused
    connections, malformed URLs and timeouts all surface as ``FetchError``
    because callers treat them identically.

    The body is streamed.  When *read_body* rejects the response headers the
    body is never downloaded and the returned response is unread.  At most
    *max_bytes* are buffered: beyond that the download is abandoned with a
    ``FetchError``, or, with *truncate*, the body is cut at the limit.
    """
    client = get_http_client()
    try:
        return await asyncio.wait_for(
            _read_limited(client, url, timeout, read_body, max_bytes, truncate),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise FetchError(f"Timed out after {timeout}s fetching '{url}'") from exc
    except httpx.InvalidURL as exc:
        raise FetchError(f"Invalid URL '{url}': {exc}") from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"Request error for '{url}': {exc}") from exc


def looks_like_challenge(response: httpx.Response) -> bool:
    """Detect a CDN bot-challenge page served in place of real content."""
    if response.status_code != 403:
        return False
    mitigated = response.headers.get("cf-mitigated", "")
    if "challenge" in mitigated.lower():
        return True
    return "cloudflare" in response.headers.get("server", "").lower()
