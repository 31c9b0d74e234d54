"""Locate a site's own favicon URL.

The common case, a site serving ``/favicon.ico``, costs a single request.
Otherwise the root page is fetched and scanned for a ``<link rel="...icon...">``
tag.  Whatever happens, a URL is returned: the conventional ``/favicon.ico``
path is the terminal fallback.
"""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import urljoin, urlsplit

import httpx

from app.core.config import settings
from app.core.safety import is_safe_hostname
from app.workers.fetcher import (
    FetchError,
    fetch_with_timeout,
    looks_like_challenge,
    skip_body,
)

logger = logging.getLogger(__name__)

_LINK_TAG_RE = re.compile(r"<link[^>]+>", re.IGNORECASE)
_REL_RE = re.compile(r"""\brel\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
_HREF_RE = re.compile(r"""\bhref\s*=\s*["']([^"']+)["']""", re.IGNORECASE)


def parse_icon_href(html: str) -> Optional[str]:
    """Return the ``href`` of the first ``<link>`` whose ``rel`` mentions an icon."""
    for tag in _LINK_TAG_RE.findall(html):
        rel = _REL_RE.search(tag)
        if rel is None or "icon" not in rel.group(1).lower():
            continue
        href = _HREF_RE.search(tag)
        if href is None:
            continue
        return href.group(1)
    return None


def _resolve_href(origin: str, href: str) -> Optional[str]:
    try:
        resolved = urljoin(origin + "/", href.strip())
        parts = urlsplit(resolved)
        hostname = parts.hostname or ""
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not is_safe_hostname(hostname):
        return None
    return resolved


def _is_usable_page(response: httpx.Response) -> bool:
    return response.is_success and not looks_like_challenge(response)


async def discover_favicon_url(origin: str) -> str:
    """Return the best-guess icon URL for *origin*.  Never raises."""
    favicon_ico = f"{origin}/favicon.ico"

    try:
        probe = await fetch_with_timeout(
            favicon_ico, settings.probe_timeout, read_body=skip_body
        )
    except FetchError as exc:
        # An origin that cannot serve /favicon.ico will not serve HTML either.
        logger.debug("Favicon probe failed for %s: %s", origin, exc)
        return favicon_ico
    if probe.is_success and not looks_like_challenge(probe):
        return favicon_ico

    try:
        page = await fetch_with_timeout(
            f"{origin}/",
            settings.page_timeout,
            read_body=_is_usable_page,
            max_bytes=settings.max_page_bytes,
            truncate=True,
        )
    except FetchError as exc:
        logger.debug("Root page fetch failed for %s: %s", origin, exc)
        return favicon_ico
    if not page.is_success or looks_like_challenge(page):
        return favicon_ico

    href = parse_icon_href(page.text)
    if href is None:
        return favicon_ico

    resolved = _resolve_href(origin, href)
    if resolved is None:
        logger.debug("Discarding icon href %r found on %s", href, origin)
        return favicon_ico
    return resolved
