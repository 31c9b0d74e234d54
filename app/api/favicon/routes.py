from __future__ import annotations

import logging
import secrets
from typing import Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response

from app.core.config import settings
from app.core.safety import is_safe_hostname
from app.models.favicon.schemas import SiteOrigin
from app.repositories.favicon.factory import build_stores
from app.services.favicon.service import FaviconService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["favicon"])


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------


def _get_service() -> FaviconService:
    """FastAPI dependency that builds a ``FaviconService`` for each request."""
    return FaviconService(*build_stores())


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


def parse_site(url: Optional[str], domain: Optional[str]) -> SiteOrigin:
    """Turn the ``url`` / ``domain`` query parameters into a safe ``SiteOrigin``.

    ``domain`` is a bare hostname and implies ``https``.  Raises
    ``HTTPException(400)`` for missing, malformed, non-http(s) or unsafe
    input; nothing here touches the network.
    """
    if url:
        raw = url.strip()
    elif domain:
        raw = f"https://{domain.strip()}"
    else:
        raise HTTPException(status_code=400, detail="Missing url")

    try:
        parts = urlsplit(raw)
        hostname = parts.hostname or ""
        port = parts.port
        if hostname and not hostname.isascii():
            hostname = hostname.encode("idna").decode("ascii")
    except (ValueError, UnicodeError):
        raise HTTPException(status_code=400, detail="Invalid url")

    scheme = parts.scheme.lower()
    if not scheme:
        raise HTTPException(status_code=400, detail="Invalid url")
    if scheme not in ("http", "https"):
        raise HTTPException(status_code=400, detail="Invalid protocol")
    if not hostname:
        raise HTTPException(status_code=400, detail="Invalid url")
    if not is_safe_hostname(hostname):
        raise HTTPException(status_code=400, detail="Invalid hostname")

    return SiteOrigin(scheme=scheme, hostname=hostname, port=port)


def _is_same_origin(request: Request) -> bool:
    """True when ``Origin`` (or else ``Referer``) names this server's host."""
    expected = request.url.hostname
    candidate = request.headers.get("origin") or request.headers.get("referer")
    if not candidate:
        return False
    try:
        return urlsplit(candidate).hostname == expected
    except ValueError:
        return False


def _check_api_key(provided: Optional[str]) -> bool:
    expected = settings.api_key
    if not expected:
        return True
    if provided is None:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())


# ---------------------------------------------------------------------------
# GET /ico
# ---------------------------------------------------------------------------


@router.get(
    "/ico",
    response_class=Response,
    responses={
        200: {"content": {"image/*": {}}, "description": "The resolved icon"},
        400: {"description": "Missing, malformed or unsafe site"},
        403: {"description": "Cross-origin request (same-origin mode only)"},
    },
    summary="Resolve the favicon for a site",
)
async def get_icon(
    request: Request,
    background_tasks: BackgroundTasks,
    url: Optional[str] = None,
    domain: Optional[str] = None,
    service: FaviconService = Depends(_get_service),
) -> Response:
    """Return an icon for the site named by ``url`` or ``domain``.

    Always answers **200** with an image for valid input; when no real icon
    can be found the body is a generated letter badge.  Cache and metadata
    writes run after the response is sent.
    """
    if settings.require_same_origin and not _is_same_origin(request):
        logger.warning(
            "Rejected cross-origin icon request: origin=%s referer=%s",
            request.headers.get("origin"),
            request.headers.get("referer"),
        )
        raise HTTPException(status_code=403, detail="Forbidden")

    site = parse_site(url, domain)
    icon = await service.resolve(site, background_tasks.add_task)
    return Response(
        content=icon.body, status_code=icon.status_code, headers=icon.headers
    )


# ---------------------------------------------------------------------------
# POST /refresh
# ---------------------------------------------------------------------------


@router.post(
    "/refresh",
    response_class=PlainTextResponse,
    responses={401: {"description": "Bad or missing API key"}},
    summary="Drop the stored icon for a site",
)
async def refresh_icon(
    url: Optional[str] = None,
    domain: Optional[str] = None,
    x_api_key: Optional[str] = Header(default=None),
    service: FaviconService = Depends(_get_service),
) -> PlainTextResponse:
    """Delete the metadata and edge cache entries for the site's origin.

    - **200** — both entries cleared
    - **400** — missing, malformed or unsafe site
    - **401** — ``x-api-key`` does not match the configured key
    - **500** — store failure
    """
    if not _check_api_key(x_api_key):
        raise HTTPException(status_code=401, detail="Unauthorized")

    site = parse_site(url, domain)
    try:
        await service.refresh(site)
    except Exception as exc:
        logger.error("POST /refresh store error for %s: %s", site.origin, exc)
        raise HTTPException(status_code=500, detail="Storage error")
    return PlainTextResponse("OK")
