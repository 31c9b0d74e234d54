"""Integration tests.

These tests exercise the full request → service → workers → store pipeline.

What is mocked:
  - Both stores replaced with the in-memory implementations (no MongoDB)
  - External HTTP calls mocked per-test with respx; any unmocked outbound
    request fails the test

What is NOT mocked (runs real code):
  - FastAPI routes, dependency injection, background tasks
  - FaviconService lookup order and normalization
  - Discovery chain, image validation, source fallback, bounded fetcher
"""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

import app.workers.fetcher as fetcher_module
from app.api.favicon.routes import _get_service
from app.core.config import settings
from app.main import app
from app.models.favicon.document import FaviconMeta
from app.repositories.favicon.cache import MemoryResponseCache
from app.repositories.favicon.meta import MemoryMetaStore
from app.services.favicon.service import FaviconService

_ORIGIN = "https://example.com"
_FAVICON = f"{_ORIGIN}/favicon.ico"
_DDG = "https://icons.duckduckgo.com/ip3/example.com.ico"
_ICO = b"\x00\x00\x01\x00fake-ico"


def _image(body: bytes = _ICO, content_type: str = "image/x-icon") -> httpx.Response:
    return httpx.Response(200, headers={"content-type": content_type}, content=body)


def _challenge() -> httpx.Response:
    return httpx.Response(
        403, headers={"cf-mitigated": "challenge"}, text="Just a moment..."
    )


@pytest.fixture
def stores():
    return MemoryMetaStore(), MemoryResponseCache()


@pytest.fixture
def integration_client(stores):
    """Full-stack client with in-memory stores and no real HTTP traffic.

    The httpx client is reset before and after each test so that
    respx can intercept the freshly-created client for that test.
    """
    fetcher_module._http_client = None
    app.dependency_overrides[_get_service] = lambda: FaviconService(*stores)

    with (
        patch.object(settings, "store_backend", "memory"),
        patch.object(settings, "source_order", "discovery_first"),
        patch.object(settings, "api_key", None),
    ):
        with TestClient(app) as client:
            yield client

    app.dependency_overrides.clear()
    fetcher_module._http_client = None


# ── Discovery ─────────────────────────────────────────────────────────────────

class TestIntegrationDiscovery:
    def test_favicon_ico_short_circuits_discovery(self, integration_client, stores):
        with respx.mock(assert_all_called=False) as mock:
            ico = mock.get(_FAVICON).mock(return_value=_image())
            page = mock.get(f"{_ORIGIN}/").mock(return_value=httpx.Response(200))

            resp = integration_client.get("/ico", params={"url": f"{_ORIGIN}/a/b?c=d"})

        assert resp.status_code == 200
        assert resp.content == _ICO
        assert resp.headers["content-type"] == "image/x-icon"
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["cache-control"] == settings.cache_control
        assert ico.called
        assert page.call_count == 0

    def test_link_tag_icon_is_served_and_recorded(self, integration_client, stores):
        html = '<html><head><link rel="shortcut icon" href="/static/icon.png"></head></html>'
        with respx.mock as mock:
            mock.get(_FAVICON).mock(return_value=httpx.Response(404, text="nope"))
            mock.get(f"{_ORIGIN}/").mock(return_value=httpx.Response(200, html=html))
            mock.get(f"{_ORIGIN}/static/icon.png").mock(
                return_value=_image(b"png-bytes", "image/png")
            )

            resp = integration_client.get("/ico", params={"domain": "example.com"})

        assert resp.status_code == 200
        assert resp.content == b"png-bytes"

        meta_store, _ = stores
        meta = asyncio.run(meta_store.get(f"meta:{_ORIGIN}"))
        assert meta.icon_url == f"{_ORIGIN}/static/icon.png"

    def test_challenge_pages_fall_through_to_icon_service(self, integration_client):
        with respx.mock as mock:
            mock.get(_FAVICON).mock(return_value=_challenge())
            mock.get(f"{_ORIGIN}/").mock(return_value=_challenge())
            mock.get(_DDG).mock(return_value=_image(b"ddg-icon"))

            resp = integration_client.get("/ico", params={"domain": "example.com"})

        assert resp.status_code == 200
        assert resp.content == b"ddg-icon"

    def test_everything_failing_yields_default_badge(self, integration_client, stores):
        with respx.mock as mock:
            mock.get(_FAVICON).mock(side_effect=httpx.ConnectError("refused"))
            mock.get(_DDG).mock(return_value=httpx.Response(404))
            mock.get(host="www.google.com", path="/s2/favicons").mock(
                return_value=httpx.Response(200, text="<html>not an image</html>")
            )

            resp = integration_client.get("/ico", params={"domain": "example.com"})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("image/svg+xml")
        assert b">E</text>" in resp.content

        meta_store, _ = stores
        assert asyncio.run(meta_store.get(f"meta:{_ORIGIN}")) is None

    def test_oversized_icon_is_rejected(self, integration_client):
        with respx.mock as mock:
            mock.get(_FAVICON).mock(
                return_value=httpx.Response(
                    200,
                    headers={"content-type": "image/png", "content-length": "900000"},
                    content=b"x",
                )
            )
            mock.get(_DDG).mock(return_value=_image(b"small"))

            resp = integration_client.get("/ico", params={"domain": "example.com"})

        assert resp.content == b"small"

    def test_unsafe_host_makes_no_outbound_call(self, integration_client):
        with respx.mock(assert_all_called=False) as mock:
            route = mock.route().mock(return_value=_image())
            resp = integration_client.get("/ico", params={"url": "http://169.254.169.254/"})
        assert resp.status_code == 400
        assert route.call_count == 0


# ── Caching ───────────────────────────────────────────────────────────────────

class TestIntegrationCaching:
    def test_warm_cache_is_idempotent_and_offline(self, integration_client):
        with respx.mock as mock:
            ico = mock.get(_FAVICON).mock(return_value=_image())

            first = integration_client.get("/ico", params={"domain": "example.com"})
            calls_after_first = ico.call_count
            second = integration_client.get(
                "/ico", params={"url": "https://example.com/other/page"}
            )

        assert first.status_code == second.status_code == 200
        assert first.content == second.content
        assert first.headers["content-type"] == second.headers["content-type"]
        assert ico.call_count == calls_after_first

    def test_metadata_hint_skips_discovery(self, integration_client, stores):
        meta_store, _ = stores
        asyncio.run(
            meta_store.put(
                f"meta:{_ORIGIN}",
                FaviconMeta(icon_url=f"{_ORIGIN}/brand/logo.svg", updated_at=1),
                60,
            )
        )
        with respx.mock as mock:
            logo = mock.get(f"{_ORIGIN}/brand/logo.svg").mock(
                return_value=_image(b"<svg/>", "image/svg+xml")
            )
            resp = integration_client.get("/ico", params={"domain": "example.com"})

        assert resp.content == b"<svg/>"
        assert logo.call_count == 1

    def test_refresh_invalidates_cached_response(self, integration_client):
        with respx.mock as mock:
            ico = mock.get(_FAVICON).mock(return_value=_image(b"marker-A"))

            before = integration_client.get("/ico", params={"domain": "example.com"})
            ico.mock(return_value=_image(b"marker-B"))
            still_cached = integration_client.get("/ico", params={"domain": "example.com"})

            refresh = integration_client.post("/refresh", params={"domain": "example.com"})
            after = integration_client.get("/ico", params={"domain": "example.com"})

        assert before.content == b"marker-A"
        assert still_cached.content == b"marker-A"
        assert refresh.status_code == 200
        assert after.content == b"marker-B"

    def test_refresh_requires_configured_key(self, integration_client):
        with patch.object(settings, "api_key", "s3cret"):
            denied = integration_client.post("/refresh", params={"domain": "example.com"})
            allowed = integration_client.post(
                "/refresh",
                params={"domain": "example.com"},
                headers={"x-api-key": "s3cret"},
            )
        assert denied.status_code == 401
        assert allowed.status_code == 200
