from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.router import router
from app.core.config import settings
from app.core.database import db
from app.repositories.favicon.cache import MongoResponseCache
from app.repositories.favicon.meta import MongoMetaStore
from app.workers.fetcher import close_http_client

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure the ``app`` logger namespace.

    ``logging.basicConfig`` is a no-op when the root logger already has
    handlers (e.g. when uvicorn sets up its own handlers before our lifespan
    runs).  Configuring the ``app`` namespace directly — with
    ``propagate = False`` — ensures all application logs reach stdout
    regardless of uvicorn's root-logger setup.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    app_log = logging.getLogger("app")
    app_log.setLevel(level)
    if not app_log.handlers:
        app_log.addHandler(handler)
    app_log.propagate = False


_configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # ── Startup ──────────────────────────────────────────────────────
    if not settings.api_key:
        logger.warning("API_KEY is not set; POST /refresh is open to anyone.")
    if settings.store_backend == "mongo":
        await db.connect()
        await MongoMetaStore.from_db(db).ensure_indexes()
        await MongoResponseCache.from_db(db).ensure_indexes()
    else:
        logger.info("Using in-memory stores; cached icons are per process.")
    yield
    # ── Shutdown ─────────────────────────────────────────────────────
    await close_http_client()
    await db.disconnect()


app = FastAPI(
    title="Favicon Proxy",
    description="Resolves, validates and caches site favicons.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


@app.exception_handler(StarletteHTTPException)
async def plain_text_http_error(
    request: Request, exc: StarletteHTTPException
) -> PlainTextResponse:
    # Unknown routes and wrong methods on known routes both read as 404.
    if exc.status_code == 405:
        return PlainTextResponse("Not found", status_code=404)
    detail = exc.detail if exc.status_code != 404 else "Not found"
    return PlainTextResponse(str(detail), status_code=exc.status_code)


@app.get("/health", tags=["health"], response_class=PlainTextResponse)
async def health() -> str:
    return "OK"
