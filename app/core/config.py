from __future__ import annotations

from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "favicon_proxy"
    mongo_max_pool_size: int = 10
    mongo_connect_retries: int = 3

    # Stores: "mongo" persists both caches, "memory" keeps them per process
    store_backend: Literal["mongo", "memory"] = "mongo"
    meta_ttl_seconds: int = 86400
    response_cache_ttl_seconds: int = 2592000
    cache_key_base: str = "https://favicon-proxy.invalid"
    # Per-layer entry cap for the memory backend
    memory_store_max_entries: int = 10_000

    # Serving
    api_key: Optional[str] = None
    require_same_origin: bool = False
    cache_control: str = (
        "public, max-age=604800, s-maxage=2592000, stale-while-revalidate=86400"
    )

    # Icon sources
    source_order: Literal["discovery_first", "services_first"] = "discovery_first"
    max_icon_bytes: int = 500_000
    # Icon links live in <head>; the rest of a large page is not read
    max_page_bytes: int = 1_000_000

    # HTTP fetcher (seconds per hop)
    probe_timeout: float = 8.0
    page_timeout: float = 9.0
    image_timeout: float = 9.0
    service_timeout: float = 8.0
    # Services tried ahead of discovery get a shorter budget
    services_first_timeout: float = 7.0
    http_user_agent: str = "Mozilla/5.0 (compatible; favicon-proxy/1.0)"
    http_verify_ssl: bool = True  # set False behind corporate SSL-inspection proxies

    # Logging
    log_level: str = "INFO"


settings = Settings()
