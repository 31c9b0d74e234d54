from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel

from app.models.favicon.document import CachedResponse

_DEFAULT_PORTS = {"http": 80, "https": 443}


class SiteOrigin(BaseModel):
    """A validated ``scheme://host[:port]`` target for icon resolution.

    Built by ``app.api.favicon.routes.parse_site``; never persisted, only
    used to derive store keys and outbound URLs.
    """

    scheme: str
    hostname: str
    port: Optional[int] = None

    @property
    def origin(self) -> str:
        if self.port is None or self.port == _DEFAULT_PORTS.get(self.scheme):
            return f"{self.scheme}://{self.hostname}"
        return f"{self.scheme}://{self.hostname}:{self.port}"

    @property
    def meta_key(self) -> str:
        return f"meta:{self.origin}"

    def cache_key(self, base: str) -> str:
        """Synthetic request URL addressing this origin in the edge cache."""
        return f"{base.rstrip('/')}/cache?origin={quote(self.origin, safe='')}"


class IconFetchResult(BaseModel):
    """Outcome of the source fallback chain.

    ``resolved_source_url`` is ``None`` when the icon is the synthesized
    default, which must never be recorded as metadata.
    """

    response: CachedResponse
    resolved_source_url: Optional[str] = None
