from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class FaviconMeta(BaseModel):
    """Which icon URL last resolved for an origin, and when.

    Serialized with camelCase aliases (``iconUrl`` / ``updatedAt``) so the
    stored JSON matches the layout other clients of the store expect.
    ``updated_at`` is epoch milliseconds.
    """

    model_config = ConfigDict(populate_by_name=True)

    icon_url: str = Field(alias="iconUrl")
    updated_at: int = Field(alias="updatedAt")


class CachedResponse(BaseModel):
    """A complete HTTP response: status, headers and body bytes.

    Used for the edge cache entries and for icons in flight between the
    orchestrator and the serving layer.
    """

    status_code: int = 200
    headers: dict[str, str]
    body: bytes
