from __future__ import annotations

import time
from typing import Generic, Optional, TypeVar

V = TypeVar("V")


class ExpiringStore(Generic[V]):
    """Bounded dict whose entries expire after a per-entry TTL.

    Expired entries are swept whenever a write finds the store full; if it
    is still full after the sweep, the oldest insertions are evicted.
    """

    def __init__(self, max_entries: int) -> None:
        self.max_entries = max(1, max_entries)
        self._items: dict[str, tuple[V, float]] = {}

    def __len__(self) -> int:
        return len(self._items)

    def get(self, key: str) -> Optional[V]:
        item = self._items.get(key)
        if item is None:
            return None
        value, expires_at = item
        if time.time() >= expires_at:
            self._items.pop(key, None)
            return None
        return value

    def put(self, key: str, value: V, ttl_seconds: int) -> None:
        # Re-inserting moves the key to the end of the eviction order.
        self._items.pop(key, None)
        if len(self._items) >= self.max_entries:
            self._expire()
        while len(self._items) >= self.max_entries:
            self._items.pop(next(iter(self._items)))
        self._items[key] = (value, time.time() + ttl_seconds)

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def _expire(self) -> None:
        now = time.time()
        for key in [k for k, (_, expires_at) in self._items.items() if now >= expires_at]:
            del self._items[key]
