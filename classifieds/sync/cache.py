"""In-memory TTL cache for upstream taxonomy responses."""

from __future__ import annotations

import asyncio
import hashlib
import time
from collections.abc import Iterable
from typing import Any, Protocol

CATEGORIES_CACHE_KEY = "taxonomy:categories"
CATEGORY_FIELDS_CACHE_PREFIX = "taxonomy:category_fields:"


def categories_cache_key() -> str:
    return CATEGORIES_CACHE_KEY


def category_fields_cache_key(external_ids: Iterable[str]) -> str:
    """Key for a category-fields request; independent of id order and duplicates."""
    normalized = sorted({str(i) for i in external_ids})
    digest = hashlib.sha256(",".join(normalized).encode("utf-8")).hexdigest()
    return f"{CATEGORY_FIELDS_CACHE_PREFIX}{digest}"


class CacheBackend(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def put(self, key: str, value: Any, ttl_seconds: float) -> None: ...

    async def invalidate(self, key: str) -> None: ...

    async def invalidate_prefix(self, prefix: str) -> int: ...


class TTLCache:
    """Process-wide key/value store with per-entry expiry.

    Concurrent misses for the same key are not de-duplicated; both callers
    fetch and the last ``put`` wins.
    """

    def __init__(self, clock=time.monotonic) -> None:
        self._entries: dict[str, tuple[float, Any]] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    async def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        async with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, value)

    async def invalidate(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def invalidate_prefix(self, prefix: str) -> int:
        async with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for k in keys:
                del self._entries[k]
            return len(keys)


taxonomy_cache = TTLCache()
