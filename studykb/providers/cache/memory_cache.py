"""In-memory cache provider using cachetools.TTLCache.

Backs the chunking cache.  Capacity and TTL bound memory growth: entries
are evicted least-recently-used once ``max_size`` is reached and expire
after ``ttl`` seconds.  Swap for a shared backend via ICacheProvider.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from cachetools import TTLCache

from studykb.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by ``cachetools.TTLCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Time-to-live in seconds for cache entries.
    """

    def __init__(self, max_size: int = 1000, ttl: int = 86400) -> None:
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl)
        # TTLCache is not thread-safe; all access goes through this lock.
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        async with self._lock:
            value = self._cache.get(key)
        if value is not None:
            logger.debug("cache_hit", key=key)
        else:
            logger.debug("cache_miss", key=key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*.

        ``TTLCache`` applies one TTL to every entry, so a per-item *ttl*
        is ignored.
        """
        async with self._lock:
            self._cache[key] = value
        logger.debug("cache_set", key=key, size=len(self._cache))

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (no-op if absent)."""
        async with self._lock:
            self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""
        async with self._lock:
            return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)
