"""Abstract base class for cache service providers.

Defines the key-value contract behind the chunking cache.  The in-memory
``cachetools`` implementation bounds memory with capacity and TTL; a
network-backed store can be swapped in without touching the chunker.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for key-value cache services.

    All operations are async to allow for network-backed stores (e.g. Redis)
    without blocking the event loop.  Stored values are treated as
    immutable once written.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Retrieve the value stored under *key*.

        Parameters
        ----------
        key:
            The cache key to look up.

        Returns
        -------
        Any or None
            The cached value if present and not expired; ``None`` otherwise.
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key* with an optional time-to-live.

        Parameters
        ----------
        key:
            The cache key.
        value:
            The value to store.
        ttl:
            Time-to-live in seconds.  ``None`` uses the provider default.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the entry stored under *key* (no-op if absent)."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present in the cache and not expired."""
