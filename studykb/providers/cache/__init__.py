"""Cache provider adapters."""

from studykb.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
