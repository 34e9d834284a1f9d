"""Translation cache package.

Provides the cache layer contract, the in-memory and Redis layers, the multi-tier chain,
and construction of the configured chain.
"""

from __future__ import annotations

from core.cache.builder import build_cache
from core.cache.interface import CacheError, CacheInterface, CacheUnavailableError
from core.cache.memory import MemoryCache
from core.cache.multi import MultiCache
from core.cache.redis_cache import RedisCache

__all__: list[str] = [
    "CacheError",
    "CacheInterface",
    "CacheUnavailableError",
    "MemoryCache",
    "MultiCache",
    "RedisCache",
    "build_cache",
]
