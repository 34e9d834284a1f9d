"""Construction of the cache chain from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from core.cache.memory import MemoryCache
from core.cache.multi import MultiCache
from core.cache.redis_cache import RedisCache
from core.trans.interface import GatewayConfigError
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.cache.interface import CacheInterface
    from models.config_models import Config

__all__: list[str] = ["CACHE_TYPES", "build_cache"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


def _build_memory(config: Config) -> CacheInterface:
    return MemoryCache(max_size=config.MEMORY_CACHE.MAX_SIZE, default_ttl=config.MEMORY_CACHE.TTL)


def _build_redis(config: Config) -> CacheInterface:
    return RedisCache(
        host=config.REDIS_CACHE.HOST,
        port=config.REDIS_CACHE.PORT,
        password=config.REDIS_CACHE.PASSWORD,
        db=config.REDIS_CACHE.DB,
        default_ttl=config.REDIS_CACHE.TTL,
    )


CACHE_TYPES: Final[dict[str, Callable[[Config], CacheInterface]]] = {
    "memory": _build_memory,
    "redis": _build_redis,
}


def build_cache(config: Config) -> CacheInterface | None:
    """Build the cache configured in the CACHE section.

    Layers are created in the order listed in ``CACHE.TYPES``, which must be fastest first.
    A single layer is returned as-is; several layers are chained in a MultiCache.

    Args:
        config (Config): Gateway configuration.

    Returns:
        CacheInterface | None: The cache, or None if caching is disabled.

    Raises:
        GatewayConfigError: If caching is enabled without types, or a type is unknown.
    """
    if not config.CACHE.ENABLED:
        logger.info("Translation cache is disabled")
        return None

    types: list[str] = [str(cache_type).strip().lower() for cache_type in config.CACHE.TYPES]
    if not types:
        msg = "Cache is enabled but no cache types are configured"
        raise GatewayConfigError(msg)

    unknown: list[str] = [cache_type for cache_type in types if cache_type not in CACHE_TYPES]
    if unknown:
        msg = f"Unknown cache type(s): {unknown}. Available types: {sorted(CACHE_TYPES)}"
        raise GatewayConfigError(msg)

    layers: list[CacheInterface] = [CACHE_TYPES[cache_type](config) for cache_type in types]
    logger.info("Translation cache layers: %s", types)
    if len(layers) == 1:
        return layers[0]
    return MultiCache(layers)
