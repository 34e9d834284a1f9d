"""Redis-backed translation cache layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from redis.asyncio import Redis
from redis.exceptions import RedisError

from core.cache.interface import CacheInterface, CacheUnavailableError
from models.cache_models import is_permanent_ttl
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

__all__: list[str] = ["RedisCache"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_REDIS_TTL: Final[float] = 24 * 3600.0


class RedisCache(CacheInterface):
    """Cache layer stored in a Redis database.

    Expiry is delegated to Redis. A permanent TTL stores the key without expiry.
    `clear` flushes the whole selected database, so the database should be dedicated to the gateway.
    """

    def __init__(
        self,
        *,
        host: str = "localhost",
        port: int = 6379,
        password: str = "",
        db: int = 0,
        default_ttl: float = DEFAULT_REDIS_TTL,
        client: Redis | None = None,
    ) -> None:
        """Initialize the Redis cache.

        No connection is opened until the first command.

        Args:
            host (str): Redis host.
            port (int): Redis port.
            password (str): Redis password. Empty for none.
            db (int): Database number.
            default_ttl (float): TTL in seconds for writes with a zero TTL directive.
                Negative means the layer is permanent. Zero falls back to DEFAULT_REDIS_TTL.
            client (Redis | None): Pre-built client, used instead of host/port/password/db.
        """
        self._permanent: bool = is_permanent_ttl(default_ttl)
        self._default_ttl: float = default_ttl if default_ttl > 0 else DEFAULT_REDIS_TTL
        self._client: Redis = client if client is not None else Redis(
            host=host,
            port=port,
            password=password or None,
            db=db,
            decode_responses=True,
        )
        self._closed: bool = False
        logger.debug("RedisCache created: %s:%s db=%s", host, port, db)

    @property
    def default_ttl(self) -> float:
        return -1.0 if self._permanent else self._default_ttl

    def _expiry_ms(self, ttl: float) -> int | None:
        """Return the expiry in milliseconds for a TTL directive, or None for no expiry."""
        if self._permanent or is_permanent_ttl(ttl):
            return None
        duration: float = self._default_ttl if ttl == 0 else ttl
        return max(1, int(duration * 1000))

    async def get(self, key: str) -> str | None:
        try:
            value: str | None = await self._client.get(key)
        except RedisError as err:
            msg = f"Redis GET failed: {err}"
            raise CacheUnavailableError(msg) from err
        return value

    async def set(self, key: str, value: str, ttl: float) -> None:
        try:
            await self._client.set(key, value, px=self._expiry_ms(ttl))
        except RedisError as err:
            msg = f"Redis SET failed: {err}"
            raise CacheUnavailableError(msg) from err

    async def clear(self) -> None:
        try:
            await self._client.flushdb()
        except RedisError as err:
            msg = f"Redis FLUSHDB failed: {err}"
            raise CacheUnavailableError(msg) from err

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._client.aclose()
        except RedisError as err:
            msg = f"Failed to close Redis client: {err}"
            raise CacheUnavailableError(msg) from err
        logger.debug("RedisCache closed")
