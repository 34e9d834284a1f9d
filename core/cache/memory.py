"""In-process translation cache layer with TTL expiry and a size bound."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from core.cache.interface import CacheInterface, CacheUnavailableError
from models.cache_models import is_permanent_ttl
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

__all__: list[str] = ["MemoryCache"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_MAX_SIZE: Final[int] = 10000
DEFAULT_MEMORY_TTL: Final[float] = 3600.0
SWEEP_INTERVAL: Final[float] = 60.0


@dataclass
class _MemoryItem:
    value: str
    expires_at: float | None  # None: never expires

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class MemoryCache(CacheInterface):
    """Cache layer backed by a dict inside the current process.

    Expired entries are removed lazily on `get` and by a background sweep that runs every
    ``sweep_interval`` seconds. When the cache holds ``max_size`` entries and a new key is written,
    one arbitrary entry (the oldest inserted key still present) is evicted. This is not LRU; the only
    guarantee is that the size never exceeds ``max_size``.

    The sweep task is started on construction when an event loop is running, otherwise on first use,
    and is stopped by `close`. A layer whose default TTL is permanent stores every entry permanently
    and runs no sweep.
    """

    def __init__(
        self,
        *,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: float = DEFAULT_MEMORY_TTL,
        sweep_interval: float = SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the memory cache.

        Args:
            max_size (int): Maximum number of entries. Non-positive values fall back to DEFAULT_MAX_SIZE.
            default_ttl (float): TTL in seconds applied to writes with a zero TTL directive.
                Negative means the layer is permanent. Zero falls back to DEFAULT_MEMORY_TTL.
            sweep_interval (float): Seconds between background sweeps. Non-positive disables the sweep.
            clock (Callable[[], float]): Monotonic clock in seconds.
        """
        self._max_size: int = max_size if max_size > 0 else DEFAULT_MAX_SIZE
        self._permanent: bool = is_permanent_ttl(default_ttl)
        self._default_ttl: float = default_ttl if default_ttl > 0 else DEFAULT_MEMORY_TTL
        self._sweep_interval: float = sweep_interval
        self._clock: Callable[[], float] = clock
        self._data: dict[str, _MemoryItem] = {}
        self._lock: asyncio.Lock = asyncio.Lock()
        self._stop_event: asyncio.Event = asyncio.Event()
        self._sweep_task: asyncio.Task[None] | None = None
        self._closed: bool = False

        self._ensure_sweeper()
        logger.debug(
            "MemoryCache created: max_size=%d, default_ttl=%s",
            self._max_size,
            "permanent" if self._permanent else self._default_ttl,
        )

    def __len__(self) -> int:
        return len(self._data)

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def default_ttl(self) -> float:
        """Default TTL in seconds, or a negative value if the layer is permanent."""
        return -1.0 if self._permanent else self._default_ttl

    def _ensure_sweeper(self) -> None:
        if self._sweep_task is not None or self._closed or self._permanent or self._sweep_interval <= 0:
            return
        try:
            loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        except RuntimeError:
            # Started on first use from within the loop.
            return
        self._sweep_task = loop.create_task(self._sweep_loop(), name="memory-cache-sweep")

    async def _sweep_loop(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._sweep_interval)
            except TimeoutError:
                removed: int = await self.remove_expired()
                if removed:
                    logger.debug("Swept %d expired cache entries", removed)
            else:
                return

    def _check_open(self) -> None:
        if self._closed:
            msg = "Memory cache is closed"
            raise CacheUnavailableError(msg)
        self._ensure_sweeper()

    def _expires_at(self, ttl: float) -> float | None:
        if self._permanent or is_permanent_ttl(ttl):
            return None
        duration: float = self._default_ttl if ttl == 0 else ttl
        return self._clock() + duration

    async def get(self, key: str) -> str | None:
        self._check_open()
        async with self._lock:
            item: _MemoryItem | None = self._data.get(key)
            if item is None:
                return None
            if item.is_expired(self._clock()):
                del self._data[key]
                return None
            return item.value

    async def set(self, key: str, value: str, ttl: float) -> None:
        self._check_open()
        async with self._lock:
            if key not in self._data and len(self._data) >= self._max_size:
                evicted: str = next(iter(self._data))
                del self._data[evicted]
                logger.debug("Memory cache full, evicted key: %s", evicted[:16])
            self._data[key] = _MemoryItem(value=value, expires_at=self._expires_at(ttl))

    async def remove_expired(self) -> int:
        """Remove every expired entry.

        Returns:
            int: Number of entries removed.
        """
        async with self._lock:
            now: float = self._clock()
            expired: list[str] = [key for key, item in self._data.items() if item.is_expired(now)]
            for key in expired:
                del self._data[key]
            return len(expired)

    async def clear(self) -> None:
        self._check_open()
        async with self._lock:
            self._data.clear()

    async def close(self) -> None:
        """Stop the sweep task and drop all entries.

        The stop signal is sent once. Later calls return immediately.
        """
        if self._closed:
            return
        self._closed = True
        self._stop_event.set()
        if self._sweep_task is not None:
            await self._sweep_task
            self._sweep_task = None
        async with self._lock:
            self._data.clear()
        logger.debug("MemoryCache closed")
