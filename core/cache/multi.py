"""Ordered chain of cache layers with read-time promotion."""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.cache.interface import CacheError, CacheInterface
from models.cache_models import DEFAULT_TTL
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Sequence

__all__: list[str] = ["MultiCache"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class MultiCache(CacheInterface):
    """Cache composed of several layers ordered from fastest to slowest.

    A read tries each layer in order. When a slower layer hits, the value is copied into every
    faster layer with a zero TTL directive, so each of them applies its own default retention.
    Writes, clears and closes are attempted on every layer; if any layer fails, the error of the
    last failing layer is raised after all layers have been attempted.
    """

    def __init__(self, layers: Sequence[CacheInterface]) -> None:
        if not layers:
            msg = "MultiCache requires at least one layer"
            raise ValueError(msg)
        self._layers: tuple[CacheInterface, ...] = tuple(layers)

    @property
    def layers(self) -> tuple[CacheInterface, ...]:
        return self._layers

    async def get(self, key: str) -> str | None:
        """Read a key through the chain, promoting a hit into every faster layer.

        Args:
            key (str): Cache key.

        Returns:
            str | None: The value, or None if every layer missed.

        Raises:
            CacheError: If every layer missed or failed and the last layer failed.
        """
        last_error: CacheError | None = None

        for index, layer in enumerate(self._layers):
            try:
                value: str | None = await layer.get(key)
            except CacheError as err:
                logger.debug("Cache layer %s failed on get: %s", layer.name, err)
                last_error = err
                continue

            last_error = None
            if value is None:
                continue

            await self._promote(key, value, self._layers[:index])
            return value

        if last_error is not None:
            raise last_error
        return None

    async def _promote(self, key: str, value: str, faster_layers: Sequence[CacheInterface]) -> None:
        for layer in faster_layers:
            try:
                await layer.set(key, value, DEFAULT_TTL)
            except CacheError as err:
                logger.warning("Failed to promote key %s into %s: %s", key[:16], layer.name, err)

    async def set(self, key: str, value: str, ttl: float) -> None:
        last_error: CacheError | None = None
        for layer in self._layers:
            try:
                await layer.set(key, value, ttl)
            except CacheError as err:
                logger.warning("Cache layer %s failed on set: %s", layer.name, err)
                last_error = err
        if last_error is not None:
            raise last_error

    async def clear(self) -> None:
        last_error: CacheError | None = None
        for layer in self._layers:
            try:
                await layer.clear()
            except CacheError as err:
                logger.warning("Cache layer %s failed on clear: %s", layer.name, err)
                last_error = err
        if last_error is not None:
            raise last_error

    async def close(self) -> None:
        last_error: CacheError | None = None
        for layer in self._layers:
            try:
                await layer.close()
            except CacheError as err:
                logger.warning("Cache layer %s failed on close: %s", layer.name, err)
                last_error = err
        if last_error is not None:
            raise last_error
