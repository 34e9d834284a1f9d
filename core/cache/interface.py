"""This module defines the contract shared by every translation cache layer."""

from __future__ import annotations

from abc import ABC, abstractmethod

__all__: list[str] = ["CacheError", "CacheInterface", "CacheUnavailableError"]


class CacheError(Exception):
    """An error occurred in a cache layer."""


class CacheUnavailableError(CacheError):
    """The cache layer could not serve the operation (backend down, layer closed, ...)."""


class CacheInterface(ABC):
    """Abstract base class for cache layers.

    Values are opaque strings. Every write carries a TTL directive in seconds:

    - negative: the entry never expires.
    - zero: the layer's configured default TTL applies.
    - positive: the entry expires after that many seconds.

    A layer's own default is itself either a duration or permanent.
    """

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Look up a key.

        Args:
            key (str): Cache key.

        Returns:
            str | None: The stored value, or None on a miss.

        Raises:
            CacheUnavailableError: If the layer failed to answer.
        """
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: str, ttl: float) -> None:
        """Store a value.

        Args:
            key (str): Cache key.
            value (str): Value to store. Replaces any previous value.
            ttl (float): TTL directive in seconds.

        Raises:
            CacheUnavailableError: If the layer failed to store the value.
        """
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry of the layer.

        Raises:
            CacheUnavailableError: If the layer failed to clear.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Release the layer's resources. Calling it more than once is allowed."""
        raise NotImplementedError
