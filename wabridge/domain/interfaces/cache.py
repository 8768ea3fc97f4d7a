"""Interface for caching mechanisms.

Two contracts live here:

* ``CacheBackend`` is a storage strategy (Redis, one-file-per-key). Backends
  are allowed to raise; they report failures the ordinary way.
* ``CacheService`` is what the rest of the application talks to. It never
  raises: a failed write is a no-op and a failed read is a miss.
"""

import abc
from enum import Enum
from typing import Any, Optional

from ..models.common import CacheKey

DEFAULT_TTL_SECONDS = 3600


class BackendKind(str, Enum):
    FILE = "file"
    REDIS = "redis"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BackendKind":
        """Maps a configured backend name onto a kind. Unknown names mean 'file'."""
        name = (value or "").strip().lower()
        if name in ("redis", "networked"):
            return cls.REDIS
        return cls.FILE


class CacheBackend(abc.ABC):
    """A single storage strategy. Exactly one is active per process."""

    kind: BackendKind

    @abc.abstractmethod
    async def get(self, key: CacheKey) -> Optional[Any]:
        """Returns the stored value, or None if there is no live entry.

        Raises:
            Exception: on any I/O or decoding failure other than a plain miss.
        """
        pass

    @abc.abstractmethod
    async def set(self, key: CacheKey, value: Any, ttl: int) -> None:
        """Stores ``value`` under ``key`` for ``ttl`` seconds, replacing any previous entry."""
        pass

    @abc.abstractmethod
    async def delete(self, key: CacheKey) -> None:
        """Removes ``key``. A missing entry is not an error."""
        pass

    async def close(self) -> None:
        """Releases any connection held by the backend."""
        pass


class CacheService(abc.ABC):
    """Abstract Base Class for caching operations."""

    @abc.abstractmethod
    async def get(self, key: CacheKey) -> Optional[Any]:
        """Retrieves an item from the cache asynchronously.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached item if found and not expired, otherwise None.
        """
        pass

    @abc.abstractmethod
    async def set(self, key: CacheKey, value: Any, ttl: int = DEFAULT_TTL_SECONDS) -> None:
        """Stores an item asynchronously.

        Args:
            key: The cache key to store the item under.
            value: The item to store. Must be JSON-serializable.
            ttl: Time-to-live in seconds.
        """
        pass

    @abc.abstractmethod
    async def delete(self, key: CacheKey) -> None:
        """Deletes an item asynchronously.

        Args:
            key: The cache key to delete.
        """
        pass

    async def has(self, key: CacheKey) -> bool:
        """True when ``get`` would return a value. Pays the full cost of ``get``."""
        return await self.get(key) is not None
