"""Concrete implementation of the CacheService.

``CacheManager.create`` picks the backend once at startup: Redis when it is
configured and reachable, the file store otherwise. The chosen backend is
fixed for the life of the manager. Every operation goes through
``_attempt`` (backend call -> OperationResult) and ``_settle`` (log the
error, hand back the value or None), so callers never see an exception
from the cache; a failed write behaves like a later miss.
"""

import logging
import time
from typing import Any, Awaitable, Optional

from wabridge.domain.interfaces.cache import (
    DEFAULT_TTL_SECONDS,
    BackendKind,
    CacheBackend,
    CacheService,
)
from wabridge.domain.models.common import CacheKey, OperationResult
from wabridge.infrastructure.cache.file_store import Clock, DurableFileStore
from wabridge.infrastructure.cache.redis_store import NetworkedStore
from wabridge.infrastructure.config.settings import CacheSettings

logger = logging.getLogger(__name__)


class CacheManager(CacheService):
    """Process-wide key-value cache with TTL expiry over a single resolved backend."""

    def __init__(self, backend: CacheBackend):
        self._backend = backend

    @classmethod
    async def create(cls, settings: CacheSettings, clock: Clock = time.time) -> "CacheManager":
        """Resolves the backend from ``settings`` and returns a ready manager.

        A Redis connection failure is logged and permanently downgrades this
        manager to the file store. Failure to create the cache directory is
        logged too; individual operations will then fail (quietly) instead.
        """
        backend: Optional[CacheBackend] = None

        if BackendKind.parse(settings.backend) is BackendKind.REDIS:
            try:
                backend = await NetworkedStore.connect(settings.redis_url, settings.connect_timeout)
            except Exception as e:
                logger.error(f"Redis connection failed, falling back to file cache: {e}")

        if backend is None:
            file_store = DurableFileStore(settings.cache_dir, clock=clock)
            await file_store.ensure_directory()
            backend = file_store

        logger.info(f"Cache backend selected: {backend.kind.value}")
        return cls(backend)

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    @property
    def backend_kind(self) -> BackendKind:
        return self._backend.kind

    async def _attempt(self, operation: Awaitable[Any]) -> OperationResult:
        try:
            return OperationResult.success(await operation)
        except Exception as e:
            return OperationResult.failure(e)

    def _settle(self, result: OperationResult, action: str, key: CacheKey) -> Optional[Any]:
        if not result.ok:
            logger.error(f"Cache {action} error for key {key}: {result.error!r}")
            return None
        return result.value

    def _check_key(self, key: CacheKey, action: str) -> bool:
        if not isinstance(key, str) or not key:
            logger.error(f"Cache {action} called with an invalid key: {key!r}")
            return False
        return True

    async def get(self, key: CacheKey) -> Optional[Any]:
        if not self._check_key(key, "get"):
            return None
        value = self._settle(await self._attempt(self._backend.get(key)), "get", key)
        logger.debug(f"Cache {'hit' if value is not None else 'miss'}: {key}")
        return value

    async def set(self, key: CacheKey, value: Any, ttl: int = DEFAULT_TTL_SECONDS) -> None:
        if not self._check_key(key, "set"):
            return
        if not isinstance(ttl, int) or isinstance(ttl, bool) or ttl <= 0:
            logger.error(f"Cache set error for key {key}: ttl must be a positive integer, got {ttl!r}")
            return
        result = await self._attempt(self._backend.set(key, value, ttl))
        self._settle(result, "set", key)
        if result.ok:
            logger.debug(f"Cache set: {key} (ttl={ttl}s)")

    async def delete(self, key: CacheKey) -> None:
        if not self._check_key(key, "delete"):
            return
        result = await self._attempt(self._backend.delete(key))
        self._settle(result, "delete", key)
        if result.ok:
            logger.debug(f"Cache deleted: {key}")

    async def close(self) -> None:
        self._settle(await self._attempt(self._backend.close()), "close", CacheKey("*"))
