"""Redis-backed cache backend.

Values are stored as JSON text with the TTL handed to Redis (``SET ... EX``),
so expiry is entirely the server's job.
"""

import json
import logging
from typing import Any, Optional

from redis import asyncio as aioredis

from wabridge.domain.interfaces.cache import BackendKind, CacheBackend
from wabridge.domain.models.common import CacheKey

logger = logging.getLogger(__name__)


class NetworkedStore(CacheBackend):
    """Thin JSON layer over an already-connected ``redis.asyncio.Redis`` client."""

    kind = BackendKind.REDIS

    def __init__(self, client: aioredis.Redis):
        self._client = client

    @classmethod
    async def connect(cls, url: str, connect_timeout: float = 5.0) -> "NetworkedStore":
        """Builds a client for ``url`` and proves it works with a PING.

        Raises:
            ValueError: if the URL is malformed.
            redis.exceptions.RedisError / OSError: if the server cannot be reached.
        """
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=connect_timeout,
            socket_timeout=connect_timeout,
        )
        try:
            await client.ping()
        except Exception:
            await client.aclose()
            raise
        logger.info("Redis connected successfully")
        return cls(client)

    async def get(self, key: CacheKey) -> Optional[Any]:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: CacheKey, value: Any, ttl: int) -> None:
        await self._client.set(key, json.dumps(value), ex=ttl)

    async def delete(self, key: CacheKey) -> None:
        await self._client.delete(key)

    async def close(self) -> None:
        await self._client.aclose()
