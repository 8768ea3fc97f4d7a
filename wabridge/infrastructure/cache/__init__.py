"""Caching Service Implementation.

Provides the CacheService used across the app, with two interchangeable
backends (Redis, one-file-per-key JSON) and TTL expiry.
Bounded Context: Cache Management
"""

from wabridge.infrastructure.cache.cache_manager import CacheManager
from wabridge.infrastructure.cache.file_store import DurableFileStore
from wabridge.infrastructure.cache.redis_store import NetworkedStore

__all__ = ["CacheManager", "DurableFileStore", "NetworkedStore"]
