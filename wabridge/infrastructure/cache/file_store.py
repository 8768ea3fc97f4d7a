"""One-file-per-key cache backend.

Each key maps to ``<cache_dir>/<quoted key>.json`` holding
``{"value": ..., "expires": <ms since epoch>}``. Expiry is enforced lazily:
a read that finds a stale record deletes the file and reports a miss.
There is no background sweep and no locking; writes go straight to the
target file, so concurrent writers to the same key race (last one wins).
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import quote

import aiofiles
import aiofiles.os

from wabridge.domain.interfaces.cache import BackendKind, CacheBackend
from wabridge.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

CACHE_FILE_SUFFIX = ".json"

Clock = Callable[[], float]


class DurableFileStore(CacheBackend):
    """Stores each entry as a small JSON document on local disk."""

    kind = BackendKind.FILE

    def __init__(self, cache_dir: Path, clock: Clock = time.time):
        """
        Args:
            cache_dir: Directory holding the cache files. Not created here; see ``ensure_directory``.
            clock: Returns the current time in seconds. Tests pass a fake one.
        """
        self.cache_dir = Path(cache_dir)
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def path_for(self, key: CacheKey) -> Path:
        """Deterministic, collision-free filename for ``key``."""
        return self.cache_dir / f"{quote(str(key), safe='')}{CACHE_FILE_SUFFIX}"

    async def ensure_directory(self) -> bool:
        """Creates the cache directory (and parents). Returns False if that failed."""
        try:
            await aiofiles.os.makedirs(self.cache_dir, exist_ok=True)
        except OSError as e:
            logger.error(f"File cache initialization failed for {self.cache_dir}: {e}")
            return False
        logger.info(f"File cache initialized at: {self.cache_dir}")
        return True

    async def get(self, key: CacheKey) -> Optional[Any]:
        path = self.path_for(key)
        try:
            async with aiofiles.open(path, mode='r', encoding='utf-8') as f:
                content = await f.read()
        except FileNotFoundError:
            return None

        record = json.loads(content)
        if not isinstance(record, dict) or "value" not in record:
            raise ValueError(f"Malformed cache record in {path}")

        expires = record.get("expires")
        if expires is not None and expires <= self._now_ms():
            logger.debug(f"File cache entry expired for key: {key}. Removing {path.name}.")
            await self.delete(key)
            return None
        return record["value"]

    async def set(self, key: CacheKey, value: Any, ttl: int) -> None:
        # Serialize before touching the file so a bad value leaves the old entry intact
        payload = json.dumps({"value": value, "expires": self._now_ms() + ttl * 1000}, indent=2)
        async with aiofiles.open(self.path_for(key), mode='w', encoding='utf-8') as f:
            await f.write(payload)

    async def delete(self, key: CacheKey) -> None:
        try:
            await aiofiles.os.remove(self.path_for(key))
        except FileNotFoundError:
            pass
