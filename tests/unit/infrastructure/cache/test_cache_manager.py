import logging
import pytest
from pathlib import Path
from unittest.mock import AsyncMock

from wabridge.domain.interfaces.cache import BackendKind
from wabridge.domain.models.common import CacheKey, SESSION_CACHE_KEY
from wabridge.infrastructure.cache.cache_manager import CacheManager
from wabridge.infrastructure.cache.file_store import DurableFileStore
from wabridge.infrastructure.cache.redis_store import NetworkedStore
from wabridge.infrastructure.config.settings import CacheSettings


# --- Round trip, expiry, overwrite ---

@pytest.mark.asyncio
async def test_set_then_get_returns_equal_value(file_cache: CacheManager):
    value = {"connected": True, "nested": [1, "two", None], "n": 1.5}
    await file_cache.set(CacheKey("k"), value, 60)
    assert await file_cache.get(CacheKey("k")) == value


@pytest.mark.asyncio
async def test_default_ttl_is_one_hour(file_cache: CacheManager, clock):
    await file_cache.set(CacheKey("k"), "v")
    clock.advance(3599)
    assert await file_cache.get(CacheKey("k")) == "v"
    clock.advance(1)
    assert await file_cache.get(CacheKey("k")) is None


@pytest.mark.asyncio
async def test_overwrite_replaces_value_and_ttl(file_cache: CacheManager, clock):
    await file_cache.set(CacheKey("k"), "first", 10)
    await file_cache.set(CacheKey("k"), "second", 100)

    clock.advance(50)
    assert await file_cache.get(CacheKey("k")) == "second"


@pytest.mark.asyncio
async def test_lazy_eviction_removes_stale_file(file_cache: CacheManager, clock, cache_dir: Path):
    await file_cache.set(CacheKey("k"), "v", 1)
    clock.advance(2)

    assert (cache_dir / "k.json").exists()
    assert await file_cache.get(CacheKey("k")) is None
    assert not (cache_dir / "k.json").exists()


# --- delete / has ---

@pytest.mark.asyncio
async def test_delete_then_get_is_a_miss(file_cache: CacheManager):
    await file_cache.set(CacheKey("k"), "v", 60)
    await file_cache.delete(CacheKey("k"))
    assert await file_cache.get(CacheKey("k")) is None


@pytest.mark.asyncio
async def test_delete_missing_key_is_quiet(file_cache: CacheManager, caplog):
    with caplog.at_level(logging.ERROR):
        await file_cache.delete(CacheKey("never-set"))
    assert not caplog.records


@pytest.mark.asyncio
async def test_has_tracks_get(file_cache: CacheManager, clock):
    assert await file_cache.has(CacheKey("k")) is False
    await file_cache.set(CacheKey("k"), 0, 5)
    assert await file_cache.has(CacheKey("k")) is True
    clock.advance(5)
    assert await file_cache.has(CacheKey("k")) is False


# --- Never raises ---

@pytest.mark.asyncio
async def test_unwritable_directory_degrades_to_misses(tmp_path: Path, caplog):
    blocker = tmp_path / "plain-file"
    blocker.write_text("x")
    cache = await CacheManager.create(CacheSettings(backend="file", cache_dir=blocker / "cache"))

    with caplog.at_level(logging.ERROR):
        await cache.set(CacheKey("k"), "v", 60)
        assert await cache.get(CacheKey("k")) is None
        await cache.delete(CacheKey("k"))
        assert await cache.has(CacheKey("k")) is False

    assert any("Cache set error for key k" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_corrupt_record_is_logged_miss(file_cache: CacheManager, cache_dir: Path, caplog):
    (cache_dir / "k.json").write_text("{broken", encoding="utf-8")
    with caplog.at_level(logging.ERROR):
        assert await file_cache.get(CacheKey("k")) is None
    assert any("Cache get error for key k" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_unserializable_value_is_logged_not_raised(file_cache: CacheManager, caplog):
    with caplog.at_level(logging.ERROR):
        await file_cache.set(CacheKey("k"), {1, 2, 3}, 60)
    assert await file_cache.get(CacheKey("k")) is None
    assert caplog.records


@pytest.mark.asyncio
@pytest.mark.parametrize("ttl", [0, -5, 1.5, True, "60"])
async def test_invalid_ttl_is_a_logged_noop(file_cache: CacheManager, cache_dir: Path, ttl, caplog):
    with caplog.at_level(logging.ERROR):
        await file_cache.set(CacheKey("k"), "v", ttl)
    assert not (cache_dir / "k.json").exists()
    assert caplog.records


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["", None, 42])
async def test_invalid_key_is_a_logged_noop(file_cache: CacheManager, key, caplog):
    with caplog.at_level(logging.ERROR):
        await file_cache.set(key, "v", 60)
        assert await file_cache.get(key) is None
        await file_cache.delete(key)
    assert len(caplog.records) == 3


@pytest.mark.asyncio
async def test_backend_exception_never_escapes():
    backend = AsyncMock(spec=DurableFileStore)
    backend.kind = BackendKind.FILE
    backend.get.side_effect = RuntimeError("disk on fire")
    backend.set.side_effect = RuntimeError("disk on fire")
    backend.delete.side_effect = RuntimeError("disk on fire")
    backend.close.side_effect = RuntimeError("disk on fire")
    cache = CacheManager(backend)

    assert await cache.get(CacheKey("k")) is None
    await cache.set(CacheKey("k"), "v", 60)
    await cache.delete(CacheKey("k"))
    await cache.close()


# --- Backend selection ---

@pytest.mark.asyncio
async def test_file_backend_by_default(tmp_path: Path):
    cache = await CacheManager.create(CacheSettings(cache_dir=tmp_path / "c"))
    assert cache.backend_kind is BackendKind.FILE
    assert (tmp_path / "c").is_dir()


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["redis://127.0.0.1:1", "not-a-url"])
async def test_unreachable_redis_falls_back_to_file(tmp_path: Path, url, caplog):
    settings = CacheSettings(backend="redis", redis_url=url, cache_dir=tmp_path / "c", connect_timeout=0.5)

    with caplog.at_level(logging.ERROR):
        cache = await CacheManager.create(settings)

    assert cache.backend_kind is BackendKind.FILE
    assert any("falling back to file cache" in r.getMessage() for r in caplog.records)

    await cache.set(CacheKey("k"), "v", 60)
    assert await cache.get(CacheKey("k")) == "v"
    assert (tmp_path / "c" / "k.json").exists()


@pytest.mark.asyncio
async def test_reachable_redis_is_used(mocker, tmp_path: Path):
    store = NetworkedStore(AsyncMock())
    connect = mocker.patch.object(NetworkedStore, "connect", AsyncMock(return_value=store))

    cache = await CacheManager.create(
        CacheSettings(backend="networked", redis_url="redis://cache:6379", cache_dir=tmp_path / "c")
    )

    connect.assert_awaited_once_with("redis://cache:6379", 5.0)
    assert cache.backend is store
    assert cache.backend_kind is BackendKind.REDIS
    assert not (tmp_path / "c").exists()


# --- Session marker round trip ---

@pytest.mark.asyncio
async def test_session_marker_lifecycle(file_cache: CacheManager, clock):
    marker = {"connected": True, "timestamp": 1700000000000}
    await file_cache.set(SESSION_CACHE_KEY, marker, 86400)
    assert await file_cache.get(SESSION_CACHE_KEY) == marker

    clock.advance(86401)
    assert await file_cache.get(SESSION_CACHE_KEY) is None
