import json
import pytest
from pathlib import Path

from wabridge.domain.models.common import CacheKey
from wabridge.infrastructure.cache.file_store import DurableFileStore


@pytest.fixture
def store(cache_dir: Path, clock) -> DurableFileStore:
    return DurableFileStore(cache_dir, clock=clock)


@pytest.mark.asyncio
async def test_set_writes_value_and_expiry_in_ms(store: DurableFileStore, clock, cache_dir: Path):
    await store.set(CacheKey("wa_session"), {"connected": True}, 86400)

    record = json.loads((cache_dir / "wa_session.json").read_text(encoding="utf-8"))
    assert record == {"value": {"connected": True}, "expires": int(clock() * 1000) + 86400 * 1000}


@pytest.mark.asyncio
async def test_get_missing_file_is_a_miss(store: DurableFileStore):
    assert await store.get(CacheKey("nope")) is None


@pytest.mark.asyncio
async def test_expiry_boundary_is_inclusive(store: DurableFileStore, clock):
    await store.set(CacheKey("k"), "v", 10)

    clock.advance(9)
    assert await store.get(CacheKey("k")) == "v"

    clock.advance(1)
    assert await store.get(CacheKey("k")) is None


@pytest.mark.asyncio
async def test_expired_read_removes_the_file(store: DurableFileStore, clock):
    await store.set(CacheKey("k"), "v", 1)
    path = store.path_for(CacheKey("k"))
    assert path.exists()

    clock.advance(5)
    assert await store.get(CacheKey("k")) is None
    assert not path.exists()


@pytest.mark.asyncio
async def test_record_without_expiry_never_expires(store: DurableFileStore, clock):
    store.path_for(CacheKey("legacy")).write_text(json.dumps({"value": [1, 2]}), encoding="utf-8")
    clock.advance(10 ** 9)
    assert await store.get(CacheKey("legacy")) == [1, 2]


@pytest.mark.asyncio
async def test_malformed_record_raises(store: DurableFileStore):
    store.path_for(CacheKey("bad")).write_text("not json at all", encoding="utf-8")
    with pytest.raises(ValueError):
        await store.get(CacheKey("bad"))


@pytest.mark.asyncio
async def test_record_missing_value_field_raises(store: DurableFileStore):
    store.path_for(CacheKey("odd")).write_text(json.dumps({"expires": 1}), encoding="utf-8")
    with pytest.raises(ValueError):
        await store.get(CacheKey("odd"))


def test_filenames_are_distinct_for_tricky_keys(store: DurableFileStore, cache_dir: Path):
    keys = ["a/b", "a%2Fb", "../escape", "a b", "a:b"]
    paths = [store.path_for(CacheKey(k)) for k in keys]

    assert len(set(paths)) == len(keys)
    for path in paths:
        assert path.parent == cache_dir


@pytest.mark.asyncio
async def test_delete_is_idempotent(store: DurableFileStore):
    await store.set(CacheKey("k"), 1, 60)
    await store.delete(CacheKey("k"))
    await store.delete(CacheKey("k"))
    assert await store.get(CacheKey("k")) is None


@pytest.mark.asyncio
async def test_unserializable_value_leaves_previous_entry(store: DurableFileStore):
    await store.set(CacheKey("k"), "old", 60)
    with pytest.raises(TypeError):
        await store.set(CacheKey("k"), object(), 60)
    assert await store.get(CacheKey("k")) == "old"


@pytest.mark.asyncio
async def test_ensure_directory_creates_parents(tmp_path: Path):
    store = DurableFileStore(tmp_path / "deep" / "cache")
    assert await store.ensure_directory() is True
    assert (tmp_path / "deep" / "cache").is_dir()


@pytest.mark.asyncio
async def test_ensure_directory_reports_failure(tmp_path: Path):
    blocker = tmp_path / "a-file"
    blocker.write_text("x")
    store = DurableFileStore(blocker / "cache")
    assert await store.ensure_directory() is False
