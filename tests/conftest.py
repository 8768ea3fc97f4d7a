import pytest
from pathlib import Path
from typing import List
from typer.testing import CliRunner

from wabridge.domain.models.group import GroupMetadata
from wabridge.infrastructure.cache.cache_manager import CacheManager
from wabridge.infrastructure.cache.file_store import DurableFileStore
from wabridge.infrastructure.config.settings import clear_test_config, reset_configuration
from wabridge.infrastructure.resilience.bulk_delay import BulkDelay

from tests.fakes import FakeClock, FakeGroupSession, FakeTransport, make_group


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def file_cache(cache_dir: Path, clock: FakeClock) -> CacheManager:
    """CacheManager over the file store with a controllable clock."""
    return CacheManager(DurableFileStore(cache_dir, clock=clock))


@pytest.fixture
def groups_metadata() -> List[GroupMetadata]:
    return [
        make_group("1001@g.us", "Alpha", admin=True, members=3),
        make_group("1002@g.us", "Beta", admin=False, members=1),
        make_group("1003@g.us", "Gamma", admin=True, members=0),
    ]


@pytest.fixture
def session(groups_metadata) -> FakeGroupSession:
    return FakeGroupSession(groups=groups_metadata)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def bulk_delay(sleeps: List[float]) -> BulkDelay:
    """BulkDelay that records instead of sleeping."""

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return BulkDelay(2000, 5000, sleep=fake_sleep)


@pytest.fixture(autouse=True)
def isolated_configuration(monkeypatch):
    """Keeps config state and cache-related env vars from leaking between tests."""
    for name in ("CACHE_TYPE", "REDIS_URL", "CACHE_DIR", "BULK_MIN_DELAY_MS", "BULK_MAX_DELAY_MS",
                 "OWNER_TELEGRAM_ID", "PORT", "APP_ENV", "SESSION_FACTORY", "TRANSPORT_FACTORY"):
        monkeypatch.delenv(name, raising=False)
    reset_configuration()
    clear_test_config()
    yield
    reset_configuration()
    clear_test_config()
