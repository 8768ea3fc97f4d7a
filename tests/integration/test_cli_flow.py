import asyncio
import json
import pytest
from pathlib import Path
from typer.testing import CliRunner
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from wabridge.core.command_handler import BotCommandHandler
from wabridge.domain.models.common import SESSION_CACHE_KEY
from wabridge.infrastructure.api.app import create_app
from wabridge.infrastructure.cache.cache_manager import CacheManager
from wabridge.infrastructure.config.settings import get_server_settings
from wabridge.main import app, build_lifespan, configure, create_dependencies

from tests.fakes import FakeGroupSession, FakeTransport

# These fixtures are defined in tests/conftest.py:
# runner: CliRunner
# isolated_configuration: resets loaded config between tests (autouse)


@pytest.fixture
def mock_console_display(mocker):
    """Mocks the module-level ConsoleDisplay to capture output easily."""
    return mocker.patch("wabridge.main._ui", MagicMock())


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch, mocker):
    """Points the CLI at a throwaway cache dir and keeps it off the real root logger."""
    mocker.patch("wabridge.main.setup_logging")
    cache_dir = tmp_path / "cache"
    env_file = tmp_path / ".env"
    env_file.write_text("", encoding="utf-8")
    monkeypatch.setenv("CACHE_DIR", str(cache_dir))
    options = ["--config", str(tmp_path / "none.yaml"), "--env-file", str(env_file)]
    return options, cache_dir


def invoke(runner: CliRunner, options, *args: str):
    return runner.invoke(app, [*options, *args])


# --- cache commands ---

def test_cache_set_get_flow(runner: CliRunner, cli_env, mock_console_display: MagicMock):
    options, cache_dir = cli_env

    result = invoke(runner, options, "cache", "set", "wa_session", '{"connected": true}', "--ttl", "60")
    assert result.exit_code == 0, result.output
    mock_console_display.display_info.assert_called_with("Stored 'wa_session' for 60s")

    record = json.loads((cache_dir / "wa_session.json").read_text(encoding="utf-8"))
    assert record["value"] == {"connected": True}

    result = invoke(runner, options, "cache", "get", "wa_session")
    assert result.exit_code == 0, result.output
    mock_console_display.display_output.assert_called_once_with({"connected": True}, title="wa_session")


def test_cache_set_plain_string(runner: CliRunner, cli_env, mock_console_display: MagicMock):
    options, cache_dir = cli_env
    invoke(runner, options, "cache", "set", "greeting", "hello world")

    record = json.loads((cache_dir / "greeting.json").read_text(encoding="utf-8"))
    assert record["value"] == "hello world"


def test_cache_get_missing_exits_1(runner: CliRunner, cli_env, mock_console_display: MagicMock):
    options, _ = cli_env
    result = invoke(runner, options, "cache", "get", "nothing")

    assert result.exit_code == 1
    mock_console_display.display_warning.assert_called_once_with("No value for key 'nothing'")


def test_cache_has_and_delete(runner: CliRunner, cli_env, mock_console_display: MagicMock):
    options, _ = cli_env
    invoke(runner, options, "cache", "set", "k", "1")

    assert invoke(runner, options, "cache", "has", "k").exit_code == 0
    assert invoke(runner, options, "cache", "delete", "k").exit_code == 0
    assert invoke(runner, options, "cache", "delete", "k").exit_code == 0
    assert invoke(runner, options, "cache", "has", "k").exit_code == 1


def test_cache_set_rejects_non_positive_ttl(runner: CliRunner, cli_env, mock_console_display: MagicMock):
    options, cache_dir = cli_env
    result = invoke(runner, options, "cache", "set", "k", "1", "--ttl", "0")

    assert result.exit_code != 0
    assert not (cache_dir / "k.json").exists()


def test_cache_set_warns_when_write_is_lost(runner: CliRunner, cli_env, tmp_path: Path, monkeypatch, mock_console_display):
    options, _ = cli_env
    blocker = tmp_path / "plain-file"
    blocker.write_text("x", encoding="utf-8")
    monkeypatch.setenv("CACHE_DIR", str(blocker / "cache"))

    result = invoke(runner, options, "cache", "set", "k", "1")

    assert result.exit_code == 1
    mock_console_display.display_warning.assert_called_once_with("Could not store 'k'; see the log for the cache error")
    mock_console_display.display_info.assert_not_called()


def test_cache_falls_back_when_redis_is_down(runner: CliRunner, cli_env, monkeypatch, mock_console_display):
    options, cache_dir = cli_env
    monkeypatch.setenv("CACHE_TYPE", "redis")
    monkeypatch.setenv("REDIS_URL", "redis://127.0.0.1:1")
    monkeypatch.setenv("REDIS_CONNECT_TIMEOUT", "0.5")

    result = invoke(runner, options, "cache", "set", "k", "[1, 2]")

    assert result.exit_code == 0, result.output
    assert (cache_dir / "k.json").exists()


# --- serve wiring ---

@pytest.fixture
def server_env(cli_env, monkeypatch):
    monkeypatch.setenv("SESSION_FACTORY", "tests.fakes:session_factory")
    monkeypatch.setenv("OWNER_TELEGRAM_ID", "42")
    return cli_env


@pytest.mark.asyncio
async def test_create_dependencies_without_transport(server_env):
    configure()
    dependencies = await create_dependencies()

    assert isinstance(dependencies["cache"], CacheManager)
    assert isinstance(dependencies["session"], FakeGroupSession)
    assert dependencies["transport"] is None
    assert dependencies["command_handler"] is None
    assert dependencies["whatsapp"].cache is dependencies["cache"]


@pytest.mark.asyncio
async def test_lifespan_starts_bot_and_closes_cache(server_env, monkeypatch, mocker):
    monkeypatch.setenv("TRANSPORT_FACTORY", "tests.fakes:transport_factory")
    configure()
    dependencies = await create_dependencies()
    assert isinstance(dependencies["transport"], FakeTransport)
    assert isinstance(dependencies["command_handler"], BotCommandHandler)
    assert dependencies["command_handler"].owner_id == "42"

    run = mocker.patch.object(dependencies["transport"], "run", AsyncMock())
    close = mocker.patch.object(dependencies["cache"], "close", AsyncMock())

    async with build_lifespan(dependencies)(FastAPI()):
        await asyncio.sleep(0)

    run.assert_awaited_once_with(dependencies["command_handler"].handle_message)
    close.assert_awaited_once()


def test_serve_requires_session_factory(runner: CliRunner, cli_env, mock_console_display: MagicMock):
    options, _ = cli_env
    result = invoke(runner, options, "serve")

    assert result.exit_code == 1
    message = mock_console_display.display_error.call_args.args[0]
    assert "SESSION_FACTORY" in message


def test_serve_runs_uvicorn(runner: CliRunner, server_env, mocker, mock_console_display: MagicMock):
    options, _ = server_env
    serve = mocker.patch("wabridge.main.uvicorn.Server.serve", AsyncMock())

    result = invoke(runner, options, "serve", "--port", "3999")

    assert result.exit_code == 0, result.output
    serve.assert_awaited_once()
    mock_console_display.display_error.assert_not_called()


@pytest.mark.asyncio
async def test_failed_session_restore_keeps_api_up(server_env, mocker):
    configure()
    dependencies = await create_dependencies()
    await dependencies["cache"].set(SESSION_CACHE_KEY, {"connected": True, "timestamp": 1}, 86400)
    dependencies["session"].fail_on["connect"] = ConnectionError("network down")
    close = mocker.patch.object(dependencies["cache"], "close", AsyncMock())

    async with build_lifespan(dependencies)(FastAPI()):
        assert dependencies["whatsapp"].is_connected is False
        assert await dependencies["cache"].has(SESSION_CACHE_KEY)

    close.assert_awaited_once()


def test_health_served_after_failed_session_restore(server_env):
    configure()
    dependencies = asyncio.run(create_dependencies())
    asyncio.run(dependencies["cache"].set(SESSION_CACHE_KEY, {"connected": True, "timestamp": 1}, 86400))
    dependencies["session"].fail_on["connect"] = ConnectionError("network down")

    api = create_app(
        dependencies["whatsapp"],
        dependencies["groups"],
        get_server_settings(),
        lifespan=build_lifespan(dependencies),
    )
    with TestClient(api) as client:
        assert client.get("/health").json()["status"] == "OK"
        assert client.get("/api/wa/status").json() == {"success": True, "connected": False, "hasQR": False}
