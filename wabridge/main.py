"""Main entry point for the wabridge application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
and defines the ``serve`` and ``cache`` commands.
"""

import asyncio
import contextlib
import json
import logging
from pathlib import Path
from typing import Annotated, Any, AsyncIterator, Coroutine, Dict, Optional

import typer
import uvicorn
from fastapi import FastAPI

# --- Core Layer ---
from wabridge.core.command_handler import BotCommandHandler
from wabridge.core.services.group_service import GroupService
from wabridge.core.services.whatsapp_service import WhatsAppService

# --- Domain Layer ---
from wabridge.domain.interfaces.cache import DEFAULT_TTL_SECONDS
from wabridge.domain.models.common import CacheKey

# --- Infrastructure Layer ---
from wabridge.infrastructure.api.app import create_app
from wabridge.infrastructure.cache.cache_manager import CacheManager
from wabridge.infrastructure.cli.display import ConsoleDisplay
from wabridge.infrastructure.config.settings import (
    DEFAULT_CONFIG_FILE,
    get_bot_settings,
    get_bulk_delay_settings,
    get_cache_settings,
    get_config,
    get_server_settings,
    get_session_settings,
    load_configuration,
)
from wabridge.infrastructure.loading.adapters import load_session, load_transport
from wabridge.infrastructure.monitoring.logger_setup import DEFAULT_LOG_FORMAT, parse_log_level, setup_logging
from wabridge.infrastructure.resilience.bulk_delay import BulkDelay

logger = logging.getLogger(__name__)

_ui = ConsoleDisplay()
_options: Dict[str, Optional[Path]] = {"config_file": DEFAULT_CONFIG_FILE, "env_file": None}


def configure() -> None:
    """Loads configuration and sets up logging. Safe to call more than once."""
    load_configuration(config_file=_options["config_file"], env_file=_options["env_file"])
    log_level = parse_log_level(get_config('LOG_LEVEL', get_config('logging.level')))
    log_file = get_config('LOG_FILE', get_config('logging.file'))
    log_format = get_config('logging.format', DEFAULT_LOG_FORMAT)
    setup_logging(log_level=log_level, log_format=log_format, log_file=log_file)
    logger.debug("Configuration and logging initialized.")


# --- Dependency Injection Container (Manual) ---

async def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the server.

    This acts as the Composition Root. The cache backend is resolved here,
    once, and the same ``CacheManager`` is shared by every service.
    """
    logger.info("Initializing application dependencies...")
    dependencies: Dict[str, Any] = {}

    # 1. Cache first; every other service depends on it
    dependencies['cache'] = await CacheManager.create(get_cache_settings())

    # 2. External adapters
    dependencies['session'] = load_session(get_session_settings())
    bot_settings = get_bot_settings()
    dependencies['transport'] = load_transport(bot_settings)

    # 3. Core services
    dependencies['whatsapp'] = WhatsAppService(session=dependencies['session'], cache=dependencies['cache'])
    dependencies['groups'] = GroupService(
        whatsapp=dependencies['whatsapp'],
        bulk_delay=BulkDelay.from_settings(get_bulk_delay_settings()),
    )
    logger.info("Core services initialized.")

    # 4. Bot command handler, only when a transport is available
    dependencies['command_handler'] = None
    if dependencies['transport'] is not None:
        dependencies['command_handler'] = BotCommandHandler(
            whatsapp=dependencies['whatsapp'],
            groups=dependencies['groups'],
            transport=dependencies['transport'],
            owner_id=bot_settings.owner_id,
        )
        logger.info("Command handler initialized.")

    logger.info("All dependencies initialized successfully.")
    return dependencies


def build_lifespan(dependencies: Dict[str, Any]):
    """Startup/shutdown hooks: session restore, bot polling, cache close."""

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            await dependencies['whatsapp'].init()
        except Exception as e:
            # Keep serving; the owner can pair again through /login
            logger.error(f"WhatsApp session restore failed: {e}")

        bot_task: Optional[asyncio.Task] = None
        handler: Optional[BotCommandHandler] = dependencies.get('command_handler')
        if handler is not None:
            bot_task = asyncio.create_task(dependencies['transport'].run(handler.handle_message))
            logger.info("Bot transport started")

        try:
            yield
        finally:
            if bot_task is not None:
                bot_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await bot_task
            await dependencies['cache'].close()
            logger.info("Shutdown complete")

    return lifespan


# --- Typer App Definition ---
app = typer.Typer(
    name="wabridge",
    help="wabridge: manage WhatsApp groups over HTTP and a Telegram bot.",
    add_completion=False,
)
cache_app = typer.Typer(help="Inspect and edit entries in the configured cache backend.")
app.add_typer(cache_app, name="cache")


# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Runs an async command body from a sync Typer command."""
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except Exception as e:
        logger.error(f"Error executing async command: {e}", exc_info=True)
        _ui.display_error(f"Command execution failed: {e}")
        raise typer.Exit(code=1)


async def _with_cache(action) -> Any:
    cache = await CacheManager.create(get_cache_settings())
    try:
        return await action(cache)
    finally:
        await cache.close()


# --- CLI Commands ---

@app.callback()
def main_callback(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help="YAML configuration file.")
    ] = DEFAULT_CONFIG_FILE,
    env_file: Annotated[
        Optional[Path],
        typer.Option("--env-file", help="Explicit .env file (default: search upwards from cwd).")
    ] = None,
):
    """Loads configuration before any command runs."""
    _options["config_file"] = config
    _options["env_file"] = env_file
    configure()


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option(help="Bind address (default: HOST).")] = None,
    port: Annotated[Optional[int], typer.Option(help="Bind port (default: PORT).")] = None,
):
    """Run the HTTP API and, if configured, the bot transport."""
    settings = get_server_settings()

    async def _serve() -> None:
        dependencies = await create_dependencies()
        api = create_app(
            dependencies['whatsapp'],
            dependencies['groups'],
            settings=settings,
            lifespan=build_lifespan(dependencies),
        )
        config = uvicorn.Config(
            api,
            host=host or settings.host,
            port=port or settings.port,
            log_config=None,
        )
        logger.info(f"Server running on port {config.port}")
        await uvicorn.Server(config).serve()

    run_async(_serve())


@cache_app.command("get")
def cache_get(key: Annotated[str, typer.Argument(help="Cache key.")]):
    """Print the value stored under KEY (exit code 1 if absent or expired)."""
    value = run_async(_with_cache(lambda cache: cache.get(CacheKey(key))))
    if value is None:
        _ui.display_warning(f"No value for key '{key}'")
        raise typer.Exit(code=1)
    _ui.display_output(value, title=key)


@cache_app.command("set")
def cache_set(
    key: Annotated[str, typer.Argument(help="Cache key.")],
    value: Annotated[str, typer.Argument(help="Value as JSON; anything else is stored as a string.")],
    ttl: Annotated[int, typer.Option("--ttl", "-t", min=1, help="Lifetime in seconds.")] = DEFAULT_TTL_SECONDS,
):
    """Store VALUE under KEY for --ttl seconds."""
    try:
        decoded: Any = json.loads(value)
    except json.JSONDecodeError:
        decoded = value

    async def _store(cache: CacheManager) -> bool:
        await cache.set(CacheKey(key), decoded, ttl)
        return await cache.has(CacheKey(key))

    if not run_async(_with_cache(_store)):
        _ui.display_warning(f"Could not store '{key}'; see the log for the cache error")
        raise typer.Exit(code=1)
    _ui.display_info(f"Stored '{key}' for {ttl}s")


@cache_app.command("delete")
def cache_delete(key: Annotated[str, typer.Argument(help="Cache key.")]):
    """Remove KEY (succeeds even if it was absent)."""
    run_async(_with_cache(lambda cache: cache.delete(CacheKey(key))))
    _ui.display_info(f"Deleted '{key}'")


@cache_app.command("has")
def cache_has(key: Annotated[str, typer.Argument(help="Cache key.")]):
    """Report whether KEY holds a live value (exit code 1 if not)."""
    present = run_async(_with_cache(lambda cache: cache.has(CacheKey(key))))
    if not present:
        _ui.display_info(f"'{key}' is not cached")
        raise typer.Exit(code=1)
    _ui.display_info(f"'{key}' is cached")


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
