"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and an optional
YAML configuration file (~/.wabridge/config.yaml). Typed accessors at the
bottom bundle related keys into small frozen dataclasses that the
composition root hands to each component.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
import yaml

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".wabridge"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_CACHE_TYPE = "file"
DEFAULT_REDIS_URL = "redis://localhost:6379"
DEFAULT_CACHE_DIR = Path("cache")
DEFAULT_REDIS_CONNECT_TIMEOUT = 5.0
DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_SESSION_PATH = Path("sessions")
DEFAULT_MIN_DELAY_MS = 2000
DEFAULT_MAX_DELAY_MS = 5000

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ('cache': {'type': x} -> 'cache.type')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
        else:
            logger.debug(f".env file at {dotenv_path} was empty or unreadable.")
    else:
        logger.debug("Skipping .env file loading (no file found).")

    # 3. Environment Variables (Highest priority) are read in get_config

    _loaded = True
    logger.info("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets loaded configuration so the next load_configuration() starts over."""
    global _config, _loaded
    _config = {}
    _loaded = False


def _coerce(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (key upper-cased, dots become underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. 'CACHE_TYPE' or 'cache.type'
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace('.', '_')
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


def _first(*keys: str, default: Any = None) -> Any:
    for key in keys:
        value = get_config(key)
        if value is not None:
            return value
    return default


# --- Typed Settings ---

@dataclass(frozen=True)
class CacheSettings:
    backend: str = DEFAULT_CACHE_TYPE
    redis_url: str = DEFAULT_REDIS_URL
    cache_dir: Path = DEFAULT_CACHE_DIR
    connect_timeout: float = DEFAULT_REDIS_CONNECT_TIMEOUT


@dataclass(frozen=True)
class ServerSettings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    env: str = "development"

    @property
    def is_development(self) -> bool:
        return self.env == "development"


@dataclass(frozen=True)
class BulkDelaySettings:
    min_ms: int = DEFAULT_MIN_DELAY_MS
    max_ms: int = DEFAULT_MAX_DELAY_MS


@dataclass(frozen=True)
class BotSettings:
    bot_token: Optional[str] = None
    owner_id: Optional[str] = None
    transport_factory: Optional[str] = None


@dataclass(frozen=True)
class SessionSettings:
    session_path: Path = DEFAULT_SESSION_PATH
    session_factory: Optional[str] = None


def get_cache_settings() -> CacheSettings:
    """Cache backend selection. CACHE_TYPE/REDIS_URL win over the YAML keys."""
    return CacheSettings(
        backend=str(_first('CACHE_TYPE', 'cache.type', default=DEFAULT_CACHE_TYPE)),
        redis_url=str(_first('REDIS_URL', 'cache.redis_url', default=DEFAULT_REDIS_URL)),
        cache_dir=Path(str(_first('CACHE_DIR', 'cache.dir', default=DEFAULT_CACHE_DIR))),
        connect_timeout=float(_first('REDIS_CONNECT_TIMEOUT', 'cache.connect_timeout',
                                     default=DEFAULT_REDIS_CONNECT_TIMEOUT)),
    )


def get_server_settings() -> ServerSettings:
    return ServerSettings(
        host=str(_first('HOST', 'server.host', default=DEFAULT_HOST)),
        port=int(_first('PORT', 'server.port', default=DEFAULT_PORT)),
        env=str(_first('APP_ENV', 'server.env', default="development")),
    )


def get_bulk_delay_settings() -> BulkDelaySettings:
    min_ms = int(_first('BULK_MIN_DELAY_MS', 'delays.min_ms', default=DEFAULT_MIN_DELAY_MS))
    max_ms = int(_first('BULK_MAX_DELAY_MS', 'delays.max_ms', default=DEFAULT_MAX_DELAY_MS))
    if max_ms < min_ms:
        logger.warning(f"Bulk delay max ({max_ms}ms) is below min ({min_ms}ms). Using min for both.")
        max_ms = min_ms
    return BulkDelaySettings(min_ms=min_ms, max_ms=max_ms)


def get_bot_settings() -> BotSettings:
    token = _first('TELEGRAM_BOT_TOKEN', 'telegram.bot_token')
    owner = _first('OWNER_TELEGRAM_ID', 'telegram.owner_id')
    factory = _first('TRANSPORT_FACTORY', 'telegram.transport_factory')
    return BotSettings(
        bot_token=str(token) if token is not None else None,
        owner_id=str(owner) if owner is not None else None,
        transport_factory=str(factory) if factory is not None else None,
    )


def get_session_settings() -> SessionSettings:
    factory = _first('SESSION_FACTORY', 'whatsapp.session_factory')
    return SessionSettings(
        session_path=Path(str(_first('SESSION_PATH', 'whatsapp.session_path', default=DEFAULT_SESSION_PATH))),
        session_factory=str(factory) if factory is not None else None,
    )
