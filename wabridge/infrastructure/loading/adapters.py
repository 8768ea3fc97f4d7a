"""Loads the external session and transport adapters named in configuration.

The WhatsApp protocol session and the Telegram transport are not part of
this package. Deployments point ``SESSION_FACTORY`` / ``TRANSPORT_FACTORY``
at a ``module:callable`` that builds them; the callable receives the
relevant settings object as its only argument.
"""

import logging
import pkgutil
from typing import Any, Callable, Optional

from wabridge.domain.exceptions import WaBridgeError
from wabridge.domain.interfaces.chat_transport import ChatTransport
from wabridge.domain.interfaces.group_session import GroupSession
from wabridge.infrastructure.config.settings import BotSettings, SessionSettings

logger = logging.getLogger(__name__)


class AdapterLoadError(WaBridgeError):
    """Raised when a configured factory cannot be imported or returns the wrong type."""


def load_factory(dotted_path: str) -> Callable[..., Any]:
    """Resolves ``'package.module:callable'`` to the callable."""
    if ":" not in dotted_path:
        raise AdapterLoadError(f"Factory '{dotted_path}' must look like 'package.module:callable'")
    try:
        factory = pkgutil.resolve_name(dotted_path)
    except (ImportError, AttributeError, ValueError) as e:
        raise AdapterLoadError(f"Cannot import factory '{dotted_path}': {e}") from e
    if not callable(factory):
        raise AdapterLoadError(f"Factory '{dotted_path}' is not callable")
    return factory


def load_session(settings: SessionSettings) -> GroupSession:
    if not settings.session_factory:
        raise AdapterLoadError("No WhatsApp session factory configured (set SESSION_FACTORY).")
    session = load_factory(settings.session_factory)(settings)
    if not isinstance(session, GroupSession):
        raise AdapterLoadError(f"'{settings.session_factory}' did not return a GroupSession")
    logger.info(f"WhatsApp session adapter loaded from {settings.session_factory}")
    return session


def load_transport(settings: BotSettings) -> Optional[ChatTransport]:
    """Returns the bot transport, or None when no transport is configured."""
    if not settings.transport_factory:
        logger.warning("No bot transport configured (TRANSPORT_FACTORY); running HTTP API only.")
        return None
    transport = load_factory(settings.transport_factory)(settings)
    if not isinstance(transport, ChatTransport):
        raise AdapterLoadError(f"'{settings.transport_factory}' did not return a ChatTransport")
    logger.info(f"Bot transport loaded from {settings.transport_factory}")
    return transport
