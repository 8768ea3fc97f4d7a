"""Interface for the chat-command front end (the Telegram bot transport).

The transport owns polling and delivery; it feeds ``IncomingMessage``
objects to ``BotCommandHandler.handle_message`` and exposes the outbound
calls the handler needs.
"""

import abc
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from wabridge.domain.models.common import ChatId, UserId


@dataclass
class IncomingMessage:
    chat_id: ChatId
    user_id: UserId
    text: Optional[str] = None
    photo_file_id: Optional[str] = None  # largest size of an attached photo


MessageHandler = Callable[[IncomingMessage], Awaitable[None]]


class ChatTransport(abc.ABC):
    """Abstract Base Class for the bot transport."""

    @abc.abstractmethod
    async def send_message(self, chat_id: ChatId, text: str) -> None:
        pass

    @abc.abstractmethod
    async def send_photo(self, chat_id: ChatId, photo: bytes, caption: Optional[str] = None) -> None:
        pass

    @abc.abstractmethod
    async def file_url(self, file_id: str) -> str:
        """Resolves an uploaded file id to a URL the bridge can download."""
        pass

    @abc.abstractmethod
    async def run(self, handler: MessageHandler) -> None:
        """Receives messages until cancelled, passing each one to ``handler``."""
        pass
