"""Interface for the messaging-protocol session.

The wire protocol, pairing and credential storage live behind this port.
``WhatsAppService`` only needs the operations below plus a way to receive
``ConnectionUpdate`` events, which the adapter delivers through the
listener registered with ``set_connection_listener``.
"""

import abc
from typing import Awaitable, Callable, List, Optional

from wabridge.domain.events.session_events import ConnectionUpdate
from wabridge.domain.models.common import GroupId, ParticipantId
from wabridge.domain.models.group import GroupMetadata, GroupSetting

ConnectionListener = Callable[[ConnectionUpdate], Awaitable[None]]


class GroupSession(abc.ABC):
    """Abstract Base Class for a logged-in (or logging-in) messaging account."""

    @abc.abstractmethod
    def set_connection_listener(self, listener: ConnectionListener) -> None:
        """Registers the coroutine that receives connection-state and QR updates."""
        pass

    @abc.abstractmethod
    async def connect(self) -> None:
        """Opens the socket. Completion is reported through the connection listener."""
        pass

    @abc.abstractmethod
    async def disconnect(self) -> None:
        """Logs out and closes the socket."""
        pass

    @property
    @abc.abstractmethod
    def own_id(self) -> Optional[ParticipantId]:
        """JID of the logged-in account, once known."""
        pass

    @abc.abstractmethod
    async def fetch_all_groups(self) -> List[GroupMetadata]:
        pass

    @abc.abstractmethod
    async def group_metadata(self, group_id: GroupId) -> GroupMetadata:
        pass

    @abc.abstractmethod
    async def invite_code(self, group_id: GroupId) -> str:
        pass

    @abc.abstractmethod
    async def update_setting(self, group_id: GroupId, setting: GroupSetting, enabled: bool) -> None:
        pass

    @abc.abstractmethod
    async def update_subject(self, group_id: GroupId, subject: str) -> None:
        pass

    @abc.abstractmethod
    async def update_description(self, group_id: GroupId, description: str) -> None:
        pass

    @abc.abstractmethod
    async def update_picture(self, group_id: GroupId, image: bytes) -> None:
        pass

    @abc.abstractmethod
    async def remove_picture(self, group_id: GroupId) -> None:
        pass

    @abc.abstractmethod
    async def add_participants(self, group_id: GroupId, participants: List[ParticipantId]) -> None:
        pass
