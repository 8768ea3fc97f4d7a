"""WhatsApp session glue.

Owns the connection state seen by the rest of the app (connected flag,
pending QR payload, numbered group listing) and keeps two cache entries
in step with the session:

* ``wa_session`` marks that a paired session existed, so a restart
  reconnects without asking for a new QR scan.
* ``wa_groups`` holds the numbered group listing for an hour, so the bot
  and the HTTP API agree on what "group 3" means.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import segno

from wabridge.domain.events.session_events import ConnectionUpdate
from wabridge.domain.exceptions import InvalidSettingError, SessionNotConnectedError
from wabridge.domain.interfaces.cache import CacheService
from wabridge.domain.interfaces.group_session import GroupSession
from wabridge.domain.models.common import (
    GROUPS_CACHE_KEY,
    GROUPS_TTL_SECONDS,
    SESSION_CACHE_KEY,
    SESSION_TTL_SECONDS,
    ConnectionStatus,
    GroupId,
    GroupNumber,
    ParticipantId,
    PhoneNumber,
    SessionMarker,
)
from wabridge.domain.models.group import (
    INVITE_LINK_PREFIX,
    GroupInfo,
    GroupMetadata,
    GroupSetting,
    GroupSummary,
)

logger = logging.getLogger(__name__)

USER_JID_SUFFIX = "@s.whatsapp.net"
DATA_URL_PREFIX = "data:image/"
QR_SCALE = 8


def to_participant_id(number: PhoneNumber) -> ParticipantId:
    """'628123' -> '628123@s.whatsapp.net'. Already-qualified JIDs pass through."""
    if USER_JID_SUFFIX in number:
        return ParticipantId(number)
    return ParticipantId(f"{number}{USER_JID_SUFFIX}")


def to_qr_data_url(payload: str) -> str:
    """Renders a pairing payload as a scannable PNG data URL.

    Payloads that are already image data URLs are returned unchanged.
    """
    if payload.startswith(DATA_URL_PREFIX):
        return payload
    return segno.make(payload, error="m").png_data_uri(scale=QR_SCALE, border=4)


class WhatsAppService:
    """Connection lifecycle and group operations over a ``GroupSession``."""

    def __init__(self, session: GroupSession, cache: CacheService, clock: Callable[[], float] = time.time):
        """Wires the service to its session and cache.

        Args:
            session: The messaging-protocol session adapter.
            cache: Shared cache instance from the composition root.
            clock: Seconds since epoch; used for the ``wa_session`` timestamp.
        """
        self.session = session
        self.cache = cache
        self._clock = clock
        self.is_connected = False
        self.qr_code: Optional[str] = None
        self.groups: List[GroupSummary] = []
        session.set_connection_listener(self.handle_connection_update)

    # --- Connection lifecycle ---

    async def init(self) -> None:
        """Reconnects on startup when a previous session was cached."""
        if await self.cache.get(SESSION_CACHE_KEY):
            logger.info("Cached WhatsApp session found, reconnecting.")
            await self.connect()
        logger.info("WhatsApp service initialized")

    async def connect(self) -> None:
        try:
            await self.session.connect()
        except Exception as e:
            logger.error(f"WhatsApp connect failed: {e}", exc_info=True)
            raise
        logger.info("WhatsApp socket created")

    async def login(self) -> Dict[str, Any]:
        """Starts (or reuses) a connection and reports what the owner should do next."""
        if not self.is_connected:
            await self.connect()

        if self.is_connected:
            return {"connected": True, "message": "Already connected"}
        if self.qr_code:
            return {"qrCode": self.qr_code, "message": "Scan QR code to login"}
        return {"message": "Connecting..."}

    async def handle_connection_update(self, update: ConnectionUpdate) -> None:
        """Reacts to connection-state and QR events from the session adapter."""
        if update.qr:
            self.qr_code = to_qr_data_url(update.qr)
            logger.info("QR Code generated")

        if update.is_closed:
            logger.info(f"Connection closed due to: {update.reason or 'unknown reason'}")
            if update.logged_out:
                self.is_connected = False
                await self.cache.delete(SESSION_CACHE_KEY)
                await self.cache.delete(GROUPS_CACHE_KEY)
            else:
                await self.connect()
        elif update.is_open:
            self.is_connected = True
            self.qr_code = None
            marker: SessionMarker = {"connected": True, "timestamp": int(self._clock() * 1000)}
            await self.cache.set(SESSION_CACHE_KEY, marker, SESSION_TTL_SECONDS)
            await self.load_groups()
            logger.info("WhatsApp connected successfully")

    def status(self) -> ConnectionStatus:
        return {"connected": self.is_connected, "hasQR": bool(self.qr_code)}

    async def disconnect(self) -> None:
        await self.session.disconnect()
        self.is_connected = False
        self.qr_code = None

    # --- Groups ---

    def _is_admin(self, metadata: GroupMetadata) -> bool:
        own_id = self.session.own_id
        participant = metadata.role_of(own_id) if own_id else None
        return participant is not None and participant.is_admin

    async def load_groups(self) -> List[GroupSummary]:
        """Fetches the group list from the session, numbers it and caches it.

        A failure is logged and leaves the previous listing in place.
        """
        try:
            fetched = await self.session.fetch_all_groups()
        except Exception as e:
            logger.error(f"Failed to load groups: {e}", exc_info=True)
            return self.groups

        groups = [
            GroupSummary(
                id=metadata.id,
                number=GroupNumber(index + 1),
                name=metadata.subject,
                participants=len(metadata.participants),
                pending=metadata.pending_count,
                is_admin=self._is_admin(metadata),
            )
            for index, metadata in enumerate(fetched)
        ]

        # Invite links are only visible to admins
        for group in groups:
            if not group.is_admin:
                continue
            try:
                code = await self.session.invite_code(group.id)
                group.invite_code = f"{INVITE_LINK_PREFIX}{code}"
            except Exception as e:
                logger.warning(f"Failed to get invite code for group {group.name}: {e}")

        self.groups = groups
        await self.cache.set(GROUPS_CACHE_KEY, [g.to_dict() for g in groups], GROUPS_TTL_SECONDS)
        logger.info(f"Loaded {len(groups)} groups")
        return groups

    async def get_groups(self) -> List[GroupSummary]:
        """Numbered group listing, from the cache when it is still fresh."""
        self._require_connected()

        cached = await self.cache.get(GROUPS_CACHE_KEY)
        if cached:
            try:
                self.groups = [GroupSummary.from_dict(item) for item in cached]
                return self.groups
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring unreadable cached group listing: {e}")

        return await self.load_groups()

    def _require_connected(self) -> None:
        if not self.is_connected:
            raise SessionNotConnectedError()

    async def update_group_setting(self, group_id: GroupId, setting: str, action: str) -> None:
        self._require_connected()
        try:
            group_setting = GroupSetting(setting)
        except ValueError:
            raise InvalidSettingError(setting) from None

        try:
            await self.session.update_setting(group_id, group_setting, action == "on")
        except Exception as e:
            logger.error(f"Failed to update group setting {setting}: {e}")
            raise

    async def rename_group(self, group_id: GroupId, new_name: str) -> None:
        self._require_connected()
        try:
            await self.session.update_subject(group_id, new_name)
        except Exception as e:
            logger.error(f"Failed to rename group: {e}")
            raise

    async def update_group_description(self, group_id: GroupId, description: str) -> None:
        self._require_connected()
        try:
            await self.session.update_description(group_id, description)
        except Exception as e:
            logger.error(f"Failed to update group description: {e}")
            raise

    async def update_group_picture(self, group_id: GroupId, image: bytes) -> None:
        self._require_connected()
        try:
            await self.session.update_picture(group_id, image)
        except Exception as e:
            logger.error(f"Failed to update group picture: {e}")
            raise

    async def remove_group_picture(self, group_id: GroupId) -> None:
        self._require_connected()
        try:
            await self.session.remove_picture(group_id)
        except Exception as e:
            logger.error(f"Failed to remove group picture: {e}")
            raise

    async def invite_to_group(self, group_id: GroupId, number: PhoneNumber) -> None:
        self._require_connected()
        try:
            await self.session.add_participants(group_id, [to_participant_id(number)])
        except Exception as e:
            logger.error(f"Failed to invite to group: {e}")
            raise

    async def get_group_info(self, group_id: GroupId, number: GroupNumber) -> GroupInfo:
        self._require_connected()
        try:
            metadata = await self.session.group_metadata(group_id)
        except Exception as e:
            logger.error(f"Failed to get group info: {e}")
            raise

        known = next((g for g in self.groups if g.id == group_id), None)
        return GroupInfo(
            id=metadata.id,
            number=number,
            name=metadata.subject,
            description=metadata.description,
            participants=len(metadata.participants),
            pending=metadata.pending_count,
            is_admin=self._is_admin(metadata),
            invite_code=known.invite_code if known else None,
        )
