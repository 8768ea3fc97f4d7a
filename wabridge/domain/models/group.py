"""Domain models for WhatsApp groups as seen by the bridge."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from wabridge.domain.models.common import GroupId, GroupNumber, ParticipantId

INVITE_LINK_PREFIX = "https://chat.whatsapp.com/"


class GroupSetting(str, Enum):
    """Group settings the owner can toggle, keyed by the short name used in commands."""
    INFO = "info"
    MESSAGING = "msg"
    MEDIA = "media"
    APPROVAL = "approve"

    @property
    def protocol_name(self) -> str:
        """Name of the setting on the messaging protocol side."""
        return _PROTOCOL_NAMES[self]


_PROTOCOL_NAMES = {
    GroupSetting.INFO: "subject",
    GroupSetting.MESSAGING: "messaging",
    GroupSetting.MEDIA: "media",
    GroupSetting.APPROVAL: "membership_approval",
}


@dataclass
class Participant:
    id: ParticipantId
    admin: Optional[str] = None  # 'admin', 'superadmin' or None

    @property
    def is_admin(self) -> bool:
        return self.admin is not None


@dataclass
class GroupMetadata:
    """Raw group data as returned by the messaging session."""
    id: GroupId
    subject: str
    description: Optional[str] = None
    participants: List[Participant] = field(default_factory=list)

    @property
    def pending_count(self) -> int:
        # Participants without an admin role, counted the way the owner is used to seeing them
        return sum(1 for p in self.participants if not p.is_admin)

    def role_of(self, participant_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None


@dataclass
class GroupSummary:
    """One row of the numbered group listing. This is what gets cached under ``wa_groups``."""
    id: GroupId
    number: GroupNumber
    name: str
    participants: int
    pending: int
    is_admin: bool
    invite_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "name": self.name,
            "participants": self.participants,
            "pending": self.pending,
            "inviteCode": self.invite_code,
            "isAdmin": self.is_admin,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupSummary":
        return cls(
            id=GroupId(data["id"]),
            number=GroupNumber(int(data["number"])),
            name=data.get("name", ""),
            participants=int(data.get("participants", 0)),
            pending=int(data.get("pending", 0)),
            is_admin=bool(data.get("isAdmin", False)),
            invite_code=data.get("inviteCode"),
        )


@dataclass
class GroupInfo:
    """Detailed view of a single group."""
    id: GroupId
    number: GroupNumber
    name: str
    description: Optional[str]
    participants: int
    pending: int
    is_admin: bool
    invite_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "name": self.name,
            "description": self.description,
            "participants": self.participants,
            "pending": self.pending,
            "inviteCode": self.invite_code,
            "isAdmin": self.is_admin,
        }


@dataclass
class SettingResult:
    """Outcome of toggling a setting on one group during a bulk operation."""
    group_number: GroupNumber
    group_name: str
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "groupNumber": self.group_number,
            "groupName": self.group_name,
            "success": self.success,
        }
        if self.error is not None:
            data["error"] = self.error
        return data
