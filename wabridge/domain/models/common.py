"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like cache keys, group identifiers
and phone numbers, ensuring consistency and type safety.
"""

from dataclasses import dataclass
from typing import Any, Generic, NewType, Optional, TypedDict, TypeVar

# === Caching Context ===
CacheKey = NewType("CacheKey", str)              # Unique key for a cache entry

# === Messaging Context ===
GroupId = NewType("GroupId", str)                # Protocol-level group JID, e.g. '1203630@g.us'
ParticipantId = NewType("ParticipantId", str)    # Protocol-level user JID
PhoneNumber = NewType("PhoneNumber", str)        # Bare phone number as typed by the owner
GroupNumber = NewType("GroupNumber", int)        # 1-based position in the group listing

# === Chat Command Context ===
ChatId = NewType("ChatId", str)
UserId = NewType("UserId", str)

# Well-known cache keys shared by the session glue
SESSION_CACHE_KEY = CacheKey("wa_session")
GROUPS_CACHE_KEY = CacheKey("wa_groups")

SESSION_TTL_SECONDS = 24 * 60 * 60
GROUPS_TTL_SECONDS = 60 * 60


class SessionMarker(TypedDict):
    """What gets cached under ``wa_session`` once the session is open."""
    connected: bool
    timestamp: int  # ms since epoch


class ConnectionStatus(TypedDict):
    connected: bool
    hasQR: bool


T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a single backend call: either a value or the error that stopped it."""
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "OperationResult":
        return cls(error=error)
