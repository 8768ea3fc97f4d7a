"""Domain Events emitted by the messaging session.

The session adapter translates its own connection callbacks into these
events and hands them to ``WhatsAppService.handle_connection_update``.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class ConnectionUpdate(DomainEvent):
    """A change in the session's connection state.

    Any combination of fields may be set: a QR payload can arrive while the
    connection is still 'connecting'.
    """
    connection: Optional[str] = None  # 'connecting', 'open' or 'close'
    qr: Optional[str] = None          # pairing payload to render as a QR code
    logged_out: bool = False          # only meaningful with connection == 'close'
    reason: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def is_open(self) -> bool:
        return self.connection == "open"

    @property
    def is_closed(self) -> bool:
        return self.connection == "close"
