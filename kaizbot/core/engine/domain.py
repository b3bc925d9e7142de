# kaizbot/core/engine/domain.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


# ============================================================================
# USER REGISTRATION STATE
# ============================================================================

class UserStatus(str, Enum):
    """Registration status. ACTIVE if and only if terms were accepted."""
    PENDING = "pending"
    ACTIVE = "active"


@dataclass
class User:
    """
    A chat-platform user, keyed by the platform sender id.

    Created lazily on first contact in PENDING state. The only way to
    reach ACTIVE is ``AsyncUserStore.accept_terms``.
    """
    id: str
    display_name: str
    reference_code: str
    registered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    accepted: bool = False
    status: UserStatus = UserStatus.PENDING

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


# ============================================================================
# INBOUND EVENTS
# ============================================================================

class EventKind(str, Enum):
    TEXT = "text"
    QUICK_REPLY = "quick_reply"
    POSTBACK = "postback"
    ATTACHMENTS = "attachments"


@dataclass
class Attachment:
    """One attachment of an inbound message (image, video, audio, file, ...)."""
    type: str
    url: Optional[str] = None


@dataclass
class InboundEvent:
    """
    Normalized inbound event from the messaging platform.

    Exactly one of ``text`` / ``payload`` / ``attachments`` is meaningful,
    selected by ``kind``.
    """
    sender_id: str
    kind: EventKind
    event_id: Optional[str] = None  # platform message id, used for at-most-once processing
    text: Optional[str] = None
    payload: Optional[str] = None  # quick reply or postback payload
    attachments: list[Attachment] = field(default_factory=list)
    timestamp: Optional[int] = None

    @property
    def is_text(self) -> bool:
        return self.kind == EventKind.TEXT
