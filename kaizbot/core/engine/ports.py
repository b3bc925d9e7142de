# kaizbot/core/engine/ports.py
from __future__ import annotations
from typing import AsyncContextManager, Protocol, Optional

from kaizbot.core.engine.capabilities import CapabilityId, CapabilityResult
from kaizbot.core.engine.domain import User
from kaizbot.core.engine.replies import OutboundMessage


class AsyncUserStore(Protocol):
    """Owns the user table and the pending-registration index."""

    def lock(self, user_id: str) -> AsyncContextManager[None]:
        """Mutual-exclusion domain for one user's state transitions."""
        ...

    async def get(self, user_id: str) -> Optional[User]: ...
    async def get_or_create(self, user_id: str, display_name: str | None = None) -> tuple[User, bool]: ...
    async def accept_terms(self, user_id: str) -> User: ...
    async def resolve_by_reference_code(self, code: str) -> User: ...
    async def complete_registration(self, code: str) -> User: ...


class AsyncInboundEventRepository(Protocol):
    async def seen_or_mark(self, event_id: str) -> bool:
        """
        True  => event already seen (duplicate), skip processing
        False => first time seeing it, proceed with processing
        """
        ...


class CapabilityRegistry(Protocol):
    async def invoke(self, capability_id: CapabilityId, params: dict[str, str]) -> CapabilityResult:
        """Raises CapabilityError on any failure."""
        ...


class OutboundChannel(Protocol):
    async def deliver(self, recipient_id: str, message: OutboundMessage) -> None:
        """Raises DeliveryError when the platform rejects or cannot be reached."""
        ...

    async def set_typing(self, recipient_id: str, on: bool) -> None:
        """Best-effort typing indicator. Never raises."""
        ...
