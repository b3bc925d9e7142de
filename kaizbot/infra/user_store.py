# kaizbot/infra/user_store.py
"""
In-memory user store.

Holds the user table and the pending-registration index
(``reference_code -> user_id``). State is per process and lost on restart.

Concurrency: every operation runs without awaiting inside its
read-modify-write, so on one event loop each call is atomic. Callers that
span several operations for the same user (check, then act) hold
``lock(user_id)``, a per-user ``asyncio.Lock``.
"""
from __future__ import annotations

import asyncio
import re
import secrets
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from kaizbot.core.engine.domain import User, UserStatus
from kaizbot.core.engine.errors import (
    ReferenceCodeExhaustedError,
    RegistrationNotFoundError,
    TermsNotAcceptedError,
    UserNotFoundError,
)
from kaizbot.infra.logging_config import get_logger, mask_user_id
from kaizbot.infra.metrics import AppMetrics

logger = get_logger(__name__)

MAX_CODE_ATTEMPTS = 20
_NAME_CHARS = re.compile(r"[^A-Za-z0-9]")


def default_display_name(user_id: str) -> str:
    """Placeholder name for users the platform did not name."""
    return f"User{user_id[-4:]}"


def generate_reference_code(display_name: str) -> str:
    """``#<name>-<5-digit zero-padded random>``"""
    name = _NAME_CHARS.sub("", display_name) or "user"
    return f"#{name}-{secrets.randbelow(100_000):05d}"


def normalize_reference_code(code: str) -> str:
    code = code.strip()
    if code and not code.startswith("#"):
        code = f"#{code}"
    return code


class InMemoryUserStore:
    """Async in-memory implementation of AsyncUserStore."""

    def __init__(self, code_factory: Callable[[str], str] | None = None):
        self._users: dict[str, User] = {}
        self._pending: dict[str, str] = {}
        self._issued_codes: set[str] = set()
        self._locks: dict[str, asyncio.Lock] = {}
        self._code_factory = code_factory or generate_reference_code

    @asynccontextmanager
    async def lock(self, user_id: str) -> AsyncIterator[None]:
        user_lock = self._locks.setdefault(user_id, asyncio.Lock())
        async with user_lock:
            yield

    async def get(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    async def get_or_create(self, user_id: str, display_name: str | None = None) -> tuple[User, bool]:
        existing = self._users.get(user_id)
        if existing is not None:
            return existing, False

        name = display_name or default_display_name(user_id)
        user = User(id=user_id, display_name=name, reference_code=self._new_code(name))
        self._users[user_id] = user
        self._pending[user.reference_code] = user_id
        AppMetrics.user_created()
        logger.info(
            f"User created: user={mask_user_id(user_id)}, code={user.reference_code}"
        )
        return user, True

    async def accept_terms(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFoundError(f"No user {mask_user_id(user_id)}")

        if not user.accepted:
            user.accepted = True
            user.status = UserStatus.ACTIVE
            AppMetrics.terms_accepted()
            logger.info(f"Terms accepted: user={mask_user_id(user_id)}")
        return user

    async def resolve_by_reference_code(self, code: str) -> User:
        user_id = self._pending.get(normalize_reference_code(code))
        if user_id is None:
            raise RegistrationNotFoundError("Reference code not found")
        return self._users[user_id]

    async def complete_registration(self, code: str) -> User:
        normalized = normalize_reference_code(code)
        user = await self.resolve_by_reference_code(normalized)
        if not user.accepted:
            raise TermsNotAcceptedError("Terms not accepted yet")

        del self._pending[normalized]
        AppMetrics.registration_completed()
        logger.info(f"Registration completed: user={mask_user_id(user.id)}, code={normalized}")
        return user

    def _new_code(self, display_name: str) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = self._code_factory(display_name)
            if code not in self._issued_codes:
                self._issued_codes.add(code)
                return code
            logger.warning(f"Reference code collision, regenerating: {code}")
        raise ReferenceCodeExhaustedError(
            f"No unique reference code after {MAX_CODE_ATTEMPTS} attempts"
        )

    @property
    def user_count(self) -> int:
        return len(self._users)

    @property
    def pending_count(self) -> int:
        return len(self._pending)
