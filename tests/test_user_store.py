# tests/test_user_store.py
"""Tests for the in-memory user store and pending-registration index"""
import asyncio
import re

import pytest

from kaizbot.core.engine.domain import UserStatus
from kaizbot.core.engine.errors import (
    ReferenceCodeExhaustedError,
    RegistrationNotFoundError,
    TermsNotAcceptedError,
    UserNotFoundError,
)
from kaizbot.infra.user_store import (
    InMemoryUserStore,
    default_display_name,
    generate_reference_code,
    normalize_reference_code,
)

CODE_PATTERN = re.compile(r"^#.+-\d{5}$")


class TestReferenceCodes:
    def test_generated_code_format(self):
        for _ in range(50):
            assert CODE_PATTERN.match(generate_reference_code("Alice"))

    def test_name_is_sanitized(self):
        code = generate_reference_code("Jean-Luc Picard!")
        assert code.startswith("#JeanLucPicard-")

    def test_empty_name_falls_back(self):
        assert generate_reference_code("!!!").startswith("#user-")

    def test_default_display_name(self):
        assert default_display_name("1234567890") == "User7890"

    @pytest.mark.parametrize("raw,expected", [
        ("#Bob-00001", "#Bob-00001"),
        ("Bob-00001", "#Bob-00001"),
        ("  #Bob-00001 ", "#Bob-00001"),
        ("", ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_reference_code(raw) == expected


class TestGetOrCreate:

    @pytest.mark.asyncio
    async def test_creates_pending_user_once(self):
        store = InMemoryUserStore()

        user, created = await store.get_or_create("1000000001")
        again, created_again = await store.get_or_create("1000000001")

        assert created is True
        assert created_again is False
        assert again is user
        assert user.status == UserStatus.PENDING
        assert user.accepted is False
        assert user.display_name == "User0001"
        assert CODE_PATTERN.match(user.reference_code)
        assert store.pending_count == 1

    @pytest.mark.asyncio
    async def test_uses_given_display_name(self):
        store = InMemoryUserStore()
        user, _ = await store.get_or_create("42424242", display_name="Maria")
        assert user.reference_code.startswith("#Maria-")

    @pytest.mark.asyncio
    async def test_codes_unique_across_users(self):
        store = InMemoryUserStore()
        codes = set()
        for i in range(200):
            user, _ = await store.get_or_create(f"user-{i:06d}")
            codes.add(user.reference_code)
        assert len(codes) == 200

    @pytest.mark.asyncio
    async def test_collision_is_regenerated(self):
        sequence = iter(["#A-00001", "#A-00001", "#A-00002"])
        store = InMemoryUserStore(code_factory=lambda name: next(sequence))

        first, _ = await store.get_or_create("u1")
        second, _ = await store.get_or_create("u2")

        assert first.reference_code == "#A-00001"
        assert second.reference_code == "#A-00002"

    @pytest.mark.asyncio
    async def test_exhausted_code_space_raises(self):
        store = InMemoryUserStore(code_factory=lambda name: "#A-00001")
        await store.get_or_create("u1")

        with pytest.raises(ReferenceCodeExhaustedError):
            await store.get_or_create("u2")
        assert await store.get("u2") is None


class TestAcceptTerms:

    @pytest.mark.asyncio
    async def test_accept_activates(self):
        store = InMemoryUserStore()
        await store.get_or_create("u1")

        user = await store.accept_terms("u1")

        assert user.accepted is True
        assert user.status == UserStatus.ACTIVE
        assert user.is_active

    @pytest.mark.asyncio
    async def test_accept_is_idempotent(self):
        store = InMemoryUserStore()
        await store.get_or_create("u1")

        await store.accept_terms("u1")
        user = await store.accept_terms("u1")

        assert user.status == UserStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_accept_unknown_user(self):
        store = InMemoryUserStore()
        with pytest.raises(UserNotFoundError):
            await store.accept_terms("ghost")


class TestOutOfBandRegistration:

    @pytest.mark.asyncio
    async def test_resolve_by_reference_code(self):
        store = InMemoryUserStore()
        user, _ = await store.get_or_create("u1")

        assert await store.resolve_by_reference_code(user.reference_code) is user
        assert await store.resolve_by_reference_code(user.reference_code.lstrip("#")) is user

    @pytest.mark.asyncio
    async def test_resolve_unknown_code(self):
        store = InMemoryUserStore()
        with pytest.raises(RegistrationNotFoundError):
            await store.resolve_by_reference_code("#Nobody-00000")

    @pytest.mark.asyncio
    async def test_complete_requires_acceptance(self):
        store = InMemoryUserStore()
        user, _ = await store.get_or_create("u1")

        with pytest.raises(TermsNotAcceptedError):
            await store.complete_registration(user.reference_code)
        # Entry stays until a successful completion
        assert await store.resolve_by_reference_code(user.reference_code) is user

    @pytest.mark.asyncio
    async def test_complete_twice_second_is_not_found(self):
        store = InMemoryUserStore()
        user, _ = await store.get_or_create("u1")
        await store.accept_terms("u1")

        completed = await store.complete_registration(user.reference_code)

        assert completed is user
        with pytest.raises(RegistrationNotFoundError):
            await store.complete_registration(user.reference_code)
        with pytest.raises(RegistrationNotFoundError):
            await store.resolve_by_reference_code(user.reference_code)
        # User itself persists
        assert await store.get("u1") is user
        assert store.pending_count == 0


class TestUserLock:

    @pytest.mark.asyncio
    async def test_lock_serializes_same_user(self):
        store = InMemoryUserStore()
        order = []

        async def critical(tag):
            async with store.lock("u1"):
                order.append(f"{tag}-in")
                await asyncio.sleep(0.01)
                order.append(f"{tag}-out")

        await asyncio.gather(critical("a"), critical("b"))

        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    @pytest.mark.asyncio
    async def test_different_users_do_not_block(self):
        store = InMemoryUserStore()
        order = []

        async def critical(user_id):
            async with store.lock(user_id):
                order.append(f"{user_id}-in")
                await asyncio.sleep(0.01)
                order.append(f"{user_id}-out")

        await asyncio.gather(critical("u1"), critical("u2"))

        assert order[:2] == ["u1-in", "u2-in"]
