# tests/conftest.py
"""Pytest configuration and fixtures"""
import itertools
import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from kaizbot.core.engine.capabilities import CapabilityId  # noqa: E402
from kaizbot.core.engine.domain import Attachment, EventKind, InboundEvent  # noqa: E402
from kaizbot.core.engine.use_cases import DispatchEngine  # noqa: E402
from kaizbot.infra.inbound_repo import InMemoryInboundEventRepository  # noqa: E402
from kaizbot.infra.user_store import InMemoryUserStore  # noqa: E402


class FakeChannel:
    """Records deliveries and typing toggles in call order."""

    def __init__(self):
        self.sent = []  # (recipient_id, message)
        self.calls = []  # ("deliver", message) / ("typing", on)
        self.fail_with = None

    async def deliver(self, recipient_id, message):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((recipient_id, message))
        self.calls.append(("deliver", message))

    async def set_typing(self, recipient_id, on):
        self.calls.append(("typing", on))

    def messages_for(self, recipient_id):
        return [m for r, m in self.sent if r == recipient_id]

    def clear(self):
        self.sent.clear()
        self.calls.clear()


class FakeCapabilities:
    """Returns canned results (or raises canned errors) per capability."""

    def __init__(self):
        self.results = {}
        self.invocations = []  # (capability_id, params)

    def set(self, capability_id: CapabilityId, result_or_error):
        self.results[capability_id] = result_or_error

    async def invoke(self, capability_id, params):
        self.invocations.append((capability_id, params))
        outcome = self.results.get(capability_id)
        if outcome is None:
            raise AssertionError(f"unexpected capability call: {capability_id}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


_event_ids = itertools.count(1)


def make_event(sender_id="1000000001", kind=EventKind.TEXT, *, text=None, payload=None,
               attachments=None, event_id=None):
    return InboundEvent(
        sender_id=sender_id,
        kind=kind,
        event_id=event_id or f"m_{next(_event_ids)}",
        text=text,
        payload=payload,
        attachments=attachments or [],
    )


def text_event(text, sender_id="1000000001", **kw):
    return make_event(sender_id, EventKind.TEXT, text=text, **kw)


def postback_event(payload, sender_id="1000000001", **kw):
    return make_event(sender_id, EventKind.POSTBACK, payload=payload, **kw)


def quick_reply_event(payload, sender_id="1000000001", **kw):
    return make_event(sender_id, EventKind.QUICK_REPLY, payload=payload, **kw)


def image_event(*urls, sender_id="1000000001", **kw):
    return make_event(
        sender_id, EventKind.ATTACHMENTS,
        attachments=[Attachment(type="image", url=u) for u in urls], **kw,
    )


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def capabilities():
    return FakeCapabilities()


@pytest.fixture
def store():
    return InMemoryUserStore()


@pytest.fixture
def engine(store, capabilities, channel):
    return DispatchEngine(
        store=store,
        capabilities=capabilities,
        channel=channel,
        inbound=InMemoryInboundEventRepository(max_size=100),
        bot_name="KAIZ Bot",
        welcome_delay_seconds=0,
    )


@pytest.fixture
def user_id():
    """Default sender id for tests"""
    return "1000000001"
