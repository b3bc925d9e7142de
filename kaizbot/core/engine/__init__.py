# kaizbot/core/engine/__init__.py
"""
Core engine -- platform-agnostic dispatch logic.

This package contains the domain models, the closed intent set and its
classifier, the capability catalogue, the reply composer, the abstract
protocols (ports), and the application-level dispatcher (DispatchEngine).

Canonical imports:
    from kaizbot.core.engine import DispatchEngine, classify
    from kaizbot.core.engine.domain import User, InboundEvent
    from kaizbot.core.engine.ports import AsyncUserStore
"""
from kaizbot.core.engine.domain import (  # noqa: F401
    User,
    UserStatus,
    EventKind,
    Attachment,
    InboundEvent,
)
from kaizbot.core.engine.ports import (  # noqa: F401
    AsyncUserStore,
    AsyncInboundEventRepository,
    CapabilityRegistry,
    OutboundChannel,
)
from kaizbot.core.engine.capabilities import AIModel, CapabilityId  # noqa: F401
from kaizbot.core.engine.intents import Intent, Platform  # noqa: F401
from kaizbot.core.engine.classifier import classify  # noqa: F401
from kaizbot.core.engine.use_cases import DispatchEngine  # noqa: F401
