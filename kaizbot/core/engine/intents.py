# kaizbot/core/engine/intents.py
"""
Closed set of intents produced by the classifier.

``Intent`` is a union of frozen dataclasses. The dispatch engine consumes
it with an exhaustive ``isinstance`` chain ending in ``assert_never``, so a
new variant that is not handled fails type checking.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Union

from kaizbot.core.engine.capabilities import AIModel, CapabilityId


class Platform(str, Enum):
    """Media platforms with a download capability."""
    SPOTIFY = "spotify"
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"

    @property
    def domain_marker(self) -> str:
        """Substring a URL argument must contain to be accepted."""
        return _PLATFORM_DOMAINS[self][0]

    @property
    def keywords(self) -> tuple[str, ...]:
        """Link domains that route free text to this platform."""
        return _PLATFORM_DOMAINS[self]

    @property
    def url_pattern(self) -> re.Pattern[str]:
        return _PLATFORM_URL_PATTERNS[self]

    @property
    def capability(self) -> CapabilityId:
        return _PLATFORM_CAPABILITIES[self]


_PLATFORM_DOMAINS: dict[Platform, tuple[str, ...]] = {
    Platform.SPOTIFY: ("spotify.com",),
    Platform.TIKTOK: ("tiktok.com", "vm.tiktok.com", "vt.tiktok.com"),
    Platform.INSTAGRAM: ("instagram.com",),
}

# https?://(optional-subdomain.)domain/non-whitespace+
_PLATFORM_URL_PATTERNS: dict[Platform, re.Pattern[str]] = {
    Platform.SPOTIFY: re.compile(r"(https?://(?:[\w-]+\.)?spotify\.com/\S+)", re.IGNORECASE),
    Platform.TIKTOK: re.compile(r"(https?://(?:[\w-]+\.)?tiktok\.com/\S+)", re.IGNORECASE),
    Platform.INSTAGRAM: re.compile(r"(https?://(?:[\w-]+\.)?instagram\.com/\S+)", re.IGNORECASE),
}

_PLATFORM_CAPABILITIES: dict[Platform, CapabilityId] = {
    Platform.SPOTIFY: CapabilityId.SPOTIFY_DOWNLOAD,
    Platform.TIKTOK: CapabilityId.TIKTOK_DOWNLOAD,
    Platform.INSTAGRAM: CapabilityId.INSTAGRAM_DOWNLOAD,
}


# ============================================================================
# TERMS
# ============================================================================

@dataclass(frozen=True)
class AcceptTerms:
    pass


@dataclass(frozen=True)
class DeclineTerms:
    pass


# ============================================================================
# NAVIGATION
# ============================================================================

@dataclass(frozen=True)
class ShowWelcome:
    pass


@dataclass(frozen=True)
class ShowMainMenu:
    pass


@dataclass(frozen=True)
class ShowHelp:
    pass


@dataclass(frozen=True)
class ShowAIMenu:
    pass


@dataclass(frozen=True)
class ShowMusicMenu:
    pass


@dataclass(frozen=True)
class ModelSelected:
    model: AIModel


# ============================================================================
# CAPABILITY-BACKED
# ============================================================================

@dataclass(frozen=True)
class FreeformChat:
    """Plain text with no command: goes to the default AI model."""
    text: str


@dataclass(frozen=True)
class AskModel:
    """Explicit ``/ai``, ``/gemini``, ... command."""
    model: AIModel
    prompt: str


@dataclass(frozen=True)
class DownloadMedia:
    platform: Platform
    url: str


@dataclass(frozen=True)
class SearchTikTok:
    query: str


@dataclass(frozen=True)
class SearchWiki:
    query: str


@dataclass(frozen=True)
class RemoveBackground:
    image_url: str


@dataclass(frozen=True)
class AnalyzeImage:
    url: str


# ============================================================================
# REJECTIONS
# ============================================================================

@dataclass(frozen=True)
class UnsupportedAttachment:
    attachment_type: str


@dataclass(frozen=True)
class UnknownCommand:
    command: str


@dataclass(frozen=True)
class MissingArgument:
    command: str
    usage: str  # example invocation shown to the user


Intent = Union[
    AcceptTerms,
    DeclineTerms,
    ShowWelcome,
    ShowMainMenu,
    ShowHelp,
    ShowAIMenu,
    ShowMusicMenu,
    ModelSelected,
    FreeformChat,
    AskModel,
    DownloadMedia,
    SearchTikTok,
    SearchWiki,
    RemoveBackground,
    AnalyzeImage,
    UnsupportedAttachment,
    UnknownCommand,
    MissingArgument,
]


def intent_name(intent: Intent) -> str:
    """Stable label for logs and metrics."""
    return type(intent).__name__
