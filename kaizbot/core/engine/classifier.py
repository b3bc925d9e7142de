# kaizbot/core/engine/classifier.py
"""
Intent classifier: maps one normalized inbound event to intents.

Text rules, in priority order:
1. ``/command remainder`` → command intent (unknown → ``UnknownCommand``,
   empty remainder on an argument command → ``MissingArgument``)
2. exact ``menu`` / ``start`` / ``help``
3. known link domain anywhere in the text → ``DownloadMedia``
4. anything else → ``FreeformChat`` with the default model

Matching is case-insensitive; arguments keep their original case.
Quick-reply and postback payloads map 1:1 through fixed tables, and each
attachment yields its own intent.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from kaizbot.core.engine.capabilities import AIModel
from kaizbot.core.engine.domain import Attachment, EventKind, InboundEvent
from kaizbot.core.engine.intents import (
    AcceptTerms,
    AnalyzeImage,
    AskModel,
    DeclineTerms,
    DownloadMedia,
    FreeformChat,
    Intent,
    MissingArgument,
    ModelSelected,
    Platform,
    RemoveBackground,
    SearchTikTok,
    SearchWiki,
    ShowAIMenu,
    ShowHelp,
    ShowMainMenu,
    ShowMusicMenu,
    ShowWelcome,
    UnknownCommand,
    UnsupportedAttachment,
)

# ============================================================================
# PAYLOAD TABLES
# ============================================================================

POSTBACK_GET_STARTED = "GET_STARTED"
POSTBACK_ACCEPT_TERMS = "ACCEPT_TERMS"
POSTBACK_DECLINE_TERMS = "DECLINE_TERMS"
POSTBACK_AI_CHAT_MENU = "AI_CHAT_MENU"
POSTBACK_MUSIC_MENU = "MUSIC_MENU"
POSTBACK_HELP_MENU = "HELP_MENU"

POSTBACK_INTENTS: dict[str, Intent] = {
    POSTBACK_GET_STARTED: ShowWelcome(),
    POSTBACK_ACCEPT_TERMS: AcceptTerms(),
    POSTBACK_DECLINE_TERMS: DeclineTerms(),
    POSTBACK_AI_CHAT_MENU: ShowAIMenu(),
    POSTBACK_MUSIC_MENU: ShowMusicMenu(),
    POSTBACK_HELP_MENU: ShowHelp(),
}

QUICK_REPLY_INTENTS: dict[str, Intent] = {
    "ai_chat": ModelSelected(AIModel.KAIZ),
    "kaiz_ai": ModelSelected(AIModel.KAIZ),
    "gemini_pro": ModelSelected(AIModel.GEMINI),
    "gpt3": ModelSelected(AIModel.GPT),
    "deepseek_v3": ModelSelected(AIModel.DEEPSEEK),
    "llama": ModelSelected(AIModel.LLAMA),
    "music": ShowMusicMenu(),
    "menu": ShowMainMenu(),
    "help": ShowHelp(),
}

MENU_WORDS = frozenset({"menu", "start"})
HELP_WORDS = frozenset({"help"})


# ============================================================================
# COMMANDS
# ============================================================================

@dataclass(frozen=True)
class Command:
    """A slash command and how its remainder becomes an intent."""
    build: Callable[[str], Intent]
    usage: str | None = None  # None: no argument required


def extract_url(platform: Platform, text: str) -> str:
    """Return the first platform URL found in *text*, or *text* itself."""
    match = platform.url_pattern.search(text)
    return match.group(1) if match else text


def _ask(model: AIModel) -> Command:
    return Command(
        build=lambda rest: AskModel(model=model, prompt=rest),
        usage=f"{model.command} Hello, how are you?",
    )


def _download(platform: Platform, example: str) -> Command:
    return Command(
        build=lambda rest: DownloadMedia(platform=platform, url=extract_url(platform, rest)),
        usage=f"/{platform.value} {example}",
    )


COMMANDS: dict[str, Command] = {
    "/ai": _ask(AIModel.KAIZ),
    "/kaiz": _ask(AIModel.KAIZ),
    "/gemini": _ask(AIModel.GEMINI),
    "/gpt": _ask(AIModel.GPT),
    "/deepseek": _ask(AIModel.DEEPSEEK),
    "/llama": _ask(AIModel.LLAMA),
    "/spotify": _download(Platform.SPOTIFY, "https://open.spotify.com/track/..."),
    "/tiktok": _download(Platform.TIKTOK, "https://vm.tiktok.com/..."),
    "/instagram": _download(Platform.INSTAGRAM, "https://www.instagram.com/reel/..."),
    "/tiksearch": Command(build=SearchTikTok, usage="/tiksearch funny cats"),
    "/wiki": Command(build=SearchWiki, usage="/wiki Albert Einstein"),
    "/removebg": Command(build=RemoveBackground, usage="/removebg https://example.com/photo.jpg"),
    "/menu": Command(build=lambda rest: ShowMainMenu()),
    "/start": Command(build=lambda rest: ShowMainMenu()),
    "/help": Command(build=lambda rest: ShowHelp()),
}


# ============================================================================
# CLASSIFIER
# ============================================================================

def classify_text(text: str) -> Intent:
    """Classify free text or a slash command."""
    stripped = (text or "").strip()
    normalized = stripped.lower()

    if not normalized:
        return ShowMainMenu()

    if normalized.startswith("/"):
        return _classify_command(stripped)

    if normalized in MENU_WORDS:
        return ShowMainMenu()
    if normalized in HELP_WORDS:
        return ShowHelp()

    for platform in Platform:
        if any(keyword in normalized for keyword in platform.keywords):
            return DownloadMedia(platform=platform, url=extract_url(platform, stripped))

    return FreeformChat(text=stripped)


def _classify_command(stripped: str) -> Intent:
    head, _, rest = stripped.partition(" ")
    name = head.lower()
    remainder = rest.strip()

    command = COMMANDS.get(name)
    if command is None:
        return UnknownCommand(command=name)

    if command.usage is not None and not remainder:
        return MissingArgument(command=name, usage=command.usage)

    return command.build(remainder)


def classify_attachment(attachment: Attachment) -> Intent:
    if attachment.type == "image":
        return AnalyzeImage(url=attachment.url or "")
    return UnsupportedAttachment(attachment_type=attachment.type)


def classify(event: InboundEvent) -> list[Intent]:
    """
    Classify one inbound event.

    Returns a single intent for text, quick-reply and postback events and
    one intent per attachment (in order) for attachment events.
    """
    if event.kind == EventKind.TEXT:
        return [classify_text(event.text or "")]

    if event.kind == EventKind.QUICK_REPLY:
        return [QUICK_REPLY_INTENTS.get(event.payload or "", ShowMainMenu())]

    if event.kind == EventKind.POSTBACK:
        return [POSTBACK_INTENTS.get(event.payload or "", ShowMainMenu())]

    if event.kind == EventKind.ATTACHMENTS:
        return [classify_attachment(a) for a in event.attachments]

    raise ValueError(f"Unknown event kind: {event.kind}")
