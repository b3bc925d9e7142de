# kaizbot/core/engine/replies.py
"""
Reply composer: abstract outbound messages and pure builders.

Builders return ``list[OutboundMessage]`` in send order (e.g. media before
its caption). Serialization to the platform wire format lives in the
transport layer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

from kaizbot.core.engine.capabilities import (
    AIModel,
    ChatResult,
    ImageResult,
    MediaResult,
    SearchResult,
    TrackResult,
    WikiResult,
)
from kaizbot.core.engine.domain import User
from kaizbot.core.engine.intents import Platform
from kaizbot.core.engine.texts import get_text

# Send API limit for button template bodies; longer texts make the send fail.
BUTTON_TEXT_LIMIT = 640
ELLIPSIS = "..."
MAX_BUTTONS = 3
# Every listed result gets its own Watch button
SEARCH_RESULTS_SHOWN = MAX_BUTTONS


# ============================================================================
# MESSAGE TYPES
# ============================================================================

@dataclass(frozen=True)
class TextMessage:
    text: str


@dataclass(frozen=True)
class QuickReply:
    title: str
    payload: str


@dataclass(frozen=True)
class QuickReplySet:
    text: str
    options: tuple[QuickReply, ...] = ()


@dataclass(frozen=True)
class Button:
    """``postback`` buttons carry a payload, ``web_url`` buttons a url."""
    type: Literal["postback", "web_url"]
    title: str
    payload: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class ButtonTemplate:
    text: str
    buttons: tuple[Button, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MediaAttachment:
    kind: Literal["image", "video"]
    url: str


OutboundMessage = Union[TextMessage, QuickReplySet, ButtonTemplate, MediaAttachment]


# ============================================================================
# HELPERS
# ============================================================================

def truncate_button_text(text: str, limit: int = BUTTON_TEXT_LIMIT) -> str:
    """Cut *text* to *limit* characters, ending with an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def button_template(text: str, buttons: list[Button]) -> ButtonTemplate:
    """Build a button template that satisfies the Send API limits."""
    return ButtonTemplate(
        text=truncate_button_text(text),
        buttons=tuple(buttons[:MAX_BUTTONS]),
    )


def postback(title: str, payload: str) -> Button:
    return Button(type="postback", title=title, payload=payload)


def web_url(title: str, url: str) -> Button:
    return Button(type="web_url", title=title, url=url)


def text(message: str) -> list[OutboundMessage]:
    return [TextMessage(text=message)]


# ============================================================================
# REGISTRATION
# ============================================================================

def terms_prompt(
    user: User, terms_url: str | None = None, registration_url: str | None = None,
) -> list[OutboundMessage]:
    buttons = [
        postback("✅ Accept", "ACCEPT_TERMS"),
        postback("❌ Decline", "DECLINE_TERMS"),
    ]
    if terms_url:
        buttons.append(web_url("📄 Read terms", terms_url))
    body = get_text("terms_prompt", name=user.display_name, code=user.reference_code)
    if registration_url:
        # Button slots are taken by the terms actions
        body += "\n\n" + get_text("terms_prompt_web_link", url=registration_url)
    return [button_template(body, buttons)]


def terms_pending(user: User) -> list[OutboundMessage]:
    body = get_text("terms_pending", code=user.reference_code)
    return [button_template(body, [
        postback("✅ Accept", "ACCEPT_TERMS"),
        postback("❌ Decline", "DECLINE_TERMS"),
    ])]


def terms_declined(active: bool = False) -> list[OutboundMessage]:
    # Declining after registration does not revoke it
    return text(get_text("terms_declined_active" if active else "terms_declined"))


def registration_confirmed(user: User) -> list[OutboundMessage]:
    return text(get_text(
        "registration_confirmed", name=user.display_name, code=user.reference_code,
    ))


def registration_completed_web(user: User) -> list[OutboundMessage]:
    return text(get_text("registration_completed_web", code=user.reference_code))


# ============================================================================
# NAVIGATION
# ============================================================================

def welcome(bot_name: str) -> list[OutboundMessage]:
    return [QuickReplySet(
        text=get_text("welcome", bot=bot_name),
        options=(
            QuickReply("🤖 AI Chat", "ai_chat"),
            QuickReply("🎵 Music", "music"),
            QuickReply("📋 Menu", "menu"),
            QuickReply("❓ Help", "help"),
        ),
    )]


def help_menu(bot_name: str) -> list[OutboundMessage]:
    return text(get_text("help", bot=bot_name))


def main_menu() -> list[OutboundMessage]:
    return [button_template(get_text("main_menu"), [
        postback("🤖 AI Chat", "AI_CHAT_MENU"),
        postback("🎵 Downloader", "MUSIC_MENU"),
        postback("❓ Help & Info", "HELP_MENU"),
    ])]


def ai_menu() -> list[OutboundMessage]:
    return [QuickReplySet(
        text=get_text("ai_menu"),
        options=(
            QuickReply("🤖 KAIZ AI", "kaiz_ai"),
            QuickReply("🔮 Gemini Pro", "gemini_pro"),
            QuickReply("💡 GPT-3", "gpt3"),
            QuickReply("🚀 DeepSeek V3", "deepseek_v3"),
            QuickReply("🦙 Llama 3", "llama"),
        ),
    )]


def music_menu() -> list[OutboundMessage]:
    return text(get_text("music_menu"))


def model_selected(model: AIModel) -> list[OutboundMessage]:
    return text(get_text("model_selected", label=model.label, command=model.command))


# ============================================================================
# CAPABILITY RESULTS
# ============================================================================

def ai_response(model: AIModel, result: ChatResult) -> list[OutboundMessage]:
    return text(get_text("ai_response", label=model.label, text=result.text))


def track_ready(result: TrackResult) -> list[OutboundMessage]:
    buttons = [web_url("⬇️ Download Music", result.download_url)]
    if result.preview_url:
        buttons.append(web_url("🎵 Preview", result.preview_url))
    body = get_text(
        "track_ready",
        title=result.title or "Track",
        artist=result.artist or "Unknown Artist",
    )
    return [button_template(body, buttons)]


def media_ready(platform: Platform, result: MediaResult) -> list[OutboundMessage]:
    if result.title:
        caption = get_text("media_caption", title=result.title)
    else:
        caption = get_text("media_caption_default", platform=platform.value.capitalize())
    return [
        MediaAttachment(kind=result.kind, url=result.media_url),
        TextMessage(text=caption),
    ]


def search_results(query: str, result: SearchResult) -> list[OutboundMessage]:
    shown = result.items[:SEARCH_RESULTS_SHOWN]
    lines = []
    for i, item in enumerate(shown, start=1):
        line = f"{i}. {item.title or 'Untitled'}"
        if item.author:
            line += f" - @{item.author}"
        lines.append(line)
    body = get_text("search_header", query=query, lines="\n".join(lines))
    buttons = [web_url(f"▶️ Watch #{i}", item.url) for i, item in enumerate(shown, start=1)]
    return [button_template(body, buttons)]


def wiki_article(result: WikiResult) -> list[OutboundMessage]:
    body = get_text("wiki_result", title=result.title, summary=result.summary)
    if result.url:
        return [button_template(body, [web_url("📖 Read more", result.url)])]
    return text(body)


def background_removed(result: ImageResult) -> list[OutboundMessage]:
    return [
        MediaAttachment(kind="image", url=result.image_url),
        TextMessage(text=get_text("removebg_done")),
    ]


def image_analyzing(model: AIModel) -> list[OutboundMessage]:
    return text(get_text("image_analyzing", label=model.label))


def image_analysis(result: ChatResult) -> list[OutboundMessage]:
    return text(get_text("image_analysis", text=result.text))


# ============================================================================
# REJECTIONS / ERRORS
# ============================================================================

def missing_argument(command: str, usage: str) -> list[OutboundMessage]:
    what = "a message"
    if command in ("/spotify", "/tiktok", "/instagram"):
        what = "a link"
    elif command == "/removebg":
        what = "an image URL"
    elif command in ("/tiksearch", "/wiki"):
        what = "a search query"
    return text(get_text("missing_argument", what=what, usage=usage))


def unknown_command(command: str) -> list[OutboundMessage]:
    return text(get_text("unknown_command", command=command))


def unsupported_attachment() -> list[OutboundMessage]:
    return text(get_text("unsupported_attachment"))


def invalid_url(platform: Platform) -> list[OutboundMessage]:
    return text(get_text("invalid_url", platform=platform.value.capitalize()))


def invalid_image_url() -> list[OutboundMessage]:
    return text(get_text("invalid_image_url"))


def capability_failed(feature: str) -> list[OutboundMessage]:
    return text(get_text("capability_failed", feature=feature))
