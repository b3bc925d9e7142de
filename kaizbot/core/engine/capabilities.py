# kaizbot/core/engine/capabilities.py
"""
Capability catalogue and per-capability result schemas.

Every external operation (AI chat model, media downloader, search, image
tool) is a named capability invoked uniformly through
``CapabilityRegistry.invoke(capability_id, params)``. The registry
validates the raw provider payload against the schema declared here, so
handlers only ever see typed results.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from urllib.parse import urlsplit

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationInfo,
    field_validator,
)

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".heic")


class CapabilityId(str, Enum):
    KAIZ_AI = "kaiz_ai"
    GEMINI_PRO = "gemini_pro"
    GPT3 = "gpt3"
    DEEPSEEK_V3 = "deepseek_v3"
    LLAMA = "llama"
    SPOTIFY_DOWNLOAD = "spotify_download"
    TIKTOK_DOWNLOAD = "tiktok_download"
    INSTAGRAM_DOWNLOAD = "instagram_download"
    TIKTOK_SEARCH = "tiktok_search"
    WIKIPEDIA = "wikipedia"
    REMOVE_BG = "remove_bg"


# ============================================================================
# RESULT SCHEMAS
# ============================================================================

class _Result(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class ChatResult(_Result):
    text: NonEmptyStr = Field(validation_alias=AliasChoices("text", "response", "reply", "answer"))


class TrackResult(_Result):
    download_url: NonEmptyStr = Field(validation_alias=AliasChoices("download_url", "downloadUrl"))
    title: Optional[str] = None
    artist: Optional[str] = None
    preview_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("preview_url", "previewUrl"),
    )


class MediaResult(_Result):
    media_url: NonEmptyStr = Field(
        validation_alias=AliasChoices(
            "media_url", "mediaUrl", "video_url", "videoUrl", "download_url", "downloadUrl", "url",
        ),
    )
    title: Optional[str] = None
    preview_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("preview_url", "previewUrl", "thumbnail", "cover"),
    )
    kind: Literal["image", "video"] = Field(
        default=None,
        validate_default=True,
        validation_alias=AliasChoices("kind", "type", "media_type", "mediaType"),
    )

    @field_validator("kind", mode="before")
    @classmethod
    def resolve_kind(cls, v, info: ValidationInfo):
        if isinstance(v, str):
            declared = v.strip().lower()
            if "image" in declared or "photo" in declared:
                return "image"
            if "video" in declared:
                return "video"
        # Undeclared or unrecognised: go by the file extension
        path = urlsplit(info.data.get("media_url") or "").path.lower()
        return "image" if path.endswith(IMAGE_EXTENSIONS) else "video"


class SearchItem(_Result):
    title: str = ""
    url: NonEmptyStr = Field(validation_alias=AliasChoices("url", "play", "video_url", "link"))
    author: Optional[str] = None

    @field_validator("author", mode="before")
    @classmethod
    def flatten_author(cls, v):
        # Some providers nest the author profile
        if isinstance(v, dict):
            return v.get("nickname") or v.get("unique_id") or v.get("name")
        return v


class SearchResult(_Result):
    items: list[SearchItem] = Field(
        min_length=1, validation_alias=AliasChoices("items", "videos", "results", "data"),
    )


class WikiResult(_Result):
    title: NonEmptyStr
    summary: NonEmptyStr = Field(
        validation_alias=AliasChoices("summary", "extract", "description", "content"),
    )
    url: Optional[str] = Field(default=None, validation_alias=AliasChoices("url", "page_url", "link"))


class ImageResult(_Result):
    image_url: NonEmptyStr = Field(
        validation_alias=AliasChoices("image_url", "imageUrl", "result", "url", "response"),
    )


CapabilityResult = Union[ChatResult, TrackResult, MediaResult, SearchResult, WikiResult, ImageResult]


# ============================================================================
# CATALOGUE
# ============================================================================

@dataclass(frozen=True)
class CapabilitySpec:
    """Static description of one capability."""
    id: CapabilityId
    endpoint: str  # path under the provider base URL
    arg_param: str  # query parameter carrying the user argument
    result_model: type[_Result]
    feature: str  # user-facing feature name, used in apology messages
    passes_uid: bool = False  # provider keeps per-user conversation memory


CAPABILITIES: dict[CapabilityId, CapabilitySpec] = {
    spec.id: spec for spec in (
        CapabilitySpec(CapabilityId.KAIZ_AI, "kaiz-ai", "ask", ChatResult, "KAIZ AI", passes_uid=True),
        CapabilitySpec(CapabilityId.GEMINI_PRO, "gemini-pro", "ask", ChatResult, "Gemini Pro", passes_uid=True),
        CapabilitySpec(CapabilityId.GPT3, "gpt3", "ask", ChatResult, "GPT-3"),
        CapabilitySpec(CapabilityId.DEEPSEEK_V3, "deepseek-v3", "ask", ChatResult, "DeepSeek V3"),
        CapabilitySpec(CapabilityId.LLAMA, "llama-3-70b", "ask", ChatResult, "Llama 3"),
        CapabilitySpec(CapabilityId.SPOTIFY_DOWNLOAD, "spotify-down", "url", TrackResult, "Spotify downloader"),
        CapabilitySpec(CapabilityId.TIKTOK_DOWNLOAD, "tiktok-dl", "url", MediaResult, "TikTok downloader"),
        CapabilitySpec(CapabilityId.INSTAGRAM_DOWNLOAD, "insta-dl", "url", MediaResult, "Instagram downloader"),
        CapabilitySpec(CapabilityId.TIKTOK_SEARCH, "tiksearch", "search", SearchResult, "TikTok search"),
        CapabilitySpec(CapabilityId.WIKIPEDIA, "wikipedia", "search", WikiResult, "Wikipedia search"),
        CapabilitySpec(CapabilityId.REMOVE_BG, "removebg", "url", ImageResult, "Background remover"),
    )
}


def get_spec(capability_id: CapabilityId) -> CapabilitySpec:
    return CAPABILITIES[capability_id]


def build_params(capability_id: CapabilityId, argument: str, user_id: str | None = None) -> dict[str, str]:
    """Build the query parameters for one capability call."""
    spec = get_spec(capability_id)
    params = {spec.arg_param: argument}
    if spec.passes_uid and user_id:
        params["uid"] = user_id
    return params


# ============================================================================
# AI MODELS
# ============================================================================

class AIModel(str, Enum):
    """Chat models selectable by command or quick reply."""
    KAIZ = "kaiz"
    GEMINI = "gemini"
    GPT = "gpt"
    DEEPSEEK = "deepseek"
    LLAMA = "llama"

    @property
    def capability(self) -> CapabilityId:
        return _MODEL_CAPABILITIES[self]

    @property
    def label(self) -> str:
        return _MODEL_LABELS[self]

    @property
    def command(self) -> str:
        return "/ai" if self is AIModel.KAIZ else f"/{self.value}"


_MODEL_CAPABILITIES = {
    AIModel.KAIZ: CapabilityId.KAIZ_AI,
    AIModel.GEMINI: CapabilityId.GEMINI_PRO,
    AIModel.GPT: CapabilityId.GPT3,
    AIModel.DEEPSEEK: CapabilityId.DEEPSEEK_V3,
    AIModel.LLAMA: CapabilityId.LLAMA,
}

_MODEL_LABELS = {
    AIModel.KAIZ: "🤖 KAIZ AI",
    AIModel.GEMINI: "🔮 Gemini Pro",
    AIModel.GPT: "💡 GPT-3",
    AIModel.DEEPSEEK: "🚀 DeepSeek V3",
    AIModel.LLAMA: "🦙 Llama 3",
}
