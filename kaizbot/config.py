# kaizbot/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    port: int = 5000
    bot_name: str = "KAIZ Bot"

    # Messenger Platform (Graph API)
    page_access_token: str | None = None  # Page token used by the Send API
    verify_token: str | None = None  # Token for the GET /webhook verification handshake
    app_secret: str | None = None  # App secret for X-Hub-Signature-256 checks
    graph_api_version: str = "v18.0"
    require_webhook_validation: bool = True

    # External capability API (AI models, downloaders, search, image tools)
    kaiz_api_base: str = "https://kaiz-apis.gleeze.com/api"
    kaiz_api_key: str | None = None
    capability_timeout_seconds: float = 30.0  # Total per-call timeout
    capability_connect_timeout_seconds: float = 5.0

    # Dispatch
    default_ai_model: Literal["kaiz", "gemini", "gpt", "deepseek", "llama"] = "kaiz"
    welcome_delay_seconds: float = 2.0  # Pause between registration confirmation and welcome message
    processed_event_cache_size: int = 10000  # Event ids remembered for at-most-once processing

    # Registration
    terms_url: str | None = None  # Shown as a third button on the terms prompt when set
    registration_page_url: str | None = None  # Public URL of GET /register, mentioned in the terms prompt

    # Security / ops
    allowed_origins: list[str] = ["*"]
    metrics_token: str | None = None  # /metrics is hidden unless set
    enable_request_logging: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def is_staging(self) -> bool:
        return self.app_env == "staging"

    @property
    def messenger_enabled(self) -> bool:
        """Check if the Messenger Send API is configured"""
        return bool(self.page_access_token and self.verify_token)

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        required_fields = [
            ("page_access_token", self.page_access_token),
            ("verify_token", self.verify_token),
            ("kaiz_api_key", self.kaiz_api_key),
        ]
        if self.require_webhook_validation:
            required_fields.append(("app_secret", self.app_secret))

        return [name for name, value in required_fields if not value]


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if not s.page_access_token:
        warnings.append("page_access_token is missing (outbound replies will fail).")

    if not s.verify_token:
        warnings.append("verify_token is missing (webhook verification handshake will always fail).")

    if s.require_webhook_validation and not s.app_secret:
        warnings.append("require_webhook_validation=True but app_secret is not set (signature checks are skipped).")

    if not s.kaiz_api_key:
        warnings.append("kaiz_api_key is missing (AI and download capabilities will fail).")

    if s.is_production and s.allowed_origins == ["*"]:
        warnings.append("prod: allowed_origins=['*'] (CORS is wide open).")

    if s.capability_timeout_seconds <= 0:
        warnings.append("capability_timeout_seconds <= 0 disables the capability call timeout.")

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.
    """
    missing = s.validate_required_for_production()

    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    for msg in warn_on_risky_config(s):
        print(f"[WARN][config] {msg}")

settings = Settings()
validate_or_warn(settings)
