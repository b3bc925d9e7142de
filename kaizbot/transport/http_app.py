# kaizbot/transport/http_app.py
"""
HTTP application.

Surfaces:
1. Public: Messenger webhook (verify token + optional signature check)
2. Public: registration page and reference-code completion
3. Public: status and health
4. Protected: metrics (bearer token, hidden when not configured)
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from kaizbot.config import settings
from kaizbot.core.engine.capabilities import AIModel
from kaizbot.core.engine.errors import StateError, ValidationError
from kaizbot.core.engine.use_cases import DispatchEngine
from kaizbot.infra.http_client import close_all_sessions
from kaizbot.infra.inbound_repo import InMemoryInboundEventRepository
from kaizbot.infra.kaiz_api import HttpCapabilityRegistry
from kaizbot.infra.logging_config import get_logger, setup_logging
from kaizbot.infra.metrics import get_metrics_collector
from kaizbot.infra.uptime import UptimeTracker
from kaizbot.infra.user_store import InMemoryUserStore
from kaizbot.transport.messenger_sender import MessengerSender
from kaizbot.transport.messenger_webhook import messenger_webhook_handler, messenger_webhook_verify
from kaizbot.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
)
from kaizbot.transport.registration_page import render_registration_page
from kaizbot.transport.schemas import (
    HealthOut,
    RegistrationCompleteIn,
    RegistrationCompleteOut,
    ServiceStatusOut,
)
from kaizbot.transport.security import (
    SecurityHeaders,
    require_metrics_auth,
    sanitize_error_message,
)

# Initialize logging first
setup_logging(
    level=settings.log_level,
    use_json=settings.is_production,
)

logger = get_logger(__name__)

FEATURES = [
    "Multi-AI Chat (KAIZ AI, Gemini Pro, GPT-3, DeepSeek V3, Llama 3)",
    "Spotify, TikTok and Instagram Downloader",
    "TikTok and Wikipedia Search",
    "Image Analysis and Background Removal",
    "Interactive Buttons & Quick Replies",
    "Terms Acceptance and Web Registration",
]


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_engine(request: Request) -> DispatchEngine:
    """Get engine from app state"""
    return request.app.state.engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        return SecurityHeaders.add_security_headers(response)


# ============================================================================
# LIFESPAN
# ============================================================================

@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifecycle: startup and shutdown"""

    # STARTUP
    logger.info(f"Starting {settings.bot_name}: env={settings.app_env}")

    if settings.is_production:
        missing = settings.validate_required_for_production()
        if missing:
            logger.critical(f"Missing required production settings: {missing}")
            raise RuntimeError(f"Missing production config: {missing}")

        if not settings.require_webhook_validation:
            logger.critical("REQUIRE_WEBHOOK_VALIDATION must be true in production")
            raise RuntimeError("Webhook validation disabled in production")

    capabilities = HttpCapabilityRegistry(
        settings.kaiz_api_base,
        settings.kaiz_api_key,
        timeout=settings.capability_timeout_seconds,
        connect_timeout=settings.capability_connect_timeout_seconds,
    )
    fastapi_app.state.capabilities = capabilities
    fastapi_app.state.uptime = UptimeTracker()
    fastapi_app.state.engine = DispatchEngine(
        store=InMemoryUserStore(),
        capabilities=capabilities,
        channel=MessengerSender(settings.page_access_token, settings.graph_api_version),
        inbound=InMemoryInboundEventRepository(settings.processed_event_cache_size),
        bot_name=settings.bot_name,
        default_model=AIModel(settings.default_ai_model),
        welcome_delay_seconds=settings.welcome_delay_seconds,
        terms_url=settings.terms_url,
        registration_page_url=settings.registration_page_url,
    )

    if not settings.messenger_enabled:
        logger.warning("Messenger is not configured; replies will not be delivered")

    logger.info("Application startup complete")

    yield

    # SHUTDOWN
    logger.info("Shutting down application")
    await capabilities.aclose()
    await close_all_sessions()
    logger.info("Application shutdown complete")


# ============================================================================
# CREATE APP
# ============================================================================

app = FastAPI(
    title=settings.bot_name,
    description="Messenger chat-bot gateway",
    version="2.0.0",
    lifespan=lifespan,
    # Security: Completely disable docs in production (None, not conditional URL)
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(RequestLoggingMiddleware, enabled=settings.enable_request_logging)
app.add_middleware(RequestIDMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with appropriate logging"""
    if exc.status_code >= 500:
        logger.error(f"Server error: {exc.detail}", extra={"status_code": exc.status_code})

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={"error": sanitize_error_message(exc, settings.is_production)},
    )


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/", response_model=ServiceStatusOut)
def service_status(request: Request):
    """Service banner with uptime and feature list."""
    return ServiceStatusOut(
        bot=settings.bot_name,
        status=f"{settings.bot_name} is running! 🤖",
        uptime=request.app.state.uptime.formatted(),
        timestamp=_now_iso(),
        features=FEATURES,
    )


@app.get("/health", response_model=HealthOut)
def health(request: Request):
    """
    Basic health check - PUBLIC endpoint.
    Used by load balancers and uptime pingers.
    """
    return HealthOut(
        status="healthy",
        uptime=request.app.state.uptime.formatted(),
        timestamp=_now_iso(),
    )


@app.get("/webhook")
async def webhook_verify(request: Request):
    """Messenger webhook verification handshake - PUBLIC."""
    return await messenger_webhook_verify(request)


@app.post("/webhook")
async def webhook(request: Request):
    """
    Messenger webhook events - PUBLIC but VALIDATED.

    Security:
    - X-Hub-Signature-256 verification (if app_secret configured)
    """
    return await messenger_webhook_handler(request)


@app.get("/register", response_class=HTMLResponse)
def registration_page():
    """Reference-code form for completing registration outside the chat."""
    return HTMLResponse(render_registration_page(settings.bot_name))


@app.post("/register/complete", response_model=RegistrationCompleteOut)
async def registration_complete(
    payload: RegistrationCompleteIn,
    engine: DispatchEngine = Depends(get_engine),
):
    """
    Complete a pending registration by reference code.

    - 400: empty reference code
    - 404: unknown code, or registration already completed
    - 409: the user has not accepted the terms yet
    """
    try:
        user, notified = await engine.complete_registration(payload.reference_code)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.reason)
    except StateError as e:
        logger.info(f"Registration completion refused: {e.__class__.__name__}")
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return RegistrationCompleteOut(reference_code=user.reference_code, notified=notified)


# ============================================================================
# PROTECTED ENDPOINTS
# ============================================================================

@app.get("/metrics", dependencies=[Depends(require_metrics_auth)])
def metrics():
    """
    Metrics endpoint - METRICS_TOKEN only.
    Returns 404 when no token is configured.
    """
    return get_metrics_collector().get_metrics()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "kaizbot.transport.http_app:app",
        host="0.0.0.0",
        port=settings.port,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
        access_log=not settings.is_production,  # Disable in prod (use middleware logging)
        server_header=False,
        date_header=False,
    )
