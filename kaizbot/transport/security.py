# kaizbot/transport/security.py
"""
Security helpers for the HTTP surface.

- Messenger payload signature check (X-Hub-Signature-256, constant-time)
- Bearer token guard for the metrics endpoint
- OWASP response headers
- Error message sanitization for production responses
"""
import hashlib
import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from kaizbot.config import settings
from kaizbot.infra.logging_config import get_logger

logger = get_logger(__name__)

metrics_bearer_scheme = HTTPBearer(
    scheme_name="Metrics Token",
    description="Enter your metrics token (without 'Bearer ' prefix)",
    auto_error=False,  # We handle errors ourselves for better messages
)


def verify_payload_signature(body: bytes, signature_header: str | None, app_secret: str | None) -> bool:
    """
    Verify an ``X-Hub-Signature-256: sha256=<hex>`` header against *body*.

    Returns True when no app secret is configured (verification disabled).
    """
    if not app_secret:
        return True

    if not signature_header:
        logger.warning("Webhook: missing X-Hub-Signature-256 header")
        return False

    if not signature_header.startswith("sha256="):
        logger.warning("Webhook: invalid signature format")
        return False

    expected_sig = signature_header[7:]  # strip "sha256="
    computed_sig = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected_sig, computed_sig)


def require_metrics_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(metrics_bearer_scheme),
):
    """
    Dependency for the metrics endpoint.

    - METRICS_TOKEN not set: the endpoint does not exist (404)
    - METRICS_TOKEN set: Bearer token required (401 otherwise)

    Usage:
        @app.get("/metrics", dependencies=[Depends(require_metrics_auth)])

    Client example:
        curl -H "Authorization: Bearer your-metrics-token" http://host/metrics
    """
    if not settings.metrics_token:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    if not credentials:
        logger.warning("Metrics endpoint accessed without token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not hmac.compare_digest(credentials.credentials, settings.metrics_token):
        logger.warning("Invalid metrics token attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


class SecurityHeaders:
    """
    Adds OWASP recommended security headers.

    The registration page is the only HTML response; it gets a CSP that
    allows its own inline style and form script.
    """

    PAGE_CSP = (
        "default-src 'none'; style-src 'unsafe-inline'; script-src 'unsafe-inline'; "
        "connect-src 'self'; form-action 'self'; frame-ancestors 'none'"
    )
    API_CSP = "default-src 'none'; frame-ancestors 'none'"

    @staticmethod
    def add_security_headers(response):
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        # Prevent MIME sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Referrer policy - don't leak URLs to third parties
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        is_html = response.headers.get("content-type", "").startswith("text/html")
        response.headers["Content-Security-Policy"] = (
            SecurityHeaders.PAGE_CSP if is_html else SecurityHeaders.API_CSP
        )

        # Permissions Policy (disable browser features)
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"

        # HSTS (only in production with HTTPS)
        if settings.is_production or settings.is_staging:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"

        if "Server" in response.headers:
            del response.headers["Server"]

        return response


def sanitize_error_message(error: Exception, is_production: bool) -> str:
    """
    Sanitize error messages for external responses.
    In production: Generic messages
    In dev: Detailed messages
    """
    if not is_production:
        return str(error)

    error_type = type(error).__name__

    generic_messages = {
        "ValueError": "Invalid input",
        "KeyError": "Invalid request",
        "ConnectionError": "Service temporarily unavailable",
        "TimeoutError": "Request timeout",
        "CapabilityError": "Service temporarily unavailable",
        "DeliveryError": "Service temporarily unavailable",
    }

    return generic_messages.get(error_type, "An error occurred")
