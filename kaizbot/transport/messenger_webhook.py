# kaizbot/transport/messenger_webhook.py
"""
Messenger Platform webhook handler.

Handles:
- GET /webhook: verification handshake (hub.verify_token + hub.challenge)
- POST /webhook: inbound messages and postbacks

Events of one POST are processed sequentially. A failure on one event
(including DeliveryError) is logged and the loop moves on, and the POST is
always acknowledged with 200 so the platform does not redeliver.
"""
from __future__ import annotations

import json
import time

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from kaizbot.config import settings
from kaizbot.core.engine.errors import DeliveryError
from kaizbot.core.engine.use_cases import DispatchEngine
from kaizbot.infra.logging_config import LogContext, get_logger
from kaizbot.infra.metrics import AppMetrics, inc_counter
from kaizbot.transport.adapters import MessengerAdapter
from kaizbot.transport.security import verify_payload_signature

logger = get_logger(__name__)

EVENT_RECEIVED = "EVENT_RECEIVED"


# -------------------------------------------------------------------------
# GET: Webhook Verification
# -------------------------------------------------------------------------

async def messenger_webhook_verify(request: Request) -> PlainTextResponse:
    """
    Handle Messenger webhook verification (GET).

    The platform sends:
      hub.mode=subscribe
      hub.verify_token=<configured token>
      hub.challenge=<random string>

    We must respond with hub.challenge as plain text on success,
    or 403 on failure.
    """
    mode = request.query_params.get("hub.mode")
    token = request.query_params.get("hub.verify_token")
    challenge = request.query_params.get("hub.challenge") or ""
    expected = settings.verify_token

    if mode == "subscribe" and expected and token == expected:
        logger.info("Webhook verification successful")
        inc_counter("messenger_webhook_verified")
        return PlainTextResponse(content=challenge, status_code=200)

    logger.warning(
        f"Webhook verification failed: mode={mode}, token_match={bool(expected) and token == expected}"
    )
    AppMetrics.webhook_validation_failed()
    raise HTTPException(status_code=403, detail="Verification failed")


# -------------------------------------------------------------------------
# POST: Inbound Events
# -------------------------------------------------------------------------

async def messenger_webhook_handler(
    request: Request,
    *,
    engine_override: DispatchEngine | None = None,
) -> PlainTextResponse | JSONResponse:
    """
    Handle Messenger webhook events (POST).

    Args:
        request: FastAPI request
        engine_override: Optional engine (overrides app.state.engine)
    """
    start_time = time.time()
    body = await request.body()

    app_secret = settings.app_secret if settings.require_webhook_validation else None
    if not verify_payload_signature(body, request.headers.get("X-Hub-Signature-256"), app_secret):
        logger.error("Webhook: signature verification failed")
        AppMetrics.webhook_validation_failed()
        raise HTTPException(status_code=403, detail="Invalid signature")

    # Always return 200 on malformed input so the platform stops retrying
    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning("Webhook: invalid JSON payload, returning 200 to suppress retries")
        inc_counter("messenger_webhook_malformed_payload")
        return JSONResponse({"status": "ok"}, status_code=200)

    obj = payload.get("object") if isinstance(payload, dict) else None
    if obj != "page":
        logger.info(f"Webhook: not a page subscription: object={obj}")
        raise HTTPException(status_code=404, detail="Not found")

    events = MessengerAdapter().adapt_payload(payload)
    engine: DispatchEngine = engine_override or request.app.state.engine
    request_id = getattr(request.state, "request_id", "unknown")

    failed = 0
    for event in events:
        log_ctx = LogContext(
            logger,
            user_id=event.sender_id,
            event_id=event.event_id,
            request_id=request_id,
        )
        try:
            await engine.process_event(event)
        except DeliveryError as exc:
            failed += 1
            log_ctx.error(f"Reply delivery failed: {exc} (retryable={exc.retryable})")
        except Exception as exc:
            failed += 1
            log_ctx.error(
                f"Event processing failed: {exc.__class__.__name__}",
                exc_info=True,
            )

    elapsed_ms = (time.time() - start_time) * 1000
    logger.info(
        f"Webhook processed: events={len(events)}, failed={failed}, elapsed={elapsed_ms:.0f}ms",
        extra={"request_id": request_id},
    )
    return PlainTextResponse(EVENT_RECEIVED, status_code=200)
