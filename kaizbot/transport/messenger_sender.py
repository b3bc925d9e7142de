# kaizbot/transport/messenger_sender.py
"""
Messenger Send API outbound channel.

Uses the Graph API ``/me/messages`` endpoint to:
- Deliver the four abstract reply kinds (text, quick replies, button
  template, media attachment)
- Toggle the typing indicator (sender actions)

Error classification (DeliveryError.retryable):
- Token expired/invalid       → NOT retryable (needs human intervention)
- User unavailable / blocked  → NOT retryable
- Outside messaging window    → NOT retryable
- Rate limiting (429)         → retryable  (backoff then retry)
- Network / timeout           → retryable  (transient)
- Unknown server error        → retryable  (optimistic)

HTTP session lifecycle:
- Uses the shared sender session from kaizbot.infra.http_client.
- Call close_all_sessions() during application shutdown.
"""
from __future__ import annotations

import asyncio

import aiohttp

from kaizbot.core.engine.errors import DeliveryError
from kaizbot.core.engine.replies import (
    Button,
    ButtonTemplate,
    MediaAttachment,
    OutboundMessage,
    QuickReplySet,
    TextMessage,
)
from kaizbot.infra.http_client import get_sender_session
from kaizbot.infra.logging_config import get_logger, mask_user_id
from kaizbot.infra.metrics import AppMetrics, inc_counter

logger = get_logger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com"

_AUTH_ERROR_CODES = (190,)
_RATE_LIMIT_ERROR_CODES = (4, 32, 613)
_USER_UNAVAILABLE_ERROR_CODES = (551,)
_OUTSIDE_WINDOW_SUBCODE = 2018278


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def _button_to_api(button: Button) -> dict:
    if button.type == "web_url":
        return {"type": "web_url", "title": button.title, "url": button.url}
    return {"type": "postback", "title": button.title, "payload": button.payload}


def to_send_api(message: OutboundMessage) -> dict:
    """Serialize an abstract outbound message to the Send API ``message`` object."""
    if isinstance(message, TextMessage):
        return {"text": message.text}

    if isinstance(message, QuickReplySet):
        return {
            "text": message.text,
            "quick_replies": [
                {"content_type": "text", "title": o.title, "payload": o.payload}
                for o in message.options
            ],
        }

    if isinstance(message, ButtonTemplate):
        return {
            "attachment": {
                "type": "template",
                "payload": {
                    "template_type": "button",
                    "text": message.text,
                    "buttons": [_button_to_api(b) for b in message.buttons],
                },
            },
        }

    if isinstance(message, MediaAttachment):
        return {
            "attachment": {
                "type": message.kind,
                "payload": {"url": message.url, "is_reusable": True},
            },
        }

    raise TypeError(f"Unsupported outbound message: {type(message).__name__}")


# ---------------------------------------------------------------------------
# Sender
# ---------------------------------------------------------------------------

class MessengerSender:
    """OutboundChannel implementation for the Messenger Send API."""

    def __init__(self, page_access_token: str | None, graph_api_version: str = "v18.0"):
        self._token = page_access_token
        self._url = f"{GRAPH_API_BASE}/{graph_api_version}/me/messages"

    async def deliver(self, recipient_id: str, message: OutboundMessage) -> None:
        """
        Send one message.

        Raises:
            DeliveryError: On API errors (check .retryable before scheduling retry)
        """
        body = {
            "recipient": {"id": recipient_id},
            "messaging_type": "RESPONSE",
            "message": to_send_api(message),
        }
        try:
            await self._post(recipient_id, body)
        except DeliveryError as e:
            AppMetrics.delivery_failed(e.retryable)
            raise
        inc_counter("messenger_outbound_sent", kind=type(message).__name__)

    async def set_typing(self, recipient_id: str, on: bool) -> None:
        """Best-effort typing indicator; failures are logged, never raised."""
        body = {
            "recipient": {"id": recipient_id},
            "sender_action": "typing_on" if on else "typing_off",
        }
        try:
            await self._post(recipient_id, body)
        except DeliveryError as e:
            logger.debug(f"Typing indicator not sent to {mask_user_id(recipient_id)}: {e}")

    async def _post(self, recipient_id: str, body: dict) -> dict:
        """
        Execute a Send API request with error handling.

        Classifies every error as retryable or not, then raises DeliveryError
        so the caller can make an informed retry decision.
        """
        if not self._token:
            raise DeliveryError(recipient_id, "page access token not configured", retryable=False)

        try:
            session = get_sender_session()
            async with session.post(
                self._url,
                params={"access_token": self._token},
                json=body,
            ) as resp:
                data = await _safe_response_json(resp)

                if resp.status == 200 and data is not None:
                    return data

                # --- Error path ------------------------------------------------

                error = (data or {}).get("error", {})
                error_code = error.get("code")
                error_subcode = error.get("error_subcode")
                error_msg = error.get("message", "Unknown error")
                who = mask_user_id(recipient_id)

                # -- Auth failure: token expired / invalid (DO NOT retry) --------
                if resp.status == 401 or error_code in _AUTH_ERROR_CODES:
                    logger.error(f"Send API auth error: status={resp.status}, code={error_code}")
                    inc_counter("messenger_outbound_auth_error")
                    raise DeliveryError(
                        recipient_id, error_msg,
                        status=resp.status, error_code=error_code, retryable=False,
                    )

                # -- Rate limit: retry with backoff ------------------------------
                if resp.status == 429 or error_code in _RATE_LIMIT_ERROR_CODES:
                    logger.warning(f"Send API rate limit: status={resp.status}, code={error_code}")
                    inc_counter("messenger_outbound_rate_limited")
                    raise DeliveryError(
                        recipient_id, error_msg,
                        status=resp.status, error_code=error_code, retryable=True,
                    )

                # -- Recipient unreachable (DO NOT retry) ------------------------
                if error_code in _USER_UNAVAILABLE_ERROR_CODES or error_subcode == _OUTSIDE_WINDOW_SUBCODE:
                    logger.warning(
                        f"Send API: recipient unreachable: to={who}, "
                        f"code={error_code}, subcode={error_subcode}"
                    )
                    inc_counter("messenger_outbound_recipient_unavailable")
                    raise DeliveryError(
                        recipient_id, error_msg,
                        status=resp.status, error_code=error_code, retryable=False,
                    )

                # -- Anything else: optimistic retry ----------------------------
                logger.error(
                    f"Send API error: status={resp.status}, code={error_code}, "
                    f"subcode={error_subcode}, to={who}"
                )
                inc_counter("messenger_outbound_error")
                raise DeliveryError(
                    recipient_id, error_msg,
                    status=resp.status, error_code=error_code, retryable=True,
                )

        except DeliveryError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error(f"Send API connection error: {type(exc).__name__}")
            inc_counter("messenger_outbound_connection_error")
            raise DeliveryError(recipient_id, type(exc).__name__, retryable=True) from exc


async def _safe_response_json(resp: aiohttp.ClientResponse) -> dict | None:
    """Parse JSON from response, returning None if body is not valid JSON."""
    try:
        return await resp.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError):
        logger.warning(f"Send API returned non-JSON body: status={resp.status}")
        return None
