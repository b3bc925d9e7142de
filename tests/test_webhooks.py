# tests/test_webhooks.py
"""Tests for the Messenger webhook: signature validation, verification handshake, event loop."""
from __future__ import annotations

import hashlib
import hmac as hmac_mod
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from kaizbot.core.engine.errors import DeliveryError
from kaizbot.core.engine.replies import ButtonTemplate
from kaizbot.transport.messenger_webhook import (
    EVENT_RECEIVED,
    messenger_webhook_handler,
    messenger_webhook_verify,
)
from kaizbot.transport.security import verify_payload_signature

SETTINGS_PATH = "kaizbot.transport.messenger_webhook.settings"


def _sign(body: bytes, secret: str = "test-secret") -> str:
    return "sha256=" + hmac_mod.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _page_payload(*items) -> dict:
    return {"object": "page", "entry": [{"id": "PAGE", "messaging": list(items)}]}


def _text_item(text, mid, sender="1000000001"):
    return {"sender": {"id": sender}, "timestamp": 1, "message": {"mid": mid, "text": text}}


def _mock_settings(mock_settings, *, secret=None, validate=True, verify_token="verify-me"):
    mock_settings.app_secret = secret
    mock_settings.require_webhook_validation = validate
    mock_settings.verify_token = verify_token


def _build_app(engine):
    """Minimal app routing /webhook to the handlers with an injected engine."""
    app = FastAPI()

    @app.get("/webhook")
    async def verify(request: Request):
        return await messenger_webhook_verify(request)

    @app.post("/webhook")
    async def receive(request: Request):
        return await messenger_webhook_handler(request, engine_override=engine)

    return app


# ============================================================================
# Signature verification
# ============================================================================

class TestPayloadSignature:
    def test_valid_signature(self):
        body = b'{"test": "data"}'
        assert verify_payload_signature(body, _sign(body), "test-secret") is True

    def test_invalid_signature(self):
        body = b'{"test": "data"}'
        assert verify_payload_signature(body, "sha256=" + "0" * 64, "test-secret") is False

    def test_missing_signature_header(self):
        assert verify_payload_signature(b"body", None, "test-secret") is False

    def test_wrong_format(self):
        assert verify_payload_signature(b"body", "md5=abc123", "test-secret") is False

    def test_no_secret_skips_verification(self):
        assert verify_payload_signature(b"body", None, None) is True


# ============================================================================
# GET: verification handshake
# ============================================================================

class TestWebhookVerify:

    @patch(SETTINGS_PATH)
    def test_echoes_challenge(self, mock_settings):
        _mock_settings(mock_settings)
        client = TestClient(_build_app(MagicMock()))

        resp = client.get("/webhook", params={
            "hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345",
        })

        assert resp.status_code == 200
        assert resp.text == "12345"

    @patch(SETTINGS_PATH)
    def test_wrong_token_is_403(self, mock_settings):
        _mock_settings(mock_settings)
        client = TestClient(_build_app(MagicMock()))

        resp = client.get("/webhook", params={
            "hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "12345",
        })

        assert resp.status_code == 403

    @patch(SETTINGS_PATH)
    def test_unconfigured_token_is_403(self, mock_settings):
        _mock_settings(mock_settings, verify_token=None)
        client = TestClient(_build_app(MagicMock()))

        resp = client.get("/webhook", params={"hub.mode": "subscribe", "hub.challenge": "1"})

        assert resp.status_code == 403


# ============================================================================
# POST: inbound events
# ============================================================================

class TestWebhookEvents:

    @patch(SETTINGS_PATH)
    def test_events_processed_in_order(self, mock_settings):
        _mock_settings(mock_settings)
        engine = MagicMock()
        engine.process_event = AsyncMock()
        client = TestClient(_build_app(engine))

        payload = _page_payload(_text_item("one", "m_1"), _text_item("two", "m_2"))
        resp = client.post("/webhook", json=payload)

        assert resp.status_code == 200
        assert resp.text == EVENT_RECEIVED
        texts = [c.args[0].text for c in engine.process_event.call_args_list]
        assert texts == ["one", "two"]

    @patch(SETTINGS_PATH)
    def test_valid_signature_accepted(self, mock_settings):
        _mock_settings(mock_settings, secret="test-secret")
        engine = MagicMock()
        engine.process_event = AsyncMock()
        client = TestClient(_build_app(engine))

        body = json.dumps(_page_payload(_text_item("hi", "m_1"))).encode()
        resp = client.post("/webhook", content=body, headers={"X-Hub-Signature-256": _sign(body)})

        assert resp.status_code == 200
        engine.process_event.assert_awaited_once()

    @patch(SETTINGS_PATH)
    def test_invalid_signature_is_403(self, mock_settings):
        _mock_settings(mock_settings, secret="test-secret")
        engine = MagicMock()
        engine.process_event = AsyncMock()
        client = TestClient(_build_app(engine))

        body = json.dumps(_page_payload(_text_item("hi", "m_1"))).encode()
        resp = client.post("/webhook", content=body, headers={"X-Hub-Signature-256": _sign(body, "other")})

        assert resp.status_code == 403
        engine.process_event.assert_not_awaited()

    @patch(SETTINGS_PATH)
    def test_validation_disabled_ignores_signature(self, mock_settings):
        _mock_settings(mock_settings, secret="test-secret", validate=False)
        engine = MagicMock()
        engine.process_event = AsyncMock()
        client = TestClient(_build_app(engine))

        resp = client.post("/webhook", json=_page_payload(_text_item("hi", "m_1")))

        assert resp.status_code == 200
        engine.process_event.assert_awaited_once()

    @patch(SETTINGS_PATH)
    def test_malformed_json_acknowledged(self, mock_settings):
        _mock_settings(mock_settings)
        engine = MagicMock()
        engine.process_event = AsyncMock()
        client = TestClient(_build_app(engine))

        resp = client.post("/webhook", content=b"{not json")

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
        engine.process_event.assert_not_awaited()

    @patch(SETTINGS_PATH)
    def test_non_page_object_is_404(self, mock_settings):
        _mock_settings(mock_settings)
        client = TestClient(_build_app(MagicMock()))

        resp = client.post("/webhook", json={"object": "instagram", "entry": []})

        assert resp.status_code == 404

    @patch(SETTINGS_PATH)
    def test_failed_event_does_not_stop_loop(self, mock_settings):
        _mock_settings(mock_settings)
        engine = MagicMock()
        engine.process_event = AsyncMock(side_effect=[
            DeliveryError("1000000001", "blocked", status=400, error_code=551),
            RuntimeError("boom"),
            None,
        ])
        client = TestClient(_build_app(engine))

        payload = _page_payload(_text_item("a", "m_1"), _text_item("b", "m_2"), _text_item("c", "m_3"))
        resp = client.post("/webhook", json=payload)

        assert resp.status_code == 200
        assert resp.text == EVENT_RECEIVED
        assert engine.process_event.await_count == 3


class TestWebhookWithEngine:
    """The webhook driving the real dispatch engine with fake ports."""

    @patch(SETTINGS_PATH)
    def test_first_message_gets_terms_prompt(self, mock_settings, engine, channel):
        _mock_settings(mock_settings)
        client = TestClient(_build_app(engine))

        resp = client.post("/webhook", json=_page_payload(_text_item("hello", "m_first")))

        assert resp.status_code == 200
        [message] = channel.messages_for("1000000001")
        assert isinstance(message, ButtonTemplate)
        assert [b.payload for b in message.buttons][:2] == ["ACCEPT_TERMS", "DECLINE_TERMS"]

    @patch(SETTINGS_PATH)
    def test_redelivered_event_processed_once(self, mock_settings, engine, channel):
        _mock_settings(mock_settings)
        client = TestClient(_build_app(engine))
        payload = _page_payload(_text_item("hello", "m_dup"))

        client.post("/webhook", json=payload)
        client.post("/webhook", json=payload)

        assert len(channel.sent) == 1


@pytest.mark.asyncio
async def test_handler_can_be_called_directly(engine, channel):
    """The handler only needs body, headers and app state from the request."""
    body = json.dumps(_page_payload(_text_item("hi", "m_direct"))).encode()
    request = MagicMock()
    request.body = AsyncMock(return_value=body)
    request.headers = {}
    request.state = MagicMock(request_id="req-1")

    with patch(SETTINGS_PATH) as mock_settings:
        _mock_settings(mock_settings)
        resp = await messenger_webhook_handler(request, engine_override=engine)

    assert resp.status_code == 200
    assert len(channel.sent) == 1
