# kaizbot/transport/adapters.py
"""
Adapter converting Messenger Platform webhook payloads into domain events.
This is a pure converter - it doesn't contain domain logic.
"""
from __future__ import annotations

from kaizbot.core.engine.domain import Attachment, EventKind, InboundEvent
from kaizbot.infra.logging_config import get_logger, mask_user_id

logger = get_logger(__name__)


class MessengerAdapter:
    """
    Adapter for Messenger Platform (Page) webhooks.

    Messenger sends JSON payloads with structure:
    {
      "object": "page",
      "entry": [{
        "id": "<PAGE_ID>",
        "time": 1700000000000,
        "messaging": [{
          "sender": {"id": "<PSID>"},
          "recipient": {"id": "<PAGE_ID>"},
          "timestamp": 1700000000000,
          "message": {
            "mid": "m_xxx",
            "text": "Hello",
            "quick_reply": {"payload": "menu"},
            "attachments": [{"type": "image", "payload": {"url": "https://..."}}]
          }
          // or "postback": {"mid": "...", "title": "...", "payload": "GET_STARTED"}
        }]
      }]
    }

    Within one messaging item the event kind is chosen as:
    quick reply > attachments > text, otherwise postback.
    """

    def adapt_payload(self, payload: dict) -> list[InboundEvent]:
        """
        Convert a webhook payload to a list of InboundEvents.
        A single webhook POST can contain several entries and messaging items.
        Returns an empty list when there is nothing to dispatch.
        """
        events: list[InboundEvent] = []

        if payload.get("object") != "page":
            logger.debug(f"Messenger webhook: ignoring object={payload.get('object')}")
            return events

        for entry in payload.get("entry", []) or []:
            for item in entry.get("messaging", []) or []:
                event = self._parse_item(item)
                if event is not None:
                    events.append(event)

        return events

    def _parse_item(self, item: dict) -> InboundEvent | None:
        sender_id = (item.get("sender") or {}).get("id")
        if not sender_id:
            logger.debug("Messenger webhook: messaging item without sender, skipped")
            return None

        timestamp = item.get("timestamp")
        message = item.get("message")
        postback = item.get("postback")

        if message:
            if message.get("is_echo"):
                return None
            return self._parse_message(sender_id, timestamp, message)

        if postback:
            return InboundEvent(
                sender_id=sender_id,
                kind=EventKind.POSTBACK,
                event_id=postback.get("mid") or _fallback_event_id(sender_id, timestamp),
                payload=postback.get("payload"),
                timestamp=timestamp,
            )

        # delivery / read receipts and other notifications
        if "delivery" in item or "read" in item:
            logger.debug(f"Messenger receipt from {mask_user_id(sender_id)} ignored")
        return None

    def _parse_message(self, sender_id: str, timestamp: int | None, message: dict) -> InboundEvent | None:
        event_id = message.get("mid") or _fallback_event_id(sender_id, timestamp)

        quick_reply = message.get("quick_reply")
        if quick_reply:
            return InboundEvent(
                sender_id=sender_id,
                kind=EventKind.QUICK_REPLY,
                event_id=event_id,
                payload=quick_reply.get("payload"),
                text=message.get("text"),
                timestamp=timestamp,
            )

        raw_attachments = message.get("attachments") or []
        if raw_attachments:
            attachments = [
                Attachment(
                    type=a.get("type", "unknown"),
                    url=(a.get("payload") or {}).get("url"),
                )
                for a in raw_attachments
            ]
            logger.info(
                f"Messenger message: from={mask_user_id(sender_id)}, "
                f"attachments={[a.type for a in attachments]}"
            )
            return InboundEvent(
                sender_id=sender_id,
                kind=EventKind.ATTACHMENTS,
                event_id=event_id,
                attachments=attachments,
                timestamp=timestamp,
            )

        text = message.get("text")
        if text:
            return InboundEvent(
                sender_id=sender_id,
                kind=EventKind.TEXT,
                event_id=event_id,
                text=text,
                timestamp=timestamp,
            )

        logger.debug(f"Messenger message from {mask_user_id(sender_id)} has no usable content")
        return None


def _fallback_event_id(sender_id: str, timestamp: int | None) -> str | None:
    if timestamp is None:
        return None
    return f"{sender_id}:{timestamp}"
