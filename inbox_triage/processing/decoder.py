"""Notification decoder — raw webhook payload → NotificationRef."""

import base64
import binascii
import json
from typing import Any

from inbox_triage.gateway.types import NotificationRef


class DecodeError(Exception):
    """Raised when a webhook payload is malformed or missing required fields."""


def decode(raw_payload: dict[str, Any] | str | bytes) -> NotificationRef:
    """Decode either supported webhook envelope into a NotificationRef.

    Two shapes are accepted::

        {"messageId": "m1", "threadId": "t1"}                    # structured
        {"message": {"data": "<base64 JSON>", "messageId": "p1"}}  # Pub/Sub

    The structured fields are tried first; the Pub/Sub ``data`` field is
    only decoded when they are absent.

    Raises:
        DecodeError: on invalid JSON / base64 or missing fields.
    """
    payload = _as_mapping(raw_payload)

    message_id = payload.get("messageId")
    thread_id = payload.get("threadId")
    if message_id and thread_id:
        return NotificationRef(message_id=str(message_id), thread_id=str(thread_id))

    envelope = payload.get("message")
    if not isinstance(envelope, dict):
        raise DecodeError("Payload has neither messageId/threadId nor a message envelope")

    pubsub_id = envelope.get("messageId") or envelope.get("message_id")
    data = envelope.get("data")
    if not pubsub_id or not isinstance(data, str) or not data:
        raise DecodeError("Message envelope is missing messageId or data")

    body = _as_mapping(_b64decode(data))
    history_id = _history_id(body.get("historyId"))
    return NotificationRef(
        message_id=str(pubsub_id),
        history_id=history_id,
        email_address=str(body["emailAddress"]) if body.get("emailAddress") else None,
    )


def _as_mapping(raw: dict[str, Any] | str | bytes) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
        raise DecodeError(f"Payload is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise DecodeError(f"Payload must be a JSON object, got {type(parsed).__name__}")
    return parsed


def _b64decode(data: str) -> bytes:
    """Decode standard or URL-safe base64, tolerating stripped padding."""
    padded = data.strip() + "=" * (-len(data.strip()) % 4)
    altchars = b"-_" if ("-" in padded or "_" in padded) else None
    try:
        return base64.b64decode(padded, altchars=altchars, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Message data is not valid base64: {exc}") from exc


def _history_id(raw: object) -> int:
    if raw is None or isinstance(raw, bool):
        raise DecodeError("Notification body is missing historyId")
    try:
        return int(raw)  # Pub/Sub sends it as a number, some relays as a string
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"historyId is not an integer: {raw!r}") from exc
