"""Data types shared between the gateway and the triage pipeline."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class NotificationRef:
    """A decoded inbound notification, pointing at a message to fetch.

    The structured webhook shape carries ``message_id`` and ``thread_id``;
    the Pub/Sub shape carries ``message_id`` (the Pub/Sub message id),
    ``history_id`` and ``email_address``.
    """

    message_id: str
    thread_id: str | None = None
    history_id: int | None = None
    email_address: str | None = None


@dataclass(frozen=True)
class Message:
    """An email as returned by the mail gateway, before classification."""

    id: str
    thread_id: str
    sender: str
    subject: str
    snippet: str
    label_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Build a Message from a gateway dict (camelCase or snake_case keys)."""
        return cls(
            id=str(data.get("messageId", data.get("id", ""))),
            thread_id=str(data.get("threadId", data.get("thread_id", ""))),
            sender=str(data.get("from", data.get("sender", ""))),
            subject=str(data.get("subject", "")),
            snippet=str(data.get("snippet", "")),
            label_ids=[str(x) for x in data.get("labelIds", data.get("label_ids", []))],
        )
