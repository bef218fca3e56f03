"""In-memory mail gateway used by the simulator CLI and the test-suite."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from inbox_triage.gateway.base import GatewayError, LabelResolutionError, SendError
from inbox_triage.gateway.types import Message, NotificationRef

logger = logging.getLogger(__name__)

# Gmail system label removed when a message is archived
_INBOX = "INBOX"


@dataclass(frozen=True)
class SentReply:
    """A reply recorded by the in-memory gateway instead of being sent."""

    message_id: str
    thread_id: str
    body: str


class InMemoryMailGateway:
    """Deterministic MailGateway backed by plain dicts.

    Labels follow Gmail's find-or-create semantics: the first resolution of a
    name allocates ``Label_<n>``, every later resolution returns the same id.
    Messages can be looked up by message id or through a history id, the way
    a Pub/Sub notification points at new mail.

    Usage::

        gateway = InMemoryMailGateway.from_file(Path("mailbox.json"))
        message = await gateway.fetch_message(ref)
    """

    def __init__(
        self,
        messages: list[Message] | None = None,
        history: dict[int, str] | None = None,
        labels: dict[str, str] | None = None,
    ) -> None:
        self._messages: dict[str, Message] = {m.id: m for m in messages or []}
        self._history: dict[int, str] = dict(history or {})
        self._label_cache: dict[str, str] = dict(labels or {})  # label name → label ID
        self._next_label = len(self._label_cache) + 1
        self._inbox: set[str] = {
            m.id for m in self._messages.values() if _INBOX in m.label_ids or not m.label_ids
        }
        self.applied: dict[str, list[str]] = {}
        self.archived: dict[str, str] = {}
        self.sent: list[SentReply] = []

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryMailGateway":
        """Load a mailbox JSON file: ``{"messages": [...], "history": {...}, "labels": {...}}``."""
        try:
            data: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise GatewayError(f"Could not load mailbox {path}: {exc}") from exc
        return cls(
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            history={int(k): str(v) for k, v in data.get("history", {}).items()},
            labels={str(k): str(v) for k, v in data.get("labels", {}).items()},
        )

    # ── Mailbox setup ──────────────────────────────────────────────────────────

    def add_message(self, message: Message, history_id: int | None = None) -> None:
        self._messages[message.id] = message
        self._inbox.add(message.id)
        if history_id is not None:
            self._history[history_id] = message.id

    @property
    def labels(self) -> dict[str, str]:
        return dict(self._label_cache)

    def in_inbox(self, message_id: str) -> bool:
        return message_id in self._inbox

    # ── MailGateway ────────────────────────────────────────────────────────────

    async def fetch_message(self, ref: NotificationRef) -> Message | None:
        message_id = ref.message_id
        if ref.history_id is not None:
            message_id = self._history.get(ref.history_id, message_id)
        message = self._messages.get(message_id)
        if message is None:
            logger.info("No message found for %s", ref)
        return message

    async def resolve_label(self, name: str) -> str | None:
        if not name.strip():
            raise LabelResolutionError("Label name must not be empty")
        label_id = self._label_cache.get(name)
        if label_id is None:
            label_id = f"Label_{self._next_label}"
            self._next_label += 1
            self._label_cache[name] = label_id
            logger.info("Created label: %s (id=%s)", name, label_id)
        return label_id

    async def apply_labels(self, message_id: str, label_ids: list[str]) -> None:
        self._require(message_id)
        current = self.applied.setdefault(message_id, [])
        current.extend(lid for lid in label_ids if lid not in current)
        logger.debug("Applied labels %s to message %s", label_ids, message_id)

    async def archive(self, message_id: str, archive_label_id: str) -> None:
        self._require(message_id)
        self._inbox.discard(message_id)
        self.archived[message_id] = archive_label_id
        logger.debug("Archived message %s with label %s", message_id, archive_label_id)

    async def send(self, message_id: str, thread_id: str, body: str) -> None:
        self._require(message_id, SendError)
        self.sent.append(SentReply(message_id=message_id, thread_id=thread_id, body=body))
        logger.debug("Recorded reply to message %s (thread %s)", message_id, thread_id)

    def _require(
        self, message_id: str, error: type[GatewayError] = GatewayError
    ) -> None:
        if message_id not in self._messages:
            raise error(f"Unknown message {message_id!r}")
