"""Collaborator interface for the mail provider.

The triage pipeline never talks to Gmail directly.  Whatever integration is
active implements :class:`MailGateway` and is injected into the pipeline.
"""

from typing import Protocol, runtime_checkable

from inbox_triage.gateway.types import Message, NotificationRef


class GatewayError(Exception):
    """Raised when a mail gateway call fails."""


class LabelResolutionError(GatewayError):
    """Raised when a label cannot be found or created."""


class SendError(GatewayError):
    """Raised when an automatic reply cannot be sent."""


@runtime_checkable
class MailGateway(Protocol):
    """Narrow capability interface over the mail provider."""

    async def fetch_message(self, ref: NotificationRef) -> Message | None:
        """Return the referenced message, or None if it no longer exists."""
        ...

    async def resolve_label(self, name: str) -> str | None:
        """Find-or-create a label by name and return its id.

        Must be idempotent: the same name always yields the same id.
        """
        ...

    async def apply_labels(self, message_id: str, label_ids: list[str]) -> None:
        ...

    async def archive(self, message_id: str, archive_label_id: str) -> None:
        """Remove the message from the inbox and tag it with the archive label."""
        ...

    async def send(self, message_id: str, thread_id: str, body: str) -> None:
        ...
