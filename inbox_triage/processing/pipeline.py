"""Triage pipeline — decode → fetch → classify → label / respond → aggregate."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from inbox_triage.agent.events import Topic
from inbox_triage.config import TriageConfig
from inbox_triage.gateway.base import GatewayError
from inbox_triage.processing.classifier import classify
from inbox_triage.processing.decoder import DecodeError, decode
from inbox_triage.processing.labeling import LabelDecision, decide
from inbox_triage.processing.responder import Reply, ResponsePlan, respond
from inbox_triage.processing.types import Classification, ExternalScores

if TYPE_CHECKING:
    from inbox_triage.agent.events import EventBus
    from inbox_triage.gateway.base import MailGateway
    from inbox_triage.gateway.types import Message
    from inbox_triage.storage.aggregate import AggregationStore

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    """How far a single pipeline run got."""

    COMPLETED = "completed"
    DECODE_FAILED = "decode_failed"
    FETCH_FAILED = "fetch_failed"
    NOT_FOUND = "not_found"
    RECORD_FAILED = "record_failed"


@dataclass(frozen=True)
class PipelineResult:
    """Typed outcome of one run; returned instead of raising.

    Labeling and replying are independent branches: ``organize_error`` and
    ``reply_error`` are set separately and one never suppresses the other.
    """

    status: RunStatus
    message_id: str | None = None
    classification: Classification | None = None
    labels: LabelDecision | None = None
    organize_error: str | None = None
    archived: bool = False
    reply: ResponsePlan | None = None
    replied: bool = False
    reply_error: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return (
            self.status == RunStatus.COMPLETED
            and self.organize_error is None
            and self.reply_error is None
        )


@dataclass(frozen=True)
class _OrganizeOutcome:
    decision: LabelDecision | None = None
    archived: bool = False
    error: str | None = None


@dataclass(frozen=True)
class _ReplyOutcome:
    plan: ResponsePlan | None = None
    sent: bool = False
    error: str | None = None


class _NullBus:
    async def emit(self, topic: Topic, data: dict[str, Any]) -> None:
        return None


class TriagePipeline:
    """Runs one notification through every triage stage.

    Stages are strictly sequential per event.  The AggregationStore is the
    only shared state, so several pipelines (or several concurrent calls on
    one pipeline) can run side by side.

    Usage::

        pipeline = TriagePipeline(gateway, store, TriageConfig.from_env(), bus)
        result = await pipeline.handle(webhook_body)
    """

    def __init__(
        self,
        gateway: MailGateway,
        store: AggregationStore,
        config: TriageConfig | None = None,
        events: EventBus | None = None,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._config = config or TriageConfig()
        self._events: EventBus = events or _NullBus()

    async def handle(
        self,
        payload: dict[str, Any] | str | bytes,
        scores: ExternalScores | None = None,
    ) -> PipelineResult:
        """Decode a webhook payload, fetch the message and triage it. Never raises."""
        try:
            ref = decode(payload)
        except DecodeError as exc:
            logger.warning("Dropping undecodable notification: %s", exc)
            return PipelineResult(status=RunStatus.DECODE_FAILED, error=str(exc))

        await self._events.emit(
            Topic.RECEIVED,
            {"messageId": ref.message_id, "threadId": ref.thread_id, "historyId": ref.history_id},
        )

        try:
            message = await self._gateway.fetch_message(ref)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Fetch failed for notification %s: %s",
                ref.message_id,
                exc,
                exc_info=not isinstance(exc, GatewayError),
            )
            return PipelineResult(
                status=RunStatus.FETCH_FAILED, message_id=ref.message_id, error=str(exc)
            )
        if message is None:
            logger.info("No message found for notification %s", ref.message_id)
            return PipelineResult(status=RunStatus.NOT_FOUND, message_id=ref.message_id)

        await self._events.emit(
            Topic.FETCHED,
            {"messageId": message.id, "threadId": message.thread_id, "subject": message.subject},
        )
        return await self.process(message, scores)

    async def process(
        self, message: Message, scores: ExternalScores | None = None
    ) -> PipelineResult:
        """Triage an already-fetched message. Never raises."""
        classification = classify(message, scores)
        await self._events.emit(
            Topic.ANALYZED,
            {
                "messageId": message.id,
                "category": classification.category.category,
                "urgency": classification.urgency.urgency.value,
                "importance": classification.importance.importance.value,
            },
        )

        organized = await self._organize(message, classification)
        replied = await self._respond(message, classification)

        try:
            self._store.record(message.id, classification, auto_responded=replied.sent)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to record email %s: %s", message.id, exc, exc_info=True)
            return PipelineResult(
                status=RunStatus.RECORD_FAILED,
                message_id=message.id,
                classification=classification,
                labels=organized.decision,
                organize_error=organized.error,
                archived=organized.archived,
                reply=replied.plan,
                replied=replied.sent,
                reply_error=replied.error,
                error=str(exc),
            )

        logger.info(
            "email=%s category=%s urgency=%s labels=%s archived=%s replied=%s",
            message.id,
            classification.category.category,
            classification.urgency.urgency.value,
            organized.decision.labels_to_apply if organized.decision else [],
            organized.archived,
            replied.sent,
        )
        return PipelineResult(
            status=RunStatus.COMPLETED,
            message_id=message.id,
            classification=classification,
            labels=organized.decision,
            organize_error=organized.error,
            archived=organized.archived,
            reply=replied.plan,
            replied=replied.sent,
            reply_error=replied.error,
        )

    # ── Branches ───────────────────────────────────────────────────────────────

    async def _organize(
        self, message: Message, classification: Classification
    ) -> _OrganizeOutcome:
        """Resolve and apply labels, then archive if the policy says so."""
        try:
            decision = await decide(
                classification,
                self._gateway.resolve_label,
                subcategory_labels=self._config.subcategory_labels,
                archive=self._config.archive,
            )
            if decision.label_ids:
                await self._gateway.apply_labels(message.id, decision.label_ids)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to organize email %s: %s", message.id, exc)
            await self._events.emit(
                Topic.ORGANIZATION_FAILED,
                {"messageId": message.id, "stage": "labels", "error": str(exc)},
            )
            return _OrganizeOutcome(error=str(exc))

        await self._events.emit(
            Topic.ORGANIZED,
            {"messageId": message.id, "appliedLabels": list(decision.labels_to_apply)},
        )

        if not decision.should_archive:
            return _OrganizeOutcome(decision=decision)
        if not decision.archive_label_id:
            logger.warning(
                "Archive label %r unresolved; leaving email %s in inbox",
                decision.archive_label,
                message.id,
            )
            return _OrganizeOutcome(decision=decision)

        try:
            await self._gateway.archive(message.id, decision.archive_label_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to archive email %s: %s", message.id, exc)
            await self._events.emit(
                Topic.ORGANIZATION_FAILED,
                {"messageId": message.id, "stage": "archive", "error": str(exc)},
            )
            return _OrganizeOutcome(decision=decision, error=str(exc))

        await self._events.emit(
            Topic.ARCHIVED,
            {
                "messageId": message.id,
                "archiveLabel": decision.archive_label,
                "archiveLabelId": decision.archive_label_id,
            },
        )
        return _OrganizeOutcome(decision=decision, archived=True)

    async def _respond(self, message: Message, classification: Classification) -> _ReplyOutcome:
        """Send the policy's reply, if any. Suppression is not a failure."""
        plan = respond(message, classification, self._config.responder_name)
        if not isinstance(plan, Reply):
            return _ReplyOutcome(plan=plan)
        if not self._config.auto_reply:
            logger.debug("Auto-reply disabled; not sending %s", plan.response_class.value)
            return _ReplyOutcome(plan=plan)
        if not self._store.claim_auto_reply(message.id):
            logger.info("email=%s already auto-responded this period; not replying again", message.id)
            return _ReplyOutcome(plan=plan)

        try:
            await self._gateway.send(message.id, message.thread_id, plan.body)
        except Exception as exc:  # noqa: BLE001
            self._store.release_auto_reply(message.id)
            logger.error(
                "Failed to send auto-response for email %s: %s",
                message.id,
                exc,
                exc_info=not isinstance(exc, GatewayError),
            )
            await self._events.emit(
                Topic.REPLY_FAILED, {"messageId": message.id, "error": str(exc)}
            )
            return _ReplyOutcome(plan=plan, error=str(exc))

        await self._events.emit(
            Topic.REPLIED,
            {
                "id": message.id,
                "threadId": message.thread_id,
                "subject": message.subject,
                "responseType": plan.response_class.value,
                "autoReplied": True,
            },
        )
        return _ReplyOutcome(plan=plan, sent=True)
