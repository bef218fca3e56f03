"""Tests for TriagePipeline — gateway is the in-memory fake or a mock."""

import asyncio
import base64
import sqlite3
import json
from unittest.mock import AsyncMock, MagicMock, patch

from inbox_triage.agent.events import InMemoryEventBus, Topic
from inbox_triage.config import TriageConfig
from inbox_triage.gateway.base import GatewayError, LabelResolutionError, SendError
from inbox_triage.gateway.memory import InMemoryMailGateway
from inbox_triage.gateway.types import Message
from inbox_triage.processing.pipeline import RunStatus, TriagePipeline
from inbox_triage.processing.responder import Reply, ResponseClass, Suppressed
from inbox_triage.processing.types import (
    CategoryResult,
    ExternalScores,
    ImportanceResult,
    Level,
    UrgencyResult,
)
from inbox_triage.storage.aggregate import AggregationStore
from inbox_triage.storage.db import TriageDatabase


# ── Helpers ────────────────────────────────────────────────────────────────────


def make_message(
    id: str = "m1", subject: str = "Project update", label_ids: list[str] | None = None
) -> Message:
    return Message(
        id=id,
        thread_id=f"thread_{id}",
        sender="carol@example.com",
        subject=subject,
        snippet="",
        label_ids=label_ids if label_ids is not None else ["INBOX"],
    )


def make_scores(category: str, urgency: Level = Level.LOW) -> ExternalScores:
    return ExternalScores(
        category=CategoryResult(category=category, confidence=0.9),
        urgency=UrgencyResult(urgency=urgency),
        importance=ImportanceResult(importance=Level.LOW),
    )


def make_pubsub(message_id: str, history_id: int) -> dict:
    data = base64.b64encode(json.dumps({"historyId": history_id}).encode()).decode()
    return {"message": {"data": data, "messageId": message_id}}


def make_pipeline(
    gateway: object,
    store: AggregationStore | None = None,
    **config: object,
) -> tuple[TriagePipeline, AggregationStore, InMemoryEventBus]:
    store = store or AggregationStore()
    bus = InMemoryEventBus()
    pipeline = TriagePipeline(
        gateway,  # type: ignore[arg-type]
        store,
        TriageConfig(responder_name="Sam", **config),  # type: ignore[arg-type]
        bus,
    )
    return pipeline, store, bus


def make_gateway_mock(message: Message | None = None) -> MagicMock:
    gateway = MagicMock()
    gateway.fetch_message = AsyncMock(return_value=message or make_message())
    gateway.resolve_label = AsyncMock(side_effect=lambda name: f"id-{name}")
    gateway.apply_labels = AsyncMock()
    gateway.archive = AsyncMock()
    gateway.send = AsyncMock()
    return gateway


# ── End to end ─────────────────────────────────────────────────────────────────


class TestEndToEnd:
    async def test_urgent_deadline_today(self) -> None:
        gateway = InMemoryMailGateway(
            messages=[make_message("m1", subject="URGENT deadline today")],
            history={100: "m1"},
        )
        pipeline, store, bus = make_pipeline(gateway)

        result = await pipeline.handle(make_pubsub("m1", 100))

        assert result.status == RunStatus.COMPLETED
        assert result.ok
        assert result.classification is not None
        assert result.classification.category.category == "unknown"
        assert result.classification.urgency.urgency == Level.HIGH
        assert isinstance(result.reply, Reply)
        assert result.reply.response_class == ResponseClass.GENERIC
        assert gateway.sent[0].body.endswith("Best regards, Sam")

        counters = store.counters()
        assert counters.total_emails == 1
        assert counters.urgency_counts == {"high": 1}
        assert counters.category_counts == {"unknown": 1}
        assert counters.auto_responded_count == 1

        assert bus.topics() == [
            Topic.RECEIVED,
            Topic.FETCHED,
            Topic.ANALYZED,
            Topic.ORGANIZED,
            Topic.REPLIED,
        ]

    async def test_labels_applied_in_order(self) -> None:
        gateway = InMemoryMailGateway(messages=[make_message("m1")])
        pipeline, _, _ = make_pipeline(gateway)

        result = await pipeline.handle(
            {"messageId": "m1", "threadId": "thread_m1"},
            make_scores("work.meeting", Level.HIGH),
        )

        assert result.labels is not None
        assert result.labels.labels_to_apply == ["Work-Meeting", "Work", "Urgent"]
        label_ids = gateway.labels
        assert gateway.applied["m1"] == [label_ids[n] for n in ("Work-Meeting", "Work", "Urgent")]

    async def test_promotion_is_archived_and_not_answered(self) -> None:
        gateway = InMemoryMailGateway(messages=[make_message("m1")])
        pipeline, store, bus = make_pipeline(gateway)

        result = await pipeline.handle(
            {"messageId": "m1", "threadId": "thread_m1"}, make_scores("promotion.marketing")
        )

        assert result.archived is True
        assert isinstance(result.reply, Suppressed)
        assert result.replied is False
        assert gateway.sent == []
        assert not gateway.in_inbox("m1")
        assert gateway.archived["m1"] == gateway.labels["Archived_Promotional"]
        assert store.counters().category_counts == {"promotional": 1}
        assert Topic.ARCHIVED in bus.topics()
        assert Topic.REPLIED not in bus.topics()


# ── Early exits ────────────────────────────────────────────────────────────────


class TestEarlyExits:
    async def test_decode_failure_has_no_side_effects(self) -> None:
        gateway = make_gateway_mock()
        pipeline, store, bus = make_pipeline(gateway)

        result = await pipeline.handle("not json")

        assert result.status == RunStatus.DECODE_FAILED
        assert result.error
        gateway.fetch_message.assert_not_called()
        assert bus.events == []
        assert store.counters().total_emails == 0

    async def test_not_found_aborts_without_counting(self) -> None:
        gateway = make_gateway_mock()
        gateway.fetch_message = AsyncMock(return_value=None)
        pipeline, store, bus = make_pipeline(gateway)

        result = await pipeline.handle({"messageId": "m9", "threadId": "t9"})

        assert result.status == RunStatus.NOT_FOUND
        assert result.message_id == "m9"
        assert store.counters().total_emails == 0
        assert bus.topics() == [Topic.RECEIVED]

    async def test_fetch_error_aborts_without_counting(self) -> None:
        gateway = make_gateway_mock()
        gateway.fetch_message = AsyncMock(side_effect=GatewayError("token expired"))
        pipeline, store, _ = make_pipeline(gateway)

        result = await pipeline.handle({"messageId": "m1", "threadId": "t1"})

        assert result.status == RunStatus.FETCH_FAILED
        assert result.error == "token expired"
        assert not result.ok
        assert store.counters().total_emails == 0


# ── Independent branches ───────────────────────────────────────────────────────


class TestBranchIsolation:
    async def test_label_failure_does_not_stop_reply(self) -> None:
        gateway = make_gateway_mock()
        gateway.resolve_label = AsyncMock(side_effect=LabelResolutionError("quota"))
        pipeline, store, bus = make_pipeline(gateway)

        result = await pipeline.handle({"messageId": "m1", "threadId": "t1"})

        assert result.status == RunStatus.COMPLETED
        assert result.organize_error == "quota"
        assert result.replied is True
        gateway.send.assert_awaited_once()
        assert Topic.ORGANIZATION_FAILED in bus.topics()
        failed = next(e for e in bus.events if e.topic == Topic.ORGANIZATION_FAILED)
        assert failed.data["stage"] == "labels"
        assert store.counters().total_emails == 1
        assert store.counters().auto_responded_count == 1

    async def test_send_failure_does_not_undo_labels(self) -> None:
        gateway = make_gateway_mock()
        gateway.send = AsyncMock(side_effect=SendError("smtp down"))
        pipeline, store, bus = make_pipeline(gateway)

        result = await pipeline.handle({"messageId": "m1", "threadId": "t1"})

        assert result.organize_error is None
        gateway.apply_labels.assert_awaited_once()
        assert result.reply_error == "smtp down"
        assert result.replied is False
        assert Topic.REPLY_FAILED in bus.topics()
        assert store.counters().total_emails == 1
        assert store.counters().auto_responded_count == 0

    async def test_archive_failure_is_reported_with_stage(self) -> None:
        gateway = make_gateway_mock()
        gateway.archive = AsyncMock(side_effect=GatewayError("archive refused"))
        pipeline, _, bus = make_pipeline(gateway)

        result = await pipeline.handle({"messageId": "m1", "threadId": "t1"}, make_scores("spam"))

        assert result.archived is False
        assert result.organize_error == "archive refused"
        failed = next(e for e in bus.events if e.topic == Topic.ORGANIZATION_FAILED)
        assert failed.data["stage"] == "archive"


# ── Configuration ──────────────────────────────────────────────────────────────


class TestConfigSwitches:
    async def test_auto_reply_disabled_sends_nothing(self) -> None:
        gateway = make_gateway_mock()
        pipeline, store, _ = make_pipeline(gateway, auto_reply=False)

        result = await pipeline.handle({"messageId": "m1", "threadId": "t1"})

        assert isinstance(result.reply, Reply)
        assert result.replied is False
        gateway.send.assert_not_called()
        assert store.counters().auto_responded_count == 0

    async def test_archive_disabled_keeps_spam_in_inbox(self) -> None:
        gateway = make_gateway_mock()
        pipeline, _, _ = make_pipeline(gateway, archive=False)

        result = await pipeline.handle({"messageId": "m1", "threadId": "t1"}, make_scores("spam"))

        assert result.archived is False
        gateway.archive.assert_not_called()

    async def test_same_message_not_answered_twice_in_period(self) -> None:
        gateway = make_gateway_mock()
        pipeline, store, _ = make_pipeline(gateway)

        await pipeline.handle({"messageId": "m1", "threadId": "t1"})
        second = await pipeline.handle({"messageId": "m1", "threadId": "t1"})

        assert second.replied is False
        gateway.send.assert_awaited_once()
        assert store.counters().total_emails == 2
        assert store.counters().auto_responded_count == 1


# ── Aggregation failures ───────────────────────────────────────────────────────


class TestRecordFailure:
    async def test_failed_write_is_returned_not_raised(self, db: TriageDatabase) -> None:
        gateway = make_gateway_mock()
        pipeline, store, _ = make_pipeline(gateway, store=AggregationStore(db=db))

        with patch.object(
            db, "record_processed", side_effect=sqlite3.OperationalError("disk I/O error")
        ):
            result = await pipeline.handle({"messageId": "m1", "threadId": "t1"})

        assert result.status == RunStatus.RECORD_FAILED
        assert result.error == "disk I/O error"
        assert not result.ok
        assert result.classification is not None
        assert result.replied is True
        counters = store.counters()
        assert counters.total_emails == 0
        assert counters.auto_responded_count == 0
        assert db.get_processed() == []

    async def test_failed_write_after_reply_does_not_reply_again(self, db: TriageDatabase) -> None:
        gateway = make_gateway_mock()
        pipeline, store, _ = make_pipeline(gateway, store=AggregationStore(db=db))

        with patch.object(
            db, "record_processed", side_effect=sqlite3.OperationalError("locked")
        ):
            first = await pipeline.handle({"messageId": "m1", "threadId": "t1"})
        second = await pipeline.handle({"messageId": "m1", "threadId": "t1"})

        assert first.status == RunStatus.RECORD_FAILED
        assert second.status == RunStatus.COMPLETED
        assert second.replied is False
        gateway.send.assert_awaited_once()
        assert store.counters().total_emails == 1


# ── Concurrent runs ────────────────────────────────────────────────────────────


class _YieldingGateway(InMemoryMailGateway):
    """Hands control back to the loop before every send."""

    async def send(self, message_id: str, thread_id: str, body: str) -> None:
        await asyncio.sleep(0)
        await super().send(message_id, thread_id, body)


class TestConcurrentReplies:
    async def test_parallel_runs_for_one_message_send_one_reply(self) -> None:
        gateway = _YieldingGateway(messages=[make_message("m1")])
        pipeline, store, _ = make_pipeline(gateway)

        results = await asyncio.gather(
            pipeline.handle({"messageId": "m1", "threadId": "thread_m1"}),
            pipeline.handle({"messageId": "m1", "threadId": "thread_m1"}),
        )

        assert len(gateway.sent) == 1
        assert sorted(r.replied for r in results) == [False, True]
        counters = store.counters()
        assert counters.total_emails == 2
        assert counters.auto_responded_count == 1

    async def test_failed_send_frees_the_reply_for_a_retry(self) -> None:
        gateway = make_gateway_mock()
        gateway.send = AsyncMock(side_effect=[SendError("smtp down"), None])
        pipeline, store, _ = make_pipeline(gateway)

        first = await pipeline.handle({"messageId": "m1", "threadId": "t1"})
        second = await pipeline.handle({"messageId": "m1", "threadId": "t1"})

        assert first.reply_error == "smtp down"
        assert second.replied is True
        assert gateway.send.await_count == 2
        assert store.counters().auto_responded_count == 1
