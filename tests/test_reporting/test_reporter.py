"""Tests for SummaryReporter — sinks are mocks or the real FileSink."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from inbox_triage.agent.events import InMemoryEventBus, Topic
from inbox_triage.processing.types import (
    CategoryResult,
    Classification,
    ImportanceResult,
    Level,
    UrgencyResult,
)
from inbox_triage.reporting.reporter import SummaryReporter
from inbox_triage.reporting.sinks import FileSink, ReportDeliveryError
from inbox_triage.storage.aggregate import AggregationStore


def make_classification(category: str = "work", urgency: Level = Level.HIGH) -> Classification:
    return Classification(
        category=CategoryResult(category=category),
        urgency=UrgencyResult(urgency=urgency),
        importance=ImportanceResult(importance=Level.LOW),
    )


def make_sink(name: str = "mock", error: Exception | None = None) -> MagicMock:
    sink = MagicMock()
    sink.name = name
    sink.publish = AsyncMock(side_effect=error)
    return sink


def make_store(n: int = 2) -> AggregationStore:
    store = AggregationStore()
    for i in range(n):
        store.record(f"m{i}", make_classification(), auto_responded=i == 0)
    return store


class TestRun:
    async def test_nothing_to_report(self) -> None:
        sink = make_sink()
        bus = InMemoryEventBus()
        reporter = SummaryReporter(AggregationStore(), [sink], bus)

        assert await reporter.run() is None
        sink.publish.assert_not_called()
        assert bus.events == []

    async def test_publishes_then_clears(self) -> None:
        store = make_store()
        sink = make_sink()
        reporter = SummaryReporter(store, [sink])

        report = await reporter.run()

        assert report is not None
        assert report.total_emails == 2
        assert report.auto_responded_count == 1
        sink.publish.assert_awaited_once_with(report)
        assert store.counters().total_emails == 0

    async def test_emits_summary_sent(self) -> None:
        bus = InMemoryEventBus()
        reporter = SummaryReporter(make_store(), [make_sink("file")], bus)

        report = await reporter.run()

        assert bus.topics() == [Topic.SUMMARY_SENT]
        data = bus.events[0].data
        assert report is not None
        assert data["date"] == report.period
        assert data["summary"]["totalEmails"] == 2
        assert data["sinks"] == ["file"]

    async def test_sink_failure_keeps_counters(self) -> None:
        store = make_store()
        bus = InMemoryEventBus()
        reporter = SummaryReporter(store, [make_sink(error=RuntimeError("webhook 500"))], bus)

        with pytest.raises(ReportDeliveryError, match="webhook 500"):
            await reporter.run()

        assert store.counters().total_emails == 2
        assert bus.events == []

    async def test_later_sinks_skipped_after_failure(self) -> None:
        first = make_sink("first", ReportDeliveryError("disk full"))
        second = make_sink("second")
        reporter = SummaryReporter(make_store(), [first, second])

        with pytest.raises(ReportDeliveryError):
            await reporter.run()
        second.publish.assert_not_called()

    async def test_retry_after_failure_reports_everything(self) -> None:
        store = make_store()
        sink = make_sink()
        sink.publish = AsyncMock(side_effect=[RuntimeError("down"), None])
        reporter = SummaryReporter(store, [sink])

        with pytest.raises(ReportDeliveryError):
            await reporter.run()
        store.record("m9", make_classification("social", Level.LOW), auto_responded=False)
        report = await reporter.run()

        assert report is not None
        assert report.total_emails == 3
        assert report.category_counts == {"work": 2, "social": 1}

    async def test_writes_file(self, tmp_path: Path) -> None:
        reporter = SummaryReporter(make_store(), [FileSink(tmp_path)])
        report = await reporter.run()
        assert report is not None
        assert (tmp_path / f"{report.period}.md").exists()


class TestScheduledRun:
    async def test_swallows_delivery_errors(self) -> None:
        store = make_store()
        reporter = SummaryReporter(store, [make_sink(error=RuntimeError("down"))])
        await reporter.scheduled_run()  # should not raise
        assert store.counters().total_emails == 2
