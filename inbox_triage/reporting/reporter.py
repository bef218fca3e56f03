"""Summary reporter — flushes the aggregation store to the report sinks."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from inbox_triage.agent.events import Topic
from inbox_triage.reporting.sinks import ReportDeliveryError

if TYPE_CHECKING:
    from inbox_triage.agent.events import EventBus
    from inbox_triage.reporting.sinks import ReportSink
    from inbox_triage.storage.aggregate import AggregationStore, Report

logger = logging.getLogger(__name__)


class SummaryReporter:
    """Publishes the current period's report, then clears the counters.

    Counters are only cleared once every sink has accepted the report, so a
    failed delivery keeps the data for the next run.  Records that arrive
    while the report is being published roll into the next period.
    """

    def __init__(
        self,
        store: AggregationStore,
        sinks: list[ReportSink],
        events: EventBus | None = None,
    ) -> None:
        self._store = store
        self._sinks = sinks
        self._events = events
        self._lock = asyncio.Lock()  # one flush at a time

    async def run(self) -> Report | None:
        """Flush the period. Returns None when there is nothing to report.

        Raises:
            ReportDeliveryError: if any sink fails; counters are left intact.
        """
        async with self._lock:
            report = self._store.snapshot()
            if report is None:
                logger.info("No emails to report")
                return None

            for sink in self._sinks:
                try:
                    await sink.publish(report)
                except Exception as exc:  # noqa: BLE001
                    logger.error(
                        "Report delivery via %s failed; keeping counters: %s",
                        getattr(sink, "name", type(sink).__name__),
                        exc,
                    )
                    if isinstance(exc, ReportDeliveryError):
                        raise
                    raise ReportDeliveryError(str(exc)) from exc

            self._store.commit(report)
            logger.info(
                "Summary sent: %d email(s), %d auto-responded",
                report.total_emails,
                report.auto_responded_count,
            )
            if self._events is not None:
                await self._events.emit(
                    Topic.SUMMARY_SENT,
                    {
                        "date": report.period,
                        "summary": report.to_dict(),
                        "sinks": [getattr(s, "name", type(s).__name__) for s in self._sinks],
                    },
                )
            return report

    async def scheduled_run(self) -> None:
        """Cron entry point: like run(), but logs failures instead of raising."""
        try:
            await self.run()
        except ReportDeliveryError:
            pass  # already logged; counters retained for the next run
