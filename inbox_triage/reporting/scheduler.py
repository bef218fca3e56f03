"""APScheduler setup for the daily summary flush."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

if TYPE_CHECKING:
    from inbox_triage.reporting.reporter import SummaryReporter

logger = logging.getLogger(__name__)


def _parse_report_time(time_str: str) -> tuple[int, int]:
    """Parse 'HH:MM' into (hour, minute). Falls back to (7, 0) on parse error."""
    try:
        hour_str, minute_str = time_str.strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(time_str)
        return hour, minute
    except (ValueError, AttributeError):
        logger.warning("Invalid REPORT_TIME %r; defaulting to 07:00", time_str)
        return 7, 0


def create_report_scheduler(reporter: SummaryReporter) -> AsyncIOScheduler:
    """Return an AsyncIOScheduler that flushes the period daily at REPORT_TIME.

    The caller is responsible for calling scheduler.start() and scheduler.shutdown().
    """
    scheduler = AsyncIOScheduler()
    hour, minute = _parse_report_time(os.environ.get("REPORT_TIME", "07:00"))
    scheduler.add_job(
        reporter.scheduled_run, "cron", hour=hour, minute=minute, max_instances=1
    )
    logger.info("Summary report scheduled daily at %02d:%02d", hour, minute)
    return scheduler
