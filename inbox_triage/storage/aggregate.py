"""Aggregation store — per-period counters shared by every pipeline run."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

from inbox_triage.processing.types import Classification
from inbox_triage.storage.models import AggregateCounters

if TYPE_CHECKING:
    from inbox_triage.storage.db import TriageDatabase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Report:
    """Counters for one reporting period, as of the snapshot instant."""

    total_emails: int
    category_counts: dict[str, int]
    urgency_counts: dict[str, int]
    auto_responded_count: int
    period: str = field(default_factory=lambda: date.today().isoformat())
    auto_responded_ids: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.period,
            "totalEmails": self.total_emails,
            "categoryCounts": dict(self.category_counts),
            "urgencyCounts": dict(self.urgency_counts),
            "autoRespondedCount": self.auto_responded_count,
        }


class AggregationStore:
    """Thread-safe period counters with snapshot-then-clear flushing.

    One instance per process, passed explicitly to the pipeline and the
    reporter.  A single lock covers ``record``, ``snapshot``, ``commit`` and
    ``flush``, so no record is ever attributed to two periods.  The same
    lock guards ``claim_auto_reply``, the test-and-set taken before a reply
    is sent, so concurrent runs for one message send at most one reply.

    Flushing comes in two flavours:

    * ``flush()`` snapshots and clears in one step.
    * ``snapshot()`` + ``commit(report)`` let the caller publish the report
      in between; ``commit`` subtracts exactly what the snapshot contained,
      so records that arrived meanwhile roll into the next period and a
      failed publish loses nothing.

    Usage::

        store = AggregationStore(db=TriageDatabase())
        store.record("m1", classification, auto_responded=True)
        report = store.flush()   # None when nothing was recorded
    """

    def __init__(self, db: TriageDatabase | None = None) -> None:
        self._lock = threading.Lock()
        self._db = db
        self._claimed: set[str] = set()  # replies in flight, not yet recorded
        if db is not None:
            self._counters, self._auto_responded = db.load_period()
            if self._counters.total_emails:
                logger.info(
                    "Restored period state: %d email(s), %d auto-responded",
                    self._counters.total_emails,
                    self._counters.auto_responded_count,
                )
        else:
            self._counters = AggregateCounters()
            self._auto_responded: set[str] = set()

    # ── Write API ──────────────────────────────────────────────────────────────

    def claim_auto_reply(self, message_id: str) -> bool:
        """Reserve the period's single auto-reply for ``message_id``.

        Test-and-set under the store lock: exactly one caller gets True.  The
        claim ends when it is released, or when ``record`` counts the reply;
        after that the recorded id blocks new claims until it is flushed.
        """
        with self._lock:
            if message_id in self._auto_responded or message_id in self._claimed:
                return False
            self._claimed.add(message_id)
            return True

    def release_auto_reply(self, message_id: str) -> None:
        """Give back a claim whose reply was never sent."""
        with self._lock:
            self._claimed.discard(message_id)

    def record(
        self, message_id: str, classification: Classification, auto_responded: bool
    ) -> bool:
        """Count one processed email.

        Returns True when this call increased ``auto_responded_count``; a
        message id already recorded as auto-responded in this period is
        never counted twice.  With a database attached, the log row and both
        period cells are written in one transaction before memory changes,
        so a failed write leaves the store untouched and raises.
        """
        category = classification.main_category.value
        urgency = classification.urgency.urgency.value

        with self._lock:
            c = self._counters.copy()
            c.total_emails += 1
            c.category_counts[category] = c.category_counts.get(category, 0) + 1
            c.urgency_counts[urgency] = c.urgency_counts.get(urgency, 0) + 1

            responded = self._auto_responded
            counted = auto_responded and message_id not in responded
            if counted:
                responded = responded | {message_id}
                c.auto_responded_count += 1

            if self._db is not None:
                self._db.record_processed(
                    message_id,
                    category,
                    urgency,
                    classification.importance.importance.value,
                    auto_responded,
                    c,
                    responded,
                )
            self._counters = c
            self._auto_responded = responded
            if counted:
                self._claimed.discard(message_id)
        return counted

    # ── Read API ───────────────────────────────────────────────────────────────

    def counters(self) -> AggregateCounters:
        """Return a copy of the current period's counters."""
        with self._lock:
            return self._counters.copy()

    def is_auto_responded(self, message_id: str) -> bool:
        with self._lock:
            return message_id in self._auto_responded

    # ── Flush ──────────────────────────────────────────────────────────────────

    def snapshot(self) -> Report | None:
        """Return the current period as a Report without clearing it.

        Returns None when nothing has been recorded.
        """
        with self._lock:
            return self._snapshot_locked()

    def commit(self, report: Report) -> None:
        """Remove exactly the counts contained in ``report`` from the store."""
        with self._lock:
            self._subtract_locked(report)

    def flush(self) -> Report | None:
        """Snapshot and clear in one atomic step. None means nothing to report."""
        with self._lock:
            report = self._snapshot_locked()
            if report is not None:
                self._subtract_locked(report)
            return report

    # ── Private ────────────────────────────────────────────────────────────────

    def _snapshot_locked(self) -> Report | None:
        c = self._counters
        if c.total_emails == 0:
            return None
        return Report(
            total_emails=c.total_emails,
            category_counts=dict(c.category_counts),
            urgency_counts=dict(c.urgency_counts),
            auto_responded_count=c.auto_responded_count,
            auto_responded_ids=frozenset(self._auto_responded),
        )

    def _subtract_locked(self, report: Report) -> None:
        c = self._counters.copy()
        c.total_emails = max(0, c.total_emails - report.total_emails)
        c.auto_responded_count = max(0, c.auto_responded_count - report.auto_responded_count)
        _subtract_counts(c.category_counts, report.category_counts)
        _subtract_counts(c.urgency_counts, report.urgency_counts)
        responded = self._auto_responded - report.auto_responded_ids
        if self._db is not None:
            self._db.save_period(c, responded)
        self._counters = c
        self._auto_responded = responded


def _subtract_counts(counts: dict[str, int], taken: dict[str, int]) -> None:
    for key, n in taken.items():
        remaining = counts.get(key, 0) - n
        if remaining > 0:
            counts[key] = remaining
        else:
            counts.pop(key, None)
