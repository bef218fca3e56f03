"""SQLite table schemas and typed records for the storage layer."""

from dataclasses import dataclass, field
from typing import Any


# ── DDL ────────────────────────────────────────────────────────────────────────

_CREATE_PERIOD_STATE = """
CREATE TABLE IF NOT EXISTS period_state (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

_CREATE_PROCESSED_EMAILS = """
CREATE TABLE IF NOT EXISTS processed_emails (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    message_id      TEXT NOT NULL,
    category        TEXT NOT NULL,
    urgency         TEXT NOT NULL,
    importance      TEXT NOT NULL,
    auto_responded  INTEGER NOT NULL DEFAULT 0,
    processed_at    TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

#: All DDL statements in creation order.
ALL_TABLES: list[str] = [
    _CREATE_PERIOD_STATE,
    _CREATE_PROCESSED_EMAILS,
]

#: Keys of the two period cells in period_state; always written together.
AUTO_RESPONDED_KEY = "auto_responded_message_ids"
COUNTERS_KEY = "aggregate_counters"


# ── Records ────────────────────────────────────────────────────────────────────


@dataclass
class AggregateCounters:
    """Cumulative counters for the current reporting period."""

    total_emails: int = 0
    category_counts: dict[str, int] = field(default_factory=dict)
    urgency_counts: dict[str, int] = field(default_factory=dict)
    auto_responded_count: int = 0

    def copy(self) -> "AggregateCounters":
        return AggregateCounters(
            total_emails=self.total_emails,
            category_counts=dict(self.category_counts),
            urgency_counts=dict(self.urgency_counts),
            auto_responded_count=self.auto_responded_count,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalEmails": self.total_emails,
            "categoryCounts": dict(self.category_counts),
            "urgencyCounts": dict(self.urgency_counts),
            "autoRespondedCount": self.auto_responded_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AggregateCounters":
        return cls(
            total_emails=int(data.get("totalEmails", 0)),
            category_counts={str(k): int(v) for k, v in data.get("categoryCounts", {}).items()},
            urgency_counts={str(k): int(v) for k, v in data.get("urgencyCounts", {}).items()},
            auto_responded_count=int(data.get("autoRespondedCount", 0)),
        )


@dataclass(frozen=True)
class ProcessedRecord:
    """A row from the processed_emails table."""

    id: int
    message_id: str
    category: str
    urgency: str
    importance: str
    auto_responded: bool
    processed_at: str
