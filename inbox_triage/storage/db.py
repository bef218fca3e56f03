"""SQLite persistence for the period state and the processed-email log."""

import json
import logging
import sqlite3
from pathlib import Path

from inbox_triage.storage.models import (
    ALL_TABLES,
    AUTO_RESPONDED_KEY,
    COUNTERS_KEY,
    AggregateCounters,
    ProcessedRecord,
)

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH = Path("data/triage.db")


class TriageDatabase:
    """Wraps SQLite for the two period cells and an append-only processing log.

    The connection is opened with ``check_same_thread=False`` because the
    AggregationStore may be driven from several threads; the store's lock
    serialises every call.

    Usage::

        db = TriageDatabase()
        counters, responded = db.load_period()
        db.save_period(counters, responded)
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._path = Path(db_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def close(self) -> None:
        """Close the underlying database connection."""
        self._conn.close()

    # ── Period cells ───────────────────────────────────────────────────────────

    def load_period(self) -> tuple[AggregateCounters, set[str]]:
        """Return the persisted counters and auto-responded ids (empty if none)."""
        rows = {
            row["key"]: row["value"]
            for row in self._conn.execute("SELECT key, value FROM period_state").fetchall()
        }
        counters = AggregateCounters()
        responded: set[str] = set()
        try:
            if COUNTERS_KEY in rows:
                counters = AggregateCounters.from_dict(json.loads(rows[COUNTERS_KEY]))
            if AUTO_RESPONDED_KEY in rows:
                responded = {str(m) for m in json.loads(rows[AUTO_RESPONDED_KEY])}
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError) as exc:
            logger.error("Corrupt period state in %s, starting empty: %s", self._path, exc)
            return AggregateCounters(), set()
        return counters, responded

    def save_period(self, counters: AggregateCounters, responded: set[str]) -> None:
        """Write both period cells in a single transaction."""
        with self._conn:
            self._write_period(counters, responded)

    # ── Processing log ─────────────────────────────────────────────────────────

    def log_processed(
        self,
        message_id: str,
        category: str,
        urgency: str,
        importance: str,
        auto_responded: bool,
    ) -> None:
        with self._conn:
            self._insert_processed(message_id, category, urgency, importance, auto_responded)

    def record_processed(
        self,
        message_id: str,
        category: str,
        urgency: str,
        importance: str,
        auto_responded: bool,
        counters: AggregateCounters,
        responded: set[str],
    ) -> None:
        """Append the log row and rewrite both period cells in one transaction.

        Either all three writes land or none does.
        """
        with self._conn:
            self._insert_processed(message_id, category, urgency, importance, auto_responded)
            self._write_period(counters, responded)

    def get_processed(self, limit: int = 50) -> list[ProcessedRecord]:
        """Return the most recent processing log rows, newest first."""
        rows = self._conn.execute(
            "SELECT id, message_id, category, urgency, importance, auto_responded, processed_at "
            "FROM processed_emails ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        result = []
        for row in rows:
            d = dict(row)
            d["auto_responded"] = bool(d["auto_responded"])
            result.append(ProcessedRecord(**d))
        return result

    # ── Private ────────────────────────────────────────────────────────────────

    def _create_tables(self) -> None:
        with self._conn:
            for ddl in ALL_TABLES:
                self._conn.execute(ddl)

    def _insert_processed(
        self,
        message_id: str,
        category: str,
        urgency: str,
        importance: str,
        auto_responded: bool,
    ) -> None:
        self._conn.execute(
            "INSERT INTO processed_emails "
            "(message_id, category, urgency, importance, auto_responded) "
            "VALUES (?, ?, ?, ?, ?)",
            (message_id, category, urgency, importance, int(auto_responded)),
        )

    def _write_period(self, counters: AggregateCounters, responded: set[str]) -> None:
        self._conn.executemany(
            """
            INSERT INTO period_state (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value      = excluded.value,
                updated_at = datetime('now')
            """,
            [
                (COUNTERS_KEY, json.dumps(counters.to_dict())),
                (AUTO_RESPONDED_KEY, json.dumps(sorted(responded))),
            ],
        )
