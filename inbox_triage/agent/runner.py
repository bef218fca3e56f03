"""Agent runtime — queue of inbound notifications drained by pipeline workers."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import threading
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

from dotenv import load_dotenv

if TYPE_CHECKING:
    from inbox_triage.processing.pipeline import TriagePipeline
    from inbox_triage.processing.types import ExternalScores

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Job:
    payload: dict[str, Any] | str | bytes
    scores: ExternalScores | None = None


_STOP = object()


class TriageRunner:
    """Feeds submitted webhook payloads to a pool of pipeline workers.

    ``submit()`` only enqueues, so the webhook boundary can acknowledge
    immediately whatever happens downstream.  Workers never raise: every
    outcome ends up in the logs, the emitted events and ``status_counts``.

    Usage::

        runner = TriageRunner(pipeline, workers=4)
        await runner.start()
        runner.submit(body)
        await runner.join()
        await runner.stop()
    """

    def __init__(self, pipeline: TriagePipeline, workers: int = 4) -> None:
        self._pipeline = pipeline
        self._worker_count = max(1, workers)
        self._queue: asyncio.Queue[_Job | object] = asyncio.Queue()
        self._tasks: list[asyncio.Task[None]] = []
        self.status_counts: Counter[str] = Counter()

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def submit(
        self,
        payload: dict[str, Any] | str | bytes,
        scores: ExternalScores | None = None,
    ) -> None:
        """Enqueue one notification and return immediately."""
        self._queue.put_nowait(_Job(payload=payload, scores=scores))

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"triage-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Started %d triage worker(s)", self._worker_count)

    async def join(self) -> None:
        """Wait until every submitted notification has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Finish the queued work, then shut the workers down."""
        if not self._tasks:
            return
        for _ in self._tasks:
            self._queue.put_nowait(_STOP)
        await asyncio.gather(*self._tasks)
        self._tasks = []
        logger.info("Triage workers stopped (%s)", dict(self.status_counts))

    # ── Internal ───────────────────────────────────────────────────────────────

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                if job is _STOP:
                    return
                result = await self._pipeline.handle(job.payload, job.scores)  # type: ignore[union-attr]
                self.status_counts[result.status.value] += 1
            except Exception as exc:  # noqa: BLE001
                self.status_counts["error"] += 1
                logger.error("Worker %d failed on a notification: %s", index, exc, exc_info=True)
            finally:
                self._queue.task_done()


# ── Entry point ────────────────────────────────────────────────────────────────


async def serve(stream: TextIO, mailbox: Path | None = None) -> None:
    """Run the agent over JSON-lines webhook bodies read from ``stream``.

    The report scheduler runs for as long as the stream stays open.  On EOF
    (or SIGINT/SIGTERM) queued notifications are drained before exiting.
    """
    from inbox_triage.agent.events import InMemoryEventBus
    from inbox_triage.config import OutputConfig, TriageConfig
    from inbox_triage.gateway.memory import InMemoryMailGateway
    from inbox_triage.processing.pipeline import TriagePipeline
    from inbox_triage.reporting.reporter import SummaryReporter
    from inbox_triage.reporting.scheduler import create_report_scheduler
    from inbox_triage.reporting.sinks import sinks_from_config
    from inbox_triage.storage.aggregate import AggregationStore
    from inbox_triage.storage.db import TriageDatabase

    config = TriageConfig.from_env()
    db = TriageDatabase(db_path=config.db_path)
    store = AggregationStore(db=db)
    bus = InMemoryEventBus()
    gateway = InMemoryMailGateway.from_file(mailbox) if mailbox else InMemoryMailGateway()
    pipeline = TriagePipeline(gateway, store, config, bus)

    reporter = SummaryReporter(store, sinks_from_config(OutputConfig.from_env()), bus)
    scheduler = create_report_scheduler(reporter)
    scheduler.start()

    runner = TriageRunner(pipeline, workers=config.workers)
    await runner.start()

    lines: asyncio.Queue[str | None] = asyncio.Queue()
    loop = asyncio.get_running_loop()
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _submit_eof, lines)
    except (NotImplementedError, AttributeError):
        pass

    # stdin is read on a daemon thread; the loop only ever sees complete lines.
    threading.Thread(
        target=_read_lines, args=(stream, loop, lines), name="stdin-reader", daemon=True
    ).start()

    try:
        while True:
            line = await lines.get()
            if line is None:
                break  # EOF or shutdown signal
            if line.strip():
                runner.submit(line.strip())
        await runner.join()
    finally:
        await runner.stop()
        scheduler.shutdown(wait=False)
        db.close()


def _read_lines(
    stream: TextIO, loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str | None]
) -> None:
    for line in iter(stream.readline, ""):
        loop.call_soon_threadsafe(lines.put_nowait, line)
    loop.call_soon_threadsafe(lines.put_nowait, None)


def _submit_eof(lines: asyncio.Queue[str | None]) -> None:
    logger.info("Shutdown requested — draining queued notifications")
    lines.put_nowait(None)


def main() -> None:
    """Start the triage agent.  Called by `python -m inbox_triage`."""
    load_dotenv()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    mailbox = os.environ.get("TRIAGE_MAILBOX")
    try:
        asyncio.run(serve(sys.stdin, Path(mailbox) if mailbox else None))
    except KeyboardInterrupt:
        logger.info("Interrupted — goodbye")
