"""Report sinks — where a flushed period summary gets delivered."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from inbox_triage.config import OutputConfig
    from inbox_triage.storage.aggregate import Report

logger = logging.getLogger(__name__)


class ReportDeliveryError(Exception):
    """Raised when a sink cannot hand the report off."""


@runtime_checkable
class ReportSink(Protocol):
    """Interface for summary report delivery."""

    name: str

    async def publish(self, report: Report) -> None:
        """Deliver the report. Raise ReportDeliveryError on failure."""
        ...


def _format_counts(counts: dict[str, int]) -> str:
    return "\n".join(f"{key}: {n}" for key, n in sorted(counts.items())) or "None"


def render_markdown(report: Report) -> str:
    """Render the report as markdown with YAML front-matter."""
    generated_at = datetime.now(timezone.utc).isoformat()
    lines = [
        "---",
        f"date: {report.period}",
        f"generated_at: {generated_at}",
        "---",
        "",
        f"# Daily Email Summary — {report.period}",
        "",
        f"**Total emails:** {report.total_emails}",
        f"**Auto-responded:** {report.auto_responded_count}",
        "",
        "## Categories",
    ]
    lines += [f"- {k}: {n}" for k, n in sorted(report.category_counts.items())] or ["- None"]
    lines += ["", "## Urgency"]
    lines += [f"- {k}: {n}" for k, n in sorted(report.urgency_counts.items())] or ["- None"]
    return "\n".join(lines) + "\n"


class TerminalSink:
    """Prints the report as a rich panel."""

    name = "terminal"

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(width=100)

    async def publish(self, report: Report) -> None:
        table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
        table.add_column("Categories")
        table.add_column("Urgency")
        table.add_row(
            _format_counts(report.category_counts),
            _format_counts(report.urgency_counts),
        )
        summary = (
            f"Total emails: [bold]{report.total_emails}[/bold]   "
            f"Auto-responded: [bold]{report.auto_responded_count}[/bold]"
        )
        self._console.print(
            Panel(
                Group(summary, table),
                title=f"[bold]Daily Email Summary — {report.period}[/bold]",
                border_style="blue",
            )
        )


class FileSink:
    """Writes the report to ``<report_dir>/<date>.md``."""

    name = "file"

    def __init__(self, report_dir: Path) -> None:
        self._dir = report_dir

    async def publish(self, report: Report) -> None:
        path = self._dir / f"{report.period}.md"
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            path.write_text(render_markdown(report), encoding="utf-8")
        except OSError as exc:
            raise ReportDeliveryError(f"Could not write report to {path}: {exc}") from exc
        logger.info("Report written to %s", path)


def sinks_from_config(config: OutputConfig) -> list[ReportSink]:
    """Build the enabled sinks, in delivery order."""
    sinks: list[ReportSink] = []
    if config.terminal:
        sinks.append(TerminalSink())
    if config.file:
        sinks.append(FileSink(config.report_dir))
    return sinks
