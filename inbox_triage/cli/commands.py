"""CLI command implementations."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.table import Table

from inbox_triage.agent.events import InMemoryEventBus
from inbox_triage.config import OutputConfig, TriageConfig
from inbox_triage.gateway.base import GatewayError
from inbox_triage.gateway.memory import InMemoryMailGateway
from inbox_triage.gateway.types import Message
from inbox_triage.processing.classifier import classify
from inbox_triage.processing.decoder import DecodeError, decode
from inbox_triage.processing.labeling import plan_labels
from inbox_triage.processing.pipeline import PipelineResult, TriagePipeline
from inbox_triage.processing.responder import Reply, respond
from inbox_triage.processing.types import ExternalScores
from inbox_triage.reporting.reporter import SummaryReporter
from inbox_triage.reporting.sinks import FileSink, ReportDeliveryError, ReportSink, TerminalSink
from inbox_triage.storage.aggregate import AggregationStore
from inbox_triage.storage.db import TriageDatabase

logger = logging.getLogger(__name__)
console = Console(width=200)


def _load_scores(path: Path | None) -> ExternalScores | None:
    if path is None:
        return None
    try:
        return ExternalScores.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, TypeError, ValueError, AttributeError) as exc:
        raise click.BadParameter(f"{path}: {exc}", param_hint="--scores") from exc


def _load_payloads(path: Path) -> list[Any]:
    """A payload file holds one webhook body or a JSON list of them."""
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return [text]  # let the decoder report it
    return data if isinstance(data, list) else [data]


# ── decode ───────────────────────────────────────────────────────────────────


@click.command("decode")
@click.argument("payload", type=click.File("r"), default="-")
def decode_cmd(payload: Any) -> None:
    """Decode a webhook body (file or stdin) into a notification reference."""
    try:
        ref = decode(payload.read())
    except DecodeError as exc:
        console.print(f"[red]Decode failed: {exc}[/red]")
        raise SystemExit(1) from exc

    console.print(f"message_id:    [bold]{ref.message_id}[/bold]")
    console.print(f"thread_id:     {ref.thread_id or '-'}")
    console.print(f"history_id:    {ref.history_id if ref.history_id is not None else '-'}")
    console.print(f"email_address: {ref.email_address or '-'}")


# ── classify ─────────────────────────────────────────────────────────────────


@click.command("classify")
@click.option("--subject", default="", help="Message subject.")
@click.option("--snippet", default="", help="Message snippet.")
@click.option("--label", "labels", multiple=True, help="Gmail label id (repeatable).")
@click.option(
    "--scores",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON file with upstream analyzer scores.",
)
@click.pass_obj
def classify_cmd(
    config: TriageConfig,
    subject: str,
    snippet: str,
    labels: tuple[str, ...],
    scores: Path | None,
) -> None:
    """Show how a message would be classified, labeled and answered."""
    message = Message(
        id="cli",
        thread_id="cli",
        sender="",
        subject=subject,
        snippet=snippet,
        label_ids=list(labels),
    )
    classification = classify(message, _load_scores(scores))
    plan = plan_labels(
        classification,
        subcategory_labels=config.subcategory_labels,
        archive=config.archive,
    )
    response = respond(message, classification, config.responder_name)

    table = Table(box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("Category", classification.category.category)
    table.add_row("Main category", classification.main_category.value)
    table.add_row("Sub-category", classification.category.sub or "-")
    table.add_row("Urgency", classification.urgency.urgency.value)
    table.add_row("Importance", classification.importance.importance.value)
    table.add_row("Labels", ", ".join(plan.names))
    table.add_row("Archive", plan.archive_label or "no")
    table.add_row(
        "Reply",
        response.response_class.value if isinstance(response, Reply) else "suppressed",
    )
    console.print(table)


# ── simulate ─────────────────────────────────────────────────────────────────


@click.command()
@click.option(
    "--mailbox",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Mailbox JSON file backing the in-memory gateway.",
)
@click.option(
    "--scores",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON file with upstream analyzer scores applied to every payload.",
)
@click.option(
    "--persist/--no-persist",
    default=False,
    show_default=True,
    help="Record results into the period state database.",
)
@click.argument(
    "payloads", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.pass_obj
def simulate(
    config: TriageConfig,
    mailbox: Path,
    scores: Path | None,
    persist: bool,
    payloads: tuple[Path, ...],
) -> None:
    """Run webhook payload files through the full triage pipeline."""
    try:
        gateway = InMemoryMailGateway.from_file(mailbox)
    except GatewayError as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc
    bodies = [body for path in payloads for body in _load_payloads(path)]
    asyncio.run(_simulate_async(config, gateway, bodies, _load_scores(scores), persist))


async def _simulate_async(
    config: TriageConfig,
    gateway: InMemoryMailGateway,
    bodies: list[Any],
    scores: ExternalScores | None,
    persist: bool,
) -> None:
    logger.info("Simulating %d payload(s), persist=%s", len(bodies), persist)
    db = TriageDatabase(db_path=config.db_path) if persist else None
    try:
        store = AggregationStore(db=db)
        bus = InMemoryEventBus()
        pipeline = TriagePipeline(gateway, store, config, bus)
        results = [await pipeline.handle(body, scores) for body in bodies]
    finally:
        if db is not None:
            db.close()

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=3)
    table.add_column("Message", max_width=20)
    table.add_column("Status", width=14)
    table.add_column("Category", width=20)
    table.add_column("Urgency", width=8)
    table.add_column("Labels", max_width=40)
    table.add_column("Archived", width=8)
    table.add_column("Reply", width=22)
    for i, result in enumerate(results, start=1):
        table.add_row(str(i), *_result_cells(result))
    console.print(table)

    counters = store.counters()
    console.print(
        f"\nTotal: [bold]{counters.total_emails}[/bold]  "
        f"categories={counters.category_counts}  urgency={counters.urgency_counts}  "
        f"auto-responded={counters.auto_responded_count}"
    )
    console.print(f"[dim]Events: {', '.join(t.value for t in bus.topics())}[/dim]")


def _result_cells(result: PipelineResult) -> list[str]:
    if result.classification is None:
        return [
            result.message_id or "-",
            f"[red]{result.status.value}[/red]",
            "", "", "", "", result.error or "",
        ]
    labels = ", ".join(result.labels.labels_to_apply) if result.labels else ""
    if result.organize_error:
        labels = f"[red]{result.organize_error}[/red]"
    if result.reply_error:
        reply = f"[red]{result.reply_error}[/red]"
    elif isinstance(result.reply, Reply):
        reply = result.reply.response_class.value if result.replied else "(not sent)"
    else:
        reply = "suppressed"
    return [
        result.message_id or "-",
        f"[red]{result.status.value}[/red]" if result.error else result.status.value,
        result.classification.category.category,
        result.classification.urgency.urgency.value,
        labels,
        "yes" if result.archived else "no",
        reply,
    ]


# ── report ───────────────────────────────────────────────────────────────────


@click.command()
@click.option(
    "--output",
    default=None,
    help="Comma-separated outputs to enable: terminal,file. Overrides env vars.",
)
@click.pass_obj
def report(config: TriageConfig, output: str | None) -> None:
    """Flush the current period's counters into a summary report."""
    asyncio.run(_report_async(config, output))


async def _report_async(config: TriageConfig, output_override: str | None) -> None:
    output_config = OutputConfig.from_env()
    if output_override is not None:
        flags = {s.strip() for s in output_override.split(",")}
        output_config = OutputConfig(
            terminal="terminal" in flags,
            file="file" in flags,
            report_dir=output_config.report_dir,
        )

    sinks: list[ReportSink] = []
    if output_config.terminal:
        sinks.append(TerminalSink(console))
    if output_config.file:
        sinks.append(FileSink(output_config.report_dir))

    db = TriageDatabase(db_path=config.db_path)
    try:
        reporter = SummaryReporter(AggregationStore(db=db), sinks)
        try:
            result = await reporter.run()
        except ReportDeliveryError as exc:
            console.print(f"[red]Report delivery failed; counters kept: {exc}[/red]")
            raise SystemExit(1) from exc
    finally:
        db.close()

    if result is None:
        console.print("[yellow]Nothing to report for this period.[/yellow]")


# ── history ──────────────────────────────────────────────────────────────────


@click.command()
@click.option("--limit", default=20, show_default=True, help="Rows to show.")
@click.pass_obj
def history(config: TriageConfig, limit: int) -> None:
    """List recently triaged emails from the processing log."""
    db = TriageDatabase(db_path=config.db_path)
    try:
        rows = db.get_processed(limit=limit)
    finally:
        db.close()

    if not rows:
        console.print("[yellow]No emails triaged yet.[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Processed", width=19)
    table.add_column("Message", max_width=24)
    table.add_column("Category", width=12)
    table.add_column("Urgency", width=8)
    table.add_column("Importance", width=10)
    table.add_column("Replied", width=7)
    for row in rows:
        table.add_row(
            row.processed_at,
            row.message_id,
            row.category,
            row.urgency,
            row.importance,
            "yes" if row.auto_responded else "no",
        )
    console.print(table)


# ── serve ────────────────────────────────────────────────────────────────────


@click.command()
@click.option(
    "--mailbox",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Mailbox JSON file backing the in-memory gateway.",
)
def serve(mailbox: Path | None) -> None:
    """Run the agent over JSON-lines webhook bodies on stdin, with the daily report."""
    from inbox_triage.agent.runner import serve as serve_stream

    logging.getLogger().setLevel(logging.INFO)
    asyncio.run(serve_stream(sys.stdin, mailbox))
