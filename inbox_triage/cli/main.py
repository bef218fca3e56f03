"""CLI entry point for the inbox triage agent."""

import logging

import click
from dotenv import load_dotenv

from inbox_triage.config import TriageConfig

logger = logging.getLogger(__name__)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log pipeline activity at INFO level.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Inbox triage — decode, classify, simulate and report commands."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    ctx.obj = TriageConfig.from_env()


# Import and register commands after cli is defined to avoid circular imports.
from inbox_triage.cli.commands import (  # noqa: E402
    classify_cmd,
    decode_cmd,
    history,
    report,
    serve,
    simulate,
)

cli.add_command(decode_cmd)
cli.add_command(classify_cmd)
cli.add_command(simulate)
cli.add_command(report)
cli.add_command(history)
cli.add_command(serve)
