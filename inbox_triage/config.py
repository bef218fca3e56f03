"""Runtime configuration, read from environment variables (and .env)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_DEFAULT_RESPONDER_NAME = "Inbox Assistant"
_DEFAULT_WORKERS = 4


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s %r; defaulting to %d", name, raw, default)
        return default


@dataclass
class TriageConfig:
    """Switches for the triage pipeline and the agent around it.

    ``subcategory_labels`` and ``archive`` gate the optional labeling
    extensions; ``auto_reply`` turns the response policy's sends on or off.
    """

    responder_name: str = _DEFAULT_RESPONDER_NAME
    subcategory_labels: bool = True
    archive: bool = True
    auto_reply: bool = True
    workers: int = _DEFAULT_WORKERS
    db_path: Path = field(default_factory=lambda: Path("data/triage.db"))

    @classmethod
    def from_env(cls) -> TriageConfig:
        """Build TriageConfig from environment variables."""
        return cls(
            responder_name=os.environ.get("AUTO_RESPONDER_NAME", _DEFAULT_RESPONDER_NAME),
            subcategory_labels=_env_flag("TRIAGE_SUBCATEGORY_LABELS", "true"),
            archive=_env_flag("TRIAGE_ARCHIVE", "true"),
            auto_reply=_env_flag("TRIAGE_AUTO_REPLY", "true"),
            workers=max(1, _env_int("TRIAGE_WORKERS", _DEFAULT_WORKERS)),
            db_path=Path(os.environ.get("TRIAGE_DB_PATH", "data/triage.db")),
        )


@dataclass
class OutputConfig:
    """Controls where the periodic summary report is delivered."""

    terminal: bool = True
    file: bool = False
    report_dir: Path = field(default_factory=lambda: Path("data/reports"))

    @classmethod
    def from_env(cls) -> OutputConfig:
        """Build OutputConfig from environment variables."""
        return cls(
            terminal=_env_flag("REPORT_OUTPUT_TERMINAL", "true"),
            file=_env_flag("REPORT_OUTPUT_FILE", "false"),
            report_dir=Path(os.environ.get("REPORT_DIR", "data/reports")),
        )
