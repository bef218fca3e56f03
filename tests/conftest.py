"""Shared pytest fixtures."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from inbox_triage.agent.events import InMemoryEventBus
from inbox_triage.gateway.memory import InMemoryMailGateway
from inbox_triage.gateway.types import Message
from inbox_triage.storage.aggregate import AggregationStore
from inbox_triage.storage.db import TriageDatabase


@pytest.fixture
def sample_message() -> Message:
    """A minimal work email for use in tests."""
    return Message(
        id="msg_001",
        thread_id="thread_001",
        sender="alice@example.com",
        subject="Project kickoff",
        snippet="Notes from the project kickoff are attached.",
        label_ids=["INBOX"],
    )


@pytest.fixture
def gateway(sample_message: Message) -> InMemoryMailGateway:
    return InMemoryMailGateway(messages=[sample_message])


@pytest.fixture
def bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def store() -> AggregationStore:
    return AggregationStore()


@pytest.fixture
def db(tmp_path: Path) -> Iterator[TriageDatabase]:
    database = TriageDatabase(db_path=tmp_path / "triage.db")
    yield database
    database.close()
