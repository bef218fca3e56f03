"""Tests for the labeling policy."""

import pytest

from inbox_triage.gateway.base import LabelResolutionError
from inbox_triage.processing.labeling import decide, plan_labels, subcategory_label
from inbox_triage.processing.types import (
    CategoryResult,
    Classification,
    ImportanceResult,
    Level,
    UrgencyResult,
)


def make_classification(
    category: str = "work",
    urgency: Level = Level.LOW,
    importance: Level = Level.LOW,
    should_archive: bool = False,
) -> Classification:
    return Classification(
        category=CategoryResult(category=category, confidence=0.9),
        urgency=UrgencyResult(urgency=urgency),
        importance=ImportanceResult(importance=importance),
        should_archive=should_archive,
    )


def make_resolver(ids: dict[str, str | None] | None = None):
    """Async find-or-create stub; names absent from ``ids`` get ``id-<name>``."""
    ids = ids or {}
    calls: list[str] = []

    async def resolve(name: str) -> str | None:
        calls.append(name)
        return ids.get(name, f"id-{name}")

    resolve.calls = calls  # type: ignore[attr-defined]
    return resolve


# ── plan_labels ────────────────────────────────────────────────────────────────


class TestPlanLabels:
    def test_work_high_urgency(self) -> None:
        plan = plan_labels(make_classification("work", Level.HIGH))
        assert plan.names == ["Work", "Urgent"]
        assert plan.should_archive is False

    def test_urgency_label_mapping(self) -> None:
        assert plan_labels(make_classification(urgency=Level.MEDIUM)).names[-1] == "Normal"
        assert plan_labels(make_classification(urgency=Level.LOW)).names[-1] == "Low-Priority"

    def test_subcategory_label_comes_first(self) -> None:
        plan = plan_labels(make_classification("work.meeting", Level.MEDIUM))
        assert plan.names == ["Work-Meeting", "Work", "Normal"]

    def test_subcategory_labels_can_be_disabled(self) -> None:
        plan = plan_labels(make_classification("work.meeting"), subcategory_labels=False)
        assert plan.names == ["Work", "Low-Priority"]

    def test_unmapped_main_category_is_unknown(self) -> None:
        plan = plan_labels(make_classification("newsletter.weekly"))
        assert plan.names[1:] == ["Unknown", "Low-Priority"]

    def test_promotion_maps_to_promotional_and_archives(self) -> None:
        plan = plan_labels(make_classification("promotion.marketing"))
        assert "Promotional" in plan.names
        assert plan.archive_label == "Archived_Promotional"

    def test_spam_archives(self) -> None:
        assert plan_labels(make_classification("spam")).archive_label == "Archived_Spam"

    def test_should_archive_flag_archives_any_category(self) -> None:
        plan = plan_labels(make_classification("work", should_archive=True))
        assert plan.archive_label == "Archived_Work"

    def test_archival_can_be_disabled(self) -> None:
        plan = plan_labels(make_classification("spam"), archive=False)
        assert plan.archive_label is None
        assert plan.should_archive is False


class TestSubcategoryLabel:
    def test_none_without_subcategory(self) -> None:
        assert subcategory_label(make_classification("personal")) is None

    def test_capitalises_first_letter_only(self) -> None:
        assert subcategory_label(make_classification("social.networking")) == "Social-Networking"


# ── decide ─────────────────────────────────────────────────────────────────────


class TestDecide:
    async def test_resolves_every_planned_name(self) -> None:
        resolve = make_resolver()
        decision = await decide(make_classification("work", Level.HIGH), resolve)
        assert decision.labels_to_apply == ["Work", "Urgent"]
        assert decision.label_ids == ["id-Work", "id-Urgent"]
        assert decision.should_archive is False
        assert resolve.calls == ["Work", "Urgent"]  # type: ignore[attr-defined]

    async def test_unresolved_label_is_dropped(self) -> None:
        resolve = make_resolver({"Urgent": ""})
        decision = await decide(make_classification("work", Level.HIGH), resolve)
        assert decision.labels_to_apply == ["Work"]
        assert decision.label_ids == ["id-Work"]

    async def test_archive_label_resolved_separately(self) -> None:
        resolve = make_resolver()
        decision = await decide(make_classification("spam"), resolve)
        assert decision.should_archive is True
        assert decision.archive_label == "Archived_Spam"
        assert decision.archive_label_id == "id-Archived_Spam"
        assert "Archived_Spam" not in decision.labels_to_apply

    async def test_unresolved_archive_label_id_is_none(self) -> None:
        resolve = make_resolver({"Archived_Spam": None})
        decision = await decide(make_classification("spam"), resolve)
        assert decision.should_archive is True
        assert decision.archive_label_id is None

    async def test_resolver_errors_propagate(self) -> None:
        async def failing(name: str) -> str | None:
            raise LabelResolutionError("quota exceeded")

        with pytest.raises(LabelResolutionError):
            await decide(make_classification(), failing)
