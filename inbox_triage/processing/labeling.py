"""Labeling policy — classification → Gmail labels and an archive decision."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from inbox_triage.processing.types import (
    ARCHIVE_LABEL_PREFIX,
    ARCHIVED_CATEGORIES,
    CATEGORY_LABEL,
    URGENCY_LABEL,
    Classification,
)

logger = logging.getLogger(__name__)

#: Async find-or-create: label name → label id (None / "" when unresolvable).
LabelResolver = Callable[[str], Awaitable[str | None]]


@dataclass(frozen=True)
class LabelPlan:
    """Label names the policy wants, before any ids are resolved."""

    names: list[str]
    archive_label: str | None = None

    @property
    def should_archive(self) -> bool:
        return self.archive_label is not None


@dataclass(frozen=True)
class LabelDecision:
    """Resolved labels for one message.

    ``labels_to_apply`` and ``label_ids`` are parallel: a name whose id could
    not be resolved is dropped from both.
    """

    labels_to_apply: list[str] = field(default_factory=list)
    label_ids: list[str] = field(default_factory=list)
    should_archive: bool = False
    archive_label: str | None = None
    archive_label_id: str | None = None


def subcategory_label(classification: Classification) -> str | None:
    """Composite ``"<Category>-<Sub>"`` label, e.g. ``"Work-Meeting"``."""
    sub = classification.category.sub
    if not sub:
        return None
    return f"{CATEGORY_LABEL[classification.main_category]}-{sub[0].upper()}{sub[1:]}"


def plan_labels(
    classification: Classification,
    *,
    subcategory_labels: bool = True,
    archive: bool = True,
) -> LabelPlan:
    """Pure part of the policy: which label names to resolve, in order.

    Order is sub-category label (if any) → category label → urgency label.
    """
    names: list[str] = []
    if subcategory_labels:
        composite = subcategory_label(classification)
        if composite:
            names.append(composite)
    names.append(CATEGORY_LABEL[classification.main_category])
    names.append(URGENCY_LABEL[classification.urgency.urgency])

    archive_label = None
    if archive and (
        classification.should_archive or classification.main_category in ARCHIVED_CATEGORIES
    ):
        archive_label = f"{ARCHIVE_LABEL_PREFIX}{CATEGORY_LABEL[classification.main_category]}"

    return LabelPlan(names=names, archive_label=archive_label)


async def decide(
    classification: Classification,
    resolve_label: LabelResolver,
    *,
    subcategory_labels: bool = True,
    archive: bool = True,
) -> LabelDecision:
    """Resolve the planned label names through the gateway's find-or-create.

    Raises whatever ``resolve_label`` raises (normally LabelResolutionError).
    """
    plan = plan_labels(classification, subcategory_labels=subcategory_labels, archive=archive)

    labels: list[str] = []
    ids: list[str] = []
    for name in plan.names:
        label_id = await resolve_label(name)
        if label_id:
            labels.append(name)
            ids.append(label_id)
        else:
            logger.warning("Label %r resolved to no id; skipping", name)

    archive_label_id = None
    if plan.archive_label is not None:
        archive_label_id = await resolve_label(plan.archive_label) or None

    return LabelDecision(
        labels_to_apply=labels,
        label_ids=ids,
        should_archive=plan.should_archive,
        archive_label=plan.archive_label,
        archive_label_id=archive_label_id,
    )
