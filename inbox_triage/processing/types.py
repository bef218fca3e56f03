"""Types for the triage decision pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MainCategory(str, Enum):
    """Closed set of main categories every classification resolves to."""

    WORK = "work"
    PERSONAL = "personal"
    SOCIAL = "social"
    PROMOTIONAL = "promotional"
    SPAM = "spam"
    OTHER = "other"
    UNKNOWN = "unknown"


class Level(str, Enum):
    """Three-step scale shared by urgency and importance."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: object) -> "Level":
        """Map an analyzer string onto a Level; anything unrecognised is LOW."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.LOW


# ── Lookup tables ──────────────────────────────────────────────────────────────

#: First dot-segment of a category string → main category.
#: Anything missing from this table maps to UNKNOWN.
MAIN_CATEGORY: dict[str, MainCategory] = {
    "work": MainCategory.WORK,
    "personal": MainCategory.PERSONAL,
    "social": MainCategory.SOCIAL,
    "promotion": MainCategory.PROMOTIONAL,
    "promotional": MainCategory.PROMOTIONAL,
    "spam": MainCategory.SPAM,
    "update": MainCategory.OTHER,
}

CATEGORY_LABEL: dict[MainCategory, str] = {
    MainCategory.WORK: "Work",
    MainCategory.PERSONAL: "Personal",
    MainCategory.SOCIAL: "Social",
    MainCategory.PROMOTIONAL: "Promotional",
    MainCategory.SPAM: "Spam",
    MainCategory.OTHER: "Other",
    MainCategory.UNKNOWN: "Unknown",
}

URGENCY_LABEL: dict[Level, str] = {
    Level.HIGH: "Urgent",
    Level.MEDIUM: "Normal",
    Level.LOW: "Low-Priority",
}

#: Main categories that are archived out of the inbox when archival is enabled.
ARCHIVED_CATEGORIES: frozenset[MainCategory] = frozenset(
    {MainCategory.PROMOTIONAL, MainCategory.SPAM}
)

ARCHIVE_LABEL_PREFIX = "Archived_"


def split_category(category: str) -> tuple[str, str | None]:
    """Split ``"work.task"`` into ``("work", "task")``; the sub-category may be None."""
    head, _, tail = category.strip().lower().partition(".")
    sub = tail.split(".")[0] if tail else ""
    return head or MainCategory.UNKNOWN.value, sub or None


def main_category_of(category: str) -> MainCategory:
    """Map a dot-delimited category string onto the closed main-category set."""
    head, _ = split_category(category)
    return MAIN_CATEGORY.get(head, MainCategory.UNKNOWN)


# ── Classification results ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class CategoryResult:
    """Category verdict, either from the upstream analyzer or the heuristics.

    ``category`` is dot-delimited (``"promotion.marketing"``).  An empty
    string is normalised to ``"unknown"`` so the main category is always
    resolvable.
    """

    category: str
    confidence: float = 0.0
    alternative: str | None = None
    promotion_score: float | None = None

    def __post_init__(self) -> None:
        if not self.category or not self.category.strip():
            object.__setattr__(self, "category", MainCategory.UNKNOWN.value)

    @property
    def raw_main(self) -> str:
        """First dot-segment as supplied, before the main-category mapping."""
        return split_category(self.category)[0]

    @property
    def main(self) -> MainCategory:
        return main_category_of(self.category)

    @property
    def sub(self) -> str | None:
        return split_category(self.category)[1]


@dataclass(frozen=True)
class UrgencyResult:
    urgency: Level
    score: float = 0.0
    factors: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ImportanceResult:
    importance: Level
    score: float = 0.0
    factors: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class Classification:
    """Full triage verdict for one message.

    Produced by ``classify()`` and consumed by:
      - the labeling policy  (label names + archive decision)
      - the response policy  (reply template or suppression)
      - AggregationStore     (period counters)
    """

    category: CategoryResult
    urgency: UrgencyResult
    importance: ImportanceResult
    should_archive: bool = False

    @property
    def main_category(self) -> MainCategory:
        return self.category.main


@dataclass(frozen=True)
class ExternalScores:
    """Scores supplied by an upstream analyzer; any field may be missing.

    Supplied fields are passed through by the classifier unchanged.
    """

    category: CategoryResult | None = None
    urgency: UrgencyResult | None = None
    importance: ImportanceResult | None = None
    should_archive: bool = False

    @property
    def is_complete(self) -> bool:
        return None not in (self.category, self.urgency, self.importance)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExternalScores":
        """Parse the analyzer payload (``category``/``urgency``/``importance`` objects)."""
        category = urgency = importance = None

        raw_cat = data.get("category")
        if isinstance(raw_cat, dict) and raw_cat.get("category"):
            category = CategoryResult(
                category=str(raw_cat["category"]),
                confidence=float(raw_cat.get("confidence", 0.0)),
                alternative=str(raw_cat["alternative"]) if raw_cat.get("alternative") else None,
                promotion_score=(
                    float(raw_cat["promotion_score"])
                    if raw_cat.get("promotion_score") is not None
                    else None
                ),
            )

        raw_urg = data.get("urgency")
        if isinstance(raw_urg, dict) and raw_urg.get("urgency"):
            urgency = UrgencyResult(
                urgency=Level.parse(raw_urg["urgency"]),
                score=float(raw_urg.get("score", 0.0)),
                factors=_factors(raw_urg.get("factors")),
            )

        raw_imp = data.get("importance")
        if isinstance(raw_imp, dict) and raw_imp.get("importance"):
            importance = ImportanceResult(
                importance=Level.parse(raw_imp["importance"]),
                score=float(raw_imp.get("score", 0.0)),
                factors=_factors(raw_imp.get("factors")),
            )

        return cls(
            category=category,
            urgency=urgency,
            importance=importance,
            should_archive=bool(data.get("shouldArchive", data.get("should_archive", False))),
        )


def _factors(raw: object) -> dict[str, float]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): float(v) for k, v in raw.items() if isinstance(v, (int, float))}
