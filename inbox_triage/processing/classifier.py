"""Classifier — deterministic keyword heuristics with external-score pass-through."""

import logging
import re

from inbox_triage.gateway.types import Message
from inbox_triage.processing.types import (
    CategoryResult,
    Classification,
    ExternalScores,
    ImportanceResult,
    Level,
    MainCategory,
    UrgencyResult,
)

logger = logging.getLogger(__name__)

# ── Keyword tables ─────────────────────────────────────────────────────────────
# Order matters: the first matching entry wins.  Matching is a case-insensitive
# substring search, so "meetings" matches "meeting".

#: Gmail label-id fragments checked before any text heuristics.
_LABEL_HINTS: list[tuple[str, MainCategory]] = [
    ("work", MainCategory.WORK),
    ("personal", MainCategory.PERSONAL),
    ("social", MainCategory.SOCIAL),
    ("promotions", MainCategory.PROMOTIONAL),
    ("spam", MainCategory.SPAM),
]

# "deadline" counts toward urgency only.
_CATEGORY_KEYWORDS: list[tuple[MainCategory, tuple[str, ...]]] = [
    (MainCategory.WORK, ("work", "task", "project", "meeting", "presentation")),
    (MainCategory.PERSONAL, ("personal", "family", "friend", "vacation", "holiday")),
    (MainCategory.SOCIAL, ("social", "event", "party", "gathering", "meetup")),
    (
        MainCategory.PROMOTIONAL,
        ("deal", "discount", "offer", "subscription", "newsletter", "unsubscribe"),
    ),
]

_URGENCY_KEYWORDS: list[tuple[Level, tuple[str, ...]]] = [
    (Level.HIGH, ("urgent", "asap", "emergency", "immediately", "deadline", "today")),
    (Level.MEDIUM, ("important", "priority", "attention", "soon")),
]

_IMPORTANCE_KEYWORDS: list[tuple[Level, tuple[str, ...]]] = [
    (Level.HIGH, ("important", "critical", "essential", "key", "crucial")),
    (Level.MEDIUM, ("significant", "noteworthy", "relevant")),
]

_LABEL_CONFIDENCE = 0.9
_KEYWORD_CONFIDENCE = 0.6
_DEFAULT_CONFIDENCE = 0.2

_LEVEL_SCORE: dict[Level, float] = {Level.HIGH: 1.0, Level.MEDIUM: 0.5, Level.LOW: 0.0}


def _compile(words: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile("|".join(re.escape(w) for w in words), re.IGNORECASE)


_CATEGORY_PATTERNS = [(cat, _compile(words)) for cat, words in _CATEGORY_KEYWORDS]
_URGENCY_PATTERNS = [(lvl, _compile(words)) for lvl, words in _URGENCY_KEYWORDS]
_IMPORTANCE_PATTERNS = [(lvl, _compile(words)) for lvl, words in _IMPORTANCE_KEYWORDS]


# ── Public API ─────────────────────────────────────────────────────────────────


def classify(message: Message, external: ExternalScores | None = None) -> Classification:
    """Return the Classification for a message.

    Fields present in ``external`` are passed through untouched; only the
    missing ones are derived from the subject, snippet and label ids.
    """
    external = external or ExternalScores()
    text = f"{message.subject} {message.snippet}"

    category = external.category or categorize(message.label_ids, text)
    urgency = external.urgency or assess_urgency(text)
    importance = external.importance or assess_importance(text)

    if not external.is_complete:
        logger.debug(
            "email=%s heuristic fallback (category=%s urgency=%s importance=%s)",
            message.id,
            external.category is None,
            external.urgency is None,
            external.importance is None,
        )

    return Classification(
        category=category,
        urgency=urgency,
        importance=importance,
        should_archive=external.should_archive,
    )


def categorize(label_ids: list[str], text: str) -> CategoryResult:
    """Derive a main category from Gmail label ids, then from keywords."""
    lowered = [lid.lower() for lid in label_ids]
    for fragment, category in _LABEL_HINTS:
        if any(fragment in lid for lid in lowered):
            return CategoryResult(category=category.value, confidence=_LABEL_CONFIDENCE)

    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(text):
            return CategoryResult(category=category.value, confidence=_KEYWORD_CONFIDENCE)

    return CategoryResult(category=MainCategory.UNKNOWN.value, confidence=_DEFAULT_CONFIDENCE)


def assess_urgency(text: str) -> UrgencyResult:
    level, factors = _scan(text, _URGENCY_PATTERNS)
    return UrgencyResult(urgency=level, score=_LEVEL_SCORE[level], factors=factors)


def assess_importance(text: str) -> ImportanceResult:
    level, factors = _scan(text, _IMPORTANCE_PATTERNS)
    return ImportanceResult(importance=level, score=_LEVEL_SCORE[level], factors=factors)


def _scan(
    text: str, patterns: list[tuple[Level, re.Pattern[str]]]
) -> tuple[Level, dict[str, float]]:
    for level, pattern in patterns:
        match = pattern.search(text)
        if match:
            return level, {f"keyword_{match.group(0).lower()}": 1.0}
    return Level.LOW, {}
