"""Response policy — picks an acknowledgement template or suppresses the reply."""

import logging
from dataclasses import dataclass
from enum import Enum

from inbox_triage.gateway.types import Message
from inbox_triage.processing.types import Classification, Level

logger = logging.getLogger(__name__)


class ResponseClass(str, Enum):
    """Every acknowledgement the policy can send."""

    URGENT_TASK = "ack-urgent-task"
    TASK = "ack-task"
    MEETING = "ack-meeting"
    UPDATE = "ack-update"
    WORK_URGENT = "ack-work-urgent"
    WORK = "ack-work"
    PERSONAL_FINANCE = "ack-personal-finance"
    PERSONAL_HEALTH = "ack-personal-health"
    PERSONAL_FAMILY = "ack-personal-family"
    PERSONAL_GENERAL = "ack-personal-general"
    SOCIAL_EVENT = "ack-social-event"
    SOCIAL_NETWORKING = "ack-social-networking"
    SOCIAL_GENERAL = "ack-social-general"
    NOTIFICATION = "ack-notification"
    GENERIC = "ack-generic"


#: One fixed body per class; ``{name}`` appears exactly once in each.
TEMPLATES: dict[ResponseClass, str] = {
    ResponseClass.URGENT_TASK: (
        "Hi,\n\nThank you for assigning me this task. I've noted this as urgent "
        "and will work on it as soon as possible.\n\nRegards, {name}"
    ),
    ResponseClass.TASK: (
        "Hi,\n\nThank you for assigning me this task. I'll review it and get back "
        "to you with updates.\n\nRegards, {name}"
    ),
    ResponseClass.MEETING: (
        "Hi,\n\nThank you for the meeting invitation. I've received it and will "
        "confirm my availability shortly.\n\nRegards, {name}"
    ),
    ResponseClass.UPDATE: (
        "Hi,\n\nThank you for the update. I've noted the information and will "
        "review it in detail.\n\nRegards, {name}"
    ),
    ResponseClass.WORK_URGENT: (
        "Hi,\n\nThank you for your work-related email. I've noted this as urgent "
        "and will address it as soon as possible.\n\nRegards, {name}"
    ),
    ResponseClass.WORK: (
        "Hi,\n\nThank you for your work-related email. I'll review it and get back "
        "to you soon.\n\nRegards, {name}"
    ),
    ResponseClass.PERSONAL_FINANCE: (
        "Hi,\n\nThank you for your message regarding financial matters. I'll read it "
        "carefully and respond when I can.\n\nBest, {name}"
    ),
    ResponseClass.PERSONAL_HEALTH: (
        "Hi,\n\nThank you for your health-related message. I'll give this my "
        "attention as soon as possible.\n\nBest, {name}"
    ),
    ResponseClass.PERSONAL_FAMILY: (
        "Hi,\n\nThanks for your family-related message! I'll read it properly and "
        "get back to you.\n\nBest, {name}"
    ),
    ResponseClass.PERSONAL_GENERAL: (
        "Hi,\n\nThanks for your personal message! I'll read it properly and get back "
        "to you when I can.\n\nBest, {name}"
    ),
    ResponseClass.SOCIAL_EVENT: (
        "Hi,\n\nThanks for the event information! I'll check my schedule and let "
        "you know.\n\nBest, {name}"
    ),
    ResponseClass.SOCIAL_NETWORKING: (
        "Hi,\n\nI appreciate you reaching out to connect. I'll review your message "
        "and respond soon.\n\nBest, {name}"
    ),
    ResponseClass.SOCIAL_GENERAL: (
        "Hi,\n\nThanks for the social update. I'll check it out soon!\n\nBest, {name}"
    ),
    ResponseClass.NOTIFICATION: (
        "Hi,\n\nThank you for the important notification. I've received it and will "
        "take appropriate action.\n\nRegards, {name}"
    ),
    ResponseClass.GENERIC: (
        "Hi,\n\nThank you for your email. I'll review it and respond "
        "appropriately.\n\nBest regards, {name}"
    ),
}

_PERSONAL_SUBS: dict[str, ResponseClass] = {
    "finance": ResponseClass.PERSONAL_FINANCE,
    "health": ResponseClass.PERSONAL_HEALTH,
    "family": ResponseClass.PERSONAL_FAMILY,
}

_SOCIAL_SUBS: dict[str, ResponseClass] = {
    "event": ResponseClass.SOCIAL_EVENT,
    "networking": ResponseClass.SOCIAL_NETWORKING,
}

_SUPPRESSED_MAINS = frozenset({"promotion", "promotional", "spam"})


# ── Outcomes ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Reply:
    """Send ``body`` as the automatic reply."""

    response_class: ResponseClass
    body: str


@dataclass(frozen=True)
class Suppressed:
    """Policy decided not to reply. A terminal outcome, not an error."""

    main_category: str
    reason: str


ResponsePlan = Reply | Suppressed


# ── Policy ─────────────────────────────────────────────────────────────────────


def response_class_for(classification: Classification) -> ResponseClass | None:
    """Pick the response class, or None when the reply is suppressed."""
    main = classification.category.raw_main
    sub = classification.category.sub
    urgent = classification.urgency.urgency == Level.HIGH
    important = classification.importance.importance == Level.HIGH

    if main == "work":
        if sub == "task":
            return ResponseClass.URGENT_TASK if urgent else ResponseClass.TASK
        if sub == "meeting":
            return ResponseClass.MEETING
        if sub == "update":
            return ResponseClass.UPDATE
        return ResponseClass.WORK_URGENT if urgent else ResponseClass.WORK
    if main == "personal":
        return _PERSONAL_SUBS.get(sub or "", ResponseClass.PERSONAL_GENERAL)
    if main == "social":
        return _SOCIAL_SUBS.get(sub or "", ResponseClass.SOCIAL_GENERAL)
    if main in _SUPPRESSED_MAINS:
        return None
    if main == "update":
        return ResponseClass.NOTIFICATION if sub == "notification" and important else None
    return ResponseClass.GENERIC


def respond(message: Message, classification: Classification, sender_name: str) -> ResponsePlan:
    """Return the Reply to send for ``message``, or Suppressed."""
    response_class = response_class_for(classification)
    if response_class is None:
        main = classification.category.raw_main
        logger.info(
            "email=%s reply suppressed for category %s", message.id, classification.category.category
        )
        return Suppressed(main_category=main, reason=f"no auto-reply for {main!r} mail")
    return Reply(
        response_class=response_class,
        body=TEMPLATES[response_class].format(name=sender_name),
    )
