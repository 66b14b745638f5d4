"""
Event classification (assignment vs. class session vs. noise).

Precedence:
1. no usable start                      -> IGNORE
2. class keyword in title OR recurring  -> CLASS_SESSION
3. assignment keyword in title/desc,
   due today or later                   -> ASSIGNMENT
4. everything else                      -> IGNORE

Rule 2 always wins over rule 3: a weekly "Test Review Seminar" is a class,
not a test.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Tuple

from studyfeed.model import CalendarEvent, EventKind


CLASS_KEYWORDS: Tuple[str, ...] = (
    "lecture",
    "lec",
    "lab",
    "laboratory",
    "tutorial",
    "tut",
    "seminar",
    "sem",
    "class",
    "section",
)

ASSIGNMENT_KEYWORDS: Tuple[str, ...] = (
    "due",
    "assignment",
    "quiz",
    "exam",
    "test",
    "midterm",
    "final",
    "project",
    "submission",
    "deadline",
    "homework",
    "paper",
    "essay",
    "report",
)


def _contains_any(text: str, keywords: Tuple[str, ...]) -> bool:
    return any(kw in text for kw in keywords)


def is_class_like(event: CalendarEvent) -> bool:
    return event.is_recurring or _contains_any(event.title.lower(), CLASS_KEYWORDS)


def is_assignment_like(event: CalendarEvent) -> bool:
    title = event.title.lower()
    desc = (event.description or "").lower()
    return _contains_any(title, ASSIGNMENT_KEYWORDS) or _contains_any(desc, ASSIGNMENT_KEYWORDS)


def classify_event(event: CalendarEvent, now: datetime) -> EventKind:
    """
    Tag one event. Always returns a tag, never raises.

    "Due today or later" is compared by calendar day in the event's own
    timezone, so an assignment due earlier today is still kept.
    """
    if event.start is None:
        return EventKind.IGNORE

    if is_class_like(event):
        return EventKind.CLASS_SESSION

    if not is_assignment_like(event):
        return EventKind.IGNORE

    tz = event.start.tzinfo or timezone.utc
    ref = now if now.tzinfo is not None else now.replace(tzinfo=tz)
    if event.start.astimezone(tz).date() < ref.astimezone(tz).date():
        return EventKind.IGNORE

    return EventKind.ASSIGNMENT
