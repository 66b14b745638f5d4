"""
Turning classified events into Assignment / ClassOccurrence records,
and merging the records of several feeds.

Merge rules:
- assignments are unique by (title, due)
- class occurrences are unique by (course_code, day_of_week, start_time)
- inputs are sorted before de-duplication, so the merged result does not
  depend on which feed finished first
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from studyfeed.classify import classify_event
from studyfeed.config import current_semester_start
from studyfeed.context import RefreshContext
from studyfeed.course_code import extract_course_code
from studyfeed.model import (
    GENERAL_COURSE,
    UNKNOWN_COURSE,
    Assignment,
    CalendarEvent,
    ClassOccurrence,
    EventKind,
    FeedFailure,
    FeedResult,
    RefreshResult,
)
from studyfeed.recurrence import next_occurrences, recurring_days, sunday_weekday


logger = logging.getLogger(__name__)

D2L_URL_RE = re.compile(r"https?://[^\s<>\"]+d2l[^\s<>\"]+", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Per-event builders
# ---------------------------------------------------------------------------


def _external_url(event: CalendarEvent) -> Optional[str]:
    if event.url:
        return event.url
    m = D2L_URL_RE.search(event.description or "")
    return m.group(0) if m else None


def build_assignment(event: CalendarEvent, ctx: RefreshContext) -> Assignment:
    """
    Assignment record for an event already classified as ASSIGNMENT.

    The course comes from LOCATION when the feed fills it (LMS feeds do),
    otherwise from the start of the title.
    """
    course = extract_course_code(event.location, event.title, sentinel=UNKNOWN_COURSE)
    desc = event.description[: ctx.config.description_limit] if event.description else None

    return Assignment(
        id=f"ics-{event.uid}",
        title=event.title,
        due=event.start,
        course_code=course.code,
        course_name=course.name,
        description=desc,
        external_url=_external_url(event),
    )


def build_class_occurrences(event: CalendarEvent, ctx: RefreshContext) -> List[ClassOccurrence]:
    """
    One occurrence per weekday a recurring event meets on (its next meeting),
    or a single occurrence for a one-off class event that is still ahead.
    """
    if event.start is None or event.is_all_day:
        return []

    start = event.start
    end = event.end or start
    course = extract_course_code(event.title, sentinel=GENERAL_COURSE).code
    horizon = ctx.config.horizon_months

    if event.is_recurring:
        slots = next_occurrences(event.recurrence_rule or "", ctx.now, start, end, horizon)
        if not slots:
            logger.debug("No upcoming occurrences for %r", event.title)
        out: List[ClassOccurrence] = []
        for day in recurring_days(event.recurrence_rule, start):
            if day not in slots:
                continue
            occ_start, occ_end = slots[day]
            out.append(
                ClassOccurrence(
                    id=f"class-{event.uid}-day{day}",
                    title=event.title,
                    course_code=course,
                    day_of_week=day,
                    start=occ_start,
                    end=occ_end,
                    location=event.location,
                )
            )
        return out

    if end < ctx.now or start >= ctx.now + relativedelta(months=horizon):
        return []

    return [
        ClassOccurrence(
            id=f"class-{event.uid}",
            title=event.title,
            course_code=course,
            day_of_week=sunday_weekday(start),
            start=start,
            end=end,
            location=event.location,
        )
    ]


def _before_semester(event: CalendarEvent, ctx: RefreshContext) -> bool:
    if not ctx.config.current_semester_only or event.start is None:
        return False
    return event.start.date() < current_semester_start(ctx.now)


def extract_feed(url: str, events: Iterable[CalendarEvent], ctx: RefreshContext) -> FeedResult:
    """
    Classify the events of one feed and build its records.
    """
    result = FeedResult(url=url)
    for event in events:
        kind = classify_event(event, ctx.now)
        if kind is EventKind.IGNORE or _before_semester(event, ctx):
            continue
        if kind is EventKind.ASSIGNMENT:
            result.assignments.append(build_assignment(event, ctx))
        else:
            result.occurrences.extend(build_class_occurrences(event, ctx))

    logger.info(
        "Feed %s: %d assignments, %d class occurrences",
        url[:50],
        len(result.assignments),
        len(result.occurrences),
    )
    return result


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def merge_assignments(*groups: Iterable[Assignment]) -> List[Assignment]:
    candidates = [a for group in groups for a in group]
    candidates.sort(key=lambda a: (a.due, a.title, a.course_code, a.id, a.external_url or ""))

    seen: set[Tuple[str, datetime]] = set()
    out: List[Assignment] = []
    for a in candidates:
        if a.dedup_key in seen:
            continue
        seen.add(a.dedup_key)
        out.append(a)
    return out


def merge_occurrences(*groups: Iterable[ClassOccurrence]) -> List[ClassOccurrence]:
    candidates = [c for group in groups for c in group]
    candidates.sort(key=lambda c: (c.start, c.course_code, c.id, c.end))

    seen: set = set()
    out: List[ClassOccurrence] = []
    for c in candidates:
        if c.dedup_key in seen:
            continue
        seen.add(c.dedup_key)
        out.append(c)
    return out


def weekly_class_hours(occurrences: Iterable[ClassOccurrence]) -> float:
    """
    Sum of durations over distinct weekly slots, rounded to one decimal.
    """
    slots: Dict[tuple, float] = {}
    for c in occurrences:
        slots.setdefault(c.dedup_key, c.duration_hours)
    return round(sum(slots.values()), 1)


def aggregate(
    feed_results: Iterable[FeedResult],
    failures: Iterable[FeedFailure] = (),
    generated_at: Optional[datetime] = None,
) -> RefreshResult:
    results = list(feed_results)
    assignments = merge_assignments(*(r.assignments for r in results))
    occurrences = merge_occurrences(*(r.occurrences for r in results))

    return RefreshResult(
        assignments=assignments,
        occurrences=occurrences,
        weekly_class_hours=weekly_class_hours(occurrences),
        failures=sorted(failures, key=lambda f: (f.url, f.stage)),
        generated_at=generated_at,
        skipped_blocks=sum(r.skipped_blocks for r in results),
    )
