"""
Central data model definitions used across the project.

This module defines the canonical structure of the objects flowing through
the refresh pipeline so that:
- all modules share the same field names
- parser, classifier, matcher and report stay consistent
- results can be serialised without guessing field meanings

Weekday numbers follow the Sunday=0 .. Saturday=6 convention everywhere.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import FrozenSet, List, Optional


UNKNOWN_COURSE = "UNKNOWN"
GENERAL_COURSE = "General"


class EventKind(enum.Enum):
    ASSIGNMENT = "assignment"
    CLASS_SESSION = "class"
    IGNORE = "ignore"


class MatchTier(enum.Enum):
    EXACT = "exact"
    NORMALIZED = "normalized"
    PARTIAL = "partial"
    NONE = "none"


@dataclass(frozen=True)
class CalendarEvent:
    """
    One VEVENT as read from an ICS feed.

    `start` is None when the feed gave no usable DTSTART; such events are
    skipped by the classifier.
    """

    uid: str
    title: str
    start: Optional[datetime]
    end: Optional[datetime]
    description: Optional[str] = None
    location: Optional[str] = None
    url: Optional[str] = None
    is_all_day: bool = False
    recurrence_rule: Optional[str] = None
    recurrence_days: FrozenSet[int] = frozenset()

    @property
    def is_recurring(self) -> bool:
        return bool(self.recurrence_rule)


@dataclass(frozen=True)
class CourseCode:
    """
    Result of course-code extraction: normalised code plus optional name.
    """

    code: str
    name: Optional[str] = None


@dataclass(frozen=True)
class Assignment:
    id: str
    title: str
    due: datetime
    course_code: str
    course_name: Optional[str] = None
    description: Optional[str] = None
    external_url: Optional[str] = None
    source: str = "ics"
    matched_course_key: Optional[str] = None
    matched_course_name: Optional[str] = None
    is_matched_to_catalog: bool = False

    @property
    def dedup_key(self) -> tuple[str, datetime]:
        return (self.title, self.due)

    @property
    def display_course(self) -> str:
        """
        Course label the UI groups by: the catalog key if matched,
        otherwise the extracted code.
        """
        return self.matched_course_key or self.course_code


@dataclass(frozen=True)
class ClassOccurrence:
    """
    One concrete class meeting: the next occurrence of one weekly slot.
    """

    id: str
    title: str
    course_code: str
    day_of_week: int
    start: datetime
    end: datetime
    location: Optional[str] = None

    @property
    def start_time(self) -> time:
        return self.start.time()

    @property
    def end_time(self) -> time:
        return self.end.time()

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600.0

    @property
    def dedup_key(self) -> tuple[str, int, time]:
        return (self.course_code, self.day_of_week, self.start_time)


@dataclass(frozen=True)
class CourseCatalogEntry:
    """
    Authoritative course record from the scheduling portal.
    `key` may be cross-listed, e.g. "CP8307/CPS843".
    """

    key: str
    title: str

    @property
    def components(self) -> List[str]:
        return [p.strip() for p in self.key.split("/") if p.strip()]


@dataclass(frozen=True)
class CourseCodeMatch:
    assignment_course_code: str
    matched_catalog_key: Optional[str] = None
    matched_catalog_title: Optional[str] = None
    tier: MatchTier = MatchTier.NONE

    @property
    def is_match(self) -> bool:
        return self.tier is not MatchTier.NONE


@dataclass(frozen=True)
class FeedFailure:
    """
    Why one feed contributed nothing. `stage` is "fetch" or "parse".
    """

    url: str
    stage: str
    message: str


@dataclass
class FeedResult:
    url: str
    assignments: List[Assignment] = field(default_factory=list)
    occurrences: List[ClassOccurrence] = field(default_factory=list)
    skipped_blocks: int = 0


@dataclass
class RefreshResult:
    assignments: List[Assignment] = field(default_factory=list)
    occurrences: List[ClassOccurrence] = field(default_factory=list)
    weekly_class_hours: float = 0.0
    failures: List[FeedFailure] = field(default_factory=list)
    generated_at: Optional[datetime] = None
    # unreadable VEVENT blocks summed over all feeds
    skipped_blocks: int = 0
