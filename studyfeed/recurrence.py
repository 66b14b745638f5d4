"""
Weekly recurrence handling for class events.

Only the parts of RRULE that matter for a weekly timetable are interpreted:
- BYDAY  -> which weekdays the class meets on
- UNTIL  -> when the recurrence stops (expired rules produce nothing)

Day numbers use Sunday=0 .. Saturday=6. dateutil counts Monday=0, so every
conversion goes through _DATEUTIL_DAYS instead of arithmetic on indexes.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule


logger = logging.getLogger(__name__)

BYDAY_MAP: Dict[str, int] = {"SU": 0, "MO": 1, "TU": 2, "WE": 3, "TH": 4, "FR": 5, "SA": 6}

# Indexed by Sunday-based day number.
_DATEUTIL_DAYS = (SU, MO, TU, WE, TH, FR, SA)

_BYDAY_RE = re.compile(r"BYDAY=([A-Z0-9,+\-]+)", re.IGNORECASE)
_UNTIL_RE = re.compile(r"UNTIL=(\d{8})(?:T(\d{6})(Z)?)?", re.IGNORECASE)

DEFAULT_HORIZON_MONTHS = 6


# ---------------------------------------------------------------------------
# Rule parsing
# ---------------------------------------------------------------------------


def sunday_weekday(value: date) -> int:
    """
    Weekday of a date/datetime as Sunday=0 .. Saturday=6.
    """
    return (value.weekday() + 1) % 7


def parse_byday(rule: Optional[str]) -> List[int]:
    """
    Return the BYDAY weekdays of a rule in rule order, without duplicates.

    Ordinal prefixes ("-1SU", "2MO") are ignored; the weekday is always the
    last two letters of the token.
    """
    if not rule:
        return []
    m = _BYDAY_RE.search(rule)
    if not m:
        return []

    days: List[int] = []
    for token in m.group(1).upper().split(","):
        day = BYDAY_MAP.get(token.strip()[-2:])
        if day is not None and day not in days:
            days.append(day)
    return days


def parse_until(rule: Optional[str], tz: tzinfo = timezone.utc) -> Optional[datetime]:
    """
    Parse the UNTIL component into an aware datetime.

    - UNTIL=20260101T120000Z -> that instant in UTC
    - UNTIL=20260101T120000  -> that wall-clock time in `tz`
    - UNTIL=20260101         -> end of that day in `tz` (the day is inclusive)

    Returns None when there is no (valid) UNTIL.
    """
    if not rule:
        return None
    m = _UNTIL_RE.search(rule)
    if not m:
        return None

    day_s, time_s, zulu = m.group(1), m.group(2), m.group(3)
    try:
        if time_s is None:
            d = datetime.strptime(day_s, "%Y%m%d")
            return d.replace(hour=23, minute=59, second=59, tzinfo=tz)
        dt = datetime.strptime(day_s + time_s, "%Y%m%d%H%M%S")
    except ValueError:
        logger.warning("Ignoring invalid UNTIL in rule %r", rule)
        return None

    return dt.replace(tzinfo=timezone.utc if zulu else tz)


def _aware(value: datetime, tz: tzinfo) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=tz)


def is_expired(rule: Optional[str], now: datetime, tz: tzinfo = timezone.utc) -> bool:
    """
    True when the rule has an UNTIL strictly before `now`.
    """
    until = parse_until(rule, tz)
    return until is not None and until < _aware(now, tz)


def recurring_days(rule: Optional[str], start: Optional[datetime]) -> List[int]:
    """
    Weekdays the event recurs on: BYDAY if given, else the weekday of `start`.
    """
    days = parse_byday(rule)
    if days:
        return days
    if start is None:
        return []
    return [sunday_weekday(start)]


# ---------------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------------


def expand_occurrences(
    rule: str,
    now: datetime,
    start: datetime,
    end: datetime,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> List[Tuple[datetime, datetime]]:
    """
    Concrete weekly occurrences of a recurring event within the window
    [max(now, start), min(UNTIL, now + horizon)].

    Each occurrence keeps the original event's time of day (in the event's
    own timezone) and duration. An expired rule yields [].
    """
    tz = start.tzinfo or timezone.utc
    start = _aware(start, tz)
    end = _aware(end, tz)
    local_now = _aware(now, tz).astimezone(tz)

    if is_expired(rule, local_now, tz):
        logger.debug("Recurrence expired: %s", rule)
        return []

    days = recurring_days(rule, start)
    if not days:
        return []

    window_start = max(local_now, start)
    limit = local_now + relativedelta(months=horizon_months)
    until = parse_until(rule, tz)
    if until is not None and until < limit:
        limit = until
    if limit < window_start:
        return []

    anchor = datetime.combine(window_start.date(), start.timetz())
    weekly = rrule(
        WEEKLY,
        byweekday=[_DATEUTIL_DAYS[d] for d in days],
        dtstart=anchor,
        until=limit,
    )

    duration = end - start if end >= start else timedelta(0)
    return [(occ, occ + duration) for occ in weekly.between(window_start, limit, inc=True)]


def next_occurrences(
    rule: str,
    now: datetime,
    start: datetime,
    end: datetime,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> Dict[int, Tuple[datetime, datetime]]:
    """
    First upcoming occurrence per weekday (Sunday=0), as used for the
    weekly timetable. Weekdays with no occurrence left in the window are
    absent from the result.
    """
    out: Dict[int, Tuple[datetime, datetime]] = {}
    for occ_start, occ_end in expand_occurrences(rule, now, start, end, horizon_months):
        day = sunday_weekday(occ_start)
        if day not in out:
            out[day] = (occ_start, occ_end)
    return out
