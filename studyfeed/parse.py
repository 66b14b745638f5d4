"""
Parsing (ICS text -> CalendarEvent list).

- Keeps VEVENT components only
- Retains RRULE text as-is; expansion happens in recurrence.py
- Floating and all-day values get the configured default timezone

Providers differ a lot in how strict their feeds are. If icalendar rejects
the document as a whole, every BEGIN:VEVENT ... END:VEVENT block is parsed
on its own and broken blocks are skipped.
"""

from __future__ import annotations

import hashlib
import logging
import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, List, Optional, Tuple

from icalendar import Calendar

from studyfeed.errors import ParseError
from studyfeed.model import CalendarEvent
from studyfeed.recurrence import parse_byday


logger = logging.getLogger(__name__)

# A block may not run into the next BEGIN:VEVENT (a truncated block has no END).
_VEVENT_BLOCK_RE = re.compile(
    r"^BEGIN:VEVENT\b(?:(?!^BEGIN:VEVENT\b).)*?^END:VEVENT\b",
    re.MULTILINE | re.DOTALL | re.IGNORECASE,
)
_VEVENT_BEGIN_RE = re.compile(r"^BEGIN:VEVENT\b", re.MULTILINE | re.IGNORECASE)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _text(component: Any, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        value = value[0] if value else None
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _to_datetime(value: Any, default_tz: tzinfo) -> Optional[datetime]:
    """
    Turn a DTSTART/DTEND value (date or datetime) into an aware datetime.
    """
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=default_tz)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=default_tz)
    return None


def _prop_dt(component: Any, name: str) -> Any:
    prop = component.get(name)
    return getattr(prop, "dt", None)


def _rrule_text(component: Any) -> Optional[str]:
    prop = component.get("RRULE")
    if isinstance(prop, list):
        prop = prop[0] if prop else None
    if prop is None:
        return None
    try:
        raw = prop.to_ical()
    except (AttributeError, ValueError, TypeError):
        raw = str(prop)
    text = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
    return text.strip() or None


def _fallback_uid(title: str, start: Optional[datetime]) -> str:
    seed = f"{title}|{start.isoformat() if start else ''}"
    return hashlib.sha1(seed.encode("utf-8")).hexdigest()[:16]


def event_from_component(component: Any, default_tz: tzinfo = timezone.utc) -> CalendarEvent:
    """
    Build one CalendarEvent from an icalendar VEVENT component.
    """
    title = _text(component, "SUMMARY") or "Untitled Event"

    raw_start = _prop_dt(component, "DTSTART")
    is_all_day = isinstance(raw_start, date) and not isinstance(raw_start, datetime)
    start = _to_datetime(raw_start, default_tz)

    end = _to_datetime(_prop_dt(component, "DTEND"), default_tz)
    if end is None and start is not None:
        duration = _prop_dt(component, "DURATION")
        end = start + duration if isinstance(duration, timedelta) else start
    if start is not None and end is not None and end < start:
        end = start

    rule = _rrule_text(component)

    return CalendarEvent(
        uid=_text(component, "UID") or _fallback_uid(title, start),
        title=title,
        start=start,
        end=end,
        description=_text(component, "DESCRIPTION"),
        location=_text(component, "LOCATION"),
        url=_text(component, "URL"),
        is_all_day=is_all_day,
        recurrence_rule=rule,
        recurrence_days=frozenset(parse_byday(rule)),
    )


def _drop_overridden_instances(components: List[Any]) -> List[Any]:
    # RECURRENCE-ID instances belong to a master that already describes the slot.
    masters = {str(c.get("UID")) for c in components if c.get("RRULE") is not None and c.get("UID")}
    return [c for c in components if not (c.get("RECURRENCE-ID") is not None and str(c.get("UID")) in masters)]


def _salvage_components(text: str) -> Tuple[List[Any], int]:
    """
    Parse each VEVENT block separately. Returns (components, skipped).
    """
    blocks = _VEVENT_BLOCK_RE.findall(text)
    # BEGIN lines without a matching END never form a block
    skipped = len(_VEVENT_BEGIN_RE.findall(text)) - len(blocks)
    if skipped:
        logger.warning("Skipping %d VEVENT block(s) without END:VEVENT", skipped)

    components: List[Any] = []
    for block in blocks:
        wrapped = f"BEGIN:VCALENDAR\r\nVERSION:2.0\r\n{block}\r\nEND:VCALENDAR\r\n"
        try:
            cal = Calendar.from_ical(wrapped)
        except (ValueError, KeyError, IndexError) as exc:
            logger.warning("Skipping unparseable VEVENT block: %s", exc)
            skipped += 1
            continue
        components.extend(cal.walk("VEVENT"))
    return components, skipped


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_ics_with_stats(
    text: str,
    default_tz: tzinfo = timezone.utc,
) -> Tuple[List[CalendarEvent], int]:
    """
    Parse ICS text and return (events, number_of_skipped_vevent_blocks).

    Raises:
        ParseError: when the text has no VCALENDAR begin/end markers.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    upper = (text or "").upper()
    if "BEGIN:VCALENDAR" not in upper or "END:VCALENDAR" not in upper:
        raise ParseError("input is not iCalendar data (missing BEGIN/END:VCALENDAR)")

    skipped = 0
    try:
        cal = Calendar.from_ical(text)
        if cal.name != "VCALENDAR":
            # unbalanced BEGIN/END lines can leave a non-calendar component on top
            raise ValueError(f"top-level component is {cal.name}")
        components = list(cal.walk("VEVENT"))
    except (ValueError, KeyError, IndexError) as exc:
        logger.warning("Calendar rejected as a whole (%s); parsing VEVENT blocks one by one", exc)
        components, skipped = _salvage_components(text)

    events: List[CalendarEvent] = []
    for component in _drop_overridden_instances(components):
        try:
            events.append(event_from_component(component, default_tz))
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Skipping malformed VEVENT: %s", exc)
            skipped += 1

    logger.info("Parsed %d events (%d skipped)", len(events), skipped)
    return events, skipped


def parse_ics(text: str, default_tz: tzinfo = timezone.utc) -> List[CalendarEvent]:
    """
    Parse ICS text into CalendarEvents (VEVENTs only, recurrence unexpanded).
    """
    events, _ = parse_ics_with_stats(text, default_tz)
    return events
