"""
Course-code extraction from free-text calendar fields.

Feeds put the course in different places:
- LMS due-date feeds: LOCATION = "CP8307/CPS843 - Intro to Computer Vision - F2025"
- timetable feeds:    SUMMARY  = "CPS843 - LEC"

Strategy (first hit wins):
1. full pattern anchored at the start of the preferred field
   (code, optional "/code" cross-listing, optional 3-digit section)
2. simple pattern (letters + exactly 3 digits) at the start of the title
3. sentinel code, never ""
"""

from __future__ import annotations

import re
from typing import Optional

from studyfeed.model import UNKNOWN_COURSE, CourseCode


_CODE = r"[A-Z]{2,4}\d{2,4}[A-Z]?"

FULL_CODE_RE = re.compile(rf"^({_CODE}(?:/{_CODE})?(?:\s+\d{{3}}[A-Z]?)?)")
SIMPLE_CODE_RE = re.compile(r"^([A-Z]{2,4})\s?(\d{3}[A-Z]?)")
SECTION_RE = re.compile(r"\s+\d{3}[A-Z]?$")
COURSE_NAME_RE = re.compile(
    rf"^{_CODE}(?:/{_CODE})?\s*(?:\d{{3}}[A-Z]?)?\s*-\s*([^-]+?)(?:\s*-\s*[A-Z]\d{{4}}|$)"
)


def normalize_code(code: str) -> str:
    """
    Canonical comparison form: uppercase, no hyphens, no whitespace.
    """
    return re.sub(r"[-\s]", "", code or "").upper()


def _prefer_cross_listed(code: str) -> str:
    # "CP8307/CPS843" -> "CPS843": the second code is the one the portal uses.
    if "/" in code:
        code = code.split("/")[-1].strip()
    return code


def match_full_code(text: str) -> Optional[str]:
    """
    Apply the full pattern to the start of `text` and return the canonical
    code, or None.
    """
    m = FULL_CODE_RE.match((text or "").strip())
    if not m:
        return None
    code = _prefer_cross_listed(m.group(1).strip())
    return SECTION_RE.sub("", code)


def match_simple_code(text: str) -> Optional[str]:
    m = SIMPLE_CODE_RE.match((text or "").strip())
    if not m:
        return None
    return m.group(1) + m.group(2)


def extract_course_name(text: str) -> Optional[str]:
    """
    "POL507 701E - Power, Change and Technology - F2025"
        -> "Power, Change and Technology"
    """
    m = COURSE_NAME_RE.match((text or "").strip())
    if not m:
        return None
    name = m.group(1).strip()
    return name or None


def extract_course_code(
    field: Optional[str],
    title: Optional[str] = None,
    sentinel: str = UNKNOWN_COURSE,
) -> CourseCode:
    """
    Derive {code, name} from the preferred field (usually LOCATION),
    falling back to the event title, then to `sentinel`.
    """
    primary = (field or "").strip() or (title or "").strip()

    code = match_full_code(primary)
    if code:
        return CourseCode(code=code.upper(), name=extract_course_name(primary))

    code = match_simple_code(title or "")
    if code:
        return CourseCode(code=code.upper(), name=None)

    return CourseCode(code=sentinel, name=None)
