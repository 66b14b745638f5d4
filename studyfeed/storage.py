"""
Persistent storage between refreshes.

This module manages three JSON files in the data directory:

    feeds.json            the user's ICS feed URLs
    course_bindings.json  catalog matches per extracted course code
    last_refresh.json     snapshot of the latest refresh (for `studyfeed show`)

Design rationale:
- every refresh recomputes everything from the feeds
- bindings keep a course's catalog match around when a later refresh runs
  without a catalog

All loaders are defensive: a missing or corrupt file gives an empty default.
"""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from studyfeed.config import default_data_dir
from studyfeed.model import Assignment, ClassOccurrence, FeedFailure, RefreshResult


FEEDS_FILE = "feeds.json"
BINDINGS_FILE = "course_bindings.json"
SNAPSHOT_FILE = "last_refresh.json"


def _resolve(path: str | Path | None, filename: str) -> Path:
    # Use custom path if provided (mainly for tests),
    # otherwise fall back to the default package location
    return Path(path) if path is not None else default_data_dir() / filename


def _read_json(path: Path) -> Any:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return None


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


# ---------------------------------------------------------------------------
# Feed URLs
# ---------------------------------------------------------------------------


def load_feed_urls(path: str | Path | None = None) -> List[str]:
    """
    Load feed URLs. Returns [] if the file does not exist or is invalid.
    """
    data = _read_json(_resolve(path, FEEDS_FILE))
    if not isinstance(data, dict):
        return []
    urls = data.get("ics_urls", [])
    if not isinstance(urls, list):
        return []
    return list(dict.fromkeys(u.strip() for u in urls if isinstance(u, str) and u.strip()))


def save_feed_urls(urls: Iterable[str], path: str | Path | None = None) -> None:
    """
    Save feed URLs (stripped, de-duplicated, order kept).
    """
    clean = list(dict.fromkeys(str(u).strip() for u in urls if str(u).strip()))
    _write_json(_resolve(path, FEEDS_FILE), {"ics_urls": clean})


# ---------------------------------------------------------------------------
# Course bindings
# ---------------------------------------------------------------------------


def save_course_bindings(
    assignments: Iterable[Assignment],
    path: str | Path | None = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Remember, per extracted course code, what it was matched to.
    Existing bindings for other codes are kept. Returns the binding count.
    """
    target = _resolve(path, BINDINGS_FILE)
    bindings = load_course_bindings(target)
    stamp = (now or datetime.now().astimezone()).isoformat()

    for a in assignments:
        if not a.course_code or not (a.is_matched_to_catalog or a.course_name):
            continue
        bindings[a.course_code] = {
            "matched_course_key": a.matched_course_key,
            "matched_course_name": a.matched_course_name,
            "course_name": a.course_name,
            "is_matched_to_catalog": a.is_matched_to_catalog,
            "last_updated": stamp,
        }

    _write_json(target, {"course_bindings": bindings})
    return len(bindings)


def load_course_bindings(path: str | Path | None = None) -> Dict[str, Dict[str, Any]]:
    data = _read_json(_resolve(path, BINDINGS_FILE))
    if not isinstance(data, dict):
        return {}
    bindings = data.get("course_bindings", {})
    if not isinstance(bindings, dict):
        return {}
    return {str(k): v for k, v in bindings.items() if isinstance(v, dict)}


def apply_course_bindings(
    assignments: Iterable[Assignment],
    bindings: Dict[str, Dict[str, Any]],
) -> List[Assignment]:
    """
    Fill missing match fields from stored bindings. Fresh values always win.
    """
    out: List[Assignment] = []
    for a in assignments:
        b = bindings.get(a.course_code)
        if not b:
            out.append(a)
            continue
        if a.is_matched_to_catalog:
            out.append(replace(a, course_name=a.course_name or b.get("course_name")))
            continue
        out.append(
            replace(
                a,
                course_name=a.course_name or b.get("course_name"),
                matched_course_key=b.get("matched_course_key"),
                matched_course_name=b.get("matched_course_name"),
                is_matched_to_catalog=bool(b.get("is_matched_to_catalog")),
            )
        )
    return out


# ---------------------------------------------------------------------------
# Refresh snapshot
# ---------------------------------------------------------------------------


def _dt(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def result_to_dict(result: RefreshResult) -> Dict[str, Any]:
    return {
        "generated_at": result.generated_at.isoformat() if result.generated_at else None,
        "weekly_class_hours": result.weekly_class_hours,
        "skipped_blocks": result.skipped_blocks,
        "assignments": [
            {
                "id": a.id,
                "title": a.title,
                "due": a.due.isoformat(),
                "course_code": a.course_code,
                "course_name": a.course_name,
                "description": a.description,
                "external_url": a.external_url,
                "source": a.source,
                "matched_course_key": a.matched_course_key,
                "matched_course_name": a.matched_course_name,
                "is_matched_to_catalog": a.is_matched_to_catalog,
            }
            for a in result.assignments
        ],
        "class_occurrences": [
            {
                "id": c.id,
                "title": c.title,
                "course_code": c.course_code,
                "day_of_week": c.day_of_week,
                "start": c.start.isoformat(),
                "end": c.end.isoformat(),
                "location": c.location,
            }
            for c in result.occurrences
        ],
        "failures": [{"url": f.url, "stage": f.stage, "message": f.message} for f in result.failures],
    }


def result_from_dict(data: Dict[str, Any]) -> RefreshResult:
    """
    Inverse of result_to_dict(). Records with unreadable timestamps are skipped.
    """
    assignments: List[Assignment] = []
    for item in data.get("assignments", []) or []:
        due = _dt(item.get("due")) if isinstance(item, dict) else None
        if due is None:
            continue
        assignments.append(
            Assignment(
                id=str(item.get("id", "")),
                title=str(item.get("title", "")),
                due=due,
                course_code=str(item.get("course_code", "")),
                course_name=item.get("course_name"),
                description=item.get("description"),
                external_url=item.get("external_url"),
                source=str(item.get("source", "ics")),
                matched_course_key=item.get("matched_course_key"),
                matched_course_name=item.get("matched_course_name"),
                is_matched_to_catalog=bool(item.get("is_matched_to_catalog")),
            )
        )

    occurrences: List[ClassOccurrence] = []
    for item in data.get("class_occurrences", []) or []:
        if not isinstance(item, dict):
            continue
        start, end = _dt(item.get("start")), _dt(item.get("end"))
        if start is None or end is None:
            continue
        occurrences.append(
            ClassOccurrence(
                id=str(item.get("id", "")),
                title=str(item.get("title", "")),
                course_code=str(item.get("course_code", "")),
                day_of_week=int(item.get("day_of_week", 0)),
                start=start,
                end=end,
                location=item.get("location"),
            )
        )

    failures = [
        FeedFailure(url=str(f.get("url", "")), stage=str(f.get("stage", "")), message=str(f.get("message", "")))
        for f in data.get("failures", []) or []
        if isinstance(f, dict)
    ]

    return RefreshResult(
        assignments=assignments,
        occurrences=occurrences,
        weekly_class_hours=float(data.get("weekly_class_hours", 0.0) or 0.0),
        failures=failures,
        generated_at=_dt(data.get("generated_at")),
        skipped_blocks=int(data.get("skipped_blocks", 0) or 0),
    )


def save_refresh_result(result: RefreshResult, path: str | Path | None = None) -> None:
    _write_json(_resolve(path, SNAPSHOT_FILE), result_to_dict(result))


def load_refresh_result(path: str | Path | None = None) -> Optional[RefreshResult]:
    """
    Load the last snapshot, or None if there is none (or it is unreadable).
    """
    data = _read_json(_resolve(path, SNAPSHOT_FILE))
    if not isinstance(data, dict):
        return None
    return result_from_dict(data)
