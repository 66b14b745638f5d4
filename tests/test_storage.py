"""
Unit tests for local storage between refreshes.

Storage contract:
- Missing/invalid file -> empty default (never an exception)
- Feed URLs are stripped and de-duplicated, order kept
- JSON schemas: {"ics_urls": [...]}, {"course_bindings": {...}}
- A refresh snapshot loads back to an equal result
"""

import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from studyfeed.model import Assignment, ClassOccurrence, FeedFailure, RefreshResult
from studyfeed.storage import (
    apply_course_bindings,
    load_course_bindings,
    load_feed_urls,
    load_refresh_result,
    save_course_bindings,
    save_feed_urls,
    save_refresh_result,
)

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
DUE = datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc)


def _assignment(**kwargs) -> Assignment:
    values = dict(id="ics-a1", title="Assignment 2 Due", due=DUE, course_code="CPS843")
    values.update(kwargs)
    return Assignment(**values)


class TestFeedUrls(unittest.TestCase):
    def test_load_missing_file_returns_empty(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            self.assertEqual(load_feed_urls(Path(d) / "missing.json"), [])

    def test_save_and_load_roundtrip(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "feeds.json"
            save_feed_urls([" https://a.example/feed.ics ", "https://b.example/x.ics", "https://a.example/feed.ics"], p)
            self.assertEqual(load_feed_urls(p), ["https://a.example/feed.ics", "https://b.example/x.ics"])

            data = json.loads(p.read_text(encoding="utf-8"))
            self.assertIn("ics_urls", data)

    def test_invalid_file_returns_empty(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "feeds.json"
            p.write_text("[1, 2", encoding="utf-8")
            self.assertEqual(load_feed_urls(p), [])
            p.write_text(json.dumps({"ics_urls": "not a list"}), encoding="utf-8")
            self.assertEqual(load_feed_urls(p), [])


class TestCourseBindings(unittest.TestCase):
    def test_only_matched_or_named_courses_are_stored(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "course_bindings.json"
            count = save_course_bindings(
                [
                    _assignment(matched_course_key="CP8307/CPS843", matched_course_name="Computer Vision", is_matched_to_catalog=True),
                    _assignment(id="ics-a2", course_code="UNKNOWN"),
                ],
                p,
                now=NOW,
            )
            self.assertEqual(count, 1)
            bindings = load_course_bindings(p)
            self.assertEqual(bindings["CPS843"]["matched_course_key"], "CP8307/CPS843")
            self.assertEqual(bindings["CPS843"]["last_updated"], NOW.isoformat())

    def test_existing_bindings_are_kept(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "course_bindings.json"
            save_course_bindings([_assignment(course_code="MTH110", course_name="Discrete Mathematics I")], p, now=NOW)
            save_course_bindings([_assignment(is_matched_to_catalog=True, matched_course_key="CPS843")], p, now=NOW)
            self.assertEqual(sorted(load_course_bindings(p)), ["CPS843", "MTH110"])

    def test_apply_fills_unmatched_assignments(self) -> None:
        bindings = {
            "CPS843": {
                "matched_course_key": "CP8307/CPS843",
                "matched_course_name": "Computer Vision",
                "course_name": "Intro to Computer Vision",
                "is_matched_to_catalog": True,
            }
        }
        (a,) = apply_course_bindings([_assignment()], bindings)
        self.assertTrue(a.is_matched_to_catalog)
        self.assertEqual(a.matched_course_key, "CP8307/CPS843")
        self.assertEqual(a.course_name, "Intro to Computer Vision")

    def test_apply_keeps_fresh_matches(self) -> None:
        bindings = {"CPS843": {"matched_course_key": "OLD", "matched_course_name": "Old", "is_matched_to_catalog": True}}
        fresh = _assignment(matched_course_key="CPS843", matched_course_name="New", is_matched_to_catalog=True)
        (a,) = apply_course_bindings([fresh], bindings)
        self.assertEqual(a.matched_course_key, "CPS843")
        self.assertEqual(a.matched_course_name, "New")

    def test_apply_without_binding_is_unchanged(self) -> None:
        a = _assignment(course_code="MTH110")
        self.assertEqual(apply_course_bindings([a], {}), [a])


class TestRefreshSnapshot(unittest.TestCase):
    def test_missing_snapshot(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            self.assertIsNone(load_refresh_result(Path(d) / "last_refresh.json"))

    def test_snapshot_roundtrip(self) -> None:
        result = RefreshResult(
            assignments=[_assignment(course_name="Computer Vision", external_url="https://d2l.example/a/2")],
            occurrences=[
                ClassOccurrence(
                    id="class-lec-843-day1",
                    title="CPS843 - LEC",
                    course_code="CPS843",
                    day_of_week=1,
                    start=datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc),
                    end=datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc),
                    location="ENG 103",
                )
            ],
            weekly_class_hours=1.5,
            skipped_blocks=2,
            failures=[FeedFailure(url="https://bad.example/x.ics", stage="fetch", message="timed out")],
            generated_at=NOW,
        )
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "last_refresh.json"
            save_refresh_result(result, p)
            loaded = load_refresh_result(p)
        self.assertEqual(loaded, result)


if __name__ == "__main__":
    unittest.main()
