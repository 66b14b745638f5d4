"""
Tests for the rich terminal report (rendered into a string buffer).
"""

import io
import unittest
from datetime import datetime, timezone

from rich.console import Console

from studyfeed.context import COURSE_PALETTE, CourseColors, RefreshContext
from studyfeed.model import Assignment, ClassOccurrence, FeedFailure, RefreshResult
from studyfeed.report import group_by_course, render_report

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def _render(result: RefreshResult) -> str:
    buf = io.StringIO()
    console = Console(file=buf, width=120, color_system=None)
    render_report(result, RefreshContext(now=NOW), console)
    return buf.getvalue()


class TestCourseColors(unittest.TestCase):
    def test_color_is_stable_per_course(self) -> None:
        colors = CourseColors()
        first = colors.color_for("CPS843")
        colors.color_for("MTH110")
        self.assertEqual(colors.color_for("CPS843"), first)
        self.assertNotEqual(colors.color_for("MTH110"), first)

    def test_palette_wraps(self) -> None:
        colors = CourseColors(palette=("red", "blue"))
        self.assertEqual([colors.color_for(c) for c in ("A", "B", "C")], ["red", "blue", "red"])

    def test_contexts_do_not_share_colors(self) -> None:
        a, b = RefreshContext(now=NOW), RefreshContext(now=NOW)
        a.colors.color_for("CPS843")
        self.assertEqual(a.colors.color_for("CPS843"), COURSE_PALETTE[0])
        self.assertEqual(b.colors.color_for("MTH110"), COURSE_PALETTE[0])


class TestReport(unittest.TestCase):
    def test_empty_result(self) -> None:
        out = _render(RefreshResult(generated_at=NOW))
        self.assertIn("No upcoming assignments.", out)
        self.assertIn("No upcoming classes.", out)
        self.assertIn("Weekly class hours: 0.0", out)
        self.assertNotIn("Skipped", out)

    def test_tables_and_failures(self) -> None:
        result = RefreshResult(
            assignments=[
                Assignment(
                    id="ics-a",
                    title="Assignment 2 Due",
                    due=datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc),
                    course_code="CPS843",
                    matched_course_key="CP8307/CPS843",
                    matched_course_name="Computer Vision",
                    is_matched_to_catalog=True,
                )
            ],
            occurrences=[
                ClassOccurrence(
                    id="class-x-day1",
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
            failures=[FeedFailure(url="https://bad.example/x.ics", stage="parse", message="not a calendar")],
            generated_at=NOW,
        )
        out = _render(result)
        self.assertIn("Upcoming assignments", out)
        self.assertIn("CP8307/CPS843", out)
        self.assertIn("Weekly classes", out)
        self.assertIn("Mon", out)
        self.assertIn("14:00-15:30", out)
        self.assertIn("Weekly class hours: 1.5", out)
        self.assertIn("Failed (parse):", out)
        self.assertIn("Skipped 2 unreadable calendar event(s).", out)

    def test_group_by_course_uses_display_course(self) -> None:
        due = datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc)
        items = [
            Assignment(id="1", title="A", due=due, course_code="MTH110"),
            Assignment(id="2", title="B", due=due, course_code="CPS843", matched_course_key="CP8307/CPS843"),
        ]
        self.assertEqual(list(group_by_course(items)), ["CP8307/CPS843", "MTH110"])


if __name__ == "__main__":
    unittest.main()
