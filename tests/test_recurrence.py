"""
Unit tests for weekly recurrence handling.

Convention under test: Sunday=0 .. Saturday=6 for every weekday token,
including ordinal forms like "-1SU".
"""

import unittest
from datetime import datetime, timedelta, timezone

from studyfeed.recurrence import (
    BYDAY_MAP,
    expand_occurrences,
    is_expired,
    next_occurrences,
    parse_byday,
    parse_until,
    recurring_days,
    sunday_weekday,
)

# Monday
NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
# Sunday, 10:00-11:30
START = datetime(2026, 9, 6, 10, 0, tzinfo=timezone.utc)
END = START + timedelta(minutes=90)

EXPECTED_DAYS = {"SU": 0, "MO": 1, "TU": 2, "WE": 3, "TH": 4, "FR": 5, "SA": 6}


class TestByDay(unittest.TestCase):
    def test_map_matches_sunday_zero_convention(self) -> None:
        self.assertEqual(BYDAY_MAP, EXPECTED_DAYS)

    def test_each_token_maps_to_its_day(self) -> None:
        for token, day in EXPECTED_DAYS.items():
            with self.subTest(token=token):
                self.assertEqual(parse_byday(f"FREQ=WEEKLY;BYDAY={token}"), [day])

    def test_ordinal_prefix_is_ignored(self) -> None:
        self.assertEqual(parse_byday("FREQ=MONTHLY;BYDAY=-1SU"), [0])
        self.assertEqual(parse_byday("FREQ=MONTHLY;BYDAY=1MO,+3WE"), [1, 3])

    def test_order_kept_and_duplicates_dropped(self) -> None:
        self.assertEqual(parse_byday("FREQ=WEEKLY;BYDAY=WE,MO,WE"), [3, 1])

    def test_missing_byday(self) -> None:
        self.assertEqual(parse_byday("FREQ=WEEKLY"), [])
        self.assertEqual(parse_byday(None), [])

    def test_fallback_to_start_weekday(self) -> None:
        tuesday = datetime(2026, 10, 20, 14, 0, tzinfo=timezone.utc)
        self.assertEqual(recurring_days("FREQ=WEEKLY", tuesday), [2])
        self.assertEqual(sunday_weekday(tuesday), 2)


class TestUntil(unittest.TestCase):
    def test_utc_datetime(self) -> None:
        until = parse_until("FREQ=WEEKLY;UNTIL=20261215T050000Z")
        self.assertEqual(until, datetime(2026, 12, 15, 5, 0, tzinfo=timezone.utc))

    def test_date_only_covers_whole_day(self) -> None:
        until = parse_until("FREQ=WEEKLY;UNTIL=20261019")
        self.assertEqual(until, datetime(2026, 10, 19, 23, 59, 59, tzinfo=timezone.utc))
        self.assertFalse(is_expired("FREQ=WEEKLY;UNTIL=20261019", NOW))

    def test_invalid_until_is_ignored(self) -> None:
        self.assertIsNone(parse_until("FREQ=WEEKLY;UNTIL=20261399"))

    def test_past_until_is_expired(self) -> None:
        self.assertTrue(is_expired("FREQ=WEEKLY;BYDAY=MO;UNTIL=20260101T000000Z", NOW))
        self.assertFalse(is_expired("FREQ=WEEKLY;BYDAY=MO", NOW))


class TestExpansion(unittest.TestCase):
    def test_expired_rule_produces_nothing(self) -> None:
        rule = "FREQ=WEEKLY;BYDAY=MO,WE;UNTIL=20260101T000000Z"
        self.assertEqual(expand_occurrences(rule, NOW, START, END), [])
        self.assertEqual(next_occurrences(rule, NOW, START, END), {})

    def test_first_occurrence_for_every_weekday(self) -> None:
        for token, day in EXPECTED_DAYS.items():
            with self.subTest(token=token):
                occ = expand_occurrences(f"FREQ=WEEKLY;BYDAY={token}", NOW, START, END)
                self.assertTrue(occ)
                first_start, first_end = occ[0]
                self.assertEqual(sunday_weekday(first_start), day)
                self.assertGreaterEqual(first_start, NOW)
                self.assertLess(first_start - NOW, timedelta(days=7))
                self.assertEqual((first_start.hour, first_start.minute), (10, 0))
                self.assertEqual(first_end - first_start, timedelta(minutes=90))

    def test_weekly_until_six_month_horizon(self) -> None:
        occ = expand_occurrences("FREQ=WEEKLY;BYDAY=MO", NOW, START, END)
        # 2026-10-19 .. 2027-04-12 (2027-04-19 10:00 is past the horizon)
        self.assertEqual(len(occ), 26)
        self.assertEqual(occ[0][0], datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(occ[-1][0], datetime(2027, 4, 12, 10, 0, tzinfo=timezone.utc))
        for a, b in zip(occ, occ[1:]):
            self.assertEqual(b[0] - a[0], timedelta(days=7))

    def test_until_stops_before_horizon(self) -> None:
        occ = expand_occurrences("FREQ=WEEKLY;BYDAY=MO,WE;UNTIL=20261102T000000Z", NOW, START, END)
        self.assertEqual(
            [s.date().isoformat() for s, _ in occ],
            ["2026-10-19", "2026-10-21", "2026-10-26", "2026-10-28"],
        )

    def test_slot_already_passed_today_moves_to_next_week(self) -> None:
        later = NOW.replace(hour=12)
        occ = next_occurrences("FREQ=WEEKLY;BYDAY=MO", later, START, END)
        self.assertEqual(occ[1][0], datetime(2026, 10, 26, 10, 0, tzinfo=timezone.utc))

    def test_course_starting_later_begins_at_its_start(self) -> None:
        start = datetime(2026, 11, 2, 10, 0, tzinfo=timezone.utc)
        occ = expand_occurrences("FREQ=WEEKLY;BYDAY=MO", NOW, start, start + timedelta(hours=1))
        self.assertEqual(occ[0][0], start)

    def test_next_occurrences_one_per_day(self) -> None:
        occ = next_occurrences("FREQ=WEEKLY;BYDAY=MO,WE", NOW, START, END)
        self.assertEqual(sorted(occ), [1, 3])
        self.assertEqual(occ[3][0], datetime(2026, 10, 21, 10, 0, tzinfo=timezone.utc))


if __name__ == "__main__":
    unittest.main()
