"""
Tests for services/intervals.py
"""

import unittest
from datetime import date

from agenda.errors import (
    FormatError,
    InvalidDateFormatError,
    InvalidRangeError,
    InvalidTimeFormatError,
)
from agenda.services.intervals import (
    date_range,
    format_time,
    intervals_overlap,
    normalize_time,
    parse_date,
    parse_time,
    sunday_based_weekday,
    validate_range,
    validate_time_range,
)


class TestTimes(unittest.TestCase):

    def test_parse_time(self):
        self.assertEqual(parse_time("00:00"), 0)
        self.assertEqual(parse_time("09:30"), 570)
        self.assertEqual(parse_time("9:05"), 545)
        self.assertEqual(parse_time("23:59"), 1439)

    def test_parse_time_rejects_malformed(self):
        for value in ("24:00", "12:60", "1230", "ab:cd", "", "12:5", None):
            with self.subTest(value=value):
                with self.assertRaises(InvalidTimeFormatError):
                    parse_time(value)

    def test_time_format_error_is_a_format_error(self):
        with self.assertRaises(FormatError):
            parse_time("25:00")

    def test_format_time_zero_pads(self):
        self.assertEqual(format_time(0), "00:00")
        self.assertEqual(format_time(545), "09:05")
        self.assertEqual(normalize_time("9:05"), "09:05")

    def test_round_trip_every_minute(self):
        for minutes in range(24 * 60):
            self.assertEqual(parse_time(format_time(minutes)), minutes)


class TestOverlap(unittest.TestCase):

    def test_overlap_is_symmetric(self):
        intervals = [(0, 30), (15, 45), (30, 60), (60, 90), (10, 20), (0, 120)]
        for a in intervals:
            for b in intervals:
                with self.subTest(a=a, b=b):
                    self.assertEqual(intervals_overlap(*a, *b), intervals_overlap(*b, *a))

    def test_interval_overlaps_itself(self):
        self.assertTrue(intervals_overlap(540, 570, 540, 570))

    def test_touching_intervals_do_not_overlap(self):
        self.assertFalse(intervals_overlap(540, 570, 570, 600))
        self.assertFalse(intervals_overlap(570, 600, 540, 570))

    def test_contained_interval_overlaps(self):
        self.assertTrue(intervals_overlap(540, 720, 600, 630))

    def test_validate_range(self):
        validate_range(540, 600)
        with self.assertRaises(InvalidRangeError):
            validate_range(600, 600)
        with self.assertRaises(InvalidRangeError):
            validate_time_range("12:00", "09:00")


class TestDates(unittest.TestCase):

    def test_parse_date(self):
        self.assertEqual(parse_date("2024-01-01"), date(2024, 1, 1))
        self.assertEqual(parse_date(date(2024, 1, 1)), date(2024, 1, 1))

    def test_parse_date_rejects_malformed_and_impossible_dates(self):
        for value in ("2024/01/01", "01-01-2024", "2024-1-1", "2024-02-30", "2023-02-29", ""):
            with self.subTest(value=value):
                with self.assertRaises(InvalidDateFormatError):
                    parse_date(value)

    def test_date_range_is_inclusive(self):
        days = list(date_range(date(2024, 1, 30), date(2024, 2, 2)))
        self.assertEqual(
            days,
            [date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1), date(2024, 2, 2)],
        )
        self.assertEqual(list(date_range(date(2024, 1, 2), date(2024, 1, 1))), [])

    def test_sunday_based_weekday(self):
        self.assertEqual(sunday_based_weekday(date(2024, 1, 7)), 0)  # Sunday
        self.assertEqual(sunday_based_weekday(date(2024, 1, 1)), 1)  # Monday
        self.assertEqual(sunday_based_weekday(date(2024, 1, 6)), 6)  # Saturday


if __name__ == "__main__":
    unittest.main()
