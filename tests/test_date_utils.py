"""
Unit tests for the date_utils module.

Tests cover:
- parse_date / normalize_date: accepted spellings and two-digit years
- formatting helpers
- inclusive durations and the 0-day floor
- interval generation for the timeline header
"""

import pytest
from datetime import date, datetime
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from date_utils import (
    parse_date, normalize_date, format_short, format_date_range, days_between,
    add_months, inclusive_days, duration_between, end_of_month, start_of_week,
    each_day, each_week, each_month, each_year, is_weekend, is_overdue,
    round_half_up,
)


class TestParseDate:
    """Tests for parse_date."""

    def test_iso(self):
        assert parse_date("2024-09-01") == date(2024, 9, 1)

    def test_iso_with_time_suffix(self):
        """Spreadsheet cells often carry a midnight time."""
        assert parse_date("2024-09-01 00:00:00") == date(2024, 9, 1)

    def test_day_month_year(self):
        assert parse_date("5/9/2024") == date(2024, 9, 5)

    def test_short_year_below_50_is_2000s(self):
        assert parse_date("01/02/24") == date(2024, 2, 1)

    def test_short_year_from_50_is_1900s(self):
        assert parse_date("01/02/75") == date(1975, 2, 1)

    def test_short_year_boundary(self):
        assert parse_date("1/1/49").year == 2049
        assert parse_date("1/1/50").year == 1950

    @pytest.mark.parametrize("value", [None, "", "  ", "-", "not a date", "2024-13-01", "31/2/2024"])
    def test_unusable_values_return_none(self, value):
        assert parse_date(value) is None

    def test_date_and_datetime_pass_through(self):
        assert parse_date(date(2024, 1, 2)) == date(2024, 1, 2)
        assert parse_date(datetime(2024, 1, 2, 15, 30)) == date(2024, 1, 2)

    def test_normalize_date(self):
        assert normalize_date("5/9/2024") == "2024-09-05"
        assert normalize_date("-") is None


class TestFormatting:
    """Tests for the display formatters."""

    def test_format_short(self):
        assert format_short(date(2024, 9, 5)) == "05/09/24"

    def test_format_short_missing(self):
        assert format_short(None) == "-"

    def test_format_date_range_includes_day_count(self):
        assert format_date_range("2024-09-01", "2024-09-05") == "01/09/24 - 05/09/24 (5d)"

    def test_format_date_range_missing(self):
        assert format_date_range(None, "2024-09-05") == "-"


class TestDurations:
    """Tests for day arithmetic."""

    def test_days_between_is_signed(self):
        assert days_between(date(2024, 9, 5), date(2024, 9, 1)) == 4
        assert days_between(date(2024, 9, 1), date(2024, 9, 5)) == -4

    def test_inclusive_single_day(self):
        assert inclusive_days(date(2024, 9, 1), date(2024, 9, 1)) == 1

    def test_inclusive_days(self):
        assert inclusive_days(date(2024, 9, 1), date(2024, 9, 5)) == 5

    def test_reversed_interval_floors_at_zero(self):
        """An end before the start yields 0, never a negative duration."""
        assert inclusive_days(date(2024, 9, 5), date(2024, 9, 1)) == 0

    def test_duration_between_strings(self):
        assert duration_between("2024-09-01", "2024-09-05") == 5
        assert duration_between("2024-09-01", "") == 0

    def test_add_months_clamps_day(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_end_of_month(self):
        assert end_of_month(date(2023, 2, 10)) == date(2023, 2, 28)

    def test_round_half_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(1.5) == 2
        assert round_half_up(-0.5) == 0
        assert round_half_up(1.23) == 1


class TestIntervals:
    """Tests for timeline interval generation."""

    def test_each_day_inclusive(self):
        days = each_day(date(2024, 9, 1), date(2024, 9, 3))
        assert days == [date(2024, 9, 1), date(2024, 9, 2), date(2024, 9, 3)]

    def test_weeks_start_on_monday(self):
        # 2024-09-04 is a Wednesday
        weeks = each_week(date(2024, 9, 4), date(2024, 9, 20))
        assert weeks[0] == date(2024, 9, 2)
        assert all(w.weekday() == 0 for w in weeks)
        assert weeks[-1] == date(2024, 9, 16)

    def test_start_of_week(self):
        assert start_of_week(date(2024, 9, 8)) == date(2024, 9, 2)  # Sunday

    def test_each_month(self):
        months = each_month(date(2024, 11, 15), date(2025, 2, 1))
        assert months == [date(2024, 11, 1), date(2024, 12, 1), date(2025, 1, 1), date(2025, 2, 1)]

    def test_each_year(self):
        assert each_year(date(2024, 6, 1), date(2026, 1, 1)) == [
            date(2024, 1, 1), date(2025, 1, 1), date(2026, 1, 1)
        ]


class TestPredicates:
    """Tests for weekend and overdue checks."""

    def test_is_weekend(self):
        assert is_weekend(date(2024, 9, 7))  # Saturday
        assert not is_weekend(date(2024, 9, 6))  # Friday

    def test_is_overdue(self):
        reference = date(2024, 9, 10)
        assert is_overdue("2024-09-01", progress=50, reference=reference)
        assert not is_overdue("2024-09-01", progress=100, reference=reference)
        assert not is_overdue("2024-09-20", progress=0, reference=reference)
