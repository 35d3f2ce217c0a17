"""
Unit tests for the timeline module.

Tests cover:
- Time range defaults and fallbacks
- Header sequences per view mode
- Date <-> pixel mapping, including the 30.44-day month
- Snapping, bar geometry and auto-fit cell width
"""

import pytest
from datetime import date
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from timeline import (
    TimeRange, resolve_time_range, build_timeline, fit_cell_width, CoordinateMapper,
)

SEPTEMBER = TimeRange(date(2024, 9, 1), date(2024, 9, 30))


class TestResolveTimeRange:
    """Tests for resolve_time_range."""

    def test_explicit_bounds(self):
        time_range = resolve_time_range("2024-09-01", "2024-12-31")
        assert time_range == TimeRange(date(2024, 9, 1), date(2024, 12, 31))

    def test_defaults(self):
        """First of this month through the end of the month a year ahead."""
        time_range = resolve_time_range(today=date(2024, 9, 17))
        assert time_range.start == date(2024, 9, 1)
        assert time_range.end == date(2025, 9, 30)

    def test_unparsable_bounds_fall_back(self):
        time_range = resolve_time_range("soon", "later", today=date(2024, 2, 10))
        assert time_range == TimeRange(date(2024, 2, 1), date(2025, 2, 28))

    def test_days_inclusive(self):
        assert SEPTEMBER.days == 30


class TestBuildTimeline:
    """Tests for header group and item sequences."""

    def test_day_mode(self):
        timeline = build_timeline(SEPTEMBER, 'day')
        assert len(timeline.items) == 30
        assert timeline.groups == [date(2024, 9, 1)]
        assert timeline.item_label(timeline.items[4]) == "5"
        assert timeline.group_label(timeline.groups[0]) == "September 2024"

    def test_week_mode_labels_iso_weeks(self):
        timeline = build_timeline(SEPTEMBER, 'week')
        # Sept 1st 2024 is a Sunday, so the first week starts on Aug 26th
        assert timeline.items[0] == date(2024, 8, 26)
        assert timeline.item_label(timeline.items[0]) == "35"

    def test_month_mode_groups_by_year(self):
        timeline = build_timeline(TimeRange(date(2024, 11, 1), date(2025, 2, 28)), 'month')
        assert [timeline.item_label(m) for m in timeline.items] == ["Nov", "Dec", "Jan", "Feb"]
        assert [timeline.group_label(y) for y in timeline.groups] == ["2024", "2025"]

    def test_unknown_view_mode(self):
        with pytest.raises(ValueError, match="Unknown view mode"):
            build_timeline(SEPTEMBER, 'quarter')


class TestCoordinateMapper:
    """Tests for date/pixel conversion."""

    def test_day_mode_offset(self):
        mapper = CoordinateMapper(SEPTEMBER, 'day', 30)
        assert mapper.date_to_offset(date(2024, 9, 11)) == 300

    def test_week_mode_offset(self):
        mapper = CoordinateMapper(SEPTEMBER, 'week', 40)
        assert mapper.date_to_offset(date(2024, 9, 15)) == pytest.approx(80)

    def test_month_mode_uses_average_month(self):
        mapper = CoordinateMapper(SEPTEMBER, 'month', 100)
        assert mapper.date_to_offset(date(2024, 10, 1)) == pytest.approx(30 / 30.44 * 100)

    def test_default_cell_widths(self):
        assert CoordinateMapper(SEPTEMBER, 'day').cell_width == 30
        assert CoordinateMapper(SEPTEMBER, 'week').cell_width == 40
        assert CoordinateMapper(SEPTEMBER, 'month').cell_width == 100

    def test_offset_to_date_inverts(self):
        mapper = CoordinateMapper(SEPTEMBER, 'day', 30)
        assert mapper.offset_to_date(mapper.date_to_offset(date(2024, 9, 20))) == date(2024, 9, 20)

    def test_snap_example(self):
        """37px at 30px per day snaps to one whole day."""
        mapper = CoordinateMapper(SEPTEMBER, 'day', 30)
        assert mapper.snap_days(37) == 1
        assert mapper.snap_days(-37) == -1
        assert mapper.snap_days(14) == 0

    def test_snap_week_and_month(self):
        assert CoordinateMapper(SEPTEMBER, 'week', 40).snap_days(50) == 7
        assert CoordinateMapper(SEPTEMBER, 'month', 100).snap_days(100) == 30
        assert CoordinateMapper(SEPTEMBER, 'month', 100).snap_days(200) == 61

    def test_chart_width(self):
        assert CoordinateMapper(SEPTEMBER, 'day', 30).chart_width == 900

    def test_anchor_offsets(self):
        mapper = CoordinateMapper(SEPTEMBER, 'day', 30)
        assert mapper.anchor_offset(date(2024, 9, 2), 'start') == 30
        assert mapper.anchor_offset(date(2024, 9, 2), 'end') == 60

    def test_today_offset_outside_range(self):
        mapper = CoordinateMapper(SEPTEMBER, 'day', 30)
        assert mapper.today_offset(date(2024, 9, 3)) == 60
        assert mapper.today_offset(date(2024, 10, 3)) is None

    def test_rejects_bad_cell_width(self):
        with pytest.raises(ValueError, match="Cell width"):
            CoordinateMapper(SEPTEMBER, 'day', -5)


class TestBarGeometry:
    """Tests for bar_geometry."""

    def test_inside_range(self):
        mapper = CoordinateMapper(SEPTEMBER, 'day', 30)
        geometry = mapper.bar_geometry("2024-09-02", "2024-09-04")
        assert (geometry.left, geometry.width) == (30, 90)

    def test_clamped_at_start(self):
        mapper = CoordinateMapper(SEPTEMBER, 'day', 30)
        geometry = mapper.bar_geometry("2024-08-30", "2024-09-02")
        assert (geometry.left, geometry.width) == (0, 60)

    def test_clamped_at_end(self):
        mapper = CoordinateMapper(SEPTEMBER, 'day', 30)
        geometry = mapper.bar_geometry("2024-09-29", "2024-10-05")
        assert geometry.right == 900

    def test_outside_range(self):
        mapper = CoordinateMapper(SEPTEMBER, 'day', 30)
        assert mapper.bar_geometry("2024-10-05", "2024-10-09") is None
        assert mapper.bar_geometry("2024-08-01", "2024-08-09") is None

    def test_invalid_dates_have_no_bar(self):
        mapper = CoordinateMapper(SEPTEMBER, 'day', 30)
        assert mapper.bar_geometry("bad", "2024-09-04") is None

    def test_minimum_width(self):
        mapper = CoordinateMapper(TimeRange(date(2020, 1, 1), date(2030, 1, 1)), 'month', 10)
        geometry = mapper.bar_geometry("2024-09-02", "2024-09-02")
        assert geometry.width == 1


class TestHeaderCells:
    """Tests for group header spans."""

    def test_month_spans_in_day_mode(self):
        time_range = TimeRange(date(2024, 9, 15), date(2024, 10, 10))
        mapper = CoordinateMapper(time_range, 'day', 30)
        cells = mapper.header_cells(build_timeline(time_range, 'day'))
        assert [c.label for c in cells] == ["September 2024", "October 2024"]
        assert cells[0].left == 0
        assert cells[0].width == 16 * 30
        assert cells[1].left == 16 * 30
        assert cells[1].width == 10 * 30


class TestFitCellWidth:
    """Tests for fit_cell_width."""

    def test_widens_short_timeline(self):
        assert fit_cell_width('day', 1000, 20) == 50

    def test_never_below_minimum(self):
        assert fit_cell_width('day', 1000, 400) == 30

    def test_floors_fraction(self):
        assert fit_cell_width('month', 1000, 3) == 333

    def test_no_items(self):
        assert fit_cell_width('week', 1000, 0) == 40
