import math
from dataclasses import dataclass

import config
from date_utils import (
    parse_date, today as current_date, days_between, add_days, add_months,
    start_of_month, end_of_month, each_day, each_week, each_month, each_year,
    iso_week_number, inclusive_days, round_half_up,
)


def _check_view_mode(view_mode):
    if view_mode not in config.VIEW_MODES:
        raise ValueError(f"Unknown view mode '{view_mode}' (expected one of {', '.join(config.VIEW_MODES)})")


@dataclass(frozen=True)
class TimeRange:
    start: object
    end: object

    @property
    def days(self):
        """Inclusive number of days covered, at least 1."""
        return max(1, inclusive_days(self.start, self.end))

    def contains(self, d):
        return self.start <= d <= self.end


def resolve_time_range(start=None, end=None, today=None):
    """
    Project bounds for the chart. Missing or unparsable bounds fall back to
    the first of the current month and the end of the month a year ahead.
    """
    today = today or current_date()
    resolved_start = parse_date(start) or start_of_month(today)
    resolved_end = parse_date(end) or end_of_month(add_months(today, 12))
    if resolved_end < resolved_start:
        resolved_end = resolved_start
    return TimeRange(resolved_start, resolved_end)


# --- Header Sequences ---

@dataclass(frozen=True)
class Timeline:
    view_mode: str
    time_range: TimeRange
    groups: list
    items: list

    def group_label(self, d):
        if self.view_mode == 'month':
            return d.strftime('%Y')
        return d.strftime('%B %Y')

    def item_label(self, d):
        if self.view_mode == 'day':
            return str(d.day)
        if self.view_mode == 'week':
            return str(iso_week_number(d))
        return d.strftime('%b')


def build_timeline(time_range, view_mode):
    _check_view_mode(view_mode)
    start, end = time_range.start, time_range.end
    if view_mode == 'day':
        return Timeline(view_mode, time_range, each_month(start, end), each_day(start, end))
    if view_mode == 'week':
        return Timeline(view_mode, time_range, each_month(start, end), each_week(start, end))
    return Timeline(view_mode, time_range, each_year(start, end), each_month(start, end))


def fit_cell_width(view_mode, available_width, item_count):
    """Widens cells so a short timeline fills the available width."""
    _check_view_mode(view_mode)
    min_width = config.view_mode_config[view_mode]['cell_width']
    if item_count <= 0 or available_width <= 0:
        return min_width
    return max(min_width, math.floor(available_width / item_count))


@dataclass(frozen=True)
class HeaderCell:
    label: str
    left: float
    width: float


# --- Coordinate Mapping ---

@dataclass(frozen=True)
class BarGeometry:
    left: float
    width: float

    @property
    def right(self):
        return self.left + self.width


class CoordinateMapper:
    """
    Converts between calendar dates and horizontal pixel offsets.

    Offsets are measured from the start of the time range. One cell covers a
    day, a week or an average month (30.44 days) depending on the view mode.
    """

    def __init__(self, time_range, view_mode='day', cell_width=None):
        _check_view_mode(view_mode)
        self.time_range = time_range
        self.view_mode = view_mode
        self.cell_width = cell_width or config.view_mode_config[view_mode]['cell_width']
        if self.cell_width <= 0:
            raise ValueError(f"Cell width must be positive, got {self.cell_width}")

    @property
    def unit_days(self):
        return config.days_per_unit[self.view_mode]

    def days_to_px(self, days):
        return days / self.unit_days * self.cell_width

    def date_to_offset(self, d):
        return self.days_to_px(days_between(d, self.time_range.start))

    def offset_to_days(self, offset):
        """Fractional day count for a pixel distance."""
        return offset / self.cell_width * self.unit_days

    def offset_to_date(self, offset):
        return add_days(self.time_range.start, round_half_up(self.offset_to_days(offset)))

    def snap_days(self, delta_px):
        """Whole days for a pointer delta, snapped to whole cells first."""
        units = round_half_up(delta_px / self.cell_width)
        return round_half_up(units * self.unit_days)

    @property
    def chart_width(self):
        return self.days_to_px(self.time_range.days)

    def anchor_offset(self, d, side):
        """x of a bar's start edge, or of the right edge of its end day."""
        days = days_between(d, self.time_range.start) + (1 if side == 'end' else 0)
        return self.days_to_px(days)

    def today_offset(self, today=None):
        today = today or current_date()
        if not self.time_range.contains(today):
            return None
        return self.date_to_offset(today)

    def bar_geometry(self, start, end):
        """
        Pixel span of an inclusive date interval, clamped to the chart.
        Returns None when either date is missing or the bar falls outside
        the chart.
        """
        start, end = parse_date(start), parse_date(end)
        if start is None or end is None:
            return None
        left = self.date_to_offset(start)
        width = self.days_to_px(days_between(end, start) + 1)
        chart_width = self.chart_width

        if (left < 0 and left + width < 0) or left > chart_width:
            return None

        clamped_left = max(0, left)
        clamped_width = min(chart_width, left + width) - clamped_left
        if clamped_width <= 0:
            return None
        return BarGeometry(clamped_left, max(config.MIN_BAR_WIDTH, clamped_width))

    def header_cells(self, timeline):
        """Group header spans (month or year) clipped to the time range."""
        cells = []
        for group in timeline.groups:
            if timeline.view_mode == 'month':
                group_end = group.replace(month=12, day=31)
            else:
                group_end = end_of_month(group)
            span_start = max(group, self.time_range.start)
            span_end = min(group_end, self.time_range.end)
            left = self.date_to_offset(span_start)
            width = self.days_to_px(days_between(span_end, span_start) + 1)
            cells.append(HeaderCell(timeline.group_label(group), left, width))
        return cells

    def item_cells(self, timeline):
        return [
            HeaderCell(timeline.item_label(item), index * self.cell_width, self.cell_width)
            for index, item in enumerate(timeline.items)
        ]
