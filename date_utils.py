from datetime import date, datetime, timedelta
import calendar
import math
import re

ISO_FORMAT = "%Y-%m-%d"

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})")
_DMY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DMY_SHORT_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2})$")

# --- Parsing & Formatting ---

def parse_date(value):
    """
    Parses YYYY-MM-DD, D/M/YYYY or D/M/YY into a date.
    Returns None for empty, '-' or unparsable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text or text == '-':
        return None

    match = _ISO_RE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
    else:
        match = _DMY_RE.match(text)
        if match:
            day, month, year = (int(g) for g in match.groups())
        else:
            match = _DMY_SHORT_RE.match(text)
            if not match:
                return None
            day, month, short_year = (int(g) for g in match.groups())
            year = 2000 + short_year if short_year < 50 else 1900 + short_year

    try:
        return date(year, month, day)
    except ValueError:
        return None


def normalize_date(value):
    """Returns the ISO form of any accepted date spelling, or None."""
    parsed = parse_date(value)
    return parsed.strftime(ISO_FORMAT) if parsed else None


def format_iso(d):
    if d is None:
        return ''
    return d.strftime(ISO_FORMAT)


def format_short(d):
    """dd/mm/yy, or '-' when there is no date."""
    d = parse_date(d)
    if d is None:
        return '-'
    return d.strftime("%d/%m/%y")


def format_date_range(start, end):
    start, end = parse_date(start), parse_date(end)
    if start is None or end is None:
        return '-'
    return f"{format_short(start)} - {format_short(end)} ({days_between(end, start) + 1}d)"

# --- Arithmetic ---

def round_half_up(value):
    """Rounds halves upward: 0.5 -> 1, -0.5 -> 0, -1.5 -> -1."""
    return int(math.floor(value + 0.5))


def days_between(later, earlier):
    """Whole calendar days from `earlier` to `later` (negative if later is before)."""
    return (later - earlier).days


def add_days(d, days):
    return d + timedelta(days=days)


def add_months(d, months):
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def inclusive_days(start, end):
    """Counts the days in [start, end], floored at 0."""
    if start is None or end is None:
        return 0
    return max(0, days_between(end, start) + 1)


def duration_between(start_value, end_value):
    """Inclusive day count between two date strings; 0 when either is missing or invalid."""
    return inclusive_days(parse_date(start_value), parse_date(end_value))


def start_of_month(d):
    return d.replace(day=1)


def end_of_month(d):
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def start_of_week(d):
    """Monday of the week containing d."""
    return d - timedelta(days=d.weekday())


def iso_week_number(d):
    return d.isocalendar()[1]

# --- Predicates ---

def today():
    return date.today()


def is_weekend(d):
    return d.weekday() >= 5


def is_today(d, reference=None):
    return d == (reference or today())


def is_overdue(value, progress=0, reference=None):
    d = parse_date(value)
    if d is None or progress >= 100:
        return False
    return d < (reference or today())

# --- Interval Generation ---

def each_day(start, end):
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


def each_week(start, end):
    """Week starts (Mondays) for every week touching [start, end]."""
    weeks = []
    current = start_of_week(start)
    while current <= end:
        weeks.append(current)
        current += timedelta(weeks=1)
    return weeks


def each_month(start, end):
    months = []
    current = start_of_month(start)
    while current <= end:
        months.append(current)
        current = add_months(current, 1)
    return months


def each_year(start, end):
    return [date(year, 1, 1) for year in range(start.year, end.year + 1)]
