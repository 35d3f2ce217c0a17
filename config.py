import collections
import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path

# --- Timeline ---

VIEW_MODES = ('day', 'week', 'month')

view_mode_config = collections.OrderedDict([
    ('day', {'cell_width': 30, 'label': 'Day'}),
    ('week', {'cell_width': 40, 'label': 'Week'}),
    ('month', {'cell_width': 100, 'label': 'Month'}),
])

# Average month length; bar offsets in month view are measured against it.
DAYS_PER_MONTH = 30.44

days_per_unit = {
    'day': 1,
    'week': 7,
    'month': DAYS_PER_MONTH,
}

ROW_HEIGHT = 32
VIEWPORT_HEIGHT = 800
ROW_OVERSCAN = 10
MIN_BAR_WIDTH = 1
CONNECTOR_BUFFER = 12

# --- Tasks ---

ORDER_GAP = 100000

DEFAULT_CATEGORY = 'Uncategorized'
IMPORT_CATEGORY = 'Imported'

TASK_TYPES = ('task', 'group')
STATUSES = ('not-started', 'in-progress', 'completed', 'delayed')

status_colors = {
    'not-started': '#c0504d',
    'in-progress': '#4f81bd',
    'completed': '#5cb85c',
    'delayed': '#f0ad4e',
}

plan_bar_color = '#93c5fd'
actual_bar_color = '#22c55e'
group_bar_color = '#9ca3af'
connector_color = '#9ca3af'

category_palette = [
    '#3b82f6', '#ef4444', '#10b981', '#f59e0b',
    '#8b5cf6', '#ec4899', '#6366f1', '#14b8a6',
    '#f97316', '#06b6d4', '#84cc16', '#64748b',
]

# How a plan change on one task propagates to the tasks gated by it.
CASCADE_POLICIES = ('none', 'successors')
DEFAULT_CASCADE_POLICY = 'successors'

# --- CSV ---

CSV_HEADERS = [
    'Category', 'Subcategory', 'SubSubcategory', 'Type', 'Task Name',
    'Plan Start', 'Plan End', 'Duration (Days)', 'Cost', 'Quantity',
    'Responsible', 'Progress (%)', 'Status', 'Actual Start', 'Actual End',
]

# Each field lists the headers accepted on import, preferred header first.
csv_header_aliases = collections.OrderedDict([
    ('name', ['Task Name', 'Task', 'Name', 'name']),
    ('category', ['Category']),
    ('subcategory', ['Subcategory', 'Sub Category']),
    ('subsubcategory', ['SubSubcategory', 'Sub Subcategory']),
    ('type', ['Type']),
    ('plan_start', ['Plan Start', 'Start']),
    ('plan_end', ['Plan End', 'End']),
    ('duration', ['Duration', 'Duration (Days)']),
    ('cost', ['Cost']),
    ('quantity', ['Quantity']),
    ('responsible', ['Responsible']),
    ('progress', ['Progress', 'Progress (%)']),
    ('status', ['Status']),
    ('actual_start', ['Actual Start', 'ActualStartDate']),
    ('actual_end', ['Actual End', 'ActualEndDate']),
])

# Template rows that repeat the column titles in Thai are not tasks.
header_echo_names = {'ชื่องาน', 'Task Name'}
header_echo_categories = {'หมวดหมู่', 'Category'}

status_aliases = {
    'in-progress': 'in-progress',
    'in progress': 'in-progress',
    'กำลังดำเนินการ': 'in-progress',
    'completed': 'completed',
    'done': 'completed',
    'เสร็จสิ้น': 'completed',
    'delayed': 'delayed',
    'on-hold': 'delayed',
    'ล่าช้า': 'delayed',
    'not-started': 'not-started',
    'not started': 'not-started',
}

# --- Logging ---

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def configure_logging(level=logging.INFO):
    logging.basicConfig(level=level, format=LOG_FORMAT)


# --- UI Preferences ---

def _default_visible_columns():
    return {
        'cost': True,
        'weight': True,
        'quantity': True,
        'period': True,
        'progress': True,
        'plan_duration': False,
        'actual_duration': False,
    }


@dataclass
class ViewPreferences:
    """Persisted presentation preferences. None of these affect computed schedules."""

    visible_columns: dict = field(default_factory=_default_visible_columns)
    reference_date: str = None
    category_colors: dict = field(default_factory=dict)
    view_mode: str = 'day'

    def to_dict(self):
        return asdict(self)

    @staticmethod
    def from_dict(data):
        columns = _default_visible_columns()
        columns.update(data.get('visible_columns') or {})
        view_mode = data.get('view_mode', 'day')
        if view_mode not in VIEW_MODES:
            view_mode = 'day'
        return ViewPreferences(
            visible_columns=columns,
            reference_date=data.get('reference_date') or None,
            category_colors=dict(data.get('category_colors') or {}),
            view_mode=view_mode,
        )


def load_preferences(path):
    path = Path(path)
    if not path.exists():
        return ViewPreferences()
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError:
        logging.getLogger(__name__).warning("Ignoring unreadable preferences file %s", path)
        return ViewPreferences()
    return ViewPreferences.from_dict(data)


def save_preferences(path, preferences):
    Path(path).write_text(json.dumps(preferences.to_dict(), indent=4), encoding='utf-8')
