import io
import logging
from pathlib import Path

import pandas as pd

import config
from date_utils import normalize_date, parse_date, format_iso, add_days, inclusive_days, today as current_date
from models import Task, new_id

logger = logging.getLogger(__name__)

BOM = '\ufeff'


def read_table(filepath):
    """
    Reads a CSV or Excel file into a DataFrame of strings. Empty cells
    come back as ''.
    """
    suffix = Path(filepath).suffix.lower()
    if suffix == '.csv':
        return pd.read_csv(filepath, dtype=str, keep_default_na=False, encoding='utf-8-sig')
    if suffix in ('.xls', '.xlsx'):
        return pd.read_excel(filepath, dtype=str).fillna('')
    raise ValueError(f"Unsupported file type '{suffix}': please select a CSV or Excel file")


def _value(row, field):
    for header in config.csv_header_aliases[field]:
        value = row.get(header)
        if value is not None and str(value).strip() != '':
            return str(value).strip()
    return ''


def _number(text, strip=''):
    cleaned = text
    for char in strip:
        cleaned = cleaned.replace(char, '')
    try:
        number = float(cleaned) if cleaned else 0
    except ValueError:
        return 0
    return int(number) if float(number).is_integer() else number


def _status(raw, progress):
    status = config.status_aliases.get(raw.lower())
    if status:
        return status
    if progress == 100:
        return 'completed'
    if progress > 0:
        return 'in-progress'
    return 'not-started'


def tasks_from_frame(df, existing_tasks=(), chain_predecessors=True, today=None):
    """
    Converts imported rows into new tasks appended after existing_tasks.

    A 'group' row opens a group; the task rows that follow it in the same
    category are nested under it. With chain_predecessors, every task row
    is linked after the previous task row, continuing from the last
    existing task.
    """
    today = today or current_date()
    existing_tasks = list(existing_tasks)
    base_order = max((t.order or 0 for t in existing_tasks), default=0)
    last_task_id = existing_tasks[-1].id if existing_tasks else None
    active_group = None
    tasks = []

    for position, row in enumerate(df.to_dict('records')):
        name = _value(row, 'name')
        if not name:
            continue
        category = _value(row, 'category')
        if name in config.header_echo_names or category in config.header_echo_categories:
            logger.debug("Skipping header row %d", position + 2)
            continue
        category = category or config.IMPORT_CATEGORY

        plan_start = parse_date(_value(row, 'plan_start')) or today
        plan_end = parse_date(_value(row, 'plan_end'))
        # Plan End wins over Duration.
        if plan_end is not None:
            duration = max(1, inclusive_days(plan_start, plan_end))
        else:
            duration = int(_number(_value(row, 'duration'))) or 1
            plan_end = add_days(plan_start, duration - 1)

        cost = _number(_value(row, 'cost'), strip=',')
        progress = max(0, min(100, _number(_value(row, 'progress'), strip='%')))
        task_type = 'group' if _value(row, 'type').lower() == 'group' else 'task'

        task_id = new_id()
        parent_task_id = None
        if task_type == 'group':
            active_group = (task_id, category)
        elif active_group and active_group[1] == category:
            parent_task_id = active_group[0]
        else:
            active_group = None

        predecessors = ()
        if chain_predecessors and last_task_id and task_type != 'group':
            predecessors = (last_task_id,)

        tasks.append(Task(
            id=task_id,
            name=name,
            parent_task_id=parent_task_id,
            category=category,
            subcategory=_value(row, 'subcategory'),
            subsubcategory=_value(row, 'subsubcategory'),
            type=task_type,
            plan_start_date=format_iso(plan_start),
            plan_end_date=format_iso(plan_end),
            plan_duration=duration,
            actual_start_date=normalize_date(_value(row, 'actual_start')),
            actual_end_date=normalize_date(_value(row, 'actual_end')),
            progress=progress,
            cost=cost,
            quantity=_value(row, 'quantity'),
            responsible=_value(row, 'responsible'),
            status=_status(_value(row, 'status'), progress),
            order=base_order + (len(tasks) + 1) * config.ORDER_GAP,
            predecessors=predecessors,
        ))
        if task_type != 'group':
            last_task_id = task_id

    logger.info("Imported %d task(s) from %d row(s)", len(tasks), len(df))
    return tasks


def import_tasks(filepath, existing_tasks=(), chain_predecessors=True, today=None):
    return tasks_from_frame(read_table(filepath), existing_tasks, chain_predecessors, today)


def import_tasks_csv(text, existing_tasks=(), chain_predecessors=True, today=None):
    """Imports CSV text, with or without a byte-order mark."""
    if text.startswith(BOM):
        text = text[len(BOM):]
    df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    return tasks_from_frame(df, existing_tasks, chain_predecessors, today)


# --- Export ---

def tasks_to_frame(tasks):
    rows = []
    for task in tasks:
        rows.append([
            task.category or '',
            task.subcategory or '',
            task.subsubcategory or '',
            task.type or 'task',
            task.name or '',
            format_iso(task.plan_start),
            format_iso(task.plan_end),
            task.plan_duration or task.duration_days,
            task.cost or 0,
            task.quantity or '',
            task.responsible or '',
            task.progress or 0,
            task.status or 'not-started',
            format_iso(task.actual_start) or '-',
            format_iso(task.actual_end) or '-',
        ])
    return pd.DataFrame(rows, columns=config.CSV_HEADERS, dtype=object)


def export_tasks_csv(tasks):
    """CSV text for the tasks, prefixed with a UTF-8 byte-order mark."""
    return BOM + tasks_to_frame(tasks).to_csv(index=False, lineterminator='\n')


def write_tasks_csv(filepath, tasks):
    with open(filepath, 'w', encoding='utf-8', newline='') as f:
        f.write(export_tasks_csv(tasks))
    logger.info("Exported %d task(s) to %s", len(tasks), filepath)
