import math
from dataclasses import dataclass

import config

ROW_KINDS = ('category', 'subcategory', 'subsubcategory', 'task')


def subcategory_key(category, subcategory):
    return f"{category}::{subcategory}"


def subsubcategory_key(category, subcategory, subsubcategory):
    return f"{category}::{subcategory}::{subsubcategory}"


@dataclass(frozen=True)
class CollapseState:
    """Collapsed category names, `cat::sub` / `cat::sub::subsub` keys and task ids."""

    keys: frozenset = frozenset()

    def is_collapsed(self, key):
        return key in self.keys

    def toggle(self, key):
        if key in self.keys:
            return CollapseState(self.keys - {key})
        return CollapseState(self.keys | {key})

    def expand(self, key):
        return CollapseState(self.keys - {key})


@dataclass(frozen=True)
class Row:
    kind: str
    key: str
    level: int
    category: str
    subcategory: str = ''
    subsubcategory: str = ''
    task: object = None

    @property
    def task_id(self):
        return self.task.id if self.task is not None else None


class RowIndex:
    """The flattened, visible rows and where each visible task sits."""

    def __init__(self, rows):
        self.rows = rows
        self.task_rows = {row.task.id: i for i, row in enumerate(rows) if row.kind == 'task'}

    def __len__(self):
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def row_of(self, task_id):
        return self.task_rows.get(task_id)

    def total_height(self, row_height=config.ROW_HEIGHT):
        return len(self.rows) * row_height

    def window(self, first, last):
        return self.rows[max(0, first):max(0, last)]

    def viewport(self, scroll_top, height=config.VIEWPORT_HEIGHT,
                 row_height=config.ROW_HEIGHT, overscan=config.ROW_OVERSCAN):
        """(first, last) row bounds to render for a scroll position; last is exclusive."""
        first = max(0, math.floor(scroll_top / row_height))
        first = min(first, len(self.rows))
        last = min(first + math.ceil(height / row_height) + overscan, len(self.rows))
        return first, last


def ordered_names(names, explicit_order=None):
    """Names listed in explicit_order first, in that order, then the rest as they appear."""
    names = list(names)
    if not explicit_order:
        return names
    listed = [n for n in explicit_order if n in names]
    return listed + [n for n in names if n not in listed]


def build_row_index(index, collapse=None, category_order=None, subcategory_order=None):
    """
    Flattens the grouping into display rows:

    category
      subcategory
        subsubcategory
          its tasks (and their children)
        the subcategory's own tasks
      the category's own tasks

    Collapsed nodes keep their own row but hide everything below it.
    """
    collapse = collapse or CollapseState()
    subcategory_order = subcategory_order or {}
    rows = []

    def add_tasks(tasks, level, visiting):
        for task in sorted(tasks, key=lambda t: t.order or 0):
            if task.id in visiting:
                continue
            rows.append(Row('task', task.id, level, task.category or config.DEFAULT_CATEGORY,
                            task.subcategory or '', task.subsubcategory or '', task))
            if not collapse.is_collapsed(task.id) and index.has_children(task.id):
                add_tasks(index.get_children(task.id), level + 1, visiting | {task.id})

    for category in ordered_names(index.grouped, category_order):
        subcategories = index.grouped[category]
        rows.append(Row('category', category, 0, category))
        if collapse.is_collapsed(category):
            continue

        named = [s for s in subcategories if s]
        for subcategory in ordered_names(named, subcategory_order.get(category)):
            sub_key = subcategory_key(category, subcategory)
            rows.append(Row('subcategory', sub_key, 1, category, subcategory))
            if collapse.is_collapsed(sub_key):
                continue
            subsubcategories = subcategories[subcategory]
            for subsubcategory in (s for s in subsubcategories if s):
                subsub_key = subsubcategory_key(category, subcategory, subsubcategory)
                rows.append(Row('subsubcategory', subsub_key, 2, category, subcategory, subsubcategory))
                if not collapse.is_collapsed(subsub_key):
                    add_tasks(subsubcategories[subsubcategory], 2, frozenset())
            add_tasks(subsubcategories.get('', []), 1, frozenset())

        direct = [t for tasks in subcategories.get('', {}).values() for t in tasks]
        add_tasks(direct, 0, frozenset())

    return RowIndex(rows)
