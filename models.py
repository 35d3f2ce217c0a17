import uuid
from dataclasses import dataclass, field, fields, replace

import config
from date_utils import parse_date, inclusive_days, add_days, round_half_up


def new_id():
    return uuid.uuid4().hex


@dataclass(frozen=True)
class TaskUpdate:
    """A partial update for one task, as sent to the persistence port."""

    task_id: str
    fields: dict


# camelCase names used by the JSON project files and the web client.
_CAMEL_ALIASES = {
    'parentTaskId': 'parent_task_id',
    'planStartDate': 'plan_start_date',
    'planEndDate': 'plan_end_date',
    'planDuration': 'plan_duration',
    'actualStartDate': 'actual_start_date',
    'actualEndDate': 'actual_end_date',
}


@dataclass(frozen=True)
class Task:
    """
    One schedule entry. Dates are kept as ISO strings exactly as stored so
    that malformed values survive a load/save cycle; the date properties
    parse on demand and return None when a value is unusable.
    """

    id: str
    name: str = ''
    parent_task_id: str = None
    category: str = ''
    subcategory: str = ''
    subsubcategory: str = ''
    type: str = 'task'
    plan_start_date: str = None
    plan_end_date: str = None
    plan_duration: int = 0
    actual_start_date: str = None
    actual_end_date: str = None
    progress: float = 0
    cost: float = 0
    quantity: str = ''
    responsible: str = ''
    remarks: str = ''
    status: str = 'not-started'
    order: float = 0
    predecessors: tuple = field(default_factory=tuple)
    color: str = None

    def __post_init__(self):
        if self.type not in config.TASK_TYPES:
            raise ValueError(f"Task '{self.id}' has unknown type '{self.type}'")
        if not isinstance(self.predecessors, tuple):
            object.__setattr__(self, 'predecessors', tuple(self.predecessors or ()))

    # --- Dates ---

    @property
    def plan_start(self):
        return parse_date(self.plan_start_date)

    @property
    def plan_end(self):
        return parse_date(self.plan_end_date)

    @property
    def actual_start(self):
        return parse_date(self.actual_start_date)

    @property
    def actual_end(self):
        return parse_date(self.actual_end_date)

    @property
    def has_valid_plan(self):
        start, end = self.plan_start, self.plan_end
        return start is not None and end is not None and start <= end

    @property
    def duration_days(self):
        """Inclusive plan length in days, 0 when the plan dates are unusable."""
        return inclusive_days(self.plan_start, self.plan_end)

    @property
    def actual_interval(self):
        """
        (start, end) of the actual bar, or None when the task has neither an
        actual start nor any progress. Without an actual end, the end is
        projected from progress over the planned duration.
        """
        has_progress = (self.progress or 0) > 0
        start = self.actual_start
        if start is None:
            if not has_progress:
                return None
            start = self.plan_start
            if start is None:
                return None

        end = self.actual_end
        if end is None:
            if has_progress and self.has_valid_plan:
                progress_days = round_half_up(self.duration_days * (self.progress / 100))
                end = add_days(start, max(0, progress_days - 1))
            else:
                end = start
        if end < start:
            end = start
        return start, end

    @property
    def is_group(self):
        return self.type == 'group'

    @property
    def scope_key(self):
        """The sibling scope `order` is compared within."""
        return (self.parent_task_id, self.category or '', self.subcategory or '', self.subsubcategory or '')

    # --- Mutation ---

    def with_updates(self, updates):
        """Returns a copy with the partial update applied."""
        known = _field_names()
        unknown = [name for name in updates if name not in known]
        if unknown:
            raise ValueError(f"Unknown task field(s) for '{self.id}': {', '.join(sorted(unknown))}")
        if 'id' in updates and updates['id'] != self.id:
            raise ValueError(f"Task id '{self.id}' cannot be changed")
        return replace(self, **updates)

    # --- Serialization ---

    def to_dict(self):
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['predecessors'] = list(self.predecessors)
        return data

    @staticmethod
    def from_dict(data):
        """Builds a Task from a stored record, accepting snake_case or camelCase keys."""
        known = _field_names()
        values = {}
        for key, value in data.items():
            name = _CAMEL_ALIASES.get(key, key)
            if name in known:
                values[name] = value
        if not values.get('id'):
            raise ValueError("Task record has no 'id'")
        for name in ('progress', 'cost', 'order', 'plan_duration'):
            if values.get(name) is None:
                values.pop(name, None)
            else:
                values[name] = _to_number(values[name])
        values['predecessors'] = tuple(values.get('predecessors') or ())
        return Task(**values)


def _field_names():
    return {f.name for f in fields(Task)}


def _to_number(value):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


def normalize_updates(updates):
    """Maps camelCase update keys onto Task field names."""
    return {_CAMEL_ALIASES.get(key, key): value for key, value in updates.items()}
