import collections
import logging
from dataclasses import dataclass, replace

import config
from date_utils import add_days, days_between, format_iso, inclusive_days, round_half_up
from dependencies import DependencyGraph
from models import TaskUpdate

logger = logging.getLogger(__name__)

DRAG_KINDS = ('move', 'resize-start', 'resize-end')
BAR_TYPES = ('plan', 'actual')


@dataclass(frozen=True)
class DragState:
    """
    An in-flight bar gesture. `current_*` hold the snapped preview; the
    original dates and pointer origin never change during the gesture.
    """

    task_id: str
    kind: str
    bar_type: str
    origin_x: float
    original_start: object
    original_end: object
    current_start: object
    current_end: object
    # Hierarchy descendants that follow a plan move.
    followers: frozenset = frozenset()

    @property
    def delta_days(self):
        return days_between(self.current_start, self.original_start)


def bar_dates(task, bar_type):
    """(start, end) of the plan or actual bar, or None when there is none to draw."""
    if bar_type == 'plan':
        if not task.has_valid_plan:
            return None
        return task.plan_start, task.plan_end
    if bar_type == 'actual':
        return task.actual_interval
    raise ValueError(f"Unknown bar type '{bar_type}'")


def begin_drag(task, kind, bar_type, pointer_x, index=None):
    if kind not in DRAG_KINDS:
        raise ValueError(f"Unknown drag kind '{kind}'")
    dates = bar_dates(task, bar_type)
    if dates is None:
        raise ValueError(f"Task '{task.name or task.id}' has no {bar_type} bar to drag")
    start, end = dates

    followers = frozenset()
    if index is not None and kind == 'move' and bar_type == 'plan':
        followers = frozenset(t.id for t in index.get_all_descendants(task.id))

    return DragState(
        task_id=task.id,
        kind=kind,
        bar_type=bar_type,
        origin_x=pointer_x,
        original_start=start,
        original_end=end,
        current_start=start,
        current_end=end,
        followers=followers,
    )


def apply_drag_tick(drag, pointer_x, mapper):
    """
    Snapped preview for a pointer position. Always computed from the
    original dates, so repeating a tick gives the same state.
    """
    days = mapper.snap_days(pointer_x - drag.origin_x)
    start, end = drag.original_start, drag.original_end

    if drag.kind == 'move':
        start, end = add_days(start, days), add_days(end, days)
    elif drag.kind == 'resize-start':
        start = min(add_days(start, days), end)
    else:
        end = max(add_days(end, days), start)

    return replace(drag, current_start=start, current_end=end)


def has_moved(drag):
    return drag.current_start != drag.original_start or drag.current_end != drag.original_end


def cancel_drag(drag):
    """Discards the preview. Nothing is committed."""
    if drag is not None:
        logger.debug("Drag on task %s cancelled", drag.task_id)
    return None


def preview_dates(drag, task, bar_type):
    """Bar dates to draw for task while drag is in progress."""
    if drag is not None and drag.bar_type == bar_type:
        if task.id == drag.task_id:
            return drag.current_start, drag.current_end
        if task.id in drag.followers and drag.kind == 'move' and bar_type == 'plan':
            dates = bar_dates(task, 'plan')
            if dates is None:
                return None
            shift = drag.delta_days
            return add_days(dates[0], shift), add_days(dates[1], shift)
    return bar_dates(task, bar_type)


# --- Release ---

def _shifted_plan(task, shift):
    return {
        'plan_start_date': format_iso(add_days(task.plan_start, shift)),
        'plan_end_date': format_iso(add_days(task.plan_end, shift)),
    }


def _actual_release(drag, index):
    fields = {
        'actual_start_date': format_iso(drag.current_start),
        'actual_end_date': format_iso(drag.current_end),
    }
    task = index.get(drag.task_id)
    if task is not None and task.has_valid_plan:
        plan_days = task.duration_days
        actual_days = inclusive_days(drag.current_start, drag.current_end)
        fields['progress'] = max(0, min(100, round_half_up(actual_days / plan_days * 100)))
    return [TaskUpdate(drag.task_id, fields)]


def release_drag(drag, index, cascade_policy=config.DEFAULT_CASCADE_POLICY):
    """
    Ends the gesture and returns the updates to commit: the dragged task
    first, with its final snapped dates, then every follower or successor
    shifted with it. Returns an empty list when nothing moved.
    """
    if cascade_policy not in config.CASCADE_POLICIES:
        raise ValueError(f"Unknown cascade policy '{cascade_policy}'")
    if drag is None or not has_moved(drag):
        return []
    if drag.bar_type == 'actual':
        return _actual_release(drag, index)

    updates = collections.OrderedDict()
    updates[drag.task_id] = {
        'plan_start_date': format_iso(drag.current_start),
        'plan_end_date': format_iso(drag.current_end),
        'plan_duration': inclusive_days(drag.current_start, drag.current_end),
    }

    moved_ids = [drag.task_id]
    if drag.kind == 'move' and drag.delta_days != 0:
        for descendant in index.get_all_descendants(drag.task_id):
            moved_ids.append(descendant.id)
            if descendant.has_valid_plan and descendant.id not in updates:
                updates[descendant.id] = _shifted_plan(descendant, drag.delta_days)

    if drag.kind == 'move':
        shift = drag.delta_days
    elif drag.kind == 'resize-end':
        shift = days_between(drag.current_end, drag.original_end)
    else:
        shift = 0

    if cascade_policy == 'successors' and shift != 0:
        graph = DependencyGraph(index.tasks.values())
        processed = set()
        # Tasks gated by any shifted descendant move with it too.
        queue = collections.deque(moved_ids)
        while queue:
            current = queue.popleft()
            if current in processed:
                continue
            processed.add(current)
            for successor_id in graph.successors_of(current):
                successor = index.get(successor_id)
                if successor_id not in updates and successor.has_valid_plan:
                    updates[successor_id] = _shifted_plan(successor, shift)
                queue.append(successor_id)

    logger.debug(
        "Drag %s on task %s released: %+d day(s), %d task(s) updated",
        drag.kind, drag.task_id, drag.delta_days, len(updates),
    )
    return [TaskUpdate(task_id, fields) for task_id, fields in updates.items()]


def affected_task_ids(drag, updates=()):
    """Tasks to mark as updating while a release is being committed."""
    ids = {u.task_id for u in updates}
    if drag is not None:
        ids.add(drag.task_id)
        ids.update(drag.followers)
    return ids
