"""
Chart view state as an immutable snapshot plus pure reducers. Every reducer
returns a new state; callers swap it in and redraw.
"""

from dataclasses import dataclass, field, replace

import config
import dependencies
import drag_engine
from row_index import CollapseState
from timeline import CoordinateMapper, fit_cell_width


@dataclass(frozen=True)
class GanttViewState:
    view_mode: str = 'day'
    cell_width: float = config.view_mode_config['day']['cell_width']
    collapse: CollapseState = field(default_factory=CollapseState)
    drag: drag_engine.DragState = None
    updating: frozenset = frozenset()
    link_source: dependencies.PendingAnchor = None

    def mapper(self, time_range):
        return CoordinateMapper(time_range, self.view_mode, self.cell_width)

    @property
    def is_dragging(self):
        return self.drag is not None


def initial_state(view_mode='day'):
    return set_view_mode(GanttViewState(), view_mode)


def set_view_mode(state, view_mode):
    """Switches zoom. Any drag in progress is abandoned."""
    if view_mode not in config.VIEW_MODES:
        raise ValueError(f"Unknown view mode '{view_mode}'")
    return replace(
        _drop_drag(state),
        view_mode=view_mode,
        cell_width=config.view_mode_config[view_mode]['cell_width'],
    )


def fit_to_width(state, available_width, item_count):
    return replace(state, cell_width=fit_cell_width(state.view_mode, available_width, item_count))


def toggle_collapse(state, key):
    return replace(state, collapse=state.collapse.toggle(key))


# --- Drag ---

def _drop_drag(state):
    """Forgets the gesture and unlocks the tasks it held."""
    if state.drag is None:
        return state
    held = drag_engine.affected_task_ids(state.drag)
    return replace(state, drag=None, updating=state.updating - frozenset(held))


def begin_drag(state, task, kind, bar_type, pointer_x, index=None):
    """
    Starts a gesture on a bar. Bars of tasks being saved cannot be grabbed;
    the dragged task and its followers stay locked until release or cancel.
    """
    if task.id in state.updating or state.drag is not None:
        return state
    drag = drag_engine.begin_drag(task, kind, bar_type, pointer_x, index)
    return mark_updating(replace(state, drag=drag), drag_engine.affected_task_ids(drag))


def apply_drag_tick(state, pointer_x, mapper):
    if state.drag is None:
        return state
    return replace(state, drag=drag_engine.apply_drag_tick(state.drag, pointer_x, mapper))


def cancel_drag(state):
    drag_engine.cancel_drag(state.drag)
    return _drop_drag(state)


def release_drag(state, index, cascade_policy=config.DEFAULT_CASCADE_POLICY):
    """Returns (state, updates); the state no longer holds the gesture or its locks."""
    if state.drag is None:
        return state, []
    updates = drag_engine.release_drag(state.drag, index, cascade_policy)
    return _drop_drag(state), updates


def mark_updating(state, task_ids):
    return replace(state, updating=state.updating | frozenset(task_ids))


def clear_updating(state, task_ids):
    return replace(state, updating=state.updating - frozenset(task_ids))


# --- Linking ---

def click_anchor(state, task_id, side):
    """
    Returns (state, link). An invalid click raises InvalidLinkError and the
    caller should fall back to `clear_link_source(state)`.
    """
    pending, link = dependencies.click_anchor(state.link_source, task_id, side)
    return replace(state, link_source=pending), link


def clear_link_source(state):
    return replace(state, link_source=None)
