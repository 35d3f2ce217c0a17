import collections
from dataclasses import dataclass

import config
from models import TaskUpdate

ANCHOR_SIDES = ('start', 'end')


class InvalidLinkError(ValueError):
    pass


class CircularDependencyError(ValueError):
    pass


class DependencyGraph:
    """
    Finish-to-start links between tasks. A link is stored on the successor:
    its `predecessors` lists the tasks whose end gates its start.
    """

    def __init__(self, tasks):
        self.predecessors = collections.OrderedDict()
        self.successors = collections.defaultdict(list)
        for task in tasks:
            self.predecessors[task.id] = tuple(task.predecessors)
        for task_id, predecessor_ids in self.predecessors.items():
            for predecessor_id in predecessor_ids:
                if predecessor_id in self.predecessors:
                    self.successors[predecessor_id].append(task_id)

    def predecessors_of(self, task_id):
        return [p for p in self.predecessors.get(task_id, ()) if p in self.predecessors]

    def successors_of(self, task_id):
        return list(self.successors.get(task_id, []))

    def is_linked(self, source_id, target_id):
        return source_id in self.predecessors.get(target_id, ())

    def upstream(self, task_id):
        """Every task that gates task_id, directly or transitively."""
        seen = set()
        queue = collections.deque(self.predecessors_of(task_id))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self.predecessors_of(current))
        return seen

    def downstream(self, task_id):
        """Every task gated by task_id, directly or transitively."""
        seen = set()
        queue = collections.deque(self.successors_of(task_id))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self.successors_of(current))
        return seen

    def would_create_cycle(self, source_id, target_id):
        """
        Linking source -> target closes a loop exactly when the target
        already gates the source.
        """
        if source_id == target_id:
            return True
        return target_id in self.upstream(source_id)

    def has_cycle(self):
        visiting, done = set(), set()
        for root in self.predecessors:
            if root in done:
                continue
            stack = [(root, iter(self.predecessors_of(root)))]
            visiting.add(root)
            while stack:
                node, remaining = stack[-1]
                next_node = next(remaining, None)
                if next_node is None:
                    stack.pop()
                    visiting.discard(node)
                    done.add(node)
                elif next_node in visiting:
                    return True
                elif next_node not in done:
                    visiting.add(next_node)
                    stack.append((next_node, iter(self.predecessors_of(next_node))))
        return False

    def missing_predecessors(self):
        """(task_id, predecessor_id) pairs naming tasks that are not loaded."""
        return [
            (task_id, predecessor_id)
            for task_id, predecessor_ids in self.predecessors.items()
            for predecessor_id in predecessor_ids
            if predecessor_id not in self.predecessors
        ]


def link_tasks(index, source_id, target_id, source_side='end', target_side='start'):
    """
    Validates a link from source's end to target's start and returns the
    update that records it, or None when the link already exists. Nothing
    is changed when validation fails.
    """
    if source_side != 'end' or target_side != 'start':
        raise InvalidLinkError("Links must run from the end of one task to the start of another")
    if source_id == target_id:
        raise InvalidLinkError("A task cannot be linked to itself")
    source = index.get(source_id)
    target = index.get(target_id)
    if source is None or target is None:
        raise InvalidLinkError(f"Cannot link unknown task '{source_id if source is None else target_id}'")

    graph = DependencyGraph(index.tasks.values())
    if graph.is_linked(source_id, target_id):
        return None
    if graph.would_create_cycle(source_id, target_id):
        raise CircularDependencyError(
            f"Cannot link '{source.name or source_id}' to '{target.name or target_id}': "
            "it would create a circular dependency"
        )
    return TaskUpdate(target_id, {'predecessors': target.predecessors + (source_id,)})


def unlink_tasks(index, task_id, predecessor_id):
    task = index.require(task_id)
    remaining = tuple(p for p in task.predecessors if p != predecessor_id)
    return TaskUpdate(task_id, {'predecessors': remaining})


# --- Anchor Clicks ---

@dataclass(frozen=True)
class PendingAnchor:
    task_id: str
    side: str


def click_anchor(pending, task_id, side):
    """
    Advances the two-click linking gesture.

    Returns (pending, link): the anchor still waiting for a second click and
    the (source_id, target_id) pair to link, either of which may be None.
    Clicking the pending anchor again cancels it.
    """
    if side not in ANCHOR_SIDES:
        raise ValueError(f"Unknown anchor side '{side}'")
    if pending is None:
        if side != 'end':
            raise InvalidLinkError("Start linking from a task's end point")
        return PendingAnchor(task_id, side), None
    if pending.task_id == task_id and pending.side == side:
        return None, None
    if pending.side == 'end' and side == 'start':
        return None, (pending.task_id, task_id)
    raise InvalidLinkError("Links must run from the end of one task to the start of another")


# --- Connector Geometry ---

@dataclass(frozen=True)
class Connector:
    source_id: str
    target_id: str
    points: tuple


def connector_points(x1, y1, x2, y2, buffer=config.CONNECTOR_BUFFER):
    """Orthogonal polyline from a source end anchor to a target start anchor."""
    if x2 >= x1 + buffer * 2:
        mid_x = x1 + (x2 - x1) / 2
        return ((x1, y1), (mid_x, y1), (mid_x, y2), (x2, y2))
    # Target starts before the source ends: loop back around.
    step = 10 if y1 < y2 else -10
    return (
        (x1, y1),
        (x1 + buffer, y1),
        (x1 + buffer, y2 - step),
        (x2 - buffer, y2 - step),
        (x2 - buffer, y2),
        (x2, y2),
    )


def build_connectors(index, row_index, mapper, row_height=config.ROW_HEIGHT):
    """Connectors for every link whose two tasks are on a visible row."""
    task_rows = row_index.task_rows
    half_row = row_height / 2
    connectors = []
    for task in index.tasks.values():
        target_row = task_rows.get(task.id)
        if target_row is None or task.plan_start is None:
            continue
        for predecessor_id in task.predecessors:
            predecessor = index.get(predecessor_id)
            source_row = task_rows.get(predecessor_id)
            if predecessor is None or source_row is None or predecessor.plan_end is None:
                continue
            points = connector_points(
                mapper.anchor_offset(predecessor.plan_end, 'end'),
                source_row * row_height + half_row,
                mapper.anchor_offset(task.plan_start, 'start'),
                target_row * row_height + half_row,
            )
            connectors.append(Connector(predecessor_id, task.id, points))
    return connectors
