import collections

import config

DROP_POSITIONS = ('above', 'below', 'child')


class TaskIndex:
    """
    Read-only index over a flat task collection, rebuilt whenever the
    collection changes.

    - children: parent id -> child tasks sorted by order
    - grouped: category -> subcategory -> subsubcategory -> root tasks

    A task whose parent is not part of the collection is indexed as a root.
    """

    def __init__(self, tasks):
        self.tasks = collections.OrderedDict((t.id, t) for t in tasks)
        self.children = {}
        self.roots = []
        self.grouped = collections.OrderedDict()

        for task in self.tasks.values():
            parent_id = task.parent_task_id
            if parent_id and parent_id in self.tasks and parent_id != task.id:
                self.children.setdefault(parent_id, []).append(task)
            else:
                self.roots.append(task)

        for siblings in self.children.values():
            siblings.sort(key=lambda t: t.order or 0)
        self.roots.sort(key=lambda t: t.order or 0)

        for task in self.roots:
            category = task.category or config.DEFAULT_CATEGORY
            subcategories = self.grouped.setdefault(category, collections.OrderedDict())
            subsubcategories = subcategories.setdefault(task.subcategory or '', collections.OrderedDict())
            subsubcategories.setdefault(task.subsubcategory or '', []).append(task)

    def __len__(self):
        return len(self.tasks)

    def __contains__(self, task_id):
        return task_id in self.tasks

    def get(self, task_id):
        return self.tasks.get(task_id)

    def require(self, task_id):
        try:
            return self.tasks[task_id]
        except KeyError:
            raise ValueError(f"Unknown task '{task_id}'") from None

    def has_children(self, task_id):
        return task_id in self.children

    def get_children(self, task_id):
        return self.children.get(task_id, [])

    def is_root(self, task_id):
        task = self.tasks[task_id]
        return not (task.parent_task_id and task.parent_task_id in self.tasks)

    def parent_of(self, task_id):
        task = self.tasks.get(task_id)
        if task is None or not task.parent_task_id:
            return None
        return self.tasks.get(task.parent_task_id)

    def get_all_descendants(self, task_id):
        """Pre-order walk below task_id. Each task is visited at most once."""
        result = []
        visited = {task_id}
        stack = list(reversed(self.get_children(task_id)))
        while stack:
            task = stack.pop()
            if task.id in visited:
                continue
            visited.add(task.id)
            result.append(task)
            stack.extend(reversed(self.get_children(task.id)))
        return result

    def is_leaf(self, task_id):
        return not self.has_children(task_id)

    def get_leaf_descendants(self, task_id):
        return [t for t in self.get_all_descendants(task_id) if self.is_leaf(t.id)]

    def leaves(self):
        return [t for t in self.tasks.values() if self.is_leaf(t.id)]

    def is_descendant(self, candidate_id, ancestor_id):
        """True when ancestor_id appears on candidate_id's parent chain."""
        visited = set()
        current = self.tasks.get(candidate_id)
        while current is not None and current.parent_task_id:
            if current.parent_task_id == ancestor_id:
                return True
            if current.parent_task_id in visited:
                return False
            visited.add(current.parent_task_id)
            current = self.tasks.get(current.parent_task_id)
        return False

    def siblings(self, task):
        """Tasks sharing task's sibling scope, task itself included, by order."""
        key = task.scope_key
        return sorted(
            (t for t in self.tasks.values() if t.scope_key == key),
            key=lambda t: t.order or 0,
        )

    def scope_members(self, category, subcategory='', subsubcategory='', parent_task_id=None):
        key = (parent_task_id, category or '', subcategory or '', subsubcategory or '')
        return [t for t in self.tasks.values() if t.scope_key == key]


# --- Ordering ---

def next_order(index, category, subcategory='', subsubcategory='', parent_task_id=None):
    """Order for a task appended to the end of a scope."""
    members = index.scope_members(category, subcategory, subsubcategory, parent_task_id)
    if not members:
        return config.ORDER_GAP
    return max(t.order or 0 for t in members) + config.ORDER_GAP


def plan_row_drop(index, dragged_id, target_id, position):
    """
    Computes the partial update that drops one row relative to another.

    above/below place the dragged task between the target and its neighbour
    in the target's scope; child re-parents it under a group target and
    appends it after the group's existing children.
    """
    if position not in DROP_POSITIONS:
        raise ValueError(f"Unknown drop position '{position}'")
    dragged = index.require(dragged_id)
    target = index.require(target_id)

    if dragged_id == target_id:
        raise ValueError(f"Task '{dragged.name or dragged_id}' cannot be dropped onto itself")
    if index.is_descendant(target_id, dragged_id):
        raise ValueError(f"Task '{dragged.name or dragged_id}' cannot be moved into its own subtree")

    if position == 'child':
        if not target.is_group:
            raise ValueError(f"Task '{target.name or target_id}' is not a group")
        children = [t for t in index.get_children(target_id) if t.id != dragged_id]
        order = (max(t.order or 0 for t in children) + config.ORDER_GAP) if children else config.ORDER_GAP
        return {
            'parent_task_id': target_id,
            'category': target.category,
            'subcategory': target.subcategory or '',
            'subsubcategory': target.subsubcategory or '',
            'order': order,
        }

    siblings = [t for t in index.siblings(target) if t.id != dragged_id]
    position_in_scope = next(i for i, t in enumerate(siblings) if t.id == target_id)
    target_order = target.order or 0

    if position == 'above':
        if position_in_scope > 0:
            order = ((siblings[position_in_scope - 1].order or 0) + target_order) / 2
        else:
            order = target_order - config.ORDER_GAP
    else:
        if position_in_scope < len(siblings) - 1:
            order = (target_order + (siblings[position_in_scope + 1].order or 0)) / 2
        else:
            order = target_order + config.ORDER_GAP

    return {
        'parent_task_id': target.parent_task_id,
        'category': target.category,
        'subcategory': target.subcategory or '',
        'subsubcategory': target.subsubcategory or '',
        'order': order,
    }


def plan_move_to_scope(index, task_id, category, subcategory='', subsubcategory='', parent_task_id=None):
    """Partial update moving a task to the end of another scope."""
    task = index.require(task_id)
    if parent_task_id is not None:
        if parent_task_id == task_id or index.is_descendant(parent_task_id, task_id):
            raise ValueError(f"Task '{task.name or task_id}' cannot be moved into its own subtree")
        index.require(parent_task_id)
    members = [
        t for t in index.scope_members(category, subcategory, subsubcategory, parent_task_id)
        if t.id != task_id
    ]
    order = (max(t.order or 0 for t in members) + config.ORDER_GAP) if members else config.ORDER_GAP
    return {
        'parent_task_id': parent_task_id,
        'category': category,
        'subcategory': subcategory or '',
        'subsubcategory': subsubcategory or '',
        'order': order,
    }
