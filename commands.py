import collections
import logging
from dataclasses import dataclass, replace

import config
from dependencies import link_tasks, unlink_tasks
from models import Task, TaskUpdate, new_id, normalize_updates
from task_tree import TaskIndex, next_order, plan_row_drop, plan_move_to_scope

logger = logging.getLogger(__name__)


class TaskLockedError(RuntimeError):
    pass


@dataclass(frozen=True)
class TaskCommand:
    description: str
    updates: tuple

    @property
    def task_ids(self):
        return {u.task_id for u in self.updates}


class TaskStore:
    """
    In-memory task collection with optimistic writes.

    A dispatched command is applied locally first, then sent to the
    persistence port one update at a time. If the port raises, the touched
    tasks are restored, the error is logged and `on_failure(command, error)`
    is called. Failed writes are not retried.

    The port needs `update_task(task_id, fields)` and
    `create_task(fields) -> task_id`; `delete_task(task_id)` is optional.
    """

    def __init__(self, tasks, port, on_failure=None, on_change=None):
        self.tasks = collections.OrderedDict((t.id, t) for t in tasks)
        self.port = port
        self.on_failure = on_failure
        self.on_change = on_change
        self.updating = set()
        self._index = None

    @property
    def index(self):
        if self._index is None:
            self._index = TaskIndex(self.tasks.values())
        return self._index

    def get(self, task_id):
        return self.tasks.get(task_id)

    def _changed(self):
        self._index = None
        if self.on_change:
            self.on_change()

    def dispatch(self, command):
        """Applies and persists a command. Returns False when the port rejected it."""
        if not command.updates:
            return True
        ids = command.task_ids
        locked = ids & self.updating
        if locked:
            raise TaskLockedError(f"Task(s) already being saved: {', '.join(sorted(locked))}")

        staged = {}
        for update in command.updates:
            current = staged.get(update.task_id) or self.tasks.get(update.task_id)
            if current is None:
                raise ValueError(f"Cannot update unknown task '{update.task_id}'")
            staged[update.task_id] = current.with_updates(normalize_updates(update.fields))

        snapshot = {task_id: self.tasks[task_id] for task_id in ids}
        self.tasks.update(staged)
        self.updating |= ids
        self._changed()

        sent = []
        try:
            for update in command.updates:
                self.port.update_task(update.task_id, dict(update.fields))
                sent.append(update)
        except Exception as exc:
            self.tasks.update(snapshot)
            logger.exception("Failed to save '%s'; reverted %d task(s)", command.description, len(ids))
            self._restore_sent(sent, snapshot)
            if self.on_failure:
                self.on_failure(command, exc)
            return False
        finally:
            self.updating -= ids
            self._changed()

        logger.info("Saved '%s' (%d update(s))", command.description, len(command.updates))
        return True

    def _restore_sent(self, sent, snapshot):
        """Writes the pre-command values back for updates the port already accepted."""
        for update in reversed(sent):
            previous = snapshot[update.task_id]
            fields = {name: getattr(previous, name) for name in normalize_updates(update.fields)}
            try:
                self.port.update_task(update.task_id, fields)
            except Exception:
                logger.exception("Could not restore task %s in storage", update.task_id)

    def update(self, task_id, fields, description='Update task'):
        return self.dispatch(TaskCommand(description, (TaskUpdate(task_id, fields),)))

    def commit(self, updates, description='Move tasks'):
        return self.dispatch(TaskCommand(description, tuple(updates)))

    # --- Creation & deletion ---

    def create_task(self, fields):
        """
        Creates a task at the end of its scope, not started and at 0%
        progress. The port assigns the id; its errors propagate.
        """
        fields = normalize_updates(fields)
        category = fields.get('category') or config.DEFAULT_CATEGORY
        subcategory = fields.get('subcategory') or ''
        subsubcategory = fields.get('subsubcategory') or ''
        parent_task_id = fields.get('parent_task_id')

        draft = Task.from_dict(dict(
            fields,
            id=new_id(),
            category=category,
            subcategory=subcategory,
            subsubcategory=subsubcategory,
            progress=0,
            status='not-started',
            order=next_order(self.index, category, subcategory, subsubcategory, parent_task_id),
        ))
        if draft.has_valid_plan and not draft.plan_duration:
            draft = draft.with_updates({'plan_duration': draft.duration_days})

        record = draft.to_dict()
        del record['id']
        task_id = self.port.create_task(record)
        task = replace(draft, id=task_id)
        self.tasks[task.id] = task
        self._changed()
        logger.info("Created task %s in %s", task.id, category)
        return task

    def delete_task(self, task_id):
        """
        Removes one task. Children of a deleted group are kept and show as
        roots; links to the task are dropped from its successors.
        """
        task = self.tasks.get(task_id)
        if task is None:
            raise ValueError(f"Cannot delete unknown task '{task_id}'")
        if not hasattr(self.port, 'delete_task'):
            raise ValueError("The persistence port does not support deleting tasks")
        if task_id in self.updating:
            raise TaskLockedError(f"Task '{task_id}' is being saved")

        successors = [t for t in self.tasks.values() if task_id in t.predecessors]
        if successors:
            unlinked = self.commit(
                [unlink_tasks(self.index, t.id, task_id) for t in successors],
                description=f"Unlink {task.name or task_id}",
            )
            if not unlinked:
                return False

        del self.tasks[task_id]
        self._changed()
        try:
            self.port.delete_task(task_id)
        except Exception as exc:
            self.tasks[task_id] = task
            self._changed()
            logger.exception("Failed to delete task %s; restored", task_id)
            if successors:
                self.commit(
                    [TaskUpdate(t.id, {'predecessors': t.predecessors}) for t in successors],
                    description=f"Relink {task.name or task_id}",
                )
            if self.on_failure:
                self.on_failure(TaskCommand(f"Delete {task.name or task_id}", ()), exc)
            return False
        logger.info("Deleted task %s", task_id)
        return True

    # --- Links & rows ---

    def link(self, source_id, target_id, source_side='end', target_side='start'):
        """Adds a finish-to-start link. Invalid or circular links raise before anything changes."""
        update = link_tasks(self.index, source_id, target_id, source_side, target_side)
        if update is None:
            return True
        return self.dispatch(TaskCommand('Link tasks', (update,)))

    def unlink(self, task_id, predecessor_id):
        return self.dispatch(TaskCommand('Unlink tasks', (unlink_tasks(self.index, task_id, predecessor_id),)))

    def drop_row(self, dragged_id, target_id, position):
        fields = plan_row_drop(self.index, dragged_id, target_id, position)
        return self.update(dragged_id, fields, description='Reorder task')

    def move_to_scope(self, task_id, category, subcategory='', subsubcategory='', parent_task_id=None):
        fields = plan_move_to_scope(self.index, task_id, category, subcategory, subsubcategory, parent_task_id)
        return self.update(task_id, fields, description='Move task')
