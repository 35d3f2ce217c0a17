"""
Unit tests for the commands module (TaskStore).

Tests cover:
- Optimistic apply and revert on port failure
- Locking of tasks being saved
- Creating and deleting tasks
- Linking, unlinking and row moves through the store
"""

import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from commands import TaskStore, TaskCommand, TaskLockedError
from dependencies import CircularDependencyError
from models import Task, TaskUpdate


class FakePort:
    """Records every call; raises when `fail` is set."""

    def __init__(self, fail=False):
        self.fail = fail
        self.updates = []
        self.created = []
        self.deleted = []

    def update_task(self, task_id, fields):
        if self.fail:
            raise IOError("disk full")
        self.updates.append((task_id, fields))

    def create_task(self, fields):
        if self.fail:
            raise IOError("disk full")
        self.created.append(fields)
        return f"new-{len(self.created)}"

    def delete_task(self, task_id):
        if self.fail:
            raise IOError("disk full")
        self.deleted.append(task_id)


class SecondWriteFailsPort(FakePort):
    """Keeps the latest fields per task; the second update_task call raises."""

    def __init__(self):
        super().__init__()
        self.calls = 0
        self.persisted = {}

    def update_task(self, task_id, fields):
        self.calls += 1
        if self.calls == 2:
            raise IOError("connection lost")
        self.persisted.setdefault(task_id, {}).update(fields)


class DeleteFailsPort(FakePort):
    def delete_task(self, task_id):
        raise IOError("locked file")


class UpdateOnlyPort:
    def update_task(self, task_id, fields):
        pass

    def create_task(self, fields):
        return "x"


def make_tasks():
    return [
        Task(id="a", name="Excavate", category="Civil", order=100000,
             plan_start_date="2024-09-01", plan_end_date="2024-09-05"),
        Task(id="b", name="Pour", category="Civil", order=200000, predecessors=("a",),
             plan_start_date="2024-09-06", plan_end_date="2024-09-10"),
    ]


class TestDispatch:
    """Tests for optimistic dispatch."""

    def test_applies_and_persists(self):
        port = FakePort()
        store = TaskStore(make_tasks(), port)
        assert store.update("a", {"progress": 40})
        assert store.get("a").progress == 40
        assert port.updates == [("a", {"progress": 40})]
        assert store.updating == set()

    def test_reverts_on_failure(self):
        failures = []
        store = TaskStore(make_tasks(), FakePort(fail=True),
                          on_failure=lambda command, error: failures.append((command, error)))
        command = TaskCommand("Move tasks", (
            TaskUpdate("a", {"plan_start_date": "2024-09-03"}),
            TaskUpdate("b", {"plan_start_date": "2024-09-08"}),
        ))
        assert store.dispatch(command) is False
        assert store.get("a").plan_start_date == "2024-09-01"
        assert store.get("b").plan_start_date == "2024-09-06"
        assert store.updating == set()
        assert len(failures) == 1
        assert failures[0][0] is command
        assert isinstance(failures[0][1], IOError)

    def test_partial_write_is_undone_in_storage(self):
        """Updates the port accepted before the failure are written back."""
        port = SecondWriteFailsPort()
        store = TaskStore(make_tasks(), port)
        ok = store.commit([
            TaskUpdate("a", {"plan_start_date": "2024-09-02"}),
            TaskUpdate("b", {"plan_start_date": "2024-09-07"}),
        ])
        assert ok is False
        assert store.get("a").plan_start_date == "2024-09-01"
        assert port.persisted["a"]["plan_start_date"] == "2024-09-01"
        assert "b" not in port.persisted

    def test_failure_is_logged(self, caplog):
        store = TaskStore(make_tasks(), FakePort(fail=True))
        store.update("a", {"progress": 10})
        assert "Failed to save" in caplog.text

    def test_camel_case_fields_accepted(self):
        store = TaskStore(make_tasks(), FakePort())
        store.update("a", {"planEndDate": "2024-09-07"})
        assert store.get("a").plan_end_date == "2024-09-07"

    def test_unknown_field_rejected_before_anything_changes(self):
        port = FakePort()
        store = TaskStore(make_tasks(), port)
        with pytest.raises(ValueError, match="Unknown task field"):
            store.update("a", {"colour": "red"})
        assert port.updates == []

    def test_unknown_task(self):
        with pytest.raises(ValueError, match="unknown task"):
            TaskStore(make_tasks(), FakePort()).update("zzz", {"progress": 1})

    def test_locked_task(self):
        store = TaskStore(make_tasks(), FakePort())
        store.updating.add("a")
        with pytest.raises(TaskLockedError):
            store.update("a", {"progress": 5})

    def test_empty_command(self):
        port = FakePort()
        assert TaskStore(make_tasks(), port).commit([])
        assert port.updates == []

    def test_change_callback_and_index_refresh(self):
        changes = []
        store = TaskStore(make_tasks(), FakePort(), on_change=lambda: changes.append(1))
        assert store.index.get("a").progress == 0
        store.update("a", {"progress": 70})
        assert changes
        assert store.index.get("a").progress == 70


class TestCreateDelete:
    """Tests for create_task / delete_task."""

    def test_create_appends_to_scope(self):
        port = FakePort()
        store = TaskStore(make_tasks(), port)
        task = store.create_task({"name": "Cure", "category": "Civil", "progress": 80,
                                  "plan_start_date": "2024-09-11", "plan_end_date": "2024-09-17"})
        assert task.id == "new-1"
        assert task.order == 300000
        assert task.progress == 0
        assert task.status == "not-started"
        assert task.plan_duration == 7
        assert "id" not in port.created[0]
        assert store.get("new-1") is task

    def test_create_defaults_category(self):
        task = TaskStore([], FakePort()).create_task({"name": "Loose"})
        assert task.category == "Uncategorized"
        assert task.order == 100000

    def test_create_failure_propagates(self):
        store = TaskStore(make_tasks(), FakePort(fail=True))
        with pytest.raises(IOError):
            store.create_task({"name": "Cure"})
        assert len(store.tasks) == 2

    def test_delete_unlinks_successors(self):
        port = FakePort()
        store = TaskStore(make_tasks(), port)
        assert store.delete_task("a")
        assert store.get("a") is None
        assert store.get("b").predecessors == ()
        assert port.deleted == ["a"]

    def test_delete_failure_restores(self):
        store = TaskStore(make_tasks()[:1], FakePort(fail=True))
        assert store.delete_task("a") is False
        assert store.get("a") is not None

    def test_failed_delete_restores_links(self):
        port = DeleteFailsPort()
        store = TaskStore(make_tasks(), port)
        assert store.delete_task("a") is False
        assert store.get("a") is not None
        assert store.get("b").predecessors == ("a",)
        assert port.updates[-1] == ("b", {"predecessors": ("a",)})

    def test_delete_unknown(self):
        with pytest.raises(ValueError, match="unknown task"):
            TaskStore(make_tasks(), FakePort()).delete_task("zzz")

    def test_delete_needs_port_support(self):
        with pytest.raises(ValueError, match="does not support"):
            TaskStore(make_tasks(), UpdateOnlyPort()).delete_task("a")

    def test_deleted_group_children_become_roots(self):
        tasks = [Task(id="g", type="group", category="Civil"),
                 Task(id="c", parent_task_id="g", category="Civil")]
        store = TaskStore(tasks, FakePort())
        store.delete_task("g")
        assert store.index.is_root("c")


class TestLinksAndRows:
    """Tests for link / unlink / drop_row through the store."""

    def test_link(self):
        store = TaskStore(make_tasks() + [Task(id="c")], FakePort())
        assert store.link("b", "c")
        assert store.get("c").predecessors == ("b",)

    def test_circular_link_changes_nothing(self):
        port = FakePort()
        store = TaskStore(make_tasks(), port)
        with pytest.raises(CircularDependencyError):
            store.link("b", "a")
        assert store.get("a").predecessors == ()
        assert port.updates == []

    def test_existing_link_not_resent(self):
        port = FakePort()
        assert TaskStore(make_tasks(), port).link("a", "b")
        assert port.updates == []

    def test_unlink(self):
        store = TaskStore(make_tasks(), FakePort())
        store.unlink("b", "a")
        assert store.get("b").predecessors == ()

    def test_drop_row(self):
        store = TaskStore(make_tasks(), FakePort())
        store.drop_row("b", "a", "above")
        assert store.get("b").order == 0

    def test_move_to_scope(self):
        store = TaskStore(make_tasks(), FakePort())
        store.move_to_scope("b", "Electrical")
        assert store.get("b").category == "Electrical"
        assert store.get("b").order == 100000
