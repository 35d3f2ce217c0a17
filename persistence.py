import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from models import Task, new_id, normalize_updates

logger = logging.getLogger(__name__)

PROJECT_EXTENSION = '.gantt'


@dataclass
class Project:
    name: str = 'New Project'
    start_date: str = None
    end_date: str = None
    tasks: list = field(default_factory=list)
    category_order: list = field(default_factory=list)
    subcategory_order: dict = field(default_factory=dict)


class JsonProjectStore:
    """
    A project saved as one JSON file. Implements the task persistence port;
    every write goes straight to disk once the project has a path.
    """

    def __init__(self, path, project=None):
        self.path = Path(path) if path else None
        self.project = project or Project()
        self._records = {t.id: t.to_dict() for t in self.project.tasks}

    @classmethod
    def load(cls, path):
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            project_data = json.load(f)

        tasks = [Task.from_dict(record) for record in project_data.get("tasks", [])]
        project = Project(
            name=project_data.get("project_name", "Untitled Project"),
            start_date=project_data.get("project_start_date"),
            end_date=project_data.get("project_end_date"),
            tasks=tasks,
            category_order=list(project_data.get("category_order") or []),
            subcategory_order=dict(project_data.get("subcategory_order") or {}),
        )
        logger.info("Loaded %d task(s) from %s", len(tasks), path)
        return cls(path, project)

    def tasks(self):
        return [Task.from_dict(record) for record in self._records.values()]

    def save(self, path=None):
        """Writes the project. A project that was never saved stays in memory."""
        if path is not None:
            self.path = Path(path)
        if self.path is None:
            return
        project_data = {
            "project_name": self.project.name,
            "project_start_date": self.project.start_date,
            "project_end_date": self.project.end_date,
            "tasks": list(self._records.values()),
            "category_order": self.project.category_order,
            "subcategory_order": self.project.subcategory_order,
        }
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(project_data, f, indent=4, ensure_ascii=False)

    # --- Persistence port ---

    def update_task(self, task_id, fields):
        if task_id not in self._records:
            raise KeyError(f"No task '{task_id}' in project '{self.project.name}'")
        updated = Task.from_dict(self._records[task_id]).with_updates(normalize_updates(fields))
        self._records[task_id] = updated.to_dict()
        self.save()

    def create_task(self, fields):
        task_id = new_id()
        task = Task.from_dict(dict(normalize_updates(fields), id=task_id))
        self._records[task_id] = task.to_dict()
        self.save()
        return task_id

    def delete_task(self, task_id):
        if self._records.pop(task_id, None) is None:
            raise KeyError(f"No task '{task_id}' in project '{self.project.name}'")
        self.save()

    def replace_tasks(self, tasks):
        """Swaps in a whole task list, e.g. after a CSV import."""
        self._records = {t.id: t.to_dict() for t in tasks}
        self.save()
