"""File-based board store with serializable transactions.

All board state lives in a single YAML file (``board.yaml``) inside the
project's ``.taskboard/`` directory.  Every read-check-write goes through
:meth:`BoardStore.transaction`, which holds a thread lock and an exclusive
file lock for the whole transaction, so invariants checked inside a
transaction (single open timer, no duplicate edge, no reverse edge) cannot be
raced by a concurrent writer.
"""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml
from filelock import FileLock
from loguru import logger

from ..constants import LOCK_FILE, SCHEMA_VERSION, STATE_FILE
from ..domain.models import (
    Assignment,
    ChecklistItem,
    DependencyEdge,
    Project,
    ProjectMembership,
    Task,
    TimeEntry,
)
from ..errors import ConflictError

LOCK_TIMEOUT = 30  # seconds

_COLLECTIONS = (
    "tasks",
    "projects",
    "members",
    "assignments",
    "dependencies",
    "time_entries",
    "checklist_items",
)


# ---------------------------------------------------------------------------
# Low-level I/O
# ---------------------------------------------------------------------------

def _load_raw(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Load the raw collections from *path*, returning empty ones if missing."""
    out: dict[str, list[dict[str, Any]]] = {name: [] for name in _COLLECTIONS}
    if not path.exists():
        return out
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        return out
    for name in _COLLECTIONS:
        items = data.get(name)
        if isinstance(items, list):
            out[name] = [item for item in items if isinstance(item, dict)]
    return out


def _save_raw(path: Path, collections: dict[str, list[dict[str, Any]]]) -> None:
    """Atomically write *collections* to *path* (write-tmp-then-rename)."""
    payload: dict[str, Any] = {"version": SCHEMA_VERSION}
    payload.update(collections)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=False, default_flow_style=False, allow_unicode=True)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)


# ---------------------------------------------------------------------------
# BoardStore
# ---------------------------------------------------------------------------

class BoardStore:
    """Thread- and process-safe, file-backed store for board records.

    Parameters
    ----------
    state_root:
        Path to the ``.taskboard/`` directory for the project.
    """

    def __init__(self, state_root: Path) -> None:
        self._state_root = state_root
        self._store_path = state_root / STATE_FILE
        self._lock = FileLock(str(state_root / LOCK_FILE), timeout=LOCK_TIMEOUT)
        self._thread_lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._store_path

    @contextmanager
    def transaction(self) -> Iterator["BoardTx"]:
        """Acquire the locks, load state, yield a transaction, and save on exit.

        Usage::

            with store.transaction() as tx:
                task = tx.get_task("task-abc123")
                task.position = 3
                tx.dirty = True

        Nothing is written if the block raises, or if ``tx.dirty`` is unset.
        """
        with self._thread_lock:
            with self._lock:
                tx = BoardTx(_load_raw(self._store_path))
                yield tx
                if tx.dirty:
                    _save_raw(self._store_path, tx.dump())
                    logger.debug("Board state saved to {}", self._store_path)


class BoardTx:
    """In-memory view of the board for the duration of one transaction."""

    def __init__(self, raw: dict[str, list[dict[str, Any]]]) -> None:
        self.dirty = False
        self._tasks: dict[str, Task] = {}
        for item in raw.get("tasks", []):
            task = Task.from_dict(item)
            self._tasks[task.id] = task
        self._projects: dict[str, Project] = {}
        for item in raw.get("projects", []):
            project = Project.from_dict(item)
            self._projects[project.id] = project
        self._members = [ProjectMembership.from_dict(m) for m in raw.get("members", [])]
        self._assignments = [Assignment.from_dict(a) for a in raw.get("assignments", [])]
        self._edges = [DependencyEdge.from_dict(e) for e in raw.get("dependencies", [])]
        self._entries = [TimeEntry.from_dict(e) for e in raw.get("time_entries", [])]
        self._checklist = [ChecklistItem.from_dict(c) for c in raw.get("checklist_items", [])]

    def dump(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "tasks": [t.to_dict() for t in self._tasks.values()],
            "projects": [p.to_dict() for p in self._projects.values()],
            "members": [m.to_dict() for m in self._members],
            "assignments": [a.to_dict() for a in self._assignments],
            "dependencies": [e.to_dict() for e in self._edges],
            "time_entries": [e.to_dict() for e in self._entries],
            "checklist_items": [c.to_dict() for c in self._checklist],
        }

    # -- tasks --------------------------------------------------------------

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def list_tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def add_task(self, task: Task) -> Task:
        if task.id in self._tasks:
            raise ConflictError(f"Task {task.id} already exists")
        self._tasks[task.id] = task
        self.dirty = True
        return task

    def delete_task(self, task_id: str) -> bool:
        """Remove a task along with its edges, assignments, time entries and checklist."""
        if self._tasks.pop(task_id, None) is None:
            return False
        self._edges = [e for e in self._edges if task_id not in e.key]
        self._assignments = [a for a in self._assignments if a.task_id != task_id]
        self._entries = [e for e in self._entries if e.task_id != task_id]
        self._checklist = [c for c in self._checklist if c.task_id != task_id]
        self.dirty = True
        return True

    # -- projects & membership ---------------------------------------------

    def get_project(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)

    def list_projects(self) -> list[Project]:
        return list(self._projects.values())

    def add_project(self, project: Project) -> Project:
        if project.id in self._projects:
            raise ConflictError(f"Project {project.id} already exists")
        self._projects[project.id] = project
        self.dirty = True
        return project

    def delete_project(self, project_id: str) -> bool:
        """Remove a project and its memberships; its tasks are detached."""
        if self._projects.pop(project_id, None) is None:
            return False
        self._members = [m for m in self._members if m.project_id != project_id]
        for task in self._tasks.values():
            if task.project_id == project_id:
                task.project_id = None
                task.touch()
        self.dirty = True
        return True

    def membership(self, project_id: Optional[str], user_id: str) -> Optional[ProjectMembership]:
        if not project_id:
            return None
        for member in self._members:
            if member.project_id == project_id and member.user_id == user_id:
                return member
        return None

    def members_of(self, project_id: str) -> list[ProjectMembership]:
        return [m for m in self._members if m.project_id == project_id]

    def project_ids_for(self, user_id: str) -> set[str]:
        return {m.project_id for m in self._members if m.user_id == user_id}

    def add_member(self, member: ProjectMembership) -> ProjectMembership:
        if self.membership(member.project_id, member.user_id) is not None:
            raise ConflictError(f"User {member.user_id} is already a member of project {member.project_id}")
        self._members.append(member)
        self.dirty = True
        return member

    def remove_member(self, project_id: str, user_id: str) -> bool:
        keep = [m for m in self._members if not (m.project_id == project_id and m.user_id == user_id)]
        if len(keep) == len(self._members):
            return False
        self._members = keep
        self.dirty = True
        return True

    # -- assignments --------------------------------------------------------

    def assignment_for(self, task_id: str, user_id: str) -> Optional[Assignment]:
        for assignment in self._assignments:
            if assignment.task_id == task_id and assignment.assigned_user_id == user_id:
                return assignment
        return None

    def assignments_for(self, task_id: str) -> list[Assignment]:
        return [a for a in self._assignments if a.task_id == task_id]

    def assigned_task_ids(self, user_id: str) -> set[str]:
        return {a.task_id for a in self._assignments if a.assigned_user_id == user_id}

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        for assignment in self._assignments:
            if assignment.id == assignment_id:
                return assignment
        return None

    def add_assignment(self, assignment: Assignment) -> Assignment:
        if self.assignment_for(assignment.task_id, assignment.assigned_user_id) is not None:
            raise ConflictError(
                f"User {assignment.assigned_user_id} is already assigned to task {assignment.task_id}"
            )
        self._assignments.append(assignment)
        self.dirty = True
        return assignment

    def remove_assignment(self, assignment_id: str) -> bool:
        keep = [a for a in self._assignments if a.id != assignment_id]
        if len(keep) == len(self._assignments):
            return False
        self._assignments = keep
        self.dirty = True
        return True

    # -- dependency edges ---------------------------------------------------

    def get_edge(self, task_id: str, depends_on_id: str) -> Optional[DependencyEdge]:
        for edge in self._edges:
            if edge.key == (task_id, depends_on_id):
                return edge
        return None

    def edges_from(self, task_id: str) -> list[DependencyEdge]:
        """Edges where *task_id* is the dependent (waiting) side."""
        return [e for e in self._edges if e.task_id == task_id]

    def edges_to(self, task_id: str) -> list[DependencyEdge]:
        """Edges where *task_id* is the prerequisite side."""
        return [e for e in self._edges if e.depends_on_id == task_id]

    def add_edge(self, edge: DependencyEdge) -> DependencyEdge:
        if self.get_edge(edge.task_id, edge.depends_on_id) is not None:
            raise ConflictError(f"Dependency {edge.task_id} -> {edge.depends_on_id} already exists")
        self._edges.append(edge)
        self.dirty = True
        return edge

    def remove_edge(self, task_id: str, depends_on_id: str) -> bool:
        keep = [e for e in self._edges if e.key != (task_id, depends_on_id)]
        if len(keep) == len(self._edges):
            return False
        self._edges = keep
        self.dirty = True
        return True

    # -- time entries -------------------------------------------------------

    def entries_for_task(self, task_id: str) -> list[TimeEntry]:
        return [e for e in self._entries if e.task_id == task_id]

    def open_entry_for_user(self, user_id: str) -> Optional[TimeEntry]:
        for entry in self._entries:
            if entry.user_id == user_id and entry.is_open:
                return entry
        return None

    def open_entry(self, task_id: str, user_id: str) -> Optional[TimeEntry]:
        for entry in self._entries:
            if entry.task_id == task_id and entry.user_id == user_id and entry.is_open:
                return entry
        return None

    def add_time_entry(self, entry: TimeEntry) -> TimeEntry:
        # Storage-level guard: at most one open entry per user.
        if entry.is_open:
            running = self.open_entry_for_user(entry.user_id)
            if running is not None:
                raise ConflictError(
                    f"User {entry.user_id} already has a running timer on task {running.task_id}"
                )
        self._entries.append(entry)
        self.dirty = True
        return entry

    # -- checklist items ----------------------------------------------------

    def checklist_for(self, task_id: str) -> list[ChecklistItem]:
        return [c for c in self._checklist if c.task_id == task_id]

    def get_checklist_item(self, item_id: str) -> Optional[ChecklistItem]:
        for item in self._checklist:
            if item.id == item_id:
                return item
        return None

    def add_checklist_item(self, item: ChecklistItem) -> ChecklistItem:
        if self.get_checklist_item(item.id) is not None:
            raise ConflictError(f"Checklist item {item.id} already exists")
        self._checklist.append(item)
        self.dirty = True
        return item

    def remove_checklist_item(self, item_id: str) -> bool:
        keep = [c for c in self._checklist if c.id != item_id]
        if len(keep) == len(self._checklist):
            return False
        self._checklist = keep
        self.dirty = True
        return True
