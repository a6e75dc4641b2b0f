"""Domain records for tasks, projects, collaboration and time tracking.

All records are plain dataclasses that serialize to YAML-friendly dicts via
``to_dict()`` / ``from_dict()``.  Timestamps are stored as ISO-8601 strings in
UTC, matching the rest of the state files.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from ..utils import _now_iso, _parse_iso


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Board-level status used for Kanban columns."""

    TODO = "Todo"
    IN_PROGRESS = "InProgress"
    DONE = "Done"


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ProjectRole(str, Enum):
    """Project membership level."""

    OWNER = "Owner"      # full control
    EDITOR = "Editor"    # can edit project & tasks
    VIEWER = "Viewer"    # can view, comment, mark complete only


class AssignmentPermission(str, Enum):
    """Per-assignment grant, independent of project membership."""

    VIEWER = "Viewer"
    EDITOR = "Editor"


def _id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


def _coerce(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except ValueError:
        return default


def _plain(data: dict[str, Any]) -> dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A work item on the board.

    ``status`` is authoritative; ``is_completed`` and ``completed_at`` are the
    legacy completion fields and are kept in sync through :meth:`set_status`.
    """

    id: str = field(default_factory=lambda: _id("task"))
    title: str = ""
    description: str = ""
    owner_id: str = ""
    project_id: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[str] = None

    status: TaskStatus = TaskStatus.TODO
    position: int = 0
    is_completed: bool = False
    completed_at: Optional[str] = None

    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return _plain(asdict(self))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        return cls(
            id=str(data.get("id") or _id("task")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            owner_id=str(data.get("owner_id") or ""),
            project_id=data.get("project_id"),
            priority=_coerce(TaskPriority, data.get("priority"), TaskPriority.MEDIUM),
            due_date=data.get("due_date"),
            status=_coerce(TaskStatus, data.get("status"), TaskStatus.TODO),
            position=int(data.get("position") or 0),
            is_completed=bool(data.get("is_completed", False)),
            completed_at=data.get("completed_at"),
            created_at=str(data.get("created_at") or _now_iso()),
            updated_at=str(data.get("updated_at") or _now_iso()),
        )

    def touch(self, at: Optional[str] = None) -> None:
        """Bump ``updated_at`` to now."""
        self.updated_at = at or _now_iso()

    def set_status(self, new_status: TaskStatus, at: Optional[str] = None) -> None:
        """Move to *new_status* keeping the completion flag and timestamp in sync.

        Entering ``Done`` stamps ``completed_at`` unless the task was already
        completed; leaving ``Done`` clears it.
        """
        stamp = at or _now_iso()
        was_completed = self.is_completed and self.completed_at is not None
        self.status = new_status
        self.is_completed = new_status == TaskStatus.DONE
        if self.is_completed:
            if not was_completed:
                self.completed_at = stamp
        else:
            self.completed_at = None
        self.touch(stamp)


# ---------------------------------------------------------------------------
# Projects & collaboration
# ---------------------------------------------------------------------------

@dataclass
class Project:
    id: str = field(default_factory=lambda: _id("proj"))
    title: str = ""
    description: str = ""
    owner_id: str = ""
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(
            id=str(data.get("id") or _id("proj")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            owner_id=str(data.get("owner_id") or ""),
            created_at=str(data.get("created_at") or _now_iso()),
            updated_at=str(data.get("updated_at") or _now_iso()),
        )


@dataclass
class ProjectMembership:
    project_id: str = ""
    user_id: str = ""
    role: ProjectRole = ProjectRole.VIEWER
    joined_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return _plain(asdict(self))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectMembership":
        return cls(
            project_id=str(data.get("project_id") or ""),
            user_id=str(data.get("user_id") or ""),
            role=_coerce(ProjectRole, data.get("role"), ProjectRole.VIEWER),
            joined_at=str(data.get("joined_at") or _now_iso()),
        )


@dataclass
class Assignment:
    """Direct, project-independent visibility grant on one task."""

    id: str = field(default_factory=lambda: _id("asg"))
    task_id: str = ""
    assigned_user_id: str = ""
    assigned_by_user_id: str = ""
    permission: AssignmentPermission = AssignmentPermission.VIEWER
    note: Optional[str] = None
    assigned_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return _plain(asdict(self))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Assignment":
        return cls(
            id=str(data.get("id") or _id("asg")),
            task_id=str(data.get("task_id") or ""),
            assigned_user_id=str(data.get("assigned_user_id") or ""),
            assigned_by_user_id=str(data.get("assigned_by_user_id") or ""),
            permission=_coerce(AssignmentPermission, data.get("permission"), AssignmentPermission.VIEWER),
            note=data.get("note"),
            assigned_at=str(data.get("assigned_at") or _now_iso()),
        )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

@dataclass
class DependencyEdge:
    """``task_id`` waits on ``depends_on_id``."""

    task_id: str = ""
    depends_on_id: str = ""
    created_at: str = field(default_factory=_now_iso)

    @property
    def key(self) -> tuple[str, str]:
        return (self.task_id, self.depends_on_id)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DependencyEdge":
        return cls(
            task_id=str(data.get("task_id") or ""),
            depends_on_id=str(data.get("depends_on_id") or ""),
            created_at=str(data.get("created_at") or _now_iso()),
        )


# ---------------------------------------------------------------------------
# Time tracking
# ---------------------------------------------------------------------------

@dataclass
class TimeEntry:
    """A tracked interval.  ``end_time is None`` means the timer is running."""

    id: str = field(default_factory=lambda: _id("time"))
    task_id: str = ""
    user_id: str = ""
    start_time: str = field(default_factory=_now_iso)
    end_time: Optional[str] = None
    notes: Optional[str] = None
    is_manual: bool = False
    created_at: str = field(default_factory=_now_iso)

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def started(self) -> Optional[datetime]:
        return _parse_iso(self.start_time)

    @property
    def ended(self) -> Optional[datetime]:
        return _parse_iso(self.end_time)

    @property
    def duration(self) -> Optional[timedelta]:
        start, end = self.started, self.ended
        if start is None or end is None:
            return None
        return end - start

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeEntry":
        return cls(
            id=str(data.get("id") or _id("time")),
            task_id=str(data.get("task_id") or ""),
            user_id=str(data.get("user_id") or ""),
            start_time=str(data.get("start_time") or _now_iso()),
            end_time=data.get("end_time"),
            notes=data.get("notes"),
            is_manual=bool(data.get("is_manual", False)),
            created_at=str(data.get("created_at") or _now_iso()),
        )


# ---------------------------------------------------------------------------
# Checklists
# ---------------------------------------------------------------------------

@dataclass
class ChecklistItem:
    """One sub-step of a task, ordered by ``order`` within the task."""

    id: str = field(default_factory=lambda: _id("chk"))
    task_id: str = ""
    title: str = ""
    is_completed: bool = False
    order: int = 0
    created_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChecklistItem":
        return cls(
            id=str(data.get("id") or _id("chk")),
            task_id=str(data.get("task_id") or ""),
            title=str(data.get("title") or ""),
            is_completed=bool(data.get("is_completed", False)),
            order=int(data.get("order") or 0),
            created_at=str(data.get("created_at") or _now_iso()),
        )
