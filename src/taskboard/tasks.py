"""Task CRUD and per-task assignments.

Visibility follows :mod:`taskboard.access`: a task the caller cannot see is
reported as missing.  Completion changes made through :meth:`update_task` go
through :meth:`Task.set_status` so the board column and the legacy completion
fields never disagree.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Union

from loguru import logger

from .access import ASSIGN, DELETE, EDIT, project_capabilities, visible_task, visible_tasks
from .domain.models import Assignment, AssignmentPermission, Task, TaskPriority, TaskStatus
from .errors import NotFoundError, UnauthorizedError, ValidationError
from .notifications import Notifier
from .storage.store import BoardStore
from .utils import _as_utc, _iso, _parse_iso, _utcnow

_EDITABLE_FIELDS = ("title", "description", "priority", "due_date", "is_completed")

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


def _clean_title(raw: Optional[str]) -> str:
    title = (raw or "").strip()
    if not title:
        raise ValidationError("Task title is required.")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Task title must be at most {TITLE_MAX_LENGTH} characters.")
    return title


def _clean_description(raw: Optional[str]) -> str:
    description = raw or ""
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(f"Task description must be at most {DESCRIPTION_MAX_LENGTH} characters.")
    return description


def _parse_priority(raw: Union[str, TaskPriority, None]) -> TaskPriority:
    if raw is None:
        return TaskPriority.MEDIUM
    if isinstance(raw, TaskPriority):
        return raw
    try:
        return TaskPriority(str(raw))
    except ValueError:
        valid = ", ".join(p.value for p in TaskPriority)
        raise ValidationError(f"Invalid priority '{raw}'. Must be one of: {valid}") from None


def _parse_permission(raw: Union[str, AssignmentPermission, None]) -> AssignmentPermission:
    if raw is None:
        return AssignmentPermission.EDITOR
    if isinstance(raw, AssignmentPermission):
        return raw
    try:
        return AssignmentPermission(str(raw))
    except ValueError:
        valid = ", ".join(p.value for p in AssignmentPermission)
        raise ValidationError(f"Invalid permission '{raw}'. Must be one of: {valid}") from None


def _parse_timestamp(raw: Union[str, datetime, None], label: str) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return _as_utc(raw)
    parsed = _parse_iso(str(raw))
    if parsed is None:
        raise ValidationError(f"Invalid {label} '{raw}'. Expected an ISO-8601 timestamp.")
    return parsed


def _parse_due(raw: Union[str, datetime, None]) -> Optional[datetime]:
    return _parse_timestamp(raw, "due date")


TASK_SORTS = ("created_desc", "created_asc", "due_asc", "due_desc")


def _sort_tasks(tasks: list[Task], sort: str) -> list[Task]:
    """Order *tasks* by creation or due date; undated tasks trail a due-date sort."""
    if sort not in TASK_SORTS:
        raise ValidationError(f"Invalid sort '{sort}'. Must be one of: {', '.join(TASK_SORTS)}")
    if sort.startswith("created"):
        return sorted(tasks, key=lambda t: t.created_at, reverse=sort == "created_desc")
    dated = [t for t in tasks if t.due_date]
    undated = sorted((t for t in tasks if not t.due_date), key=lambda t: t.created_at, reverse=True)
    dated.sort(key=lambda t: t.due_date, reverse=sort == "due_desc")
    return dated + undated


@dataclass
class TaskPage:
    """One page of a task listing plus the pagination metadata."""

    tasks: list[Task]
    page: int
    page_size: int
    total_items: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.page_size)

    def pagination(self) -> dict[str, Any]:
        return {
            "current_page": self.page,
            "page_size": self.page_size,
            "total_items": self.total_items,
            "total_pages": self.total_pages,
            "has_next_page": self.page < self.total_pages,
            "has_previous_page": self.page > 1,
        }


class TaskService:
    def __init__(
        self,
        store: BoardStore,
        notifier: Optional[Notifier] = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self._clock = clock

    def _emit(self, event_type: str, *, entity_id: str, **payload: Any) -> None:
        if self.notifier is not None:
            self.notifier.emit(event_type, entity_id=entity_id, **payload)

    @staticmethod
    def _future_due(raw: Union[str, datetime, None], now: datetime) -> Optional[datetime]:
        due = _parse_due(raw)
        if due is not None and due <= _as_utc(now):
            raise ValidationError("Due date must be in the future.")
        return due

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(
        self,
        owner_id: str,
        title: str,
        description: str = "",
        project_id: Optional[str] = None,
        priority: Union[str, TaskPriority, None] = None,
        due_date: Union[str, datetime, None] = None,
    ) -> Task:
        """Create a task owned by *owner_id*, optionally inside a project.

        Creating inside a project requires edit rights on the project.
        """
        title = _clean_title(title)
        description = _clean_description(description)
        now = self._clock()
        due = self._future_due(due_date, now)

        with self.store.transaction() as tx:
            if project_id is not None:
                project = tx.get_project(project_id)
                caps = (
                    project_capabilities(project, owner_id, tx.membership(project_id, owner_id))
                    if project is not None
                    else frozenset()
                )
                if not caps:
                    raise NotFoundError(f"Project {project_id} not found or access denied.")
                if EDIT not in caps:
                    raise UnauthorizedError(f"You do not have permission to add tasks to project {project_id}.")
            stamp = _iso(now)
            task = tx.add_task(
                Task(
                    title=title,
                    description=description,
                    owner_id=owner_id,
                    project_id=project_id,
                    priority=_parse_priority(priority),
                    due_date=due.isoformat() if due is not None else None,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )

        logger.info("Task {} created by {}", task.id, owner_id)
        return task

    def get_task(self, task_id: str, user_id: str) -> Task:
        with self.store.transaction() as tx:
            task, _ = visible_task(tx, task_id, user_id)
            return task

    def list_tasks(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        *,
        is_completed: Optional[bool] = None,
        priority: Union[str, TaskPriority, None] = None,
        search: Optional[str] = None,
        created_from: Union[str, datetime, None] = None,
        created_to: Union[str, datetime, None] = None,
        sort: str = "created_desc",
    ) -> list[Task]:
        """Visible tasks matching every given filter, newest first by default.

        ``search`` is a case-insensitive substring match on title and
        description.  ``created_from`` / ``created_to`` bound ``created_at``
        inclusively.
        """
        wanted_priority = _parse_priority(priority) if priority is not None else None
        lower = _parse_timestamp(created_from, "created_from")
        upper = _parse_timestamp(created_to, "created_to")
        needle = (search or "").strip().lower()

        with self.store.transaction() as tx:
            tasks = visible_tasks(tx, user_id, project_id)

        def matches(task: Task) -> bool:
            if is_completed is not None and task.is_completed != is_completed:
                return False
            if wanted_priority is not None and task.priority != wanted_priority:
                return False
            if needle and needle not in task.title.lower() and needle not in task.description.lower():
                return False
            if lower is not None or upper is not None:
                created = _parse_iso(task.created_at)
                if created is None:
                    return False
                if lower is not None and created < lower:
                    return False
                if upper is not None and created > upper:
                    return False
            return True

        return _sort_tasks([t for t in tasks if matches(t)], sort)

    def page_tasks(self, user_id: str, page: int = 1, page_size: int = 10, **filters: Any) -> TaskPage:
        """Slice :meth:`list_tasks` into 1-based pages."""
        if page < 1:
            raise ValidationError("Page must be 1 or greater.")
        if page_size < 1:
            raise ValidationError("Page size must be 1 or greater.")
        tasks = self.list_tasks(user_id, **filters)
        start = (page - 1) * page_size
        return TaskPage(tasks=tasks[start:start + page_size], page=page, page_size=page_size, total_items=len(tasks))

    def update_task(self, task_id: str, user_id: str, changes: dict[str, Any]) -> Task:
        """Apply a partial update.  Unknown keys are rejected."""
        unknown = sorted(set(changes) - set(_EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(unknown)}")

        now = self._clock()
        cleaned: dict[str, Any] = {}
        if "title" in changes:
            cleaned["title"] = _clean_title(changes["title"])
        if "description" in changes:
            cleaned["description"] = _clean_description(changes["description"])
        if "priority" in changes:
            cleaned["priority"] = _parse_priority(changes["priority"])
        if "due_date" in changes:
            due = self._future_due(changes["due_date"], now)
            cleaned["due_date"] = due.isoformat() if due is not None else None

        newly_completed = False
        with self.store.transaction() as tx:
            task, access = visible_task(tx, task_id, user_id)
            access.require(EDIT, "edit")
            stamp = _iso(now)
            for name, value in cleaned.items():
                setattr(task, name, value)
            if "is_completed" in changes:
                completed = bool(changes["is_completed"])
                if completed != task.is_completed:
                    newly_completed = completed
                    task.set_status(TaskStatus.DONE if completed else TaskStatus.TODO, stamp)
            task.touch(stamp)
            tx.dirty = True

        logger.info("Task {} updated by {}: {}", task_id, user_id, sorted(changes))
        if newly_completed:
            self._emit("task.completed", entity_id=task.id, title=task.title, completed_by=user_id)
        return task

    def delete_task(self, task_id: str, user_id: str) -> None:
        """Delete the task and everything hanging off it.  Owner only."""
        with self.store.transaction() as tx:
            _, access = visible_task(tx, task_id, user_id)
            access.require(DELETE, "delete")
            tx.delete_task(task_id)
        logger.info("Task {} deleted by {}", task_id, user_id)

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def assign_user(
        self,
        task_id: str,
        user_id: str,
        assignee_id: str,
        permission: Union[str, AssignmentPermission, None] = None,
        note: Optional[str] = None,
    ) -> Assignment:
        """Grant *assignee_id* direct access to the task.

        Re-assigning an existing assignee updates the permission and note.
        """
        if not assignee_id:
            raise ValidationError("Assignee is required.")
        level = _parse_permission(permission)
        created = False
        with self.store.transaction() as tx:
            task, access = visible_task(tx, task_id, user_id)
            access.require(ASSIGN, "assign users to")
            assignment = tx.assignment_for(task_id, assignee_id)
            if assignment is not None:
                assignment.permission = level
                assignment.note = note
                tx.dirty = True
            else:
                assignment = tx.add_assignment(
                    Assignment(
                        task_id=task_id,
                        assigned_user_id=assignee_id,
                        assigned_by_user_id=user_id,
                        permission=level,
                        note=note,
                        assigned_at=_iso(self._clock()),
                    )
                )
                created = True

        logger.info("User {} assigned to {} as {} by {}", assignee_id, task_id, level.value, user_id)
        if created:
            self._emit(
                "assignment.made",
                entity_id=task_id,
                title=task.title,
                assignee_id=assignee_id,
                assigned_by=user_id,
                permission=level.value,
            )
        return assignment

    def remove_assignment(self, task_id: str, assignment_id: str, user_id: str) -> None:
        """Drop an assignment.  Allowed for assigners and for the assignee."""
        with self.store.transaction() as tx:
            _, access = visible_task(tx, task_id, user_id)
            assignment = tx.get_assignment(assignment_id)
            if assignment is None or assignment.task_id != task_id:
                raise NotFoundError(f"Assignment {assignment_id} not found.")
            if assignment.assigned_user_id != user_id:
                access.require(ASSIGN, "remove assignments from")
            tx.remove_assignment(assignment_id)
        logger.info("Assignment {} removed from {} by {}", assignment_id, task_id, user_id)

    def list_assignments(self, task_id: str, user_id: str) -> list[Assignment]:
        with self.store.transaction() as tx:
            visible_task(tx, task_id, user_id)
            return tx.assignments_for(task_id)
