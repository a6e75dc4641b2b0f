"""Kanban workflow: status columns, positions and the board view.

Any transition between ``Todo``, ``InProgress`` and ``Done`` is allowed in
either direction.  Status changes keep the legacy ``is_completed`` flag and
``completed_at`` timestamp in sync.  Positions are stored as given and are not
renumbered, so two tasks may share a position within a column.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional, Union

from loguru import logger

from .access import COMPLETE, visible_task, visible_tasks
from .domain.models import Task, TaskStatus
from .errors import ValidationError
from .notifications import Notifier
from .storage.store import BoardStore
from .utils import _iso, _utcnow

BOARD_COLUMNS: tuple[TaskStatus, ...] = (TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.DONE)


def parse_status(raw: Union[str, TaskStatus]) -> TaskStatus:
    """Coerce *raw* into a :class:`TaskStatus` or raise ValidationError."""
    if isinstance(raw, TaskStatus):
        return raw
    try:
        return TaskStatus(str(raw))
    except ValueError:
        valid = ", ".join(s.value for s in BOARD_COLUMNS)
        raise ValidationError(f"Invalid status '{raw}'. Must be one of: {valid}") from None


class WorkflowEngine:
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

    def update_status(self, task_id: str, new_status: Union[str, TaskStatus], user_id: str) -> Task:
        """Move a task to another column.

        Raises ValidationError for an unknown status and NotFoundError when the
        task is missing or not visible to *user_id*.
        """
        status = parse_status(new_status)
        with self.store.transaction() as tx:
            task, access = visible_task(tx, task_id, user_id)
            access.require(COMPLETE, "change the status of")
            previous = task.status
            newly_completed = status == TaskStatus.DONE and not task.is_completed
            task.set_status(status, _iso(self._clock()))
            tx.dirty = True

        logger.info("Task {} status {} -> {} by {}", task_id, previous.value, status.value, user_id)
        if newly_completed and self.notifier is not None:
            self.notifier.emit("task.completed", entity_id=task.id, title=task.title, completed_by=user_id)
        return task

    def update_position(self, task_id: str, new_index: int, user_id: str) -> Task:
        """Set the ordinal of a task within its column; siblings are left untouched.

        *new_index* is stored as given, so it may collide with a sibling's.
        It must be a non-negative ``int``: a negative index, a ``bool`` or any
        other type raises ValidationError instead of being stored.
        """
        if isinstance(new_index, bool) or not isinstance(new_index, int):
            raise ValidationError(f"Position must be an integer, got {new_index!r}")
        if new_index < 0:
            raise ValidationError("Position must be zero or greater.")
        with self.store.transaction() as tx:
            task, access = visible_task(tx, task_id, user_id)
            access.require(COMPLETE, "reorder")
            task.position = new_index
            task.touch(_iso(self._clock()))
            tx.dirty = True

        logger.debug("Task {} moved to position {} in {}", task_id, new_index, task.status.value)
        return task

    def get_board(self, user_id: str, project_id: Optional[str] = None) -> dict[str, list[Task]]:
        """Return visible tasks grouped by status column, each ordered by position."""
        with self.store.transaction() as tx:
            tasks = visible_tasks(tx, user_id, project_id)

        columns: dict[str, list[Task]] = {status.value: [] for status in BOARD_COLUMNS}
        for task in tasks:
            columns[task.status.value].append(task)
        for col_tasks in columns.values():
            col_tasks.sort(key=lambda t: t.position)
        return columns


def board_to_dict(board: dict[str, list[Task]]) -> dict[str, list[dict[str, Any]]]:
    return {column: [t.to_dict() for t in tasks] for column, tasks in board.items()}
