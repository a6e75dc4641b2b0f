"""Typed failures raised by the task engine.

Every core operation either returns a result or raises exactly one of these.
The HTTP layer maps each type to a status code without inspecting messages.
"""

from __future__ import annotations

from typing import Optional


class TaskboardError(Exception):
    """Base class for all engine failures."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(TaskboardError):
    """Entity is missing, or exists but is not visible to the caller."""

    code = "not_found"


class ValidationError(TaskboardError):
    """Malformed input (bad status, self-dependency, empty time range...)."""

    code = "validation_error"

    def __init__(self, message: str, errors: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class ConflictError(TaskboardError):
    """Operation would break a uniqueness or acyclicity invariant."""

    code = "conflict"


class BlockedError(ConflictError):
    """Refusal to start work on a task with incomplete prerequisites."""

    code = "blocked"

    def __init__(self, task_id: str, blocker_ids: list[str]) -> None:
        super().__init__(
            f"Cannot start timer: task {task_id} is blocked by incomplete dependencies: {blocker_ids}"
        )
        self.task_id = task_id
        self.blocker_ids = list(blocker_ids)


class InvalidOperationError(TaskboardError):
    """Operation is not applicable to the current state."""

    code = "invalid_operation"


class UnauthorizedError(TaskboardError):
    """Caller lacks the role or permission required for the action."""

    code = "unauthorized"
