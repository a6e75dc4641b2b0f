"""Provide the public `taskboard` package exports."""

from __future__ import annotations

from .container import Board
from .errors import (
    BlockedError,
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    TaskboardError,
    UnauthorizedError,
    ValidationError,
)

__all__ = [
    "Board",
    "TaskboardError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "BlockedError",
    "InvalidOperationError",
    "UnauthorizedError",
]
