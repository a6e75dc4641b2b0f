"""Prerequisite graph between tasks and the blocked state derived from it.

An edge ``(task_id, depends_on_id)`` means *task_id* waits on *depends_on_id*.
A task is blocked while any of its prerequisites is not completed.

Cycle guard: only the direct two-node cycle is rejected (adding B->A while
A->B exists).  Longer cycles such as A->B->C->A are accepted unless the board
is configured with ``detect_transitive_cycles``.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from loguru import logger

from .access import EDIT, access_in, visible_task
from .domain.models import DependencyEdge, Task
from .errors import ConflictError, NotFoundError, ValidationError
from .storage.store import BoardStore, BoardTx
from .utils import _iso, _utcnow


@dataclass
class ResolvedDependency:
    """A dependency edge with its prerequisite task attached."""

    edge: DependencyEdge
    depends_on: Task

    def to_dict(self) -> dict[str, Any]:
        data = self.edge.to_dict()
        data["depends_on_task"] = self.depends_on.to_dict()
        return data


class DependencyGraph:
    """Add/remove edges under guard rules and answer blocking queries."""

    def __init__(
        self,
        store: BoardStore,
        *,
        detect_transitive_cycles: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.detect_transitive_cycles = detect_transitive_cycles
        self._clock = clock

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_dependency(self, task_id: str, depends_on_id: str, user_id: Optional[str] = None) -> DependencyEdge:
        """Make *task_id* wait on *depends_on_id*.

        Idempotent when the edge already exists.  When *user_id* is given the
        caller must be able to see both tasks and edit the dependent one.

        Raises:
            ValidationError: self-dependency.
            NotFoundError: either task missing (or invisible to *user_id*).
            UnauthorizedError: *user_id* cannot edit the dependent task.
            ConflictError: the reverse edge exists (or, with transitive
                detection enabled, the prerequisite already reaches the task).
        """
        if task_id == depends_on_id:
            raise ValidationError("A task cannot depend on itself.")

        with self.store.transaction() as tx:
            if user_id is not None:
                try:
                    _, access = visible_task(tx, task_id, user_id)
                    visible_task(tx, depends_on_id, user_id)
                except NotFoundError:
                    raise NotFoundError("One or both tasks not found.") from None
                access.require(EDIT, "change dependencies of")
            elif tx.get_task(task_id) is None or tx.get_task(depends_on_id) is None:
                raise NotFoundError("One or both tasks not found.")

            existing = tx.get_edge(task_id, depends_on_id)
            if existing is not None:
                return existing

            if tx.get_edge(depends_on_id, task_id) is not None:
                raise ConflictError(
                    f"Circular dependency detected: {depends_on_id} already depends on {task_id}."
                )
            if self.detect_transitive_cycles and self._would_cycle(tx, task_id, depends_on_id):
                raise ConflictError(
                    f"Circular dependency detected: adding {task_id} -> {depends_on_id} would create a cycle."
                )

            edge = tx.add_edge(
                DependencyEdge(task_id=task_id, depends_on_id=depends_on_id, created_at=_iso(self._clock()))
            )

        logger.info("Added dependency {} -> {}", task_id, depends_on_id)
        return edge

    def remove_dependency(self, task_id: str, depends_on_id: str, user_id: Optional[str] = None) -> bool:
        """Delete the edge if present.  Returns whether anything was removed."""
        with self.store.transaction() as tx:
            if user_id is not None and tx.get_task(task_id) is not None:
                _, access = visible_task(tx, task_id, user_id)
                access.require(EDIT, "change dependencies of")
            removed = tx.remove_edge(task_id, depends_on_id)

        if removed:
            logger.info("Removed dependency {} -> {}", task_id, depends_on_id)
        return removed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def blockers_in(tx: BoardTx, task_id: str) -> list[Task]:
        """Incomplete prerequisites of *task_id*, read inside an open transaction."""
        blockers: list[Task] = []
        for edge in tx.edges_from(task_id):
            prereq = tx.get_task(edge.depends_on_id)
            if prereq is not None and not prereq.is_completed:
                blockers.append(prereq)
        return blockers

    def is_blocked(self, task_id: str) -> bool:
        with self.store.transaction() as tx:
            return bool(self.blockers_in(tx, task_id))

    def get_blockers(self, task_id: str) -> list[Task]:
        with self.store.transaction() as tx:
            return self.blockers_in(tx, task_id)

    def get_dependencies(self, task_id: str, user_id: Optional[str] = None) -> list[ResolvedDependency]:
        """Edges where *task_id* is the dependent side, with prerequisite data."""
        with self.store.transaction() as tx:
            if user_id is not None:
                visible_task(tx, task_id, user_id)
            out: list[ResolvedDependency] = []
            for edge in tx.edges_from(task_id):
                prereq = tx.get_task(edge.depends_on_id)
                if prereq is not None:
                    out.append(ResolvedDependency(edge=edge, depends_on=prereq))
            return out

    def get_dependents(self, task_id: str, user_id: Optional[str] = None) -> list[Task]:
        """Tasks that wait on *task_id*.

        With *user_id*, the task itself must be visible and dependents the
        caller cannot see are left out.
        """
        with self.store.transaction() as tx:
            if user_id is not None:
                visible_task(tx, task_id, user_id)
            out: list[Task] = []
            for edge in tx.edges_to(task_id):
                dependent = tx.get_task(edge.task_id)
                if dependent is None:
                    continue
                if user_id is not None and not access_in(tx, dependent, user_id).can_view:
                    continue
                out.append(dependent)
            return out

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _would_cycle(tx: BoardTx, task_id: str, new_dep_id: str) -> bool:
        """Return True if adding task_id -> new_dep_id closes a cycle.

        Walks prerequisites starting from *new_dep_id*; reaching *task_id*
        means the new edge would close a loop.
        """
        visited: set[str] = set()
        queue: deque[str] = deque([new_dep_id])
        while queue:
            current = queue.popleft()
            if current == task_id:
                return True
            if current in visited:
                continue
            visited.add(current)
            for edge in tx.edges_from(current):
                queue.append(edge.depends_on_id)
        return False
