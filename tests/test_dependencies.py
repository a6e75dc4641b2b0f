"""Tests for the dependency graph and blocking rules."""

from __future__ import annotations

from pathlib import Path

import pytest

from taskboard.dependencies import DependencyGraph
from taskboard.domain.models import Assignment, AssignmentPermission, Task, TaskStatus
from taskboard.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from taskboard.storage import BoardStore, ensure_state_root


@pytest.fixture
def store(tmp_path: Path) -> BoardStore:
    store = BoardStore(ensure_state_root(tmp_path))
    with store.transaction() as tx:
        for task_id in ("task-a", "task-b", "task-c"):
            tx.add_task(Task(id=task_id, title=task_id.upper(), owner_id="alice"))
    return store


@pytest.fixture
def graph(store: BoardStore) -> DependencyGraph:
    return DependencyGraph(store)


def _complete(store: BoardStore, task_id: str) -> None:
    with store.transaction() as tx:
        tx.get_task(task_id).set_status(TaskStatus.DONE)
        tx.dirty = True


class TestAddRemove:
    def test_blocked_while_prerequisite_incomplete(self, graph: DependencyGraph, store: BoardStore) -> None:
        graph.add_dependency("task-a", "task-b")
        assert graph.is_blocked("task-a") is True
        assert [t.id for t in graph.get_blockers("task-a")] == ["task-b"]
        assert graph.is_blocked("task-b") is False

        _complete(store, "task-b")
        assert graph.is_blocked("task-a") is False
        assert graph.get_blockers("task-a") == []

    def test_add_then_remove_restores_blocked_state(self, graph: DependencyGraph) -> None:
        assert graph.is_blocked("task-a") is False
        graph.add_dependency("task-a", "task-b")
        assert graph.is_blocked("task-a") is True
        assert graph.remove_dependency("task-a", "task-b") is True
        assert graph.is_blocked("task-a") is False

    def test_remove_missing_edge_is_noop(self, graph: DependencyGraph) -> None:
        assert graph.remove_dependency("task-a", "task-b") is False

    def test_add_is_idempotent(self, graph: DependencyGraph, store: BoardStore) -> None:
        first = graph.add_dependency("task-a", "task-b")
        second = graph.add_dependency("task-a", "task-b")
        assert first.key == second.key
        with store.transaction() as tx:
            assert len(tx.edges_from("task-a")) == 1

    def test_self_dependency_rejected(self, graph: DependencyGraph) -> None:
        with pytest.raises(ValidationError, match="cannot depend on itself"):
            graph.add_dependency("task-a", "task-a")

    def test_missing_task_rejected(self, graph: DependencyGraph) -> None:
        with pytest.raises(NotFoundError, match="One or both tasks not found"):
            graph.add_dependency("task-a", "task-zzz")


class TestCycles:
    def test_direct_reverse_edge_rejected(self, graph: DependencyGraph) -> None:
        graph.add_dependency("task-a", "task-b")
        with pytest.raises(ConflictError, match="Circular dependency"):
            graph.add_dependency("task-b", "task-a")

    def test_transitive_cycle_accepted_by_default(self, graph: DependencyGraph) -> None:
        graph.add_dependency("task-a", "task-b")
        graph.add_dependency("task-b", "task-c")
        graph.add_dependency("task-c", "task-a")
        assert graph.is_blocked("task-a")
        assert graph.is_blocked("task-b")
        assert graph.is_blocked("task-c")

    def test_transitive_cycle_rejected_when_enabled(self, store: BoardStore) -> None:
        graph = DependencyGraph(store, detect_transitive_cycles=True)
        graph.add_dependency("task-a", "task-b")
        graph.add_dependency("task-b", "task-c")
        with pytest.raises(ConflictError, match="would create a cycle"):
            graph.add_dependency("task-c", "task-a")


class TestQueries:
    def test_dependencies_carry_prerequisite(self, graph: DependencyGraph) -> None:
        graph.add_dependency("task-a", "task-b")
        graph.add_dependency("task-a", "task-c")
        deps = graph.get_dependencies("task-a")
        assert sorted(d.depends_on.id for d in deps) == ["task-b", "task-c"]
        payload = deps[0].to_dict()
        assert payload["task_id"] == "task-a"
        assert payload["depends_on_task"]["id"] == payload["depends_on_id"]

    def test_dependents(self, graph: DependencyGraph) -> None:
        graph.add_dependency("task-a", "task-c")
        graph.add_dependency("task-b", "task-c")
        assert sorted(t.id for t in graph.get_dependents("task-c")) == ["task-a", "task-b"]

    def test_deleting_task_drops_edges(self, graph: DependencyGraph, store: BoardStore) -> None:
        graph.add_dependency("task-a", "task-b")
        with store.transaction() as tx:
            tx.delete_task("task-b")
        assert graph.is_blocked("task-a") is False
        assert graph.get_dependencies("task-a") == []


class TestCallerChecks:
    def test_invisible_task_reads_as_missing(self, graph: DependencyGraph) -> None:
        with pytest.raises(NotFoundError):
            graph.add_dependency("task-a", "task-b", user_id="mallory")
        with pytest.raises(NotFoundError):
            graph.get_dependencies("task-a", user_id="mallory")

    def test_viewer_assignee_cannot_change_dependencies(self, graph: DependencyGraph, store: BoardStore) -> None:
        with store.transaction() as tx:
            for task_id in ("task-a", "task-b"):
                tx.add_assignment(
                    Assignment(task_id=task_id, assigned_user_id="bob", permission=AssignmentPermission.VIEWER)
                )
        with pytest.raises(UnauthorizedError):
            graph.add_dependency("task-a", "task-b", user_id="bob")

    def test_owner_can_change_dependencies(self, graph: DependencyGraph) -> None:
        graph.add_dependency("task-a", "task-b", user_id="alice")
        assert graph.remove_dependency("task-a", "task-b", user_id="alice") is True

    def test_dependents_hide_tasks_the_caller_cannot_see(self, graph: DependencyGraph, store: BoardStore) -> None:
        graph.add_dependency("task-a", "task-c")
        graph.add_dependency("task-b", "task-c")
        with store.transaction() as tx:
            for task_id in ("task-a", "task-c"):
                tx.add_assignment(
                    Assignment(task_id=task_id, assigned_user_id="bob", permission=AssignmentPermission.VIEWER)
                )
        assert [t.id for t in graph.get_dependents("task-c", user_id="bob")] == ["task-a"]
        with pytest.raises(NotFoundError):
            graph.get_dependents("task-c", user_id="mallory")
