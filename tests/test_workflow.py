"""Tests for the Kanban workflow engine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from taskboard.domain.models import ProjectMembership, ProjectRole, Task, TaskStatus
from taskboard.errors import NotFoundError, ValidationError
from taskboard.notifications import Notifier
from taskboard.storage import BoardStore, ensure_state_root
from taskboard.workflow import WorkflowEngine, board_to_dict, parse_status


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path) -> BoardStore:
    store = BoardStore(ensure_state_root(tmp_path))
    with store.transaction() as tx:
        tx.add_task(Task(id="task-1", title="One", owner_id="alice", project_id="proj-1"))
        tx.add_task(Task(id="task-2", title="Two", owner_id="alice"))
    return store


@pytest.fixture
def events() -> list[dict]:
    return []


@pytest.fixture
def engine(store: BoardStore, clock: FakeClock, events: list[dict], tmp_path: Path) -> WorkflowEngine:
    notifier = Notifier(tmp_path / "events.jsonl")
    notifier.subscribe(events.append)
    return WorkflowEngine(store, notifier, clock=clock)


def test_parse_status() -> None:
    assert parse_status("InProgress") == TaskStatus.IN_PROGRESS
    assert parse_status(TaskStatus.DONE) == TaskStatus.DONE
    with pytest.raises(ValidationError, match="Must be one of: Todo, InProgress, Done"):
        parse_status("Archived")


class TestStatus:
    def test_done_sets_completion_then_todo_clears(self, engine: WorkflowEngine, clock: FakeClock) -> None:
        task = engine.update_status("task-1", "Done", "alice")
        assert task.status == TaskStatus.DONE
        assert task.is_completed is True
        assert task.completed_at == clock.now.isoformat()

        clock.advance(minutes=5)
        task = engine.update_status("task-1", "Todo", "alice")
        assert task.status == TaskStatus.TODO
        assert task.is_completed is False
        assert task.completed_at is None

    def test_repeated_done_keeps_first_completion_time(self, engine: WorkflowEngine, clock: FakeClock) -> None:
        first = engine.update_status("task-1", "Done", "alice").completed_at
        clock.advance(hours=1)
        again = engine.update_status("task-1", "Done", "alice")
        assert again.completed_at == first

    def test_completion_emits_event_once(self, engine: WorkflowEngine, events: list[dict]) -> None:
        engine.update_status("task-1", "InProgress", "alice")
        engine.update_status("task-1", "Done", "alice")
        engine.update_status("task-1", "Done", "alice")
        completed = [e for e in events if e["type"] == "task.completed"]
        assert len(completed) == 1
        assert completed[0]["entity_id"] == "task-1"
        assert completed[0]["payload"]["completed_by"] == "alice"

    def test_invalid_status(self, engine: WorkflowEngine) -> None:
        with pytest.raises(ValidationError):
            engine.update_status("task-1", "Blocked", "alice")

    def test_status_persisted(self, engine: WorkflowEngine, store: BoardStore) -> None:
        engine.update_status("task-2", "InProgress", "alice")
        with store.transaction() as tx:
            assert tx.get_task("task-2").status == TaskStatus.IN_PROGRESS

    def test_viewer_member_may_complete(self, engine: WorkflowEngine, store: BoardStore) -> None:
        with store.transaction() as tx:
            tx.add_member(ProjectMembership(project_id="proj-1", user_id="bob", role=ProjectRole.VIEWER))
        task = engine.update_status("task-1", "Done", "bob")
        assert task.is_completed

    def test_stranger_gets_not_found(self, engine: WorkflowEngine) -> None:
        with pytest.raises(NotFoundError):
            engine.update_status("task-1", "Done", "mallory")


class TestPosition:
    def test_positions_are_not_renumbered(self, engine: WorkflowEngine) -> None:
        engine.update_position("task-1", 3, "alice")
        engine.update_position("task-2", 3, "alice")
        board = engine.get_board("alice")
        assert [t.position for t in board["Todo"]] == [3, 3]

    @pytest.mark.parametrize("bad", [-1, 1.5, "2", True])
    def test_rejects_invalid_positions(self, engine: WorkflowEngine, bad: object) -> None:
        with pytest.raises(ValidationError):
            engine.update_position("task-1", bad, "alice")  # type: ignore[arg-type]

    def test_negative_index_keeps_stored_position(self, engine: WorkflowEngine, store: BoardStore) -> None:
        engine.update_position("task-1", 2, "alice")
        with pytest.raises(ValidationError, match="zero or greater"):
            engine.update_position("task-1", -1, "alice")
        with store.transaction() as tx:
            assert tx.get_task("task-1").position == 2

    def test_missing_task(self, engine: WorkflowEngine) -> None:
        with pytest.raises(NotFoundError):
            engine.update_position("task-404", 0, "alice")


class TestBoard:
    def test_board_groups_by_status_sorted_by_position(self, engine: WorkflowEngine, store: BoardStore) -> None:
        with store.transaction() as tx:
            tx.add_task(Task(id="task-3", title="Three", owner_id="alice", position=0))
        engine.update_position("task-1", 5, "alice")
        engine.update_position("task-2", 2, "alice")
        engine.update_status("task-2", "Done", "alice")

        board = engine.get_board("alice")
        assert list(board) == ["Todo", "InProgress", "Done"]
        assert [t.id for t in board["Todo"]] == ["task-3", "task-1"]
        assert board["InProgress"] == []
        assert [t.id for t in board["Done"]] == ["task-2"]

        payload = board_to_dict(board)
        assert payload["Done"][0]["status"] == "Done"

    def test_board_filters_by_project_and_visibility(self, engine: WorkflowEngine) -> None:
        board = engine.get_board("alice", project_id="proj-1")
        assert [t.id for t in board["Todo"]] == ["task-1"]
        assert all(not tasks for tasks in engine.get_board("mallory").values())
