"""Tests for per-task checklists."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from taskboard import Board
from taskboard.errors import NotFoundError, UnauthorizedError, ValidationError


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def board(tmp_path: Path) -> Board:
    return Board(tmp_path, clock=FakeClock(), env={})


@pytest.fixture
def task_id(board: Board) -> str:
    return board.tasks.create_task("alice", "Launch").id


def test_add_appends_in_order(board: Board, task_id: str) -> None:
    first = board.checklist.add_item(task_id, "alice", "  Draft copy ")
    second = board.checklist.add_item(task_id, "alice", "Proofread")
    pinned = board.checklist.add_item(task_id, "alice", "Kickoff", order=0)

    assert first.title == "Draft copy"
    assert (first.order, second.order) == (0, 1)
    assert not first.is_completed
    items = board.checklist.list_items(task_id, "alice")
    assert [i.title for i in items] == ["Draft copy", "Kickoff", "Proofread"]
    assert pinned.id.startswith("chk-")


def test_add_validates(board: Board, task_id: str) -> None:
    with pytest.raises(ValidationError, match="title is required"):
        board.checklist.add_item(task_id, "alice", "  ")
    with pytest.raises(ValidationError, match="zero or greater"):
        board.checklist.add_item(task_id, "alice", "Step", order=-1)
    with pytest.raises(ValidationError):
        board.checklist.add_item(task_id, "alice", "Step", order=True)


def test_viewer_may_tick_but_not_edit(board: Board, task_id: str) -> None:
    item = board.checklist.add_item(task_id, "alice", "Draft copy")
    board.tasks.assign_user(task_id, "alice", "bob", permission="Viewer")

    assert board.checklist.toggle_item(task_id, item.id, "bob").is_completed is True
    assert board.checklist.toggle_item(task_id, item.id, "bob").is_completed is False
    with pytest.raises(UnauthorizedError):
        board.checklist.add_item(task_id, "bob", "Sneaky")
    with pytest.raises(UnauthorizedError):
        board.checklist.update_item(task_id, item.id, "bob", {"title": "Hijack"})
    with pytest.raises(UnauthorizedError):
        board.checklist.delete_item(task_id, item.id, "bob")
    assert [i.title for i in board.checklist.list_items(task_id, "bob")] == ["Draft copy"]


def test_stranger_gets_not_found(board: Board, task_id: str) -> None:
    item = board.checklist.add_item(task_id, "alice", "Draft copy")
    with pytest.raises(NotFoundError):
        board.checklist.list_items(task_id, "mallory")
    with pytest.raises(NotFoundError):
        board.checklist.toggle_item(task_id, item.id, "mallory")


def test_item_must_belong_to_task(board: Board, task_id: str) -> None:
    other = board.tasks.create_task("alice", "Other")
    item = board.checklist.add_item(other.id, "alice", "Elsewhere")
    with pytest.raises(NotFoundError, match="Checklist item"):
        board.checklist.toggle_item(task_id, item.id, "alice")
    with pytest.raises(NotFoundError):
        board.checklist.delete_item(task_id, "chk-missing", "alice")


def test_update_and_delete(board: Board, task_id: str) -> None:
    item = board.checklist.add_item(task_id, "alice", "Draft copy")
    with pytest.raises(ValidationError, match="Unknown checklist fields: task_id"):
        board.checklist.update_item(task_id, item.id, "alice", {"task_id": "task-x"})

    updated = board.checklist.update_item(task_id, item.id, "alice", {"title": "Final copy", "is_completed": 1, "order": 4})
    assert (updated.title, updated.is_completed, updated.order) == ("Final copy", True, 4)
    assert board.checklist.list_items(task_id, "alice")[0].title == "Final copy"

    board.checklist.delete_item(task_id, item.id, "alice")
    assert board.checklist.list_items(task_id, "alice") == []


def test_deleting_task_drops_its_checklist(board: Board, task_id: str) -> None:
    item = board.checklist.add_item(task_id, "alice", "Draft copy")
    board.tasks.delete_task(task_id, "alice")
    with board.store.transaction() as tx:
        assert tx.get_checklist_item(item.id) is None
