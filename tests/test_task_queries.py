"""Tests for task filtering, search, sorting, paging and dashboard statistics."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from taskboard import Board
from taskboard.errors import ValidationError


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def board(tmp_path: Path, clock: FakeClock) -> Board:
    return Board(tmp_path, clock=clock, env={})


@pytest.fixture
def seeded(board: Board, clock: FakeClock) -> dict[str, str]:
    """Five alice tasks created one hour apart, plus one bob task."""
    ids: dict[str, str] = {}
    specs = [
        ("Write report", "quarterly numbers", "High", 5),
        ("Review PR", "backend REPORT endpoint", "Medium", 2),
        ("Book venue", "", "Low", None),
        ("Order swag", "t-shirts", "Low", 9),
        ("Plan offsite", "agenda", "High", None),
    ]
    for title, description, priority, due_in_days in specs:
        due = clock.now + timedelta(days=due_in_days) if due_in_days is not None else None
        task = board.tasks.create_task("alice", title, description=description, priority=priority, due_date=due)
        ids[title] = task.id
        clock.advance(hours=1)
    board.tasks.create_task("bob", "Bob's secret report")
    board.workflow.update_status(ids["Book venue"], "Done", "alice")
    return ids


class TestFilters:
    def test_default_is_newest_first(self, board: Board, seeded: dict[str, str]) -> None:
        titles = [t.title for t in board.tasks.list_tasks("alice")]
        assert titles == ["Plan offsite", "Order swag", "Book venue", "Review PR", "Write report"]

    def test_completion_and_priority(self, board: Board, seeded: dict[str, str]) -> None:
        assert [t.title for t in board.tasks.list_tasks("alice", is_completed=True)] == ["Book venue"]
        assert len(board.tasks.list_tasks("alice", is_completed=False)) == 4
        high = board.tasks.list_tasks("alice", priority="High")
        assert [t.title for t in high] == ["Plan offsite", "Write report"]
        lows_open = board.tasks.list_tasks("alice", priority="Low", is_completed=False)
        assert [t.title for t in lows_open] == ["Order swag"]

    def test_search_is_case_insensitive_over_title_and_description(
        self, board: Board, seeded: dict[str, str]
    ) -> None:
        found = board.tasks.list_tasks("alice", search="report")
        assert [t.title for t in found] == ["Review PR", "Write report"]
        assert board.tasks.list_tasks("alice", search="   ") == board.tasks.list_tasks("alice")

    def test_created_range_is_inclusive(self, board: Board, seeded: dict[str, str], clock: FakeClock) -> None:
        start = datetime(2025, 3, 10, 13, 0, tzinfo=timezone.utc)
        end = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)
        found = board.tasks.list_tasks("alice", created_from=start, created_to=end)
        assert [t.title for t in found] == ["Order swag", "Book venue", "Review PR"]
        assert board.tasks.list_tasks("alice", created_from="2025-03-10T15:30:00Z")[0].title == "Plan offsite"

    def test_invalid_filters(self, board: Board, seeded: dict[str, str]) -> None:
        with pytest.raises(ValidationError, match="Invalid priority"):
            board.tasks.list_tasks("alice", priority="Urgent")
        with pytest.raises(ValidationError, match="Invalid created_from"):
            board.tasks.list_tasks("alice", created_from="yesterday")
        with pytest.raises(ValidationError, match="Invalid sort"):
            board.tasks.list_tasks("alice", sort="title")

    def test_sort_by_due_date_puts_undated_last(self, board: Board, seeded: dict[str, str]) -> None:
        ascending = [t.title for t in board.tasks.list_tasks("alice", sort="due_asc")]
        assert ascending == ["Review PR", "Write report", "Order swag", "Plan offsite", "Book venue"]
        descending = [t.title for t in board.tasks.list_tasks("alice", sort="due_desc")]
        assert descending[:3] == ["Order swag", "Write report", "Review PR"]
        assert [t.title for t in board.tasks.list_tasks("alice", sort="created_asc")][0] == "Write report"


class TestPaging:
    def test_pages_and_metadata(self, board: Board, seeded: dict[str, str]) -> None:
        first = board.tasks.page_tasks("alice", page=1, page_size=2)
        assert [t.title for t in first.tasks] == ["Plan offsite", "Order swag"]
        assert first.pagination() == {
            "current_page": 1,
            "page_size": 2,
            "total_items": 5,
            "total_pages": 3,
            "has_next_page": True,
            "has_previous_page": False,
        }
        last = board.tasks.page_tasks("alice", page=3, page_size=2)
        assert [t.title for t in last.tasks] == ["Write report"]
        assert last.pagination()["has_next_page"] is False
        assert board.tasks.page_tasks("alice", page=4, page_size=2).tasks == []

    def test_paging_applies_filters(self, board: Board, seeded: dict[str, str]) -> None:
        page = board.tasks.page_tasks("alice", page=1, page_size=10, priority="High")
        assert page.total_items == 2

    @pytest.mark.parametrize("page,size", [(0, 10), (1, 0)])
    def test_rejects_bad_bounds(self, board: Board, page: int, size: int) -> None:
        with pytest.raises(ValidationError):
            board.tasks.page_tasks("alice", page=page, page_size=size)


class TestDashboard:
    def test_stats(self, board: Board, seeded: dict[str, str], clock: FakeClock) -> None:
        board.workflow.update_status(seeded["Review PR"], "InProgress", "alice")
        clock.advance(days=3)
        stats = board.dashboard.get_stats("alice")

        assert stats.total_tasks == 5
        assert stats.completed_tasks == 1
        assert stats.in_progress_tasks == 1
        # "Review PR" was due two days after creation.
        assert stats.overdue_tasks == 1
        assert stats.completion_rate == 20.0
        assert stats.tasks_created_today == 0
        assert stats.tasks_created_this_week == 5
        assert stats.priority_stats == {"Low": 2, "Medium": 1, "High": 2}

        per_day = stats.tasks_per_day
        assert [d.date for d in per_day][-1] == "2025-03-13"
        assert len(per_day) == 7
        by_date = {d.date: d for d in per_day}
        assert by_date["2025-03-10"].tasks_created == 5
        assert by_date["2025-03-10"].tasks_completed == 1

    def test_stats_cover_only_owned_tasks(self, board: Board, seeded: dict[str, str]) -> None:
        assert board.dashboard.get_stats("bob").total_tasks == 1
        empty = board.dashboard.get_stats("carol")
        assert empty.total_tasks == 0
        assert empty.completion_rate == 0.0

    def test_tasks_per_day_window(self, board: Board, seeded: dict[str, str]) -> None:
        days = board.dashboard.get_tasks_per_day("alice", days=2)
        assert [(d.date, d.tasks_created) for d in days] == [("2025-03-09", 0), ("2025-03-10", 5)]
        with pytest.raises(ValidationError):
            board.dashboard.get_tasks_per_day("alice", days=0)
