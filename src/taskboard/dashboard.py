"""Per-user dashboard statistics over the tasks a user owns."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Optional

from .domain.models import Task, TaskPriority, TaskStatus
from .errors import ValidationError
from .storage.store import BoardStore
from .utils import _as_utc, _parse_iso, _utcnow

MAX_DAYS = 365


@dataclass
class DailyTaskCount:
    date: str
    tasks_created: int = 0
    tasks_completed: int = 0


@dataclass
class DashboardStats:
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    overdue_tasks: int = 0
    completion_rate: float = 0.0
    tasks_created_today: int = 0
    tasks_created_this_week: int = 0
    tasks_created_this_month: int = 0
    priority_stats: dict[str, int] = field(default_factory=dict)
    tasks_per_day: list[DailyTaskCount] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _created_on(task: Task) -> Optional[date]:
    created = _parse_iso(task.created_at)
    return created.date() if created is not None else None


class DashboardService:
    def __init__(self, store: BoardStore, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self.store = store
        self._clock = clock

    def _owned(self, user_id: str) -> list[Task]:
        with self.store.transaction() as tx:
            return [t for t in tx.list_tasks() if t.owner_id == user_id]

    def get_stats(self, user_id: str, days: int = 7) -> DashboardStats:
        """Counts, completion rate, priority split and recent daily activity.

        "This week" and "this month" are the last 7 and 30 days counted from
        the start of today (UTC).
        """
        now = _as_utc(self._clock())
        today = now.date()
        midnight = datetime.combine(today, time.min, tzinfo=timezone.utc)
        tasks = self._owned(user_id)

        stats = DashboardStats(total_tasks=len(tasks))
        stats.priority_stats = {p.value: 0 for p in TaskPriority}
        for task in tasks:
            stats.priority_stats[task.priority.value] += 1
            if task.is_completed:
                stats.completed_tasks += 1
            elif task.due_date:
                due = _parse_iso(task.due_date)
                if due is not None and due < now:
                    stats.overdue_tasks += 1
            if task.status == TaskStatus.IN_PROGRESS:
                stats.in_progress_tasks += 1
            created = _parse_iso(task.created_at)
            if created is None:
                continue
            if created.date() == today:
                stats.tasks_created_today += 1
            if created >= midnight - timedelta(days=7):
                stats.tasks_created_this_week += 1
            if created >= midnight - timedelta(days=30):
                stats.tasks_created_this_month += 1

        if stats.total_tasks:
            stats.completion_rate = round(stats.completed_tasks / stats.total_tasks * 100, 2)
        stats.tasks_per_day = self._per_day(tasks, today, days)
        return stats

    def get_tasks_per_day(self, user_id: str, days: int = 7) -> list[DailyTaskCount]:
        """Tasks created per day for the last *days* days including today, oldest first.

        ``tasks_completed`` counts those of the day's new tasks that are done now.
        """
        today = _as_utc(self._clock()).date()
        return self._per_day(self._owned(user_id), today, days)

    @staticmethod
    def _per_day(tasks: list[Task], today: date, days: int) -> list[DailyTaskCount]:
        if isinstance(days, bool) or not isinstance(days, int) or not 1 <= days <= MAX_DAYS:
            raise ValidationError(f"Days must be an integer between 1 and {MAX_DAYS}.")
        buckets = {
            today - timedelta(days=offset): DailyTaskCount(date=(today - timedelta(days=offset)).isoformat())
            for offset in range(days - 1, -1, -1)
        }
        for task in tasks:
            bucket = buckets.get(_created_on(task))
            if bucket is None:
                continue
            bucket.tasks_created += 1
            if task.is_completed:
                bucket.tasks_completed += 1
        return list(buckets.values())
