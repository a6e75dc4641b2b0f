"""Elapsed-time tracking with a single running timer per user.

A user may hold at most one open entry across all tasks.  The running timer is
always derived from stored entries, never cached.  Starting a timer is refused
while the task has incomplete prerequisites; manual entries skip that check
unless ``gate_manual_entries`` is set.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from loguru import logger

from .access import TRACK_TIME, visible_task
from .dependencies import DependencyGraph
from .domain.models import TimeEntry
from .errors import BlockedError, ConflictError, InvalidOperationError, ValidationError
from .storage.store import BoardStore, BoardTx
from .utils import _as_utc, _iso, _utcnow

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TimeTracker:
    def __init__(
        self,
        store: BoardStore,
        graph: DependencyGraph,
        *,
        gate_manual_entries: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.graph = graph
        self.gate_manual_entries = gate_manual_entries
        self._clock = clock

    def _check_blockers(self, tx: BoardTx, task_id: str) -> None:
        blockers = self.graph.blockers_in(tx, task_id)
        if blockers:
            raise BlockedError(task_id, [b.id for b in blockers])

    def start_timer(self, task_id: str, user_id: str) -> TimeEntry:
        """Open a new entry for *user_id* on *task_id*.

        Raises:
            NotFoundError: task missing or not visible.
            BlockedError: the task has incomplete prerequisites.
            ConflictError: the user already has a running timer anywhere.
        """
        with self.store.transaction() as tx:
            _, access = visible_task(tx, task_id, user_id)
            access.require(TRACK_TIME, "track time on")
            self._check_blockers(tx, task_id)

            running = tx.open_entry_for_user(user_id)
            if running is not None:
                raise ConflictError(
                    f"You already have a running timer on task {running.task_id}. Stop it first."
                )

            now = _iso(self._clock())
            entry = tx.add_time_entry(
                TimeEntry(task_id=task_id, user_id=user_id, start_time=now, created_at=now, is_manual=False)
            )

        logger.info("Timer started on {} by {}", task_id, user_id)
        return entry

    def stop_timer(self, task_id: str, user_id: str) -> TimeEntry:
        """Close the running entry for exactly this (task, user) pair."""
        with self.store.transaction() as tx:
            entry = tx.open_entry(task_id, user_id)
            if entry is None:
                raise InvalidOperationError("No running timer found for this task.")
            entry.end_time = _iso(self._clock())
            tx.dirty = True

        logger.info("Timer stopped on {} by {} after {}", task_id, user_id, entry.duration)
        return entry

    def log_manual(
        self,
        task_id: str,
        user_id: str,
        start: datetime,
        end: datetime,
        notes: Optional[str] = None,
    ) -> TimeEntry:
        """Record a closed, manually entered interval."""
        start, end = _as_utc(start), _as_utc(end)
        with self.store.transaction() as tx:
            _, access = visible_task(tx, task_id, user_id)
            if end <= start:
                raise ValidationError("End time must be after start time.")
            access.require(TRACK_TIME, "track time on")
            if self.gate_manual_entries:
                self._check_blockers(tx, task_id)
            entry = tx.add_time_entry(
                TimeEntry(
                    task_id=task_id,
                    user_id=user_id,
                    start_time=start.isoformat(),
                    end_time=end.isoformat(),
                    notes=notes,
                    is_manual=True,
                    created_at=_iso(self._clock()),
                )
            )

        logger.info("Manual entry of {} logged on {} by {}", end - start, task_id, user_id)
        return entry

    def get_task_history(self, task_id: str) -> list[TimeEntry]:
        """All entries for the task, most recent start first."""
        with self.store.transaction() as tx:
            entries = tx.entries_for_task(task_id)
        entries.sort(key=lambda e: e.started or _EPOCH, reverse=True)
        return entries

    def get_total_time_spent(self, task_id: str) -> timedelta:
        """Sum of durations over closed entries; running timers are excluded."""
        with self.store.transaction() as tx:
            entries = tx.entries_for_task(task_id)
        total = timedelta()
        for entry in entries:
            duration = entry.duration
            if duration is not None:
                total += duration
        return total

    def get_running_timer(self, user_id: str) -> Optional[TimeEntry]:
        with self.store.transaction() as tx:
            return tx.open_entry_for_user(user_id)
