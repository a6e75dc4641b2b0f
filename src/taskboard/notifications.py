"""Fire-and-forget domain events for completed tasks, assignments and members.

Events are appended to ``events.jsonl`` and handed to any subscribed sinks
(push, email, calendar mirrors live outside this package).  A failing sink or
an unwritable log never propagates into the mutation that emitted the event.
"""

from __future__ import annotations

import json
import os
import threading
import uuid
from collections import deque
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from .utils import _now_iso

EventSink = Callable[[dict[str, Any]], None]


class Notifier:
    """Append-only event log plus in-process subscribers."""

    def __init__(self, events_path: Optional[Path] = None, enabled: bool = True) -> None:
        self.enabled = enabled
        self._events_path = events_path
        self._sinks: list[EventSink] = []
        self._thread_lock = threading.RLock()

    def subscribe(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def emit(self, event_type: str, *, entity_id: str, **payload: Any) -> Optional[dict[str, Any]]:
        """Record and dispatch an event.  Returns the event, or None when disabled."""
        if not self.enabled:
            return None
        event: dict[str, Any] = {
            "id": f"evt-{uuid.uuid4().hex[:10]}",
            "ts": _now_iso(),
            "type": event_type,
            "entity_id": entity_id,
            "payload": payload,
        }
        self._append(event)
        for sink in list(self._sinks):
            try:
                sink(event)
            except Exception:
                logger.exception("Notification sink failed for {} on {}", event_type, entity_id)
        return event

    def _append(self, event: dict[str, Any]) -> None:
        if self._events_path is None:
            return
        try:
            with self._thread_lock:
                self._events_path.parent.mkdir(parents=True, exist_ok=True)
                with self._events_path.open("a", encoding="utf-8") as handle:
                    handle.write(json.dumps(event) + "\n")
                    handle.flush()
                    os.fsync(handle.fileno())
        except Exception:
            logger.exception("Failed to append event {} for {}", event["type"], event["entity_id"])

    def list_recent(
        self,
        limit: int = 100,
        keep: Optional[Callable[[dict[str, Any]], bool]] = None,
    ) -> list[dict[str, Any]]:
        """Return the last *limit* events, oldest first.

        ``keep`` filters events before the limit is applied; unparseable lines
        are skipped.
        """
        if limit <= 0 or self._events_path is None or not self._events_path.exists():
            return []
        selected: deque[dict[str, Any]] = deque(maxlen=limit)
        with self._thread_lock:
            with self._events_path.open("r", encoding="utf-8") as handle:
                for line in handle:
                    try:
                        parsed = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if not isinstance(parsed, dict):
                        continue
                    if keep is None or keep(parsed):
                        selected.append(parsed)
        return list(selected)
