from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from .access import visible_entity_ids
from .checklist import ChecklistService
from .config import BoardSettings, load_config
from .constants import EVENTS_FILE
from .dashboard import DashboardService
from .dependencies import DependencyGraph
from .logging_utils import pretty
from .notifications import Notifier
from .projects import ProjectService
from .storage.bootstrap import ensure_state_root
from .storage.store import BoardStore
from .tasks import TaskService
from .time_tracking import TimeTracker
from .utils import _utcnow
from .workflow import WorkflowEngine


class Board:
    """Wire the store, settings and services for one project directory."""

    def __init__(
        self,
        project_dir: Path,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        env: Optional[dict[str, str]] = None,
    ) -> None:
        self.project_dir = Path(project_dir).resolve()
        self.state_root = ensure_state_root(self.project_dir)

        config, err = load_config(self.state_root)
        if err:
            logger.warning("Ignoring invalid board config: {}", err)
        self.settings = BoardSettings.from_config(config, env)
        logger.debug("Board settings for {}: {}", self.state_root, pretty(asdict(self.settings)))

        clock = clock or _utcnow
        self.store = BoardStore(self.state_root)
        self.notifier = Notifier(self.state_root / EVENTS_FILE, enabled=self.settings.notifications_enabled)

        self.graph = DependencyGraph(
            self.store,
            detect_transitive_cycles=self.settings.detect_transitive_cycles,
            clock=clock,
        )
        self.workflow = WorkflowEngine(self.store, self.notifier, clock=clock)
        self.timer = TimeTracker(
            self.store,
            self.graph,
            gate_manual_entries=self.settings.gate_manual_entries,
            clock=clock,
        )
        self.tasks = TaskService(self.store, self.notifier, clock=clock)
        self.projects = ProjectService(self.store, self.notifier, clock=clock)
        self.checklist = ChecklistService(self.store, clock=clock)
        self.dashboard = DashboardService(self.store, clock=clock)

    @property
    def project_id(self) -> str:
        return self.project_dir.name

    def recent_events(self, user_id: str, limit: int = 100) -> list[dict[str, Any]]:
        """Recent events about tasks and projects *user_id* can currently view."""
        with self.store.transaction() as tx:
            visible = visible_entity_ids(tx, user_id)
        return self.notifier.list_recent(limit, keep=lambda event: event.get("entity_id") in visible)
