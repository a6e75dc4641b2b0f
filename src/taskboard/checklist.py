"""Per-task checklists.

Items inherit visibility from their task.  Anyone who can mark the task
complete may tick an item; adding, editing and removing items needs edit
rights on the task.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from loguru import logger

from .access import COMPLETE, EDIT, visible_task
from .domain.models import ChecklistItem
from .errors import NotFoundError, ValidationError
from .storage.store import BoardStore, BoardTx
from .utils import _iso, _utcnow

_EDITABLE_FIELDS = ("title", "is_completed", "order")


def _clean_title(raw: Optional[str]) -> str:
    title = (raw or "").strip()
    if not title:
        raise ValidationError("Checklist item title is required.")
    return title


def _clean_order(raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValidationError(f"Checklist order must be an integer, got {raw!r}")
    if raw < 0:
        raise ValidationError("Checklist order must be zero or greater.")
    return raw


def _item_on(tx: BoardTx, task_id: str, item_id: str) -> ChecklistItem:
    item = tx.get_checklist_item(item_id)
    if item is None or item.task_id != task_id:
        raise NotFoundError(f"Checklist item {item_id} not found.")
    return item


class ChecklistService:
    def __init__(self, store: BoardStore, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self.store = store
        self._clock = clock

    def list_items(self, task_id: str, user_id: str) -> list[ChecklistItem]:
        """Items of a visible task, by ``order`` then creation time."""
        with self.store.transaction() as tx:
            visible_task(tx, task_id, user_id)
            items = tx.checklist_for(task_id)
        items.sort(key=lambda i: (i.order, i.created_at))
        return items

    def add_item(self, task_id: str, user_id: str, title: str, order: Optional[int] = None) -> ChecklistItem:
        """Append an item; without *order* it goes after the current last item."""
        title = _clean_title(title)
        if order is not None:
            order = _clean_order(order)
        with self.store.transaction() as tx:
            _, access = visible_task(tx, task_id, user_id)
            access.require(EDIT, "edit the checklist of")
            if order is None:
                existing = tx.checklist_for(task_id)
                order = max((i.order for i in existing), default=-1) + 1
            item = tx.add_checklist_item(
                ChecklistItem(task_id=task_id, title=title, order=order, created_at=_iso(self._clock()))
            )
        logger.info("Checklist item {} added to {} by {}", item.id, task_id, user_id)
        return item

    def update_item(self, task_id: str, item_id: str, user_id: str, changes: dict[str, Any]) -> ChecklistItem:
        unknown = sorted(set(changes) - set(_EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown checklist fields: {', '.join(unknown)}")
        cleaned: dict[str, Any] = {}
        if "title" in changes:
            cleaned["title"] = _clean_title(changes["title"])
        if "is_completed" in changes:
            cleaned["is_completed"] = bool(changes["is_completed"])
        if "order" in changes:
            cleaned["order"] = _clean_order(changes["order"])

        with self.store.transaction() as tx:
            _, access = visible_task(tx, task_id, user_id)
            access.require(EDIT, "edit the checklist of")
            item = _item_on(tx, task_id, item_id)
            for name, value in cleaned.items():
                setattr(item, name, value)
            tx.dirty = True
        logger.info("Checklist item {} on {} updated by {}: {}", item_id, task_id, user_id, sorted(changes))
        return item

    def toggle_item(self, task_id: str, item_id: str, user_id: str) -> ChecklistItem:
        with self.store.transaction() as tx:
            _, access = visible_task(tx, task_id, user_id)
            access.require(COMPLETE, "tick the checklist of")
            item = _item_on(tx, task_id, item_id)
            item.is_completed = not item.is_completed
            tx.dirty = True
        logger.debug("Checklist item {} on {} is_completed={}", item_id, task_id, item.is_completed)
        return item

    def delete_item(self, task_id: str, item_id: str, user_id: str) -> None:
        with self.store.transaction() as tx:
            _, access = visible_task(tx, task_id, user_id)
            access.require(EDIT, "edit the checklist of")
            _item_on(tx, task_id, item_id)
            tx.remove_checklist_item(item_id)
        logger.info("Checklist item {} removed from {} by {}", item_id, task_id, user_id)
