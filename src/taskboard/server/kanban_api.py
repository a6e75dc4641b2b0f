"""Kanban board endpoints, mounted under ``/api/kanban``."""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query

from ..container import Board
from ..workflow import board_to_dict
from .auth import current_user
from .models import BoardResponse, PositionUpdateRequest, StatusUpdateRequest, TaskResponse


def create_kanban_router(get_board: Callable[[], Board]) -> APIRouter:
    """Create the Kanban router.

    Parameters
    ----------
    get_board:
        Zero-argument callable returning the :class:`Board` to operate on.
    """
    router = APIRouter(prefix="/api/kanban", tags=["kanban"])

    @router.get("", response_model=BoardResponse)
    async def get_board_view(
        project_id: Optional[str] = Query(None),
        user_id: str = Depends(current_user),
    ) -> BoardResponse:
        board = get_board()
        return BoardResponse(columns=board_to_dict(board.workflow.get_board(user_id, project_id)))

    @router.put("/{task_id}/status", response_model=TaskResponse)
    async def update_status(
        task_id: str,
        body: StatusUpdateRequest,
        user_id: str = Depends(current_user),
    ) -> TaskResponse:
        task = get_board().workflow.update_status(task_id, body.status, user_id)
        return TaskResponse(task=task.to_dict())

    @router.put("/{task_id}/position", response_model=TaskResponse)
    async def update_position(
        task_id: str,
        body: PositionUpdateRequest,
        user_id: str = Depends(current_user),
    ) -> TaskResponse:
        task = get_board().workflow.update_position(task_id, body.position, user_id)
        return TaskResponse(task=task.to_dict())

    return router
