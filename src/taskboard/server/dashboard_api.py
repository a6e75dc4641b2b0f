"""Dashboard statistics endpoints, mounted under ``/api/dashboard``."""

from __future__ import annotations

from dataclasses import asdict
from typing import Callable

from fastapi import APIRouter, Depends, Query

from ..container import Board
from ..dashboard import MAX_DAYS
from .auth import current_user
from .models import DashboardStatsResponse, TasksPerDayResponse


def create_dashboard_router(get_board: Callable[[], Board]) -> APIRouter:
    router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

    @router.get("/stats", response_model=DashboardStatsResponse)
    async def get_stats(user_id: str = Depends(current_user)) -> DashboardStatsResponse:
        return DashboardStatsResponse(stats=get_board().dashboard.get_stats(user_id).to_dict())

    @router.get("/tasks-per-day", response_model=TasksPerDayResponse)
    async def tasks_per_day(
        days: int = Query(7, ge=1, le=MAX_DAYS),
        user_id: str = Depends(current_user),
    ) -> TasksPerDayResponse:
        counts = get_board().dashboard.get_tasks_per_day(user_id, days)
        return TasksPerDayResponse(days=[asdict(c) for c in counts])

    return router
