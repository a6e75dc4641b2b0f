"""FastAPI application for the task board."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..container import Board
from ..errors import (
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    TaskboardError,
    UnauthorizedError,
    ValidationError,
)
from .auth import current_user
from .dashboard_api import create_dashboard_router
from .kanban_api import create_kanban_router
from .project_api import create_project_router
from .task_api import create_task_router

# Subclasses resolve to their nearest listed ancestor (BlockedError -> 409).
ERROR_STATUS: dict[type[TaskboardError], int] = {
    NotFoundError: 404,
    ValidationError: 400,
    ConflictError: 409,
    InvalidOperationError: 409,
    UnauthorizedError: 403,
}


def status_for(exc: TaskboardError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


def create_app(
    project_dir: Optional[Path] = None,
    board: Optional[Board] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        project_dir: Project directory holding ``.taskboard/``. Defaults to cwd.
        board: Pre-built board, mainly for tests with an injected clock.
        enable_cors: Whether to enable CORS.

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="Taskboard",
        description="Kanban task board with dependencies and time tracking",
        version="1.0.0",
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.board = board or Board(project_dir or Path.cwd())

    def _get_board() -> Board:
        return app.state.board

    @app.exception_handler(TaskboardError)
    async def _taskboard_error(request: Request, exc: TaskboardError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error("Unhandled board error on {} {}: {}", request.method, request.url.path, exc.message)
        else:
            logger.debug("{} {} -> {} {}", request.method, request.url.path, status, exc.code)
        body = {"error": exc.code, "detail": exc.message}
        blocker_ids = getattr(exc, "blocker_ids", None)
        if blocker_ids is not None:
            body["blocker_ids"] = blocker_ids
        return JSONResponse(status_code=status, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = "unauthenticated" if exc.status_code == 401 else "http_error"
        return JSONResponse(status_code=exc.status_code, content={"error": code, "detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError) -> JSONResponse:
        messages = [f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"error": ValidationError.code, "detail": "; ".join(messages), "errors": messages},
        )

    @app.get("/")
    async def root():
        return {
            "name": "Taskboard",
            "version": "1.0.0",
            "status": "running",
            "project": app.state.board.project_id,
        }

    @app.get("/api/events")
    async def recent_events(
        limit: int = Query(100, ge=1, le=1000),
        user_id: str = Depends(current_user),
    ) -> dict[str, Any]:
        events = app.state.board.recent_events(user_id, limit)
        return {"events": events, "total": len(events)}

    app.include_router(create_kanban_router(_get_board))
    app.include_router(create_task_router(_get_board))
    app.include_router(create_project_router(_get_board))
    app.include_router(create_dashboard_router(_get_board))

    return app
