"""Task endpoints: CRUD, assignments, dependencies, checklists and time tracking.

Mounted under ``/api/tasks`` by :func:`taskboard.server.api.create_app`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Query, Response

from ..container import Board
from ..utils import format_duration
from .auth import current_user
from .models import (
    AssignmentListResponse,
    AssignmentResponse,
    AssignRequest,
    BlockersResponse,
    ChecklistItemRequest,
    ChecklistItemResponse,
    ChecklistResponse,
    CreateTaskRequest,
    DependencyListResponse,
    ManualTimeRequest,
    TaskListResponse,
    TaskResponse,
    TimeEntryResponse,
    TimeHistoryResponse,
    UpdateChecklistItemRequest,
    UpdateTaskRequest,
)


def create_task_router(get_board: Callable[[], Board]) -> APIRouter:
    """Create the task API router.

    Parameters
    ----------
    get_board:
        Zero-argument callable returning the :class:`Board` to operate on.
    """
    router = APIRouter(prefix="/api/tasks", tags=["tasks"])

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @router.get("", response_model=TaskListResponse)
    async def list_tasks(
        project_id: Optional[str] = Query(None),
        is_completed: Optional[bool] = Query(None),
        priority: Optional[str] = Query(None),
        search: Optional[str] = Query(None, description="Substring of title or description"),
        created_from: Optional[datetime] = Query(None),
        created_to: Optional[datetime] = Query(None),
        sort: str = Query("created_desc", description="created_desc, created_asc, due_asc or due_desc"),
        page: Optional[int] = Query(None, ge=1, description="Return one page instead of every match"),
        page_size: int = Query(10, ge=1, le=100),
        user_id: str = Depends(current_user),
    ) -> TaskListResponse:
        filters: dict[str, Any] = {
            "project_id": project_id,
            "is_completed": is_completed,
            "priority": priority,
            "search": search,
            "created_from": created_from,
            "created_to": created_to,
            "sort": sort,
        }
        tasks = get_board().tasks
        if page is None:
            data = [t.to_dict() for t in tasks.list_tasks(user_id, **filters)]
            return TaskListResponse(tasks=data, total=len(data))
        result = tasks.page_tasks(user_id, page=page, page_size=page_size, **filters)
        return TaskListResponse(
            tasks=[t.to_dict() for t in result.tasks],
            total=result.total_items,
            pagination=result.pagination(),
        )

    @router.post("", response_model=TaskResponse, status_code=201)
    async def create_task(
        body: CreateTaskRequest,
        user_id: str = Depends(current_user),
    ) -> TaskResponse:
        task = get_board().tasks.create_task(user_id, **body.model_dump())
        return TaskResponse(task=task.to_dict())

    @router.get("/{task_id}", response_model=TaskResponse)
    async def get_task(task_id: str, user_id: str = Depends(current_user)) -> TaskResponse:
        return TaskResponse(task=get_board().tasks.get_task(task_id, user_id).to_dict())

    @router.patch("/{task_id}", response_model=TaskResponse)
    async def update_task(
        task_id: str,
        body: UpdateTaskRequest,
        user_id: str = Depends(current_user),
    ) -> TaskResponse:
        changes: dict[str, Any] = body.model_dump(exclude_unset=True)
        task = get_board().tasks.update_task(task_id, user_id, changes)
        return TaskResponse(task=task.to_dict())

    @router.delete("/{task_id}", status_code=204)
    async def delete_task(task_id: str, user_id: str = Depends(current_user)) -> Response:
        get_board().tasks.delete_task(task_id, user_id)
        return Response(status_code=204)

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    @router.get("/{task_id}/assignments", response_model=AssignmentListResponse)
    async def list_assignments(task_id: str, user_id: str = Depends(current_user)) -> AssignmentListResponse:
        assignments = get_board().tasks.list_assignments(task_id, user_id)
        return AssignmentListResponse(assignments=[a.to_dict() for a in assignments])

    @router.post("/{task_id}/assignments", response_model=AssignmentResponse, status_code=201)
    async def assign_user(
        task_id: str,
        body: AssignRequest,
        user_id: str = Depends(current_user),
    ) -> AssignmentResponse:
        assignment = get_board().tasks.assign_user(
            task_id, user_id, body.user_id, permission=body.permission, note=body.note
        )
        return AssignmentResponse(assignment=assignment.to_dict())

    @router.delete("/{task_id}/assignments/{assignment_id}", status_code=204)
    async def remove_assignment(
        task_id: str,
        assignment_id: str,
        user_id: str = Depends(current_user),
    ) -> Response:
        get_board().tasks.remove_assignment(task_id, assignment_id, user_id)
        return Response(status_code=204)

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    @router.get("/{task_id}/dependencies", response_model=DependencyListResponse)
    async def list_dependencies(task_id: str, user_id: str = Depends(current_user)) -> DependencyListResponse:
        board = get_board()
        deps = board.graph.get_dependencies(task_id, user_id)
        dependents = board.graph.get_dependents(task_id, user_id)
        return DependencyListResponse(
            dependencies=[d.to_dict() for d in deps],
            dependents=[t.to_dict() for t in dependents],
            is_blocked=any(not d.depends_on.is_completed for d in deps),
        )

    @router.get("/{task_id}/dependencies/blockers", response_model=BlockersResponse)
    async def get_blockers(task_id: str, user_id: str = Depends(current_user)) -> BlockersResponse:
        board = get_board()
        board.tasks.get_task(task_id, user_id)
        blockers = board.graph.get_blockers(task_id)
        return BlockersResponse(
            task_id=task_id,
            is_blocked=bool(blockers),
            blockers=[t.to_dict() for t in blockers],
        )

    @router.post("/{task_id}/dependencies/{depends_on_id}", status_code=201)
    async def add_dependency(
        task_id: str,
        depends_on_id: str,
        user_id: str = Depends(current_user),
    ) -> dict[str, Any]:
        edge = get_board().graph.add_dependency(task_id, depends_on_id, user_id)
        return {"dependency": edge.to_dict()}

    @router.delete("/{task_id}/dependencies/{depends_on_id}")
    async def remove_dependency(
        task_id: str,
        depends_on_id: str,
        user_id: str = Depends(current_user),
    ) -> dict[str, Any]:
        removed = get_board().graph.remove_dependency(task_id, depends_on_id, user_id)
        return {"removed": removed}

    # ------------------------------------------------------------------
    # Checklist
    # ------------------------------------------------------------------

    @router.get("/{task_id}/checklist", response_model=ChecklistResponse)
    async def list_checklist(task_id: str, user_id: str = Depends(current_user)) -> ChecklistResponse:
        items = get_board().checklist.list_items(task_id, user_id)
        return ChecklistResponse(
            items=[i.to_dict() for i in items],
            completed=sum(1 for i in items if i.is_completed),
            total=len(items),
        )

    @router.post("/{task_id}/checklist", response_model=ChecklistItemResponse, status_code=201)
    async def add_checklist_item(
        task_id: str,
        body: ChecklistItemRequest,
        user_id: str = Depends(current_user),
    ) -> ChecklistItemResponse:
        item = get_board().checklist.add_item(task_id, user_id, body.title, body.order)
        return ChecklistItemResponse(item=item.to_dict())

    @router.patch("/{task_id}/checklist/{item_id}", response_model=ChecklistItemResponse)
    async def update_checklist_item(
        task_id: str,
        item_id: str,
        body: UpdateChecklistItemRequest,
        user_id: str = Depends(current_user),
    ) -> ChecklistItemResponse:
        changes: dict[str, Any] = body.model_dump(exclude_unset=True)
        item = get_board().checklist.update_item(task_id, item_id, user_id, changes)
        return ChecklistItemResponse(item=item.to_dict())

    @router.patch("/{task_id}/checklist/{item_id}/toggle", response_model=ChecklistItemResponse)
    async def toggle_checklist_item(
        task_id: str,
        item_id: str,
        user_id: str = Depends(current_user),
    ) -> ChecklistItemResponse:
        item = get_board().checklist.toggle_item(task_id, item_id, user_id)
        return ChecklistItemResponse(item=item.to_dict())

    @router.delete("/{task_id}/checklist/{item_id}", status_code=204)
    async def delete_checklist_item(
        task_id: str,
        item_id: str,
        user_id: str = Depends(current_user),
    ) -> Response:
        get_board().checklist.delete_item(task_id, item_id, user_id)
        return Response(status_code=204)

    # ------------------------------------------------------------------
    # Time tracking
    # ------------------------------------------------------------------

    @router.post("/{task_id}/time/start", response_model=TimeEntryResponse, status_code=201)
    async def start_timer(task_id: str, user_id: str = Depends(current_user)) -> TimeEntryResponse:
        entry = get_board().timer.start_timer(task_id, user_id)
        return TimeEntryResponse(entry=entry.to_dict())

    @router.post("/{task_id}/time/stop", response_model=TimeEntryResponse)
    async def stop_timer(task_id: str, user_id: str = Depends(current_user)) -> TimeEntryResponse:
        entry = get_board().timer.stop_timer(task_id, user_id)
        return TimeEntryResponse(entry=entry.to_dict())

    @router.post("/{task_id}/time/manual", response_model=TimeEntryResponse, status_code=201)
    async def log_manual(
        task_id: str,
        body: ManualTimeRequest,
        user_id: str = Depends(current_user),
    ) -> TimeEntryResponse:
        entry = get_board().timer.log_manual(task_id, user_id, body.start_time, body.end_time, body.notes)
        return TimeEntryResponse(entry=entry.to_dict())

    @router.get("/{task_id}/time", response_model=TimeHistoryResponse)
    async def get_time(task_id: str, user_id: str = Depends(current_user)) -> TimeHistoryResponse:
        board = get_board()
        board.tasks.get_task(task_id, user_id)
        entries = board.timer.get_task_history(task_id)
        total = board.timer.get_total_time_spent(task_id)
        return TimeHistoryResponse(
            entries=[e.to_dict() for e in entries],
            total=format_duration(total),
            total_seconds=int(total.total_seconds()),
        )

    return router
