"""Pydantic request and response models for the board API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Kanban
# ---------------------------------------------------------------------------

class StatusUpdateRequest(BaseModel):
    status: str


class PositionUpdateRequest(BaseModel):
    position: int


class BoardResponse(BaseModel):
    columns: dict[str, list[dict[str, Any]]]


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class CreateTaskRequest(BaseModel):
    title: str
    description: str = ""
    project_id: Optional[str] = None
    priority: str = "Medium"
    due_date: Optional[datetime] = None


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = None
    is_completed: Optional[bool] = None


class TaskResponse(BaseModel):
    task: dict[str, Any]


class TaskListResponse(BaseModel):
    tasks: list[dict[str, Any]]
    total: int
    pagination: Optional[dict[str, Any]] = None


class AssignRequest(BaseModel):
    user_id: str
    permission: str = "Editor"
    note: Optional[str] = None


class AssignmentResponse(BaseModel):
    assignment: dict[str, Any]


class AssignmentListResponse(BaseModel):
    assignments: list[dict[str, Any]]


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

class DependencyListResponse(BaseModel):
    dependencies: list[dict[str, Any]]
    dependents: list[dict[str, Any]] = Field(default_factory=list)
    is_blocked: bool


class BlockersResponse(BaseModel):
    task_id: str
    is_blocked: bool
    blockers: list[dict[str, Any]]


# ---------------------------------------------------------------------------
# Checklists
# ---------------------------------------------------------------------------

class ChecklistItemRequest(BaseModel):
    title: str
    order: Optional[int] = None


class UpdateChecklistItemRequest(BaseModel):
    title: Optional[str] = None
    is_completed: Optional[bool] = None
    order: Optional[int] = None


class ChecklistItemResponse(BaseModel):
    item: dict[str, Any]


class ChecklistResponse(BaseModel):
    items: list[dict[str, Any]]
    completed: int
    total: int


# ---------------------------------------------------------------------------
# Time tracking
# ---------------------------------------------------------------------------

class ManualTimeRequest(BaseModel):
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None


class TimeEntryResponse(BaseModel):
    entry: dict[str, Any]


class TimeHistoryResponse(BaseModel):
    entries: list[dict[str, Any]]
    total: str
    total_seconds: int


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

class CreateProjectRequest(BaseModel):
    title: str
    description: str = ""


class UpdateProjectRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class ProjectResponse(BaseModel):
    project: dict[str, Any]


class ProjectListResponse(BaseModel):
    projects: list[dict[str, Any]]
    total: int


class AddMemberRequest(BaseModel):
    user_id: str
    role: str = "Viewer"


class MemberResponse(BaseModel):
    member: dict[str, Any]


class MemberListResponse(BaseModel):
    members: list[dict[str, Any]] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

class DashboardStatsResponse(BaseModel):
    stats: dict[str, Any]


class TasksPerDayResponse(BaseModel):
    days: list[dict[str, Any]]
