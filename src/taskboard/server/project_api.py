"""Project and membership endpoints, mounted under ``/api/projects``."""

from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, Depends, Response

from ..container import Board
from .auth import current_user
from .models import (
    AddMemberRequest,
    CreateProjectRequest,
    MemberListResponse,
    MemberResponse,
    ProjectListResponse,
    ProjectResponse,
    UpdateProjectRequest,
)


def create_project_router(get_board: Callable[[], Board]) -> APIRouter:
    router = APIRouter(prefix="/api/projects", tags=["projects"])

    @router.get("", response_model=ProjectListResponse)
    async def list_projects(user_id: str = Depends(current_user)) -> ProjectListResponse:
        projects = get_board().projects.list_projects(user_id)
        return ProjectListResponse(projects=[p.to_dict() for p in projects], total=len(projects))

    @router.post("", response_model=ProjectResponse, status_code=201)
    async def create_project(
        body: CreateProjectRequest,
        user_id: str = Depends(current_user),
    ) -> ProjectResponse:
        project = get_board().projects.create_project(user_id, body.title, body.description)
        return ProjectResponse(project=project.to_dict())

    @router.get("/{project_id}", response_model=ProjectResponse)
    async def get_project(project_id: str, user_id: str = Depends(current_user)) -> ProjectResponse:
        return ProjectResponse(project=get_board().projects.get_project(project_id, user_id).to_dict())

    @router.patch("/{project_id}", response_model=ProjectResponse)
    async def update_project(
        project_id: str,
        body: UpdateProjectRequest,
        user_id: str = Depends(current_user),
    ) -> ProjectResponse:
        project = get_board().projects.update_project(project_id, user_id, body.model_dump(exclude_unset=True))
        return ProjectResponse(project=project.to_dict())

    @router.delete("/{project_id}", status_code=204)
    async def delete_project(project_id: str, user_id: str = Depends(current_user)) -> Response:
        get_board().projects.delete_project(project_id, user_id)
        return Response(status_code=204)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    @router.get("/{project_id}/members", response_model=MemberListResponse)
    async def list_members(project_id: str, user_id: str = Depends(current_user)) -> MemberListResponse:
        members = get_board().projects.list_members(project_id, user_id)
        return MemberListResponse(members=[m.to_dict() for m in members])

    @router.post("/{project_id}/members", response_model=MemberResponse, status_code=201)
    async def add_member(
        project_id: str,
        body: AddMemberRequest,
        user_id: str = Depends(current_user),
    ) -> MemberResponse:
        member = get_board().projects.add_member(project_id, user_id, body.user_id, body.role)
        return MemberResponse(member=member.to_dict())

    @router.delete("/{project_id}/members/{member_id}", status_code=204)
    async def remove_member(
        project_id: str,
        member_id: str,
        user_id: str = Depends(current_user),
    ) -> Response:
        get_board().projects.remove_member(project_id, user_id, member_id)
        return Response(status_code=204)

    return router
