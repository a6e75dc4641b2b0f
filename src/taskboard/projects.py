"""Projects and their membership roster."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional, Union

from loguru import logger

from .access import DELETE, EDIT, MANAGE_MEMBERS, project_capabilities
from .domain.models import Project, ProjectMembership, ProjectRole
from .errors import NotFoundError, UnauthorizedError, ValidationError
from .notifications import Notifier
from .storage.store import BoardStore, BoardTx
from .utils import _iso, _utcnow


def _parse_role(raw: Union[str, ProjectRole, None]) -> ProjectRole:
    if raw is None:
        return ProjectRole.VIEWER
    if isinstance(raw, ProjectRole):
        return raw
    try:
        return ProjectRole(str(raw))
    except ValueError:
        valid = ", ".join(r.value for r in ProjectRole)
        raise ValidationError(f"Invalid role '{raw}'. Must be one of: {valid}") from None


def _visible_project(tx: BoardTx, project_id: str, user_id: str) -> tuple[Project, frozenset[str]]:
    project = tx.get_project(project_id)
    if project is not None:
        caps = project_capabilities(project, user_id, tx.membership(project_id, user_id))
        if caps:
            return project, caps
    raise NotFoundError(f"Project {project_id} not found or access denied.")


class ProjectService:
    def __init__(
        self,
        store: BoardStore,
        notifier: Optional[Notifier] = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self._clock = clock

    def create_project(self, owner_id: str, title: str, description: str = "") -> Project:
        """Create a project; the creator becomes its Owner member."""
        title = (title or "").strip()
        if not title:
            raise ValidationError("Project title is required.")
        stamp = _iso(self._clock())
        with self.store.transaction() as tx:
            project = tx.add_project(
                Project(
                    title=title,
                    description=description or "",
                    owner_id=owner_id,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            tx.add_member(
                ProjectMembership(project_id=project.id, user_id=owner_id, role=ProjectRole.OWNER, joined_at=stamp)
            )
        logger.info("Project {} created by {}", project.id, owner_id)
        return project

    def get_project(self, project_id: str, user_id: str) -> Project:
        with self.store.transaction() as tx:
            project, _ = _visible_project(tx, project_id, user_id)
            return project

    def list_projects(self, user_id: str) -> list[Project]:
        with self.store.transaction() as tx:
            member_of = tx.project_ids_for(user_id)
            projects = [p for p in tx.list_projects() if p.owner_id == user_id or p.id in member_of]
        projects.sort(key=lambda p: p.created_at)
        return projects

    def update_project(self, project_id: str, user_id: str, changes: dict[str, Any]) -> Project:
        unknown = sorted(set(changes) - {"title", "description"})
        if unknown:
            raise ValidationError(f"Unknown project fields: {', '.join(unknown)}")
        with self.store.transaction() as tx:
            project, caps = _visible_project(tx, project_id, user_id)
            if EDIT not in caps:
                raise UnauthorizedError(f"You do not have permission to edit project {project_id}.")
            if "title" in changes:
                title = (changes["title"] or "").strip()
                if not title:
                    raise ValidationError("Project title is required.")
                project.title = title
            if "description" in changes:
                project.description = changes["description"] or ""
            project.updated_at = _iso(self._clock())
            tx.dirty = True
        logger.info("Project {} updated by {}", project_id, user_id)
        return project

    def delete_project(self, project_id: str, user_id: str) -> None:
        """Delete the project.  Its tasks survive, detached from any project."""
        with self.store.transaction() as tx:
            _, caps = _visible_project(tx, project_id, user_id)
            if DELETE not in caps:
                raise UnauthorizedError(f"Only the owner can delete project {project_id}.")
            tx.delete_project(project_id)
        logger.info("Project {} deleted by {}", project_id, user_id)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def add_member(
        self,
        project_id: str,
        user_id: str,
        member_id: str,
        role: Union[str, ProjectRole, None] = None,
    ) -> ProjectMembership:
        level = _parse_role(role)
        if not member_id:
            raise ValidationError("Member user id is required.")
        with self.store.transaction() as tx:
            project, caps = _visible_project(tx, project_id, user_id)
            if MANAGE_MEMBERS not in caps:
                raise UnauthorizedError(f"Only the owner can add members to project {project_id}.")
            if tx.membership(project_id, member_id) is not None:
                raise ValidationError(f"User {member_id} is already a member of project {project_id}.")
            member = tx.add_member(
                ProjectMembership(project_id=project_id, user_id=member_id, role=level, joined_at=_iso(self._clock()))
            )
        logger.info("User {} joined project {} as {}", member_id, project_id, level.value)
        if self.notifier is not None:
            self.notifier.emit(
                "member.added",
                entity_id=project_id,
                title=project.title,
                member_id=member_id,
                role=level.value,
                added_by=user_id,
            )
        return member

    def remove_member(self, project_id: str, user_id: str, member_id: str) -> None:
        """Remove a member.  The owner may remove anyone else; members may leave."""
        with self.store.transaction() as tx:
            project, caps = _visible_project(tx, project_id, user_id)
            if member_id != user_id and MANAGE_MEMBERS not in caps:
                raise UnauthorizedError(f"Only the owner can remove members from project {project_id}.")
            if member_id == project.owner_id:
                raise ValidationError("The project owner cannot be removed.")
            if not tx.remove_member(project_id, member_id):
                raise NotFoundError(f"User {member_id} is not a member of project {project_id}.")
        logger.info("User {} removed from project {} by {}", member_id, project_id, user_id)

    def list_members(self, project_id: str, user_id: str) -> list[ProjectMembership]:
        with self.store.transaction() as tx:
            _visible_project(tx, project_id, user_id)
            return tx.members_of(project_id)
