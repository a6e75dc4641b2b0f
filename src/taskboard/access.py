"""Access resolution: who may see or change a task or project.

The resolver functions are pure: they take the task (or project) together with
the caller's membership row and assignment row, and return a decision.  They
never raise; the lack of access is reported as ``False`` / an empty capability
set, which callers translate into "not found" so existence is not leaked.

Capabilities per grant::

    task owner                       everything
    project Owner / Editor member    view, complete, track_time, edit, assign
    Editor assignment                view, complete, track_time, edit, assign
    project Viewer member            view, complete, track_time
    Viewer assignment                view, complete, track_time
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .domain.models import (
    Assignment,
    AssignmentPermission,
    Project,
    ProjectMembership,
    ProjectRole,
    Task,
)
from .errors import NotFoundError, UnauthorizedError
from .storage.store import BoardTx

VIEW = "view"
COMPLETE = "complete"
TRACK_TIME = "track_time"
EDIT = "edit"
ASSIGN = "assign"
DELETE = "delete"
MANAGE_MEMBERS = "manage_members"

_READ = frozenset({VIEW, COMPLETE, TRACK_TIME})
_WRITE = _READ | {EDIT, ASSIGN}
_OWNER = _WRITE | {DELETE}

ROLE_CAPABILITIES: dict[ProjectRole, frozenset[str]] = {
    ProjectRole.OWNER: _WRITE,
    ProjectRole.EDITOR: _WRITE,
    ProjectRole.VIEWER: _READ,
}

PERMISSION_CAPABILITIES: dict[AssignmentPermission, frozenset[str]] = {
    AssignmentPermission.EDITOR: _WRITE,
    AssignmentPermission.VIEWER: _READ,
}

PROJECT_CAPABILITIES: dict[ProjectRole, frozenset[str]] = {
    ProjectRole.OWNER: frozenset({VIEW, EDIT, DELETE, MANAGE_MEMBERS}),
    ProjectRole.EDITOR: frozenset({VIEW, EDIT}),
    ProjectRole.VIEWER: frozenset({VIEW}),
}


@dataclass(frozen=True)
class TaskAccess:
    """Effective access of one user to one task."""

    task_id: str
    user_id: str
    is_owner: bool = False
    role: Optional[ProjectRole] = None
    permission: Optional[AssignmentPermission] = None
    capabilities: frozenset[str] = frozenset()

    @property
    def can_view(self) -> bool:
        return VIEW in self.capabilities

    def allows(self, capability: str) -> bool:
        return capability in self.capabilities

    def require(self, capability: str, action: str) -> None:
        if capability not in self.capabilities:
            raise UnauthorizedError(f"You do not have permission to {action} task {self.task_id}.")


def _membership_matches(task: Task, user_id: str, membership: Optional[ProjectMembership]) -> bool:
    return (
        membership is not None
        and task.project_id is not None
        and membership.project_id == task.project_id
        and membership.user_id == user_id
    )


def _assignment_matches(task: Task, user_id: str, assignment: Optional[Assignment]) -> bool:
    return (
        assignment is not None
        and assignment.task_id == task.id
        and assignment.assigned_user_id == user_id
    )


def can_view(
    task: Task,
    user_id: str,
    membership: Optional[ProjectMembership] = None,
    assignment: Optional[Assignment] = None,
) -> bool:
    """True iff *user_id* owns the task, is a member of its project, or is assigned to it."""
    if task.owner_id == user_id:
        return True
    if _membership_matches(task, user_id, membership):
        return True
    return _assignment_matches(task, user_id, assignment)


def role_of(
    project: Project,
    user_id: str,
    membership: Optional[ProjectMembership] = None,
) -> Optional[ProjectRole]:
    """Owner by id match, else the membership role, else None."""
    if project.owner_id == user_id:
        return ProjectRole.OWNER
    if membership is not None and membership.project_id == project.id and membership.user_id == user_id:
        return membership.role
    return None


def resolve_access(
    task: Task,
    user_id: str,
    membership: Optional[ProjectMembership] = None,
    assignment: Optional[Assignment] = None,
) -> TaskAccess:
    """Combine ownership, project role and assignment into one capability set."""
    if task.owner_id == user_id:
        return TaskAccess(task.id, user_id, is_owner=True, role=None, permission=None, capabilities=_OWNER)

    role = membership.role if _membership_matches(task, user_id, membership) else None
    permission = assignment.permission if _assignment_matches(task, user_id, assignment) else None

    caps: frozenset[str] = frozenset()
    if role is not None:
        caps = caps | ROLE_CAPABILITIES[role]
    if permission is not None:
        caps = caps | PERMISSION_CAPABILITIES[permission]
    return TaskAccess(task.id, user_id, is_owner=False, role=role, permission=permission, capabilities=caps)


def project_capabilities(
    project: Project,
    user_id: str,
    membership: Optional[ProjectMembership] = None,
) -> frozenset[str]:
    role = role_of(project, user_id, membership)
    if role is None:
        return frozenset()
    return PROJECT_CAPABILITIES[role]


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------

def access_in(tx: BoardTx, task: Task, user_id: str) -> TaskAccess:
    """Look up the caller's rows in *tx* and resolve their access to *task*."""
    return resolve_access(
        task,
        user_id,
        tx.membership(task.project_id, user_id),
        tx.assignment_for(task.id, user_id),
    )


def visible_task(tx: BoardTx, task_id: str, user_id: str) -> tuple[Task, TaskAccess]:
    """Return the task and the caller's access, or raise NotFoundError.

    Missing and inaccessible tasks produce the same error.
    """
    task = tx.get_task(task_id)
    if task is not None:
        access = access_in(tx, task, user_id)
        if access.can_view:
            return task, access
    raise NotFoundError(f"Task {task_id} not found or access denied.")


def visible_tasks(tx: BoardTx, user_id: str, project_id: Optional[str] = None) -> list[Task]:
    """All tasks *user_id* can view, optionally limited to one project."""
    project_ids = tx.project_ids_for(user_id)
    assigned = tx.assigned_task_ids(user_id)
    out: list[Task] = []
    for task in tx.list_tasks():
        if project_id is not None and task.project_id != project_id:
            continue
        if task.owner_id == user_id or task.id in assigned or (
            task.project_id is not None and task.project_id in project_ids
        ):
            out.append(task)
    return out


def visible_entity_ids(tx: BoardTx, user_id: str) -> set[str]:
    """Ids of every task and project *user_id* can view."""
    ids = {task.id for task in visible_tasks(tx, user_id)}
    for project in tx.list_projects():
        if VIEW in project_capabilities(project, user_id, tx.membership(project.id, user_id)):
            ids.add(project.id)
    return ids
