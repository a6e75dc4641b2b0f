from .models import (
    Assignment,
    AssignmentPermission,
    DependencyEdge,
    Project,
    ProjectMembership,
    ProjectRole,
    Task,
    TaskPriority,
    TaskStatus,
    TimeEntry,
)

__all__ = [
    "Task",
    "TaskStatus",
    "TaskPriority",
    "Project",
    "ProjectMembership",
    "ProjectRole",
    "Assignment",
    "AssignmentPermission",
    "DependencyEdge",
    "TimeEntry",
]
