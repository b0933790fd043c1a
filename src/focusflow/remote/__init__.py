"""Remote entity store boundary."""

from .client import ApiError, EntityStore, RemoteClient
from .models import (
    CreateGoalRequest,
    CreateProjectRequest,
    CreateTaskRequest,
    HealthStatus,
    RemoteGoal,
    RemoteGoalWithTasks,
    RemoteProject,
    RemoteProjectWithChildren,
    RemoteTask,
    UpdateGoalRequest,
    UpdateProjectRequest,
    UpdateTaskRequest,
)

__all__ = [
    "ApiError",
    "CreateGoalRequest",
    "CreateProjectRequest",
    "CreateTaskRequest",
    "EntityStore",
    "HealthStatus",
    "RemoteClient",
    "RemoteGoal",
    "RemoteGoalWithTasks",
    "RemoteProject",
    "RemoteProjectWithChildren",
    "RemoteTask",
    "UpdateGoalRequest",
    "UpdateProjectRequest",
    "UpdateTaskRequest",
]
