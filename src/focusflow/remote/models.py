"""Records and requests exchanged with the remote entity store."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..mapping import Urgency


class _RemoteModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RemoteProject(_RemoteModel):
    id: str
    name: str
    user_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RemoteGoal(_RemoteModel):
    id: str
    project_id: str
    name: str
    completed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None


class RemoteTask(_RemoteModel):
    id: str
    goal_id: str
    name: str
    urgency: Urgency | None = None
    completed: bool = False
    todays_focus: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None


class RemoteGoalWithTasks(RemoteGoal):
    tasks: list[RemoteTask] = Field(default_factory=list)


class RemoteProjectWithChildren(RemoteProject):
    goals: list[RemoteGoalWithTasks] = Field(default_factory=list)


class HealthStatus(_RemoteModel):
    status: str
    timestamp: datetime | None = None


class _Request(_RemoteModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    def to_payload(self) -> dict[str, Any]:
        """Serialize only the explicitly provided fields using wire names."""

        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)

    def is_empty(self) -> bool:
        return not self.model_fields_set


class CreateProjectRequest(_Request):
    id: str
    name: str


class UpdateProjectRequest(_Request):
    name: str | None = None


class CreateGoalRequest(_Request):
    id: str
    project_id: str
    name: str


class UpdateGoalRequest(_Request):
    name: str | None = None
    completed: bool | None = None


class CreateTaskRequest(_Request):
    id: str
    goal_id: str
    name: str
    urgency: Urgency | None = None
    todays_focus: bool = False

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class UpdateTaskRequest(_Request):
    name: str | None = None
    urgency: Urgency | None = None
    completed: bool | None = None
    todays_focus: bool | None = None


__all__ = [
    "CreateGoalRequest",
    "CreateProjectRequest",
    "CreateTaskRequest",
    "HealthStatus",
    "RemoteGoal",
    "RemoteGoalWithTasks",
    "RemoteProject",
    "RemoteProjectWithChildren",
    "RemoteTask",
    "UpdateGoalRequest",
    "UpdateProjectRequest",
    "UpdateTaskRequest",
]
