"""Merged view entities, creation drafts and typed edit patches."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .mapping import Priority

DEFAULT_TRACK_COLOR = "teal"


class EntityKind(str, Enum):
    TRACK = "track"
    GOAL = "goal"
    TASK = "task"


def new_id() -> str:
    """Return a client-assigned, globally unique entity id."""

    return uuid4().hex


def _require_text(value: str, label: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{label} must not be empty")
    return normalized


class Task(BaseModel):
    """Merged view of a remote task and its overlay record."""

    model_config = ConfigDict(frozen=True)

    id: str
    goal_id: str
    text: str
    description: str | None = None
    priority: Priority | None = None
    is_completed: bool = False
    is_today: bool = False
    order_index: int = Field(default=0, ge=0)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None


class TodayTask(Task):
    """A task from the today working set annotated with its ancestors."""

    track_id: str = ""
    track_name: str = ""
    goal_name: str = ""


class Goal(BaseModel):
    """Merged view of a remote goal and its overlay record."""

    model_config = ConfigDict(frozen=True)

    id: str
    track_id: str
    name: str
    description: str | None = None
    is_completed: bool = False
    order_index: int = Field(default=0, ge=0)
    tasks: list[Task] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None


class Track(BaseModel):
    """Merged view of a remote project and its overlay record."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: int | None = None
    name: str
    color: str = DEFAULT_TRACK_COLOR
    notes: str | None = None
    context: str | None = None
    order_index: int = Field(default=0, ge=0)
    goals: list[Goal] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Creation drafts


class TrackDraft(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    name: str
    color: str = DEFAULT_TRACK_COLOR
    notes: str | None = None
    context: str | None = None
    order_index: int = Field(default=0, ge=0)

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        return _require_text(value, "Track name")


class GoalDraft(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    track_id: str
    name: str
    description: str | None = None
    order_index: int = Field(default=0, ge=0)

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        return _require_text(value, "Goal name")


class TaskDraft(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    goal_id: str
    text: str
    priority: Priority | None = None
    is_today: bool = False
    description: str | None = None
    order_index: int = Field(default=0, ge=0)

    @field_validator("text")
    @classmethod
    def _normalize_text(cls, value: str) -> str:
        return _require_text(value, "Task text")


# ---------------------------------------------------------------------------
# Edit patches
#
# A field left out of a patch is untouched; a field explicitly set to None
# clears it. Parent ids are not patchable.


class EntityPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    non_nullable: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_null_for_required(self) -> "EntityPatch":
        for field in self.model_fields_set & self.non_nullable:
            if getattr(self, field) is None:
                raise ValueError(f"'{field}' cannot be cleared")
        return self

    def changes(self) -> dict[str, Any]:
        """Return only the fields the caller explicitly set."""

        return {field: getattr(self, field) for field in self.model_fields_set}

    def is_empty(self) -> bool:
        return not self.model_fields_set


class TrackPatch(EntityPatch):
    non_nullable: ClassVar[frozenset[str]] = frozenset({"name", "color", "order_index"})

    name: str | None = None
    color: str | None = None
    notes: str | None = None
    context: str | None = None
    order_index: int | None = Field(default=None, ge=0)


class GoalPatch(EntityPatch):
    non_nullable: ClassVar[frozenset[str]] = frozenset({"name", "is_completed", "order_index"})

    name: str | None = None
    is_completed: bool | None = None
    description: str | None = None
    order_index: int | None = Field(default=None, ge=0)


class TaskPatch(EntityPatch):
    non_nullable: ClassVar[frozenset[str]] = frozenset(
        {"text", "is_completed", "is_today", "order_index"}
    )

    text: str | None = None
    priority: Priority | None = None
    is_completed: bool | None = None
    is_today: bool | None = None
    description: str | None = None
    order_index: int | None = Field(default=None, ge=0)


PATCH_TYPES: dict[EntityKind, type[EntityPatch]] = {
    EntityKind.TRACK: TrackPatch,
    EntityKind.GOAL: GoalPatch,
    EntityKind.TASK: TaskPatch,
}


__all__ = [
    "DEFAULT_TRACK_COLOR",
    "EntityKind",
    "EntityPatch",
    "Goal",
    "GoalDraft",
    "GoalPatch",
    "PATCH_TYPES",
    "Task",
    "TaskDraft",
    "TaskPatch",
    "TodayTask",
    "Track",
    "TrackDraft",
    "TrackPatch",
    "new_id",
]
