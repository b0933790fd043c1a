"""Records persisted in the local overlay document."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..mapping import EnergyLevel
from ..models import DEFAULT_TRACK_COLOR, EntityKind

OVERLAY_VERSION = 1


class _OverlayModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrackOverlay(_OverlayModel):
    color: str = DEFAULT_TRACK_COLOR
    notes: str | None = None
    context: str | None = None
    order_index: int = Field(default=0, ge=0)


class GoalOverlay(_OverlayModel):
    description: str | None = None
    order_index: int = Field(default=0, ge=0)


class TaskOverlay(_OverlayModel):
    description: str | None = None
    order_index: int = Field(default=0, ge=0)


OverlayRecord = Union[TrackOverlay, GoalOverlay, TaskOverlay]

OVERLAY_TYPES: dict[EntityKind, type[_OverlayModel]] = {
    EntityKind.TRACK: TrackOverlay,
    EntityKind.GOAL: GoalOverlay,
    EntityKind.TASK: TaskOverlay,
}

# Values used when an entity has no overlay record.
OVERLAY_DEFAULTS: dict[EntityKind, OverlayRecord] = {
    EntityKind.TRACK: TrackOverlay(),
    EntityKind.GOAL: GoalOverlay(),
    EntityKind.TASK: TaskOverlay(),
}


class SessionRecord(_OverlayModel):
    """Per-user focus session state. Lives only in the overlay."""

    daily_intention: str | None = None
    energy_level: EnergyLevel = EnergyLevel.NORMAL
    current_track_id: str | None = None
    focus_mode: bool = True
    session_start_time: datetime | None = None
    track_switch_count: int = Field(default=0, ge=0)
    last_activity: datetime | None = None
    completion_streak: int = Field(default=0, ge=0)


class SessionPatch(_OverlayModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    daily_intention: str | None = None
    energy_level: EnergyLevel | None = None
    current_track_id: str | None = None
    focus_mode: bool | None = None
    session_start_time: datetime | None = None
    track_switch_count: int | None = Field(default=None, ge=0)
    last_activity: datetime | None = None
    completion_streak: int | None = Field(default=None, ge=0)

    def changes(self) -> dict[str, object]:
        return {field: getattr(self, field) for field in self.model_fields_set}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OverlayDocument(_OverlayModel):
    """The single versioned blob kept in the durable medium."""

    version: int = OVERLAY_VERSION
    tracks: dict[str, TrackOverlay] = Field(default_factory=dict)
    goals: dict[str, GoalOverlay] = Field(default_factory=dict)
    tasks: dict[str, TaskOverlay] = Field(default_factory=dict)
    session: SessionRecord = Field(default_factory=SessionRecord)
    last_sync: datetime = Field(default_factory=_utcnow)

    def records(self, kind: EntityKind) -> dict[str, OverlayRecord]:
        if kind is EntityKind.TRACK:
            return self.tracks
        if kind is EntityKind.GOAL:
            return self.goals
        return self.tasks


__all__ = [
    "GoalOverlay",
    "OVERLAY_DEFAULTS",
    "OVERLAY_TYPES",
    "OVERLAY_VERSION",
    "OverlayDocument",
    "OverlayRecord",
    "SessionPatch",
    "SessionRecord",
    "TaskOverlay",
    "TrackOverlay",
]
