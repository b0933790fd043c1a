"""Suggestion batches produced by the external advisory service."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..mapping import Priority, parse_priority
from ..models import new_id

# Placeholder used by the advisory service for a target it could not resolve.
UNRESOLVED = "new"


class TransitionAction(str, Enum):
    COMPLETE = "complete"
    UPDATE_PRIORITY = "updatePriority"
    ADD_TO_TODAY = "addToToday"


class _SuggestionModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    selected: bool = False


class ProposedGoal(_SuggestionModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: str | None = None
    track_id: str
    track_name: str = ""


class ProposedTask(_SuggestionModel):
    text: str
    priority: Priority | None = None
    track_id: str = ""
    track_name: str = ""
    goal_id: str
    goal_name: str = ""

    @field_validator("priority", mode="before")
    @classmethod
    def _lenient_priority(cls, value: object) -> Priority | None:
        return parse_priority(value)


class TaskTransition(_SuggestionModel):
    task_id: str
    action: str
    new_priority: Priority | None = None

    @field_validator("new_priority", mode="before")
    @classmethod
    def _lenient_priority(cls, value: object) -> Priority | None:
        return parse_priority(value)


class ContextAppend(_SuggestionModel):
    track_id: str
    track_name: str = ""
    context_to_add: str


class SuggestionBatch(BaseModel):
    """Four independent lists of proposed mutations plus a free-text summary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    new_goals: list[ProposedGoal] = Field(default_factory=list)
    new_tasks: list[ProposedTask] = Field(default_factory=list)
    task_updates: list[TaskTransition] = Field(default_factory=list)
    context_updates: list[ContextAppend] = Field(default_factory=list)
    summary: str = ""

    def selected_count(self) -> int:
        return sum(
            1
            for items in (self.new_goals, self.new_tasks, self.task_updates, self.context_updates)
            for item in items
            if item.selected
        )


__all__ = [
    "ContextAppend",
    "ProposedGoal",
    "ProposedTask",
    "SuggestionBatch",
    "TaskTransition",
    "TransitionAction",
    "UNRESOLVED",
]
