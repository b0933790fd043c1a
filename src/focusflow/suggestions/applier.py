"""Apply a reviewed suggestion batch through the sync controller."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..models import Goal, GoalDraft, TaskDraft, TaskPatch, TrackPatch
from ..sync.controller import SyncController
from .models import (
    UNRESOLVED,
    ContextAppend,
    ProposedGoal,
    ProposedTask,
    SuggestionBatch,
    TaskTransition,
    TransitionAction,
)

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n"


@dataclass(slots=True)
class BatchItem:
    category: str
    label: str
    entity_id: str | None = None
    reason: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "label": self.label,
            "entity_id": self.entity_id,
            "reason": self.reason,
        }


@dataclass(slots=True)
class BatchReport:
    applied: list[BatchItem] = field(default_factory=list)
    skipped: list[BatchItem] = field(default_factory=list)
    failed: list[BatchItem] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def as_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "applied": [item.as_dict() for item in self.applied],
            "skipped": [item.as_dict() for item in self.skipped],
            "failed": [item.as_dict() for item in self.failed],
        }


class _Skip(Exception):
    """Internal signal that an item cannot be attempted."""


def append_context(existing: str | None, addition: str) -> str:
    return f"{existing}{CONTEXT_SEPARATOR}{addition}" if existing else addition


class SuggestionApplier:
    """Apply selected suggestions in a fixed order, one item at a time.

    New goals go first so that new tasks can target them, then new tasks,
    task transitions and finally context appends. A failing item is recorded
    in the report and does not stop the rest of the batch. Callers are
    expected to ``refresh`` afterwards to pick up server-side side effects.
    """

    def __init__(self, controller: SyncController) -> None:
        self._controller = controller

    async def apply(self, batch: SuggestionBatch | dict[str, Any]) -> BatchReport:
        if not isinstance(batch, SuggestionBatch):
            batch = SuggestionBatch.model_validate(batch)

        report = BatchReport()
        created_goals: dict[str, Goal] = {}

        for proposal in batch.new_goals:
            if proposal.selected:
                await self._attempt(
                    report, "goal", proposal.name, self._create_goal, proposal, created_goals
                )
        for proposal in batch.new_tasks:
            if proposal.selected:
                await self._attempt(
                    report, "task", proposal.text, self._create_task, proposal, created_goals
                )
        for transition in batch.task_updates:
            if transition.selected:
                label = f"{transition.action} {transition.task_id}"
                await self._attempt(report, "transition", label, self._transition, transition)
        for append in batch.context_updates:
            if append.selected:
                label = append.track_name or append.track_id
                await self._attempt(report, "context", label, self._append_context, append)

        logger.info(
            "Applied suggestion batch",
            extra={
                "applied": len(report.applied),
                "skipped": len(report.skipped),
                "failed": len(report.failed),
            },
        )
        return report

    async def _attempt(self, report: BatchReport, category: str, label: str, handler, *args) -> None:
        try:
            entity_id = await handler(*args)
        except _Skip as skip:
            report.skipped.append(BatchItem(category, label, reason=str(skip)))
            logger.debug("Skipped suggestion", extra={"category": category, "reason": str(skip)})
        except Exception as exc:
            report.failed.append(BatchItem(category, label, reason=str(exc)))
            logger.exception("Suggestion failed", extra={"category": category, "label": label})
        else:
            report.applied.append(BatchItem(category, label, entity_id=entity_id))

    # -- handlers -------------------------------------------------------

    async def _create_goal(self, proposal: ProposedGoal, created: dict[str, Goal]) -> str:
        if not proposal.track_id or proposal.track_id == UNRESOLVED:
            raise _Skip("target track is unresolved")

        track = self._controller.find_track(proposal.track_id)
        goal = await self._controller.create_goal(
            GoalDraft(
                id=proposal.id,
                track_id=proposal.track_id,
                name=proposal.name,
                description=proposal.description or None,
                order_index=len(track.goals) if track is not None else 0,
            )
        )
        created[proposal.id] = goal
        return goal.id

    def _resolve_goal_id(self, proposal: ProposedTask, created: dict[str, Goal]) -> str | None:
        if proposal.goal_id and proposal.goal_id != UNRESOLVED:
            return proposal.goal_id

        wanted = proposal.goal_name.strip().casefold()
        if not wanted:
            return None
        for goal in created.values():
            if goal.name.strip().casefold() != wanted:
                continue
            track_known = proposal.track_id and proposal.track_id != UNRESOLVED
            if track_known and goal.track_id != proposal.track_id:
                continue
            return goal.id
        return None

    async def _create_task(self, proposal: ProposedTask, created: dict[str, Goal]) -> str:
        goal_id = self._resolve_goal_id(proposal, created)
        if goal_id is None:
            raise _Skip("target goal is unresolved")

        goal = self._controller.find_goal(goal_id)
        task = await self._controller.create_task(
            TaskDraft(
                goal_id=goal_id,
                text=proposal.text,
                priority=proposal.priority,
                order_index=len(goal.tasks) if goal is not None else 0,
            )
        )
        return task.id

    async def _transition(self, transition: TaskTransition) -> str:
        try:
            action = TransitionAction(transition.action)
        except ValueError:
            raise _Skip(f"unknown action '{transition.action}'") from None

        if action is TransitionAction.COMPLETE:
            patch = TaskPatch(is_completed=True)
        elif action is TransitionAction.UPDATE_PRIORITY:
            if transition.new_priority is None:
                raise _Skip("no new priority given")
            patch = TaskPatch(priority=transition.new_priority)
        else:
            patch = TaskPatch(is_today=True)

        task = await self._controller.update_task(transition.task_id, patch)
        return task.id

    async def _append_context(self, append: ContextAppend) -> str:
        addition = append.context_to_add.strip()
        if not addition:
            raise _Skip("nothing to append")
        if append.track_id == UNRESOLVED:
            raise _Skip("target track is unresolved")
        track = self._controller.find_track(append.track_id)
        if track is None:
            raise _Skip("track is not loaded")

        updated = await self._controller.update_track(
            track.id, TrackPatch(context=append_context(track.context, addition))
        )
        return updated.id


__all__ = ["BatchItem", "BatchReport", "CONTEXT_SEPARATOR", "SuggestionApplier", "append_context"]
