"""Pure transitions over the controller's owned state.

Every function takes the previous :class:`FocusState` plus an already
confirmed result and returns a new state; nothing here performs I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable

from ..adapter import sort_by_order_index
from ..models import EntityKind, Goal, Task, TodayTask, Track
from ..overlay.models import SessionRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FocusState:
    """Merged tree, today working set and session mirror."""

    tracks: tuple[Track, ...] = ()
    today: tuple[TodayTask, ...] = ()
    session: SessionRecord = field(default_factory=SessionRecord)
    is_loading: bool = True
    is_refreshing: bool = False


def initial_state(session: SessionRecord | None = None) -> FocusState:
    return FocusState(session=session or SessionRecord())


# ---------------------------------------------------------------------------
# Lookups


def find_track(tracks: Iterable[Track], track_id: str) -> Track | None:
    return next((track for track in tracks if track.id == track_id), None)


def find_goal(tracks: Iterable[Track], goal_id: str) -> Goal | None:
    for track in tracks:
        for goal in track.goals:
            if goal.id == goal_id:
                return goal
    return None


def find_task(tracks: Iterable[Track], task_id: str) -> Task | None:
    for track in tracks:
        for goal in track.goals:
            for task in goal.tasks:
                if task.id == task_id:
                    return task
    return None


def collect_subtree(
    tracks: Iterable[Track], kind: EntityKind, entity_id: str
) -> dict[EntityKind, list[str]]:
    """Return the ids removed when ``entity_id`` and its descendants go away."""

    ids: dict[EntityKind, list[str]] = {kind: [entity_id]}
    if kind is EntityKind.TRACK:
        track = find_track(tracks, entity_id)
        goals = track.goals if track is not None else []
        ids[EntityKind.GOAL] = [goal.id for goal in goals]
        ids[EntityKind.TASK] = [task.id for goal in goals for task in goal.tasks]
    elif kind is EntityKind.GOAL:
        goal = find_goal(tracks, entity_id)
        ids[EntityKind.TASK] = [task.id for task in goal.tasks] if goal is not None else []
    return ids


# ---------------------------------------------------------------------------
# Today working set


def _task_fields(task: Task) -> dict:
    return task.model_dump(include=set(Task.model_fields))


def annotate_today(task: Task, tracks: Iterable[Track]) -> TodayTask:
    """Attach ancestor names by scanning the tree.

    A task whose goal is not in the tree gets empty names rather than an error.
    """

    for track in tracks:
        for goal in track.goals:
            if goal.id == task.goal_id:
                return TodayTask(
                    **_task_fields(task),
                    track_id=track.id,
                    track_name=track.name,
                    goal_name=goal.name,
                )
    logger.debug("No ancestors found for today task", extra={"task_id": task.id})
    return TodayTask(**_task_fields(task))


def resolve_today(tasks: Iterable[Task], tracks: Iterable[Track]) -> tuple[TodayTask, ...]:
    tracks = tuple(tracks)
    return tuple(annotate_today(task, tracks) for task in tasks)


def _reflect_today(
    today: tuple[TodayTask, ...], task: Task, tracks: tuple[Track, ...]
) -> tuple[TodayTask, ...]:
    present = any(entry.id == task.id for entry in today)
    if not task.is_today:
        return tuple(entry for entry in today if entry.id != task.id) if present else today
    annotated = annotate_today(task, tracks)
    if present:
        return tuple(annotated if entry.id == task.id else entry for entry in today)
    return today + (annotated,)


# ---------------------------------------------------------------------------
# Whole-state transitions


def replace_tree(
    state: FocusState,
    tracks: Iterable[Track],
    today: Iterable[TodayTask],
    session: SessionRecord,
) -> FocusState:
    return FocusState(
        tracks=tuple(tracks),
        today=tuple(today),
        session=session,
        is_loading=False,
        is_refreshing=False,
    )


def with_session(state: FocusState, session: SessionRecord) -> FocusState:
    return replace(state, session=session)


# ---------------------------------------------------------------------------
# Tracks


def insert_track(state: FocusState, track: Track) -> FocusState:
    return replace(state, tracks=tuple(sort_by_order_index(state.tracks + (track,))))


def replace_track(state: FocusState, track: Track) -> FocusState:
    tracks = tuple(
        sort_by_order_index(track if existing.id == track.id else existing for existing in state.tracks)
    )
    today = tuple(
        entry.model_copy(update={"track_name": track.name}) if entry.track_id == track.id else entry
        for entry in state.today
    )
    return replace(state, tracks=tracks, today=today)


def remove_track(state: FocusState, track_id: str) -> FocusState:
    track = find_track(state.tracks, track_id)
    goal_ids = {goal.id for goal in track.goals} if track is not None else set()
    return replace(
        state,
        tracks=tuple(track for track in state.tracks if track.id != track_id),
        today=tuple(
            entry
            for entry in state.today
            if entry.track_id != track_id and entry.goal_id not in goal_ids
        ),
    )


# ---------------------------------------------------------------------------
# Goals


def _map_goals(state: FocusState, track_id: str, update) -> tuple[Track, ...]:
    return tuple(
        track.model_copy(update={"goals": sort_by_order_index(update(track.goals))})
        if track.id == track_id
        else track
        for track in state.tracks
    )


def insert_goal(state: FocusState, goal: Goal) -> FocusState:
    if find_track(state.tracks, goal.track_id) is None:
        logger.debug("Parent track not loaded; goal not inserted", extra={"goal_id": goal.id})
        return state
    return replace(state, tracks=_map_goals(state, goal.track_id, lambda goals: [*goals, goal]))


def replace_goal(state: FocusState, goal: Goal) -> FocusState:
    tracks = _map_goals(
        state,
        goal.track_id,
        lambda goals: [goal if existing.id == goal.id else existing for existing in goals],
    )
    today = tuple(
        entry.model_copy(update={"goal_name": goal.name}) if entry.goal_id == goal.id else entry
        for entry in state.today
    )
    return replace(state, tracks=tracks, today=today)


def remove_goal(state: FocusState, goal_id: str) -> FocusState:
    tracks = tuple(
        track.model_copy(update={"goals": [goal for goal in track.goals if goal.id != goal_id]})
        for track in state.tracks
    )
    today = tuple(entry for entry in state.today if entry.goal_id != goal_id)
    return replace(state, tracks=tracks, today=today)


# ---------------------------------------------------------------------------
# Tasks


def _map_tasks(state: FocusState, goal_id: str, update) -> tuple[Track, ...]:
    tracks: list[Track] = []
    for track in state.tracks:
        if any(goal.id == goal_id for goal in track.goals):
            goals = [
                goal.model_copy(update={"tasks": sort_by_order_index(update(goal.tasks))})
                if goal.id == goal_id
                else goal
                for goal in track.goals
            ]
            track = track.model_copy(update={"goals": goals})
        tracks.append(track)
    return tuple(tracks)


def insert_task(state: FocusState, task: Task) -> FocusState:
    if find_goal(state.tracks, task.goal_id) is None:
        logger.debug("Parent goal not loaded; task not inserted", extra={"task_id": task.id})
        return state
    tracks = _map_tasks(state, task.goal_id, lambda tasks: [*tasks, task])
    return replace(state, tracks=tracks, today=_reflect_today(state.today, task, tracks))


def replace_task(state: FocusState, task: Task) -> FocusState:
    tracks = _map_tasks(
        state,
        task.goal_id,
        lambda tasks: [task if existing.id == task.id else existing for existing in tasks],
    )
    return replace(state, tracks=tracks, today=_reflect_today(state.today, task, tracks))


def remove_task(state: FocusState, task_id: str) -> FocusState:
    tracks = tuple(
        track.model_copy(
            update={
                "goals": [
                    goal.model_copy(
                        update={"tasks": [task for task in goal.tasks if task.id != task_id]}
                    )
                    for goal in track.goals
                ]
            }
        )
        for track in state.tracks
    )
    today = tuple(entry for entry in state.today if entry.id != task_id)
    return replace(state, tracks=tracks, today=today)


__all__ = [
    "FocusState",
    "annotate_today",
    "collect_subtree",
    "find_goal",
    "find_task",
    "find_track",
    "initial_state",
    "insert_goal",
    "insert_task",
    "insert_track",
    "remove_goal",
    "remove_task",
    "remove_track",
    "replace_goal",
    "replace_task",
    "replace_track",
    "replace_tree",
    "resolve_today",
    "with_session",
]
