"""Merge remote records with overlay records, and split views back apart.

Field routing is static: a field is remote-resident or local-only by name,
never by value. The tables below are the single source for that routing.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence, TypeVar

from .mapping import to_local_enum, to_remote_enum
from .models import (
    Goal,
    GoalDraft,
    GoalPatch,
    Task,
    TaskDraft,
    TaskPatch,
    Track,
    TrackDraft,
    TrackPatch,
)
from .overlay.models import GoalOverlay, TaskOverlay, TrackOverlay
from .remote.models import (
    CreateGoalRequest,
    CreateProjectRequest,
    CreateTaskRequest,
    RemoteGoal,
    RemoteProject,
    RemoteProjectWithChildren,
    RemoteTask,
    UpdateGoalRequest,
    UpdateProjectRequest,
    UpdateTaskRequest,
)

# view field -> remote wire field (by python name)
TRACK_REMOTE_FIELDS = {"name": "name"}
GOAL_REMOTE_FIELDS = {"name": "name", "is_completed": "completed"}
TASK_REMOTE_FIELDS = {
    "text": "name",
    "priority": "urgency",
    "is_completed": "completed",
    "is_today": "todays_focus",
}

TRACK_LOCAL_FIELDS = frozenset({"color", "notes", "context", "order_index"})
GOAL_LOCAL_FIELDS = frozenset({"description", "order_index"})
TASK_LOCAL_FIELDS = frozenset({"description", "order_index"})

_Ordered = TypeVar("_Ordered")


def sort_by_order_index(items: Iterable[_Ordered]) -> list[_Ordered]:
    """Stable ascending sort on ``order_index``; ties keep their input order."""

    return sorted(items, key=lambda item: item.order_index)


def _dedupe_by_id(items: Sequence[Any]) -> list[Any]:
    # Last occurrence wins, first occurrence keeps its position.
    positions: dict[str, int] = {}
    result: list[Any] = []
    for item in items:
        if item.id in positions:
            result[positions[item.id]] = item
        else:
            positions[item.id] = len(result)
            result.append(item)
    return result


# ---------------------------------------------------------------------------
# Tasks


def merge_task(remote: RemoteTask, overlay: TaskOverlay | None = None) -> Task:
    overlay = overlay or TaskOverlay()
    return Task(
        id=remote.id,
        goal_id=remote.goal_id,
        text=remote.name,
        description=overlay.description,
        priority=to_local_enum(remote.urgency),
        is_completed=remote.completed,
        is_today=remote.todays_focus,
        order_index=overlay.order_index,
        created_at=remote.created_at,
        updated_at=remote.updated_at,
        completed_at=remote.completed_at,
    )


def split_task(task: Task) -> tuple[RemoteTask, TaskOverlay]:
    remote = RemoteTask(
        id=task.id,
        goal_id=task.goal_id,
        name=task.text,
        urgency=to_remote_enum(task.priority),
        completed=task.is_completed,
        todays_focus=task.is_today,
        created_at=task.created_at,
        updated_at=task.updated_at,
        completed_at=task.completed_at,
    )
    return remote, TaskOverlay(description=task.description, order_index=task.order_index)


def split_task_patch(patch: TaskPatch) -> tuple[UpdateTaskRequest, dict[str, Any]]:
    changes = patch.changes()
    remote: dict[str, Any] = {}
    for field, wire in TASK_REMOTE_FIELDS.items():
        if field in changes:
            value = changes[field]
            remote[wire] = to_remote_enum(value) if field == "priority" else value
    local = {field: value for field, value in changes.items() if field in TASK_LOCAL_FIELDS}
    return UpdateTaskRequest(**remote), local


def task_create_request(draft: TaskDraft) -> CreateTaskRequest:
    return CreateTaskRequest(
        id=draft.id,
        goal_id=draft.goal_id,
        name=draft.text,
        urgency=to_remote_enum(draft.priority),
        todays_focus=draft.is_today,
    )


def task_overlay_from_draft(draft: TaskDraft) -> TaskOverlay:
    return TaskOverlay(description=draft.description, order_index=draft.order_index)


# ---------------------------------------------------------------------------
# Goals


def merge_goal(
    remote: RemoteGoal,
    overlay: GoalOverlay | None = None,
    tasks: Sequence[Task] = (),
) -> Goal:
    overlay = overlay or GoalOverlay()
    return Goal(
        id=remote.id,
        track_id=remote.project_id,
        name=remote.name,
        description=overlay.description,
        is_completed=remote.completed,
        order_index=overlay.order_index,
        tasks=list(tasks),
        created_at=remote.created_at,
        updated_at=remote.updated_at,
        completed_at=remote.completed_at,
    )


def split_goal(goal: Goal) -> tuple[RemoteGoal, GoalOverlay]:
    remote = RemoteGoal(
        id=goal.id,
        project_id=goal.track_id,
        name=goal.name,
        completed=goal.is_completed,
        created_at=goal.created_at,
        updated_at=goal.updated_at,
        completed_at=goal.completed_at,
    )
    return remote, GoalOverlay(description=goal.description, order_index=goal.order_index)


def split_goal_patch(patch: GoalPatch) -> tuple[UpdateGoalRequest, dict[str, Any]]:
    changes = patch.changes()
    remote = {wire: changes[field] for field, wire in GOAL_REMOTE_FIELDS.items() if field in changes}
    local = {field: value for field, value in changes.items() if field in GOAL_LOCAL_FIELDS}
    return UpdateGoalRequest(**remote), local


def goal_create_request(draft: GoalDraft) -> CreateGoalRequest:
    return CreateGoalRequest(id=draft.id, project_id=draft.track_id, name=draft.name)


def goal_overlay_from_draft(draft: GoalDraft) -> GoalOverlay:
    return GoalOverlay(description=draft.description, order_index=draft.order_index)


# ---------------------------------------------------------------------------
# Tracks


def merge_track(
    remote: RemoteProject,
    overlay: TrackOverlay | None = None,
    goals: Sequence[Goal] = (),
) -> Track:
    overlay = overlay or TrackOverlay()
    return Track(
        id=remote.id,
        user_id=remote.user_id,
        name=remote.name,
        color=overlay.color,
        notes=overlay.notes,
        context=overlay.context,
        order_index=overlay.order_index,
        goals=list(goals),
        created_at=remote.created_at,
        updated_at=remote.updated_at,
    )


def split_track(track: Track) -> tuple[RemoteProject, TrackOverlay]:
    remote = RemoteProject(
        id=track.id,
        name=track.name,
        user_id=track.user_id,
        created_at=track.created_at,
        updated_at=track.updated_at,
    )
    overlay = TrackOverlay(
        color=track.color,
        notes=track.notes,
        context=track.context,
        order_index=track.order_index,
    )
    return remote, overlay


def split_track_patch(patch: TrackPatch) -> tuple[UpdateProjectRequest, dict[str, Any]]:
    changes = patch.changes()
    remote = {wire: changes[field] for field, wire in TRACK_REMOTE_FIELDS.items() if field in changes}
    local = {field: value for field, value in changes.items() if field in TRACK_LOCAL_FIELDS}
    return UpdateProjectRequest(**remote), local


def track_create_request(draft: TrackDraft) -> CreateProjectRequest:
    return CreateProjectRequest(id=draft.id, name=draft.name)


def track_overlay_from_draft(draft: TrackDraft) -> TrackOverlay:
    return TrackOverlay(
        color=draft.color,
        notes=draft.notes,
        context=draft.context,
        order_index=draft.order_index,
    )


# ---------------------------------------------------------------------------
# Trees


def merge_project_tree(
    project: RemoteProjectWithChildren,
    track_overlay: TrackOverlay | None,
    goal_overlays: dict[str, GoalOverlay],
    task_overlays: dict[str, TaskOverlay],
) -> Track:
    """Merge one nested project fetch, sorting every sibling list."""

    goals: list[Goal] = []
    for remote_goal in _dedupe_by_id(project.goals):
        tasks = [
            merge_task(remote_task, task_overlays.get(remote_task.id))
            for remote_task in _dedupe_by_id(remote_goal.tasks)
        ]
        goals.append(
            merge_goal(remote_goal, goal_overlays.get(remote_goal.id), sort_by_order_index(tasks))
        )
    return merge_track(project, track_overlay, sort_by_order_index(goals))


def merge_tree(
    projects: Sequence[RemoteProjectWithChildren],
    track_overlays: dict[str, TrackOverlay],
    goal_overlays: dict[str, GoalOverlay],
    task_overlays: dict[str, TaskOverlay],
) -> list[Track]:
    tracks = [
        merge_project_tree(project, track_overlays.get(project.id), goal_overlays, task_overlays)
        for project in _dedupe_by_id(projects)
    ]
    return sort_by_order_index(tracks)


__all__ = [
    "GOAL_LOCAL_FIELDS",
    "GOAL_REMOTE_FIELDS",
    "TASK_LOCAL_FIELDS",
    "TASK_REMOTE_FIELDS",
    "TRACK_LOCAL_FIELDS",
    "TRACK_REMOTE_FIELDS",
    "goal_create_request",
    "goal_overlay_from_draft",
    "merge_goal",
    "merge_project_tree",
    "merge_task",
    "merge_track",
    "merge_tree",
    "sort_by_order_index",
    "split_goal",
    "split_goal_patch",
    "split_task",
    "split_task_patch",
    "split_track",
    "split_track_patch",
    "task_create_request",
    "task_overlay_from_draft",
    "track_create_request",
    "track_overlay_from_draft",
]
