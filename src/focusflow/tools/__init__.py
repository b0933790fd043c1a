"""Tool registration for the FocusFlow MCP server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import FastMCP

from ..mapping import EnergyLevel, parse_priority
from ..models import EntityKind, GoalDraft, TaskDraft, TrackDraft
from ..suggestions import SuggestionApplier, SuggestionBatch
from ..sync import SyncController

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    refresh: Any
    list_tracks: Any
    list_today: Any
    create_track: Any
    update_track: Any
    delete_track: Any
    create_goal: Any
    update_goal: Any
    delete_goal: Any
    create_task: Any
    update_task: Any
    delete_task: Any
    reorder: Any
    update_session: Any
    start_daily_session: Any
    switch_track: Any
    apply_suggestions: Any
    prune_overlay: Any


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json")


def register_tools(
    server: FastMCP,
    *,
    controller: SyncController,
    applier: SuggestionApplier | None = None,
) -> ToolHandles:
    """Register FocusFlow's MCP tools on the server."""

    applier = applier or SuggestionApplier(controller)

    async def _ensure_loaded() -> None:
        if controller.state.is_loading:
            await controller.refresh(initial=True)

    def _state_summary() -> dict[str, Any]:
        state = controller.state
        return {
            "tracks": [_dump(track) for track in state.tracks],
            "today": [_dump(task) for task in state.today],
            "session": _dump(state.session),
        }

    async def _refresh(initial: bool = False) -> dict[str, Any]:
        """Reload tracks, goals, tasks and today's focus from both stores."""

        await controller.refresh(initial=initial)
        _emit_log(
            "info",
            "Refreshed state",
            extra={"tracks": len(controller.tracks), "today": len(controller.today)},
        )
        return _state_summary()

    async def _list_tracks(include_completed: bool = True) -> list[dict[str, Any]]:
        await _ensure_loaded()
        tracks = [_dump(track) for track in controller.tracks]
        if not include_completed:
            for track in tracks:
                track["goals"] = [goal for goal in track["goals"] if not goal["is_completed"]]
                for goal in track["goals"]:
                    goal["tasks"] = [task for task in goal["tasks"] if not task["is_completed"]]
        return tracks

    async def _list_today() -> list[dict[str, Any]]:
        await _ensure_loaded()
        return [_dump(task) for task in controller.today]

    # -- tracks ---------------------------------------------------------

    async def _create_track(
        name: str,
        *,
        color: str | None = None,
        notes: str | None = None,
        context: str | None = None,
        order_index: int | None = None,
    ) -> dict[str, Any]:
        await _ensure_loaded()
        fields: dict[str, Any] = {"name": name, "notes": notes, "context": context}
        if color:
            fields["color"] = color
        fields["order_index"] = order_index if order_index is not None else len(controller.tracks)
        track = await controller.create_track(TrackDraft(**fields))
        _emit_log("info", "Track created", extra={"track_id": track.id})
        return _dump(track)

    async def _update_track(track_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        await _ensure_loaded()
        track = await controller.update_track(track_id, changes)
        _emit_log("info", "Track updated", extra={"track_id": track_id, "fields": sorted(changes)})
        return _dump(track)

    async def _delete_track(track_id: str) -> dict[str, Any]:
        await _ensure_loaded()
        await controller.delete_track(track_id)
        _emit_log("info", "Track deleted", extra={"track_id": track_id})
        return {"deleted": track_id, "kind": EntityKind.TRACK.value}

    # -- goals ----------------------------------------------------------

    async def _create_goal(
        track_id: str,
        name: str,
        *,
        description: str | None = None,
        order_index: int | None = None,
    ) -> dict[str, Any]:
        await _ensure_loaded()
        if order_index is None:
            track = controller.find_track(track_id)
            order_index = len(track.goals) if track is not None else 0
        goal = await controller.create_goal(
            GoalDraft(
                track_id=track_id,
                name=name,
                description=description,
                order_index=order_index,
            )
        )
        _emit_log("info", "Goal created", extra={"goal_id": goal.id, "track_id": track_id})
        return _dump(goal)

    async def _update_goal(goal_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        await _ensure_loaded()
        goal = await controller.update_goal(goal_id, changes)
        _emit_log("info", "Goal updated", extra={"goal_id": goal_id, "fields": sorted(changes)})
        return _dump(goal)

    async def _delete_goal(goal_id: str) -> dict[str, Any]:
        await _ensure_loaded()
        await controller.delete_goal(goal_id)
        _emit_log("info", "Goal deleted", extra={"goal_id": goal_id})
        return {"deleted": goal_id, "kind": EntityKind.GOAL.value}

    # -- tasks ----------------------------------------------------------

    async def _create_task(
        goal_id: str,
        text: str,
        *,
        priority: str | None = None,
        is_today: bool = False,
        description: str | None = None,
        order_index: int | None = None,
    ) -> dict[str, Any]:
        await _ensure_loaded()
        if order_index is None:
            goal = controller.find_goal(goal_id)
            order_index = len(goal.tasks) if goal is not None else 0
        task = await controller.create_task(
            TaskDraft(
                goal_id=goal_id,
                text=text,
                priority=parse_priority(priority),
                is_today=is_today,
                description=description,
                order_index=order_index,
            )
        )
        _emit_log("info", "Task created", extra={"task_id": task.id, "goal_id": goal_id})
        return _dump(task)

    async def _update_task(task_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        await _ensure_loaded()
        task = await controller.update_task(task_id, changes)
        _emit_log("info", "Task updated", extra={"task_id": task_id, "fields": sorted(changes)})
        return _dump(task)

    async def _delete_task(task_id: str) -> dict[str, Any]:
        await _ensure_loaded()
        await controller.delete_task(task_id)
        _emit_log("info", "Task deleted", extra={"task_id": task_id})
        return {"deleted": task_id, "kind": EntityKind.TASK.value}

    async def _reorder(kind: str, ordered_ids: list[str]) -> list[dict[str, Any]]:
        await _ensure_loaded()
        updated = controller.reorder(kind, ordered_ids)
        _emit_log("debug", "Reordered siblings", extra={"kind": kind, "count": len(updated)})
        return [_dump(entity) for entity in updated]

    # -- session --------------------------------------------------------

    def _update_session(changes: dict[str, Any]) -> dict[str, Any]:
        session = controller.update_session(changes)
        _emit_log("debug", "Session updated", extra={"fields": sorted(changes)})
        return _dump(session)

    def _start_daily_session(
        intention: str | None = None, energy_level: str = EnergyLevel.NORMAL.value
    ) -> dict[str, Any]:
        try:
            level = EnergyLevel(energy_level)
        except ValueError:
            allowed = [member.value for member in EnergyLevel]
            raise ValueError(
                f"Invalid energy level '{energy_level}'. Must be one of {allowed}"
            ) from None
        session = controller.start_daily_session(intention, level)
        _emit_log("info", "Daily session started", extra={"energy_level": level.value})
        return _dump(session)

    async def _switch_track(track_id: str | None = None) -> dict[str, Any]:
        await _ensure_loaded()
        session = controller.switch_track(track_id)
        _emit_log(
            "info",
            "Switched track",
            extra={"track_id": track_id, "switches": session.track_switch_count},
        )
        return _dump(session)

    # -- suggestions and maintenance ------------------------------------

    async def _apply_suggestions(batch: dict[str, Any], refresh_after: bool = True) -> dict[str, Any]:
        await _ensure_loaded()
        report = await applier.apply(SuggestionBatch.model_validate(batch))
        if refresh_after:
            await controller.refresh()
        _emit_log(
            "warning" if report.failed else "info",
            "Suggestions applied",
            extra={"applied": len(report.applied), "failed": len(report.failed)},
        )
        return report.as_dict()

    async def _prune_overlay() -> dict[str, list[str]]:
        await _ensure_loaded()
        pruned = controller.prune_overlay()
        return {kind.value: ids for kind, ids in pruned.items()}

    tool_refresh = server.tool(
        name="refresh",
        description="Reload the merged track tree, today's focus and session from both stores.",
    )(_refresh)
    tool_list_tracks = server.tool(
        name="list_tracks",
        description="List tracks with their goals and tasks, sorted by order index.",
    )(_list_tracks)
    tool_list_today = server.tool(
        name="list_today",
        description="List today's focus tasks annotated with their track and goal names.",
    )(_list_today)

    tool_create_track = server.tool(name="create_track", description="Create a track.")(_create_track)
    tool_update_track = server.tool(
        name="update_track",
        description="Update track fields (name, color, notes, context, order_index).",
    )(_update_track)
    tool_delete_track = server.tool(
        name="delete_track",
        description="Delete a track together with its goals and tasks.",
    )(_delete_track)

    tool_create_goal = server.tool(name="create_goal", description="Create a goal under a track.")(
        _create_goal
    )
    tool_update_goal = server.tool(
        name="update_goal",
        description="Update goal fields (name, is_completed, description, order_index).",
    )(_update_goal)
    tool_delete_goal = server.tool(
        name="delete_goal",
        description="Delete a goal together with its tasks.",
    )(_delete_goal)

    tool_create_task = server.tool(name="create_task", description="Create a task under a goal.")(
        _create_task
    )
    tool_update_task = server.tool(
        name="update_task",
        description=(
            "Update task fields (text, priority, is_completed, is_today, description, order_index)."
        ),
    )(_update_task)
    tool_delete_task = server.tool(name="delete_task", description="Delete a task.")(_delete_task)

    tool_reorder = server.tool(
        name="reorder",
        description="Rewrite the order of sibling tracks, goals or tasks. Local only.",
    )(_reorder)

    tool_update_session = server.tool(
        name="update_session",
        description="Merge fields into the focus session record.",
    )(_update_session)
    tool_start_daily_session = server.tool(
        name="start_daily_session",
        description="Start the day with an intention and energy level (Low, Normal, High).",
    )(_start_daily_session)
    tool_switch_track = server.tool(
        name="switch_track",
        description="Set the current track and count the switch.",
    )(_switch_track)

    tool_apply_suggestions = server.tool(
        name="apply_suggestions",
        description="Apply the selected items of an advisory suggestion batch.",
    )(_apply_suggestions)
    tool_prune_overlay = server.tool(
        name="prune_overlay",
        description="Remove local metadata for tracks, goals and tasks that no longer exist.",
    )(_prune_overlay)

    return ToolHandles(
        refresh=tool_refresh,
        list_tracks=tool_list_tracks,
        list_today=tool_list_today,
        create_track=tool_create_track,
        update_track=tool_update_track,
        delete_track=tool_delete_track,
        create_goal=tool_create_goal,
        update_goal=tool_update_goal,
        delete_goal=tool_delete_goal,
        create_task=tool_create_task,
        update_task=tool_update_task,
        delete_task=tool_delete_task,
        reorder=tool_reorder,
        update_session=tool_update_session,
        start_daily_session=tool_start_daily_session,
        switch_track=tool_switch_track,
        apply_suggestions=tool_apply_suggestions,
        prune_overlay=tool_prune_overlay,
    )


def _emit_log(level: str, message: str, *, extra: dict[str, Any] | None = None) -> None:
    log_method = getattr(logger, level, logger.info)
    log_method(message, extra=extra or {})


__all__ = ["register_tools", "ToolHandles"]
