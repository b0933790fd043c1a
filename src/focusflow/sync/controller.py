"""Orchestrates remote writes, overlay writes and state transitions.

Each mutating operation treats the remote call as its commit point: the
remote store is called first and the overlay and in-memory state are only
touched once it has confirmed. A failing remote call leaves both untouched
and the :class:`~focusflow.remote.ApiError` propagates to the caller.

Operations are not serialized against each other. Two concurrent updates of
the same entity race and the last one to complete wins in owned state, and a
``refresh`` that completes after an in-flight write replaces its result.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from ..adapter import (
    goal_create_request,
    goal_overlay_from_draft,
    merge_goal,
    merge_task,
    merge_track,
    merge_tree,
    split_goal,
    split_goal_patch,
    split_task,
    split_task_patch,
    split_track,
    split_track_patch,
    task_create_request,
    task_overlay_from_draft,
    track_create_request,
    track_overlay_from_draft,
)
from ..mapping import EnergyLevel
from ..models import (
    EntityKind,
    Goal,
    GoalDraft,
    GoalPatch,
    Task,
    TaskDraft,
    TaskPatch,
    TodayTask,
    Track,
    TrackDraft,
    TrackPatch,
)
from ..overlay.models import GoalOverlay, SessionPatch, SessionRecord, TaskOverlay, TrackOverlay
from ..overlay.store import OverlayStore
from ..remote.client import EntityStore
from . import state as transitions
from .state import FocusState

logger = logging.getLogger(__name__)


class EntityNotFoundError(RuntimeError):
    """Raised when an operation targets an entity missing from owned state."""

    def __init__(self, kind: EntityKind, entity_id: str) -> None:
        super().__init__(f"{kind.value.capitalize()} '{entity_id}' not found")
        self.kind = kind
        self.entity_id = entity_id


def _coerce(model: type, value: Any) -> Any:
    if isinstance(value, model):
        return value
    return model.model_validate(dict(value))


def _coerce_kind(kind: EntityKind | str) -> EntityKind:
    return kind if isinstance(kind, EntityKind) else EntityKind(kind)


class SyncController:
    """Owns the merged tree, the today working set and the session mirror."""

    def __init__(
        self,
        remote: EntityStore,
        overlay: OverlayStore,
        *,
        prune_on_refresh: bool = False,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._remote = remote
        self._overlay = overlay
        self._prune_on_refresh = prune_on_refresh
        # cascade deletes only reach descendants in owned state; the rest
        # is pruned after the next successful refresh
        self._prune_pending = False
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._state = transitions.initial_state(overlay.get_session())

    @property
    def state(self) -> FocusState:
        return self._state

    @property
    def tracks(self) -> tuple[Track, ...]:
        return self._state.tracks

    @property
    def today(self) -> tuple[TodayTask, ...]:
        return self._state.today

    @property
    def session(self) -> SessionRecord:
        return self._state.session

    @property
    def overlay(self) -> OverlayStore:
        return self._overlay

    # -- lookups --------------------------------------------------------

    def find_track(self, track_id: str) -> Track | None:
        return transitions.find_track(self._state.tracks, track_id)

    def find_goal(self, goal_id: str) -> Goal | None:
        return transitions.find_goal(self._state.tracks, goal_id)

    def find_task(self, task_id: str) -> Task | None:
        return transitions.find_task(self._state.tracks, task_id)

    # -- refresh --------------------------------------------------------

    async def refresh(self, initial: bool = False) -> FocusState:
        """Rebuild the whole owned state from both stores.

        On failure the previous tree is kept and the error is re-raised.
        """

        was_loading = self._state.is_loading
        flag = "is_loading" if initial else "is_refreshing"
        self._state = replace(self._state, **{flag: True})
        try:
            document = self._overlay.snapshot()
            projects, today_remote = await self._fetch_remote()
            tracks = merge_tree(projects, document.tracks, document.goals, document.tasks)
            today = transitions.resolve_today(
                (merge_task(task, document.tasks.get(task.id)) for task in today_remote),
                tracks,
            )
        except Exception:
            # a tree that was never loaded stays unloaded
            self._state = replace(self._state, is_loading=was_loading, is_refreshing=False)
            logger.warning("Refresh failed; keeping previous state", exc_info=True)
            raise

        self._state = transitions.replace_tree(self._state, tracks, today, document.session)
        logger.info(
            "Refreshed focus state",
            extra={"tracks": len(tracks), "today": len(today), "initial": initial},
        )
        if self._prune_on_refresh or self._prune_pending:
            self.prune_overlay()
            self._prune_pending = False
        return self._state

    async def _fetch_remote(self) -> tuple[list[Any], list[Any]]:
        results = await asyncio.gather(
            self._remote.list_projects_with_children(),
            self._remote.list_today_tasks(),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        projects, today_remote = results
        return projects, today_remote

    def prune_overlay(self) -> dict[EntityKind, list[str]]:
        """Remove overlay records whose entity is absent from the loaded tree."""

        if self._state.is_loading:
            raise RuntimeError("Cannot prune the overlay before the first successful refresh")
        tracks = self._state.tracks
        valid = {
            EntityKind.TRACK: [track.id for track in tracks],
            EntityKind.GOAL: [goal.id for track in tracks for goal in track.goals],
            EntityKind.TASK: [
                task.id for track in tracks for goal in track.goals for task in goal.tasks
            ],
        }
        return self._overlay.prune_orphans(valid)

    # -- create ---------------------------------------------------------

    async def create_track(self, draft: TrackDraft | Mapping[str, Any]) -> Track:
        draft = _coerce(TrackDraft, draft)
        remote = await self._remote.create_project(track_create_request(draft))
        overlay = track_overlay_from_draft(draft)
        track = merge_track(remote, overlay)
        self._overlay.put(EntityKind.TRACK, track.id, overlay)
        self._state = transitions.insert_track(self._state, track)
        logger.info("Created track", extra={"track_id": track.id})
        return track

    async def create_goal(self, draft: GoalDraft | Mapping[str, Any]) -> Goal:
        draft = _coerce(GoalDraft, draft)
        remote = await self._remote.create_goal(goal_create_request(draft))
        overlay = goal_overlay_from_draft(draft)
        goal = merge_goal(remote, overlay)
        self._overlay.put(EntityKind.GOAL, goal.id, overlay)
        self._state = transitions.insert_goal(self._state, goal)
        logger.info("Created goal", extra={"goal_id": goal.id, "track_id": goal.track_id})
        return goal

    async def create_task(self, draft: TaskDraft | Mapping[str, Any]) -> Task:
        draft = _coerce(TaskDraft, draft)
        remote = await self._remote.create_task(task_create_request(draft))
        overlay = task_overlay_from_draft(draft)
        task = merge_task(remote, overlay)
        self._overlay.put(EntityKind.TASK, task.id, overlay)
        self._state = transitions.insert_task(self._state, task)
        logger.info("Created task", extra={"task_id": task.id, "goal_id": task.goal_id})
        return task

    async def create(self, kind: EntityKind | str, draft: Any) -> Track | Goal | Task:
        return await getattr(self, f"create_{_coerce_kind(kind).value}")(draft)

    # -- update ---------------------------------------------------------

    async def update_track(self, track_id: str, patch: TrackPatch | Mapping[str, Any]) -> Track:
        patch = _coerce(TrackPatch, patch)
        request, local = split_track_patch(patch)
        current = self.find_track(track_id)

        if request.is_empty():
            if current is None:
                raise EntityNotFoundError(EntityKind.TRACK, track_id)
            remote, overlay = split_track(current)
        else:
            remote = await self._remote.update_project(track_id, request)
            if current is not None:
                overlay = split_track(current)[1]
            else:
                overlay = self._overlay.get(EntityKind.TRACK, track_id) or TrackOverlay()

        overlay = overlay.model_copy(update=local)
        track = merge_track(remote, overlay, current.goals if current is not None else ())
        self._overlay.put(EntityKind.TRACK, track.id, overlay)
        if current is not None:
            self._state = transitions.replace_track(self._state, track)
        logger.info("Updated track", extra={"track_id": track.id, "fields": sorted(patch.changes())})
        return track

    async def update_goal(self, goal_id: str, patch: GoalPatch | Mapping[str, Any]) -> Goal:
        patch = _coerce(GoalPatch, patch)
        request, local = split_goal_patch(patch)
        current = self.find_goal(goal_id)

        if request.is_empty():
            if current is None:
                raise EntityNotFoundError(EntityKind.GOAL, goal_id)
            remote, overlay = split_goal(current)
        else:
            remote = await self._remote.update_goal(goal_id, request)
            if current is not None:
                overlay = split_goal(current)[1]
            else:
                overlay = self._overlay.get(EntityKind.GOAL, goal_id) or GoalOverlay()

        overlay = overlay.model_copy(update=local)
        goal = merge_goal(remote, overlay, current.tasks if current is not None else ())
        self._overlay.put(EntityKind.GOAL, goal.id, overlay)
        if current is not None:
            self._state = transitions.replace_goal(self._state, goal)
        logger.info("Updated goal", extra={"goal_id": goal.id, "fields": sorted(patch.changes())})
        return goal

    async def update_task(self, task_id: str, patch: TaskPatch | Mapping[str, Any]) -> Task:
        patch = _coerce(TaskPatch, patch)
        request, local = split_task_patch(patch)
        current = self.find_task(task_id)

        if request.is_empty():
            if current is None:
                raise EntityNotFoundError(EntityKind.TASK, task_id)
            remote, overlay = split_task(current)
        else:
            remote = await self._remote.update_task(task_id, request)
            if current is not None:
                overlay = split_task(current)[1]
            else:
                overlay = self._overlay.get(EntityKind.TASK, task_id) or TaskOverlay()

        overlay = overlay.model_copy(update=local)
        task = merge_task(remote, overlay)
        self._overlay.put(EntityKind.TASK, task.id, overlay)
        if current is not None:
            self._state = transitions.replace_task(self._state, task)
        logger.info("Updated task", extra={"task_id": task.id, "fields": sorted(patch.changes())})
        return task

    async def update(
        self, kind: EntityKind | str, entity_id: str, patch: Any
    ) -> Track | Goal | Task:
        return await getattr(self, f"update_{_coerce_kind(kind).value}")(entity_id, patch)

    # -- delete ---------------------------------------------------------

    async def delete_track(self, track_id: str) -> None:
        await self._remote.delete_project(track_id)
        removed = transitions.collect_subtree(self._state.tracks, EntityKind.TRACK, track_id)
        self._overlay.delete_many(removed)
        self._prune_pending = True
        self._state = transitions.remove_track(self._state, track_id)
        logger.info(
            "Deleted track",
            extra={
                "track_id": track_id,
                "goals": len(removed[EntityKind.GOAL]),
                "tasks": len(removed[EntityKind.TASK]),
            },
        )

    async def delete_goal(self, goal_id: str) -> None:
        await self._remote.delete_goal(goal_id)
        removed = transitions.collect_subtree(self._state.tracks, EntityKind.GOAL, goal_id)
        self._overlay.delete_many(removed)
        self._prune_pending = True
        self._state = transitions.remove_goal(self._state, goal_id)
        logger.info("Deleted goal", extra={"goal_id": goal_id, "tasks": len(removed[EntityKind.TASK])})

    async def delete_task(self, task_id: str) -> None:
        await self._remote.delete_task(task_id)
        self._overlay.delete(EntityKind.TASK, task_id)
        self._state = transitions.remove_task(self._state, task_id)
        logger.info("Deleted task", extra={"task_id": task_id})

    async def delete(self, kind: EntityKind | str, entity_id: str) -> None:
        await getattr(self, f"delete_{_coerce_kind(kind).value}")(entity_id)

    # -- ordering -------------------------------------------------------

    def reorder(self, kind: EntityKind | str, ordered_ids: Sequence[str]) -> list[Track | Goal | Task]:
        """Assign ``order_index`` 0..n-1 following ``ordered_ids``.

        Only the overlay changes; nothing is sent to the remote store.
        """

        kind = _coerce_kind(kind)
        finder = {
            EntityKind.TRACK: self.find_track,
            EntityKind.GOAL: self.find_goal,
            EntityKind.TASK: self.find_task,
        }[kind]
        splitter = {
            EntityKind.TRACK: split_track,
            EntityKind.GOAL: split_goal,
            EntityKind.TASK: split_task,
        }[kind]
        replacer = {
            EntityKind.TRACK: transitions.replace_track,
            EntityKind.GOAL: transitions.replace_goal,
            EntityKind.TASK: transitions.replace_task,
        }[kind]

        current = []
        for entity_id in ordered_ids:
            entity = finder(entity_id)
            if entity is None:
                raise EntityNotFoundError(kind, entity_id)
            current.append(entity)

        updated = [
            entity.model_copy(update={"order_index": index}) for index, entity in enumerate(current)
        ]
        self._overlay.put_many(kind, {entity.id: splitter(entity)[1] for entity in updated})
        state = self._state
        for entity in updated:
            state = replacer(state, entity)
        self._state = state
        return updated

    # -- session --------------------------------------------------------

    def update_session(self, patch: SessionPatch | Mapping[str, Any]) -> SessionRecord:
        session = self._overlay.update_session(patch)
        self._state = transitions.with_session(self._state, session)
        return session

    def start_daily_session(
        self,
        intention: str | None = None,
        energy_level: EnergyLevel | str = EnergyLevel.NORMAL,
    ) -> SessionRecord:
        now = self._clock()
        return self.update_session(
            SessionPatch(
                daily_intention=(intention or "").strip() or None,
                energy_level=EnergyLevel(energy_level),
                session_start_time=now,
                last_activity=now,
            )
        )

    def switch_track(self, track_id: str | None) -> SessionRecord:
        if track_id is not None and self.find_track(track_id) is None:
            raise EntityNotFoundError(EntityKind.TRACK, track_id)
        switches = self._overlay.get_session().track_switch_count
        return self.update_session(
            SessionPatch(
                current_track_id=track_id,
                track_switch_count=switches + 1,
                last_activity=self._clock(),
            )
        )


__all__ = ["EntityNotFoundError", "SyncController"]
