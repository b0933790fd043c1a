from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from focusflow.mapping import EnergyLevel, Priority, Urgency
from focusflow.models import EntityKind, GoalDraft, TaskDraft, TaskPatch, TrackDraft
from focusflow.overlay import GoalOverlay, MemoryMedium, OverlayStore, TaskOverlay, TrackOverlay
from focusflow.remote import ApiError
from focusflow.sync import EntityNotFoundError, SyncController

NOW = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)


async def seed_work_tree(controller: SyncController):
    track = await controller.create_track(TrackDraft(id="t1", name="Work", color="blue", order_index=0))
    goal = await controller.create_goal(GoalDraft(id="g1", track_id=track.id, name="Launch"))
    task = await controller.create_task(
        TaskDraft(id="k1", goal_id=goal.id, text="Write", priority=Priority.HIGH)
    )
    return track, goal, task


def test_create_update_refresh_round_trip(controller, remote) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await seed_work_tree(controller)
        return await controller.refresh()

    state = asyncio.run(scenario())

    track = state.tracks[0]
    assert track.color == "blue"
    assert track.goals[0].tasks[0].priority is Priority.HIGH
    assert remote.tasks["k1"].urgency is Urgency.HOOG


def test_create_writes_exactly_the_supplied_local_fields(controller, overlay) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await controller.create_track(
            TrackDraft(id="t1", name="Work", color="blue", notes="n", context="c", order_index=2)
        )
        await controller.create_goal(GoalDraft(id="g1", track_id="t1", name="Launch"))
        await controller.create_task(
            TaskDraft(id="k1", goal_id="g1", text="Write", description="first draft", order_index=1)
        )

    asyncio.run(scenario())

    assert overlay.get(EntityKind.TRACK, "t1") == TrackOverlay(
        color="blue", notes="n", context="c", order_index=2
    )
    assert overlay.get(EntityKind.GOAL, "g1") == GoalOverlay()
    assert overlay.get(EntityKind.TASK, "k1") == TaskOverlay(description="first draft", order_index=1)
    goal = controller.find_goal("g1")
    assert [task.id for task in goal.tasks] == ["k1"]


def test_create_failure_leaves_no_trace(controller, remote, overlay) -> None:
    remote.failures["create_project"] = ApiError("boom", 500)

    async def scenario():
        await controller.refresh(initial=True)
        await controller.create_track(TrackDraft(id="t1", name="Work"))

    with pytest.raises(ApiError):
        asyncio.run(scenario())

    assert controller.tracks == ()
    assert overlay.get(EntityKind.TRACK, "t1") is None


def test_local_only_update_never_calls_remote(controller, remote, overlay) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await seed_work_tree(controller)
        remote.calls.clear()
        return await controller.update_task("k1", {"description": "more detail"})

    task = asyncio.run(scenario())

    assert remote.calls == []
    assert task.description == "more detail"
    assert task.priority is Priority.HIGH
    assert overlay.get(EntityKind.TASK, "k1").description == "more detail"
    assert controller.find_task("k1").description == "more detail"


def test_mixed_update_adopts_remote_response(controller, remote, overlay) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await seed_work_tree(controller)
        return await controller.update_track("t1", {"name": "Job", "notes": "weekly"})

    track = asyncio.run(scenario())

    assert remote.projects["t1"].name == "Job"
    assert track.name == "Job"
    assert track.notes == "weekly"
    assert track.color == "blue"
    assert [goal.id for goal in track.goals] == ["g1"]
    assert overlay.get(EntityKind.TRACK, "t1").notes == "weekly"


def test_update_failure_is_all_or_nothing(controller, remote, overlay) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await seed_work_tree(controller)
        remote.failures["update_task"] = ApiError("conflict", 409)
        await controller.update_task("k1", {"text": "Renamed", "description": "local"})

    with pytest.raises(ApiError):
        asyncio.run(scenario())

    assert controller.find_task("k1").text == "Write"
    assert overlay.get(EntityKind.TASK, "k1").description is None


def test_local_only_update_of_unknown_entity_raises(controller, remote, overlay) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await controller.update_goal("missing", {"description": "x"})

    with pytest.raises(EntityNotFoundError):
        asyncio.run(scenario())

    assert overlay.get(EntityKind.GOAL, "missing") is None
    assert "update_goal" not in remote.call_names()


def test_task_updates_are_reflected_in_today(controller) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await seed_work_tree(controller)
        await controller.update_task("k1", TaskPatch(is_today=True))
        added = controller.today
        await controller.update_task("k1", {"priority": "low"})
        changed = controller.today
        await controller.update_task("k1", {"is_today": False})
        return added, changed, controller.today

    added, changed, removed = asyncio.run(scenario())

    assert [(entry.id, entry.track_name, entry.goal_name) for entry in added] == [
        ("k1", "Work", "Launch")
    ]
    assert changed[0].priority is Priority.LOW
    assert removed == ()


def test_delete_track_cascades_everywhere(controller, remote, overlay) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await seed_work_tree(controller)
        await controller.create_track(TrackDraft(id="t2", name="Home", order_index=1))
        await controller.update_task("k1", {"is_today": True})
        await controller.delete(EntityKind.TRACK, "t1")
        return await controller.refresh()

    state = asyncio.run(scenario())

    assert [track.id for track in state.tracks] == ["t2"]
    assert state.today == ()
    assert overlay.get(EntityKind.TRACK, "t1") is None
    assert overlay.get(EntityKind.GOAL, "g1") is None
    assert overlay.get(EntityKind.TASK, "k1") is None
    assert overlay.get(EntityKind.TRACK, "t2") is not None


def test_delete_goal_removes_tasks_and_their_overlay(controller, overlay) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await seed_work_tree(controller)
        await controller.delete_goal("g1")

    asyncio.run(scenario())

    assert controller.find_track("t1").goals == []
    assert overlay.get(EntityKind.TASK, "k1") is None


def test_delete_failure_keeps_local_state(controller, remote, overlay) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await seed_work_tree(controller)
        remote.failures["delete_task"] = ApiError("offline")
        await controller.delete_task("k1")

    with pytest.raises(ApiError):
        asyncio.run(scenario())

    assert controller.find_task("k1") is not None
    assert overlay.get(EntityKind.TASK, "k1") is not None


def test_refresh_sorts_siblings_regardless_of_fetch_order(remote, overlay) -> None:
    remote.add_project("t-late", "Later")
    remote.add_project("t-early", "Earlier")
    remote.add_goal("g-b", "t-early", "B")
    remote.add_goal("g-a", "t-early", "A")
    remote.add_task("k-2", "g-a", "Second")
    remote.add_task("k-1", "g-a", "First", todays_focus=True)
    overlay.put(EntityKind.TRACK, "t-late", TrackOverlay(order_index=3))
    overlay.put(EntityKind.TRACK, "t-early", TrackOverlay(order_index=1))
    overlay.put(EntityKind.GOAL, "g-b", GoalOverlay(order_index=2))
    overlay.put(EntityKind.TASK, "k-2", TaskOverlay(order_index=9))
    controller = SyncController(remote, overlay)

    state = asyncio.run(controller.refresh(initial=True))

    assert [track.id for track in state.tracks] == ["t-early", "t-late"]
    early = state.tracks[0]
    assert [goal.id for goal in early.goals] == ["g-a", "g-b"]
    assert [task.id for task in early.goals[0].tasks] == ["k-1", "k-2"]
    assert [(entry.id, entry.track_name, entry.goal_name) for entry in state.today] == [
        ("k-1", "Earlier", "A")
    ]


def test_refresh_failure_keeps_previous_state(controller, remote) -> None:
    remote.add_project("t1", "Work")
    asyncio.run(controller.refresh(initial=True))
    before = controller.tracks

    remote.add_project("t2", "Home")
    remote.failures["list_today_tasks"] = ApiError("timeout")
    with pytest.raises(ApiError):
        asyncio.run(controller.refresh())

    assert controller.tracks == before
    assert controller.state.is_refreshing is False
    assert controller.state.is_loading is False


def test_failed_initial_refresh_stays_unloaded_and_keeps_overlay(controller, remote, overlay) -> None:
    remote.add_project("t1", "Work")
    overlay.put(EntityKind.TRACK, "t1", TrackOverlay(color="blue", notes="keep"))
    remote.failures["list_projects_with_children"] = ApiError("offline", 503)

    with pytest.raises(ApiError):
        asyncio.run(controller.refresh(initial=True))

    assert controller.state.is_loading is True
    assert controller.state.is_refreshing is False
    with pytest.raises(RuntimeError):
        controller.prune_overlay()
    assert overlay.get(EntityKind.TRACK, "t1").notes == "keep"

    state = asyncio.run(controller.refresh(initial=True))
    assert state.is_loading is False
    assert state.tracks[0].color == "blue"


def test_refresh_waits_for_both_fetches_and_raises_the_first_error(controller, remote) -> None:
    remote.failures["list_projects_with_children"] = ApiError("projects down", 503)
    remote.failures["list_today_tasks"] = ApiError("today down", 503)

    with pytest.raises(ApiError, match="projects down"):
        asyncio.run(controller.refresh(initial=True))

    assert remote.call_names() == ["list_projects_with_children", "list_today_tasks"]
    assert remote.failures == {}


def test_delete_prunes_unseen_descendants_on_next_refresh(controller, remote, overlay) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await seed_work_tree(controller)
        remote.add_goal("g-elsewhere", "t1", "Created in another tab")
        overlay.put(EntityKind.GOAL, "g-elsewhere", GoalOverlay(description="orphan soon"))
        await controller.delete_track("t1")
        leftover = overlay.get(EntityKind.GOAL, "g-elsewhere")
        await controller.refresh()
        return leftover

    leftover = asyncio.run(scenario())

    assert leftover is not None
    assert overlay.get(EntityKind.GOAL, "g-elsewhere") is None
    assert "g-elsewhere" not in remote.goals


def test_today_task_with_unknown_goal_gets_empty_names(remote, overlay) -> None:
    remote.add_task("k-orphan", "g-gone", "Orphan", todays_focus=True)
    controller = SyncController(remote, overlay)

    state = asyncio.run(controller.refresh(initial=True))

    assert state.today[0].track_name == ""
    assert state.today[0].goal_name == ""


def test_reorder_rewrites_order_indexes_locally(controller, remote, overlay) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await controller.create_track(TrackDraft(id="a", name="A", order_index=0))
        await controller.create_track(TrackDraft(id="b", name="B", order_index=1))
        await controller.create_track(TrackDraft(id="c", name="C", order_index=2))
        remote.calls.clear()
        return controller.reorder("track", ["c", "a", "b"])

    updated = asyncio.run(scenario())

    assert [(track.id, track.order_index) for track in updated] == [("c", 0), ("a", 1), ("b", 2)]
    assert [track.id for track in controller.tracks] == ["c", "a", "b"]
    assert overlay.get(EntityKind.TRACK, "a").order_index == 1
    assert remote.calls == []


def test_reorder_unknown_id_raises_before_writing(controller, overlay) -> None:
    asyncio.run(controller.refresh(initial=True))
    writes = overlay.medium.writes

    with pytest.raises(EntityNotFoundError):
        controller.reorder(EntityKind.GOAL, ["nope"])
    assert overlay.medium.writes == writes


def test_session_operations_are_overlay_only(controller, remote, overlay) -> None:
    asyncio.run(controller.refresh(initial=True))
    remote.calls.clear()

    started = controller.start_daily_session("  Ship the release ", EnergyLevel.HIGH)
    assert started.daily_intention == "Ship the release"
    assert started.energy_level is EnergyLevel.HIGH
    assert started.session_start_time == NOW

    controller.update_session({"focus_mode": False})
    assert controller.session.focus_mode is False
    assert overlay.get_session().focus_mode is False
    assert remote.calls == []


def test_switch_track_counts_switches(controller, remote) -> None:
    remote.add_project("t1", "Work")
    asyncio.run(controller.refresh(initial=True))

    controller.switch_track("t1")
    session = controller.switch_track(None)

    assert session.current_track_id is None
    assert session.track_switch_count == 2
    assert session.last_activity == NOW
    with pytest.raises(EntityNotFoundError):
        controller.switch_track("unknown")


def test_prune_overlay_requires_loaded_state(controller) -> None:
    with pytest.raises(RuntimeError):
        controller.prune_overlay()


def test_prune_on_refresh_drops_orphaned_records(remote) -> None:
    overlay = OverlayStore(MemoryMedium())
    overlay.put(EntityKind.TRACK, "t1", TrackOverlay(color="blue"))
    overlay.put(EntityKind.TRACK, "ghost", TrackOverlay())
    overlay.put(EntityKind.TASK, "ghost-task", TaskOverlay())
    remote.add_project("t1", "Work")
    controller = SyncController(remote, overlay, prune_on_refresh=True)

    state = asyncio.run(controller.refresh(initial=True))

    assert state.tracks[0].color == "blue"
    assert overlay.get(EntityKind.TRACK, "ghost") is None
    assert overlay.get(EntityKind.TASK, "ghost-task") is None
    assert overlay.get(EntityKind.TRACK, "t1") == TrackOverlay(color="blue")


def test_generic_dispatch_by_kind(controller, remote) -> None:
    async def scenario():
        await controller.refresh(initial=True)
        await controller.create("track", {"id": "t1", "name": "Work"})
        goal = await controller.create(EntityKind.GOAL, {"id": "g1", "track_id": "t1", "name": "Launch"})
        await controller.update("goal", goal.id, {"is_completed": True})
        await controller.delete("goal", goal.id)

    asyncio.run(scenario())

    assert remote.call_names()[-3:] == ["create_goal", "update_goal", "delete_goal"]
    assert controller.find_track("t1").goals == []


def test_drafts_reject_blank_names(controller) -> None:
    with pytest.raises(ValueError):
        asyncio.run(controller.create_track({"name": "   "}))


def test_remote_update_for_entity_outside_state_uses_stored_overlay(remote, overlay) -> None:
    remote.add_project("t1", "Work")
    remote.add_goal("g1", "t1", "Launch")
    remote.add_task("k1", "g1", "Write")
    overlay.put(EntityKind.TASK, "k1", TaskOverlay(description="kept", order_index=2))
    controller = SyncController(remote, overlay, clock=lambda: NOW)

    task = asyncio.run(controller.update_task("k1", {"is_completed": True}))

    assert task.is_completed is True
    assert task.description == "kept"
    assert task.order_index == 2
    assert controller.tracks == ()

