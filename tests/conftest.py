from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from focusflow.overlay import MemoryMedium, OverlayStore
from focusflow.remote import (
    ApiError,
    CreateGoalRequest,
    CreateProjectRequest,
    CreateTaskRequest,
    RemoteGoal,
    RemoteGoalWithTasks,
    RemoteProject,
    RemoteProjectWithChildren,
    RemoteTask,
    UpdateGoalRequest,
    UpdateProjectRequest,
    UpdateTaskRequest,
)
from focusflow.sync import SyncController

NOW = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)


class FakeEntityStore:
    """In-memory entity store with the same cascade rules as the real API."""

    def __init__(self) -> None:
        self.projects: dict[str, RemoteProject] = {}
        self.goals: dict[str, RemoteGoal] = {}
        self.tasks: dict[str, RemoteTask] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, Exception] = {}

    def _enter(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        failure = self.failures.pop(name, None)
        if failure is not None:
            raise failure

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def add_project(self, project_id: str, name: str) -> RemoteProject:
        project = RemoteProject(id=project_id, name=name, user_id=1, created_at=NOW, updated_at=NOW)
        self.projects[project_id] = project
        return project

    def add_goal(self, goal_id: str, project_id: str, name: str, completed: bool = False) -> RemoteGoal:
        goal = RemoteGoal(
            id=goal_id,
            project_id=project_id,
            name=name,
            completed=completed,
            created_at=NOW,
            updated_at=NOW,
        )
        self.goals[goal_id] = goal
        return goal

    def add_task(
        self,
        task_id: str,
        goal_id: str,
        name: str,
        *,
        urgency: str | None = None,
        todays_focus: bool = False,
        completed: bool = False,
    ) -> RemoteTask:
        task = RemoteTask(
            id=task_id,
            goal_id=goal_id,
            name=name,
            urgency=urgency,
            todays_focus=todays_focus,
            completed=completed,
            created_at=NOW,
            updated_at=NOW,
        )
        self.tasks[task_id] = task
        return task

    # -- reads ----------------------------------------------------------

    async def list_projects_with_children(self) -> list[RemoteProjectWithChildren]:
        self._enter("list_projects_with_children")
        result = []
        for project in self.projects.values():
            goals = [
                RemoteGoalWithTasks(
                    **goal.model_dump(),
                    tasks=[task for task in self.tasks.values() if task.goal_id == goal.id],
                )
                for goal in self.goals.values()
                if goal.project_id == project.id
            ]
            result.append(RemoteProjectWithChildren(**project.model_dump(), goals=goals))
        return result

    async def list_today_tasks(self) -> list[RemoteTask]:
        self._enter("list_today_tasks")
        return [task for task in self.tasks.values() if task.todays_focus]

    # -- projects -------------------------------------------------------

    async def create_project(self, request: CreateProjectRequest) -> RemoteProject:
        self._enter("create_project", request)
        return self.add_project(request.id, request.name)

    async def update_project(self, project_id: str, request: UpdateProjectRequest) -> RemoteProject:
        self._enter("update_project", project_id, request)
        if project_id not in self.projects:
            raise ApiError("Project not found", 404)
        updated = self.projects[project_id].model_copy(update=request.model_dump(exclude_unset=True))
        self.projects[project_id] = updated
        return updated

    async def delete_project(self, project_id: str) -> None:
        self._enter("delete_project", project_id)
        if self.projects.pop(project_id, None) is None:
            raise ApiError("Project not found", 404)
        for goal_id in [goal.id for goal in self.goals.values() if goal.project_id == project_id]:
            self._drop_goal(goal_id)

    # -- goals ----------------------------------------------------------

    async def create_goal(self, request: CreateGoalRequest) -> RemoteGoal:
        self._enter("create_goal", request)
        if request.project_id not in self.projects:
            raise ApiError("Project not found", 404)
        return self.add_goal(request.id, request.project_id, request.name)

    async def update_goal(self, goal_id: str, request: UpdateGoalRequest) -> RemoteGoal:
        self._enter("update_goal", goal_id, request)
        if goal_id not in self.goals:
            raise ApiError("Goal not found", 404)
        updated = self.goals[goal_id].model_copy(update=request.model_dump(exclude_unset=True))
        self.goals[goal_id] = updated
        return updated

    async def delete_goal(self, goal_id: str) -> None:
        self._enter("delete_goal", goal_id)
        if goal_id not in self.goals:
            raise ApiError("Goal not found", 404)
        self._drop_goal(goal_id)

    def _drop_goal(self, goal_id: str) -> None:
        self.goals.pop(goal_id, None)
        for task_id in [task.id for task in self.tasks.values() if task.goal_id == goal_id]:
            self.tasks.pop(task_id)

    # -- tasks ----------------------------------------------------------

    async def create_task(self, request: CreateTaskRequest) -> RemoteTask:
        self._enter("create_task", request)
        if request.goal_id not in self.goals:
            raise ApiError("Goal not found", 404)
        return self.add_task(
            request.id,
            request.goal_id,
            request.name,
            urgency=request.urgency,
            todays_focus=request.todays_focus,
        )

    async def update_task(self, task_id: str, request: UpdateTaskRequest) -> RemoteTask:
        self._enter("update_task", task_id, request)
        if task_id not in self.tasks:
            raise ApiError("Task not found", 404)
        updated = self.tasks[task_id].model_copy(update=request.model_dump(exclude_unset=True))
        self.tasks[task_id] = updated
        return updated

    async def delete_task(self, task_id: str) -> None:
        self._enter("delete_task", task_id)
        if self.tasks.pop(task_id, None) is None:
            raise ApiError("Task not found", 404)


class StubTool:
    def __init__(self, fn, name):
        self.fn = fn
        self.name = name


class StubServer:
    def __init__(self) -> None:
        self._tools: dict[str, StubTool] = {}

    def tool(self, *args, **kwargs):
        provided_name = None
        if args and isinstance(args[0], str):
            provided_name = args[0]
        provided_name = kwargs.get("name", provided_name)

        def decorator(fn):
            tool_name = provided_name or fn.__name__
            tool = StubTool(fn, tool_name)
            self._tools[tool_name] = tool
            return tool

        return decorator


@pytest.fixture
def remote() -> FakeEntityStore:
    return FakeEntityStore()


@pytest.fixture
def overlay() -> OverlayStore:
    return OverlayStore(MemoryMedium(), clock=lambda: NOW)


@pytest.fixture
def controller(remote: FakeEntityStore, overlay: OverlayStore) -> SyncController:
    return SyncController(remote, overlay, clock=lambda: NOW)


@pytest.fixture
def stub_server() -> StubServer:
    return StubServer()
