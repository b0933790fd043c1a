"""Async HTTP client for the FocusFlow REST entity store.

All endpoints answer with a uniform envelope::

    {"success": true, "data": ...}
    {"success": false, "error": "...", "details": ...}

Anything other than a 2xx response carrying ``success: true`` is surfaced as
:class:`ApiError`.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from pydantic import TypeAdapter, ValidationError

from ..config import FocusFlowSettings
from .models import (
    CreateGoalRequest,
    CreateProjectRequest,
    CreateTaskRequest,
    HealthStatus,
    RemoteGoal,
    RemoteProject,
    RemoteProjectWithChildren,
    RemoteTask,
    UpdateGoalRequest,
    UpdateProjectRequest,
    UpdateTaskRequest,
)

logger = logging.getLogger(__name__)

_PROJECT_TREE = TypeAdapter(list[RemoteProjectWithChildren])
_PROJECT_LIST = TypeAdapter(list[RemoteProject])
_TASK_LIST = TypeAdapter(list[RemoteTask])


class ApiError(RuntimeError):
    """Raised when the entity store rejects a request or cannot be reached."""

    def __init__(self, message: str, status: int | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.details = details

    def __repr__(self) -> str:
        return f"ApiError({str(self)!r}, status={self.status!r})"


class EntityStore(Protocol):
    """Protocol for the remote entity store operations used by the controller."""

    async def list_projects_with_children(self) -> list[RemoteProjectWithChildren]:
        ...

    async def create_project(self, request: CreateProjectRequest) -> RemoteProject:
        ...

    async def update_project(self, project_id: str, request: UpdateProjectRequest) -> RemoteProject:
        ...

    async def delete_project(self, project_id: str) -> None:
        ...

    async def create_goal(self, request: CreateGoalRequest) -> RemoteGoal:
        ...

    async def update_goal(self, goal_id: str, request: UpdateGoalRequest) -> RemoteGoal:
        ...

    async def delete_goal(self, goal_id: str) -> None:
        ...

    async def create_task(self, request: CreateTaskRequest) -> RemoteTask:
        ...

    async def update_task(self, task_id: str, request: UpdateTaskRequest) -> RemoteTask:
        ...

    async def delete_task(self, task_id: str) -> None:
        ...

    async def list_today_tasks(self) -> list[RemoteTask]:
        ...


class RemoteClient:
    """Typed request/response boundary to the remote entity store."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_settings(cls, settings: FocusFlowSettings, **kwargs: Any) -> "RemoteClient":
        return cls(settings.api_base_url, timeout=settings.request_timeout, **kwargs)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "RemoteClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- transport ------------------------------------------------------

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            response = await self.client.request(method, url, json=json, params=params)
        except httpx.HTTPError as exc:
            logger.error("Entity store request failed", extra={"method": method, "url": url})
            raise ApiError(str(exc) or "Network error occurred") from exc
        return self._handle_response(response)

    @staticmethod
    def _handle_response(response: httpx.Response) -> Any:
        if not response.is_success:
            message = f"API Error: {response.status_code} {response.reason_phrase}"
            details = None
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                message = body.get("error") or message
                details = body.get("details")
            raise ApiError(message, response.status_code, details)

        if response.status_code == 204 or not response.content:
            return None

        try:
            body = response.json()
        except ValueError as exc:
            raise ApiError("Entity store returned invalid JSON", response.status_code) from exc

        if not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else None
            details = body.get("details") if isinstance(body, dict) else None
            raise ApiError(error or "Unknown API error", response.status_code, details)
        return body.get("data")

    @staticmethod
    def _parse(adapter: Any, data: Any) -> Any:
        try:
            if isinstance(adapter, TypeAdapter):
                return adapter.validate_python(data)
            return adapter.model_validate(data)
        except ValidationError as exc:
            raise ApiError(f"Unexpected entity store response: {exc}", details=exc.errors()) from exc

    # -- projects -------------------------------------------------------

    async def list_projects(self) -> list[RemoteProject]:
        data = await self._request("GET", "/projects")
        return self._parse(_PROJECT_LIST, data)

    async def list_projects_with_children(self) -> list[RemoteProjectWithChildren]:
        data = await self._request("GET", "/projects", params={"include": "goals,tasks"})
        return self._parse(_PROJECT_TREE, data)

    async def create_project(self, request: CreateProjectRequest) -> RemoteProject:
        data = await self._request("POST", "/projects", json=request.to_payload())
        return self._parse(RemoteProject, data)

    async def update_project(self, project_id: str, request: UpdateProjectRequest) -> RemoteProject:
        data = await self._request("PUT", f"/projects/{project_id}", json=request.to_payload())
        return self._parse(RemoteProject, data)

    async def delete_project(self, project_id: str) -> None:
        await self._request("DELETE", f"/projects/{project_id}")

    # -- goals ----------------------------------------------------------

    async def create_goal(self, request: CreateGoalRequest) -> RemoteGoal:
        data = await self._request("POST", "/goals", json=request.to_payload())
        return self._parse(RemoteGoal, data)

    async def update_goal(self, goal_id: str, request: UpdateGoalRequest) -> RemoteGoal:
        data = await self._request("PUT", f"/goals/{goal_id}", json=request.to_payload())
        return self._parse(RemoteGoal, data)

    async def delete_goal(self, goal_id: str) -> None:
        await self._request("DELETE", f"/goals/{goal_id}")

    # -- tasks ----------------------------------------------------------

    async def create_task(self, request: CreateTaskRequest) -> RemoteTask:
        data = await self._request("POST", "/tasks", json=request.to_payload())
        return self._parse(RemoteTask, data)

    async def update_task(self, task_id: str, request: UpdateTaskRequest) -> RemoteTask:
        data = await self._request("PUT", f"/tasks/{task_id}", json=request.to_payload())
        return self._parse(RemoteTask, data)

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}")

    async def list_today_tasks(self) -> list[RemoteTask]:
        data = await self._request("GET", "/tasks/today")
        return self._parse(_TASK_LIST, data)

    # -- health ---------------------------------------------------------

    async def health_check(self) -> HealthStatus:
        data = await self._request("GET", "/health")
        return self._parse(HealthStatus, data)


__all__ = ["ApiError", "EntityStore", "RemoteClient"]
