"""FastMCP server bootstrap for FocusFlow."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastmcp import FastMCP

from . import __version__
from .config import FocusFlowSettings, get_settings
from .overlay import OverlayStore
from .remote import EntityStore, RemoteClient
from .suggestions import SuggestionApplier
from .sync import SyncController
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the FocusFlow server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[FocusFlowSettings] = None,
    remote: EntityStore | None = None,
    overlay: OverlayStore | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server wired to the entity store and overlay."""

    settings = settings or get_settings()
    remote = remote if remote is not None else RemoteClient.from_settings(settings)
    overlay = overlay if overlay is not None else OverlayStore.from_path(settings.overlay_path)

    controller = SyncController(remote, overlay, prune_on_refresh=settings.prune_on_refresh)
    applier = SuggestionApplier(controller)

    server = FastMCP(
        name="FocusFlow MCP",
        instructions=(
            "FocusFlow organizes work into tracks, goals and tasks. Remote fields live in "
            "the FocusFlow API; colors, notes, context, descriptions and ordering are kept "
            "in a local overlay. Call refresh before reading, and apply advisory "
            "suggestions with apply_suggestions."
        ),
    )

    handles = register_tools(server, controller=controller, applier=applier)

    def status_resource() -> str:
        """Return a JSON string summarizing the owned state and overlay."""

        state = controller.state
        goal_count = sum(len(track.goals) for track in state.tracks)
        task_count = sum(len(goal.tasks) for track in state.tracks for goal in track.goals)
        document = overlay.snapshot()

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "api_base_url": settings.api_base_url,
            "state": {
                "is_loading": state.is_loading,
                "is_refreshing": state.is_refreshing,
                "tracks": len(state.tracks),
                "goals": goal_count,
                "tasks": task_count,
                "today": len(state.today),
            },
            "overlay": {
                "path": str(settings.overlay_path),
                "version": document.version,
                "last_sync": document.last_sync.isoformat(),
                "records": {
                    "tracks": len(document.tracks),
                    "goals": len(document.goals),
                    "tasks": len(document.tasks),
                },
                "prune_on_refresh": settings.prune_on_refresh,
            },
            "session": state.session.model_dump(mode="json"),
        }
        return json.dumps(payload)

    server.resource(
        "resource://focusflow/status",
        name="focusflow_status",
        description="Provides the current sync status for the FocusFlow MCP server.",
        mime_type="application/json",
    )(status_resource)

    setattr(server, "controller", controller)
    setattr(server, "overlay_store", overlay)
    setattr(server, "remote_client", remote)
    setattr(server, "tool_handles", handles)
    setattr(server, "status_resource", status_resource)
    return server


def main() -> None:
    """Entry point for running the FocusFlow MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching FocusFlow MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "api_base_url": settings.api_base_url,
            "overlay_path": str(settings.overlay_path),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
