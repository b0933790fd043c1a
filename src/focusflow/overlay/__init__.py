"""Local overlay storage for FocusFlow."""

from .models import (
    OVERLAY_DEFAULTS,
    OVERLAY_VERSION,
    GoalOverlay,
    OverlayDocument,
    OverlayRecord,
    SessionPatch,
    SessionRecord,
    TaskOverlay,
    TrackOverlay,
)
from .store import JsonFileMedium, MemoryMedium, OverlayImportError, OverlayMedium, OverlayStore

__all__ = [
    "GoalOverlay",
    "JsonFileMedium",
    "MemoryMedium",
    "OVERLAY_DEFAULTS",
    "OVERLAY_VERSION",
    "OverlayDocument",
    "OverlayImportError",
    "OverlayMedium",
    "OverlayRecord",
    "OverlayStore",
    "SessionPatch",
    "SessionRecord",
    "TaskOverlay",
    "TrackOverlay",
]
