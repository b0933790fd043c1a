"""Synchronization controller and its pure state transitions."""

from .controller import EntityNotFoundError, SyncController
from .state import FocusState, initial_state

__all__ = ["EntityNotFoundError", "FocusState", "SyncController", "initial_state"]
