"""Advisory suggestion batches and their application."""

from .applier import BatchItem, BatchReport, SuggestionApplier, append_context
from .loader import SuggestionLoadError, load_suggestions, parse_suggestions
from .models import (
    UNRESOLVED,
    ContextAppend,
    ProposedGoal,
    ProposedTask,
    SuggestionBatch,
    TaskTransition,
    TransitionAction,
)

__all__ = [
    "BatchItem",
    "BatchReport",
    "ContextAppend",
    "ProposedGoal",
    "ProposedTask",
    "SuggestionApplier",
    "SuggestionBatch",
    "SuggestionLoadError",
    "TaskTransition",
    "TransitionAction",
    "UNRESOLVED",
    "append_context",
    "load_suggestions",
    "parse_suggestions",
]
