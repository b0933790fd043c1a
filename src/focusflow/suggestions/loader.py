"""Read suggestion batches from YAML or JSON files."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import SuggestionBatch

logger = logging.getLogger(__name__)


class SuggestionLoadError(RuntimeError):
    """Raised when a suggestion file cannot be read or validated."""


def parse_suggestions(text: str, *, source: str = "<string>") -> SuggestionBatch:
    # JSON is a subset of YAML, so one parser covers both formats.
    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SuggestionLoadError(f"Failed to parse suggestions from {source}: {exc}") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise SuggestionLoadError(f"Suggestions in {source} must be a mapping")

    try:
        batch = SuggestionBatch.model_validate(payload)
    except ValidationError as exc:
        raise SuggestionLoadError(f"Invalid suggestions in {source}: {exc}") from exc

    logger.debug(
        "Loaded suggestion batch",
        extra={"source": source, "selected": batch.selected_count()},
    )
    return batch


def load_suggestions(path: Path | str) -> SuggestionBatch:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SuggestionLoadError(f"Failed to read suggestions file {path}: {exc}") from exc
    return parse_suggestions(text, source=str(path))


__all__ = ["SuggestionLoadError", "load_suggestions", "parse_suggestions"]
