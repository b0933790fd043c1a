"""Durable overlay of local-only entity attributes and the session record."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Protocol

from pydantic import BaseModel, ValidationError

from ..models import EntityKind
from .models import (
    OVERLAY_TYPES,
    OVERLAY_VERSION,
    OverlayDocument,
    OverlayRecord,
    SessionPatch,
    SessionRecord,
)

logger = logging.getLogger(__name__)


class OverlayImportError(RuntimeError):
    """Raised when an imported overlay document cannot be parsed."""


class OverlayMedium(Protocol):
    """Protocol for the key-value medium holding the serialized overlay."""

    def read(self) -> str | None:
        ...

    def write(self, data: str) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryMedium:
    """Keeps the serialized overlay in memory."""

    def __init__(self, initial: str | None = None) -> None:
        self.data = initial
        self.writes = 0

    def read(self) -> str | None:
        return self.data

    def write(self, data: str) -> None:
        self.data = data
        self.writes += 1

    def clear(self) -> None:
        self.data = None


class JsonFileMedium:
    """Stores the serialized overlay in a single JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> str | None:
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, data: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(data)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


def _coerce_kind(kind: EntityKind | str) -> EntityKind:
    return kind if isinstance(kind, EntityKind) else EntityKind(kind)


class OverlayStore:
    """Read and write overlay records through an injected medium.

    The overlay is a cache of client-only attributes, not a source of truth:
    a stored document that cannot be parsed, fails validation or carries a
    different version is discarded in favour of an empty document.
    Every call goes straight to the medium; nothing is cached in between.
    """

    def __init__(
        self,
        medium: OverlayMedium | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._medium = medium if medium is not None else MemoryMedium()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_path(cls, path: Path, **kwargs: Any) -> "OverlayStore":
        return cls(JsonFileMedium(path), **kwargs)

    @property
    def medium(self) -> OverlayMedium:
        return self._medium

    # -- document level -------------------------------------------------

    def _default_document(self) -> OverlayDocument:
        return OverlayDocument(last_sync=self._clock())

    def _load(self) -> OverlayDocument:
        try:
            raw = self._medium.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Cannot read overlay document, using defaults", extra={"error": str(exc)})
            return self._default_document()
        if not raw:
            return self._default_document()

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Discarding unreadable overlay document", extra={"error": str(exc)})
            return self._default_document()

        if not isinstance(payload, dict):
            logger.warning("Discarding overlay document with unexpected shape")
            return self._default_document()

        if payload.get("version") != OVERLAY_VERSION:
            logger.warning(
                "Overlay version mismatch, resetting to defaults",
                extra={"found": payload.get("version"), "expected": OVERLAY_VERSION},
            )
            return self._default_document()

        try:
            return OverlayDocument.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "Discarding invalid overlay document",
                extra={"error_count": exc.error_count()},
            )
            return self._default_document()

    def _save(self, document: OverlayDocument) -> None:
        document.last_sync = self._clock()
        self._medium.write(document.model_dump_json(by_alias=True, indent=2))

    def snapshot(self) -> OverlayDocument:
        """Return the whole overlay document as currently stored."""

        return self._load()

    def clear(self) -> None:
        self._medium.clear()

    def export_json(self) -> str:
        return self._load().model_dump_json(by_alias=True, indent=2)

    def import_json(self, text: str) -> OverlayDocument:
        """Replace the stored overlay with an exported document."""

        try:
            document = OverlayDocument.model_validate_json(text)
        except ValidationError as exc:
            raise OverlayImportError(f"Invalid overlay document: {exc}") from exc
        if document.version != OVERLAY_VERSION:
            raise OverlayImportError(
                f"Unsupported overlay version {document.version}; expected {OVERLAY_VERSION}"
            )
        self._save(document)
        return document

    # -- entity records -------------------------------------------------

    def get(self, kind: EntityKind | str, entity_id: str) -> OverlayRecord | None:
        return self._load().records(_coerce_kind(kind)).get(entity_id)

    def get_many(self, kind: EntityKind | str, entity_ids: Iterable[str]) -> dict[str, OverlayRecord]:
        records = self._load().records(_coerce_kind(kind))
        return {entity_id: records[entity_id] for entity_id in entity_ids if entity_id in records}

    @staticmethod
    def _coerce_record(
        kind: EntityKind, record: OverlayRecord | Mapping[str, Any]
    ) -> OverlayRecord:
        expected = OVERLAY_TYPES[kind]
        if isinstance(record, expected):
            return record.model_copy()
        if isinstance(record, BaseModel):
            return expected.model_validate(record.model_dump())
        return expected.model_validate(dict(record))

    def put(
        self,
        kind: EntityKind | str,
        entity_id: str,
        record: OverlayRecord | Mapping[str, Any],
    ) -> OverlayRecord:
        kind = _coerce_kind(kind)
        value = self._coerce_record(kind, record)
        document = self._load()
        document.records(kind)[entity_id] = value
        self._save(document)
        return value

    def put_many(
        self,
        kind: EntityKind | str,
        records: Mapping[str, OverlayRecord | Mapping[str, Any]],
    ) -> None:
        """Write several records of one kind with a single write."""

        kind = _coerce_kind(kind)
        values = {entity_id: self._coerce_record(kind, record) for entity_id, record in records.items()}
        document = self._load()
        document.records(kind).update(values)
        self._save(document)

    def delete(self, kind: EntityKind | str, entity_id: str) -> bool:
        document = self._load()
        removed = document.records(_coerce_kind(kind)).pop(entity_id, None) is not None
        if removed:
            self._save(document)
        return removed

    def delete_many(self, ids_by_kind: Mapping[EntityKind | str, Iterable[str]]) -> int:
        """Delete several records across kinds with a single write."""

        document = self._load()
        removed = 0
        for kind, entity_ids in ids_by_kind.items():
            records = document.records(_coerce_kind(kind))
            for entity_id in entity_ids:
                if records.pop(entity_id, None) is not None:
                    removed += 1
        if removed:
            self._save(document)
        return removed

    def prune_orphans(
        self, valid_ids_by_kind: Mapping[EntityKind | str, Iterable[str]]
    ) -> dict[EntityKind, list[str]]:
        """Drop every record whose id is not listed as valid for its kind.

        Kinds missing from the mapping are left alone.
        """

        document = self._load()
        pruned: dict[EntityKind, list[str]] = {}
        for kind, valid_ids in valid_ids_by_kind.items():
            kind = _coerce_kind(kind)
            keep = set(valid_ids)
            records = document.records(kind)
            stale = [entity_id for entity_id in records if entity_id not in keep]
            for entity_id in stale:
                del records[entity_id]
            pruned[kind] = stale

        if any(pruned.values()):
            self._save(document)
            logger.info(
                "Pruned orphaned overlay records",
                extra={kind.value: len(ids) for kind, ids in pruned.items()},
            )
        return pruned

    # -- session --------------------------------------------------------

    def get_session(self) -> SessionRecord:
        return self._load().session

    def set_session(self, session: SessionRecord) -> SessionRecord:
        document = self._load()
        document.session = session.model_copy()
        self._save(document)
        return document.session

    def update_session(self, patch: SessionPatch | Mapping[str, Any]) -> SessionRecord:
        """Shallow-merge the given fields into the stored session."""

        if not isinstance(patch, SessionPatch):
            patch = SessionPatch.model_validate(dict(patch))
        document = self._load()
        merged = {**document.session.model_dump(), **patch.changes()}
        document.session = SessionRecord.model_validate(merged)
        self._save(document)
        return document.session


__all__ = [
    "JsonFileMedium",
    "MemoryMedium",
    "OverlayImportError",
    "OverlayMedium",
    "OverlayStore",
]
