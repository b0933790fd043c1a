"""Conversions between the remote urgency scale and the local priority scale."""

from __future__ import annotations

from enum import Enum
from typing import Any


class Priority(str, Enum):
    """Local task priority. ``None`` stands for "no priority"."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Urgency(str, Enum):
    """Remote task urgency as stored by the entity store."""

    LAAG = "LAAG"
    MIDDEN = "MIDDEN"
    HOOG = "HOOG"


class EnergyLevel(str, Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"


PRIORITY_TO_URGENCY: dict[Priority | None, Urgency | None] = {
    Priority.LOW: Urgency.LAAG,
    Priority.MEDIUM: Urgency.MIDDEN,
    Priority.HIGH: Urgency.HOOG,
    None: None,
}

URGENCY_TO_PRIORITY: dict[Urgency | None, Priority | None] = {
    urgency: priority for priority, urgency in PRIORITY_TO_URGENCY.items()
}


def to_remote_enum(priority: Priority | None) -> Urgency | None:
    """Map a local priority onto the remote urgency scale."""

    return PRIORITY_TO_URGENCY[priority]


def to_local_enum(urgency: Urgency | None) -> Priority | None:
    """Map a remote urgency onto the local priority scale."""

    return URGENCY_TO_PRIORITY[urgency]


def parse_priority(value: Any) -> Priority | None:
    """Leniently interpret externally supplied priority text.

    Accepts enum members, either scale's spelling in any case, and treats
    blanks and unknown words as "no priority".
    """

    if value is None or isinstance(value, Priority):
        return value
    if isinstance(value, Urgency):
        return to_local_enum(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return Priority(text.lower())
    except ValueError:
        pass
    try:
        return to_local_enum(Urgency(text.upper()))
    except ValueError:
        return None


__all__ = [
    "EnergyLevel",
    "Priority",
    "Urgency",
    "PRIORITY_TO_URGENCY",
    "URGENCY_TO_PRIORITY",
    "parse_priority",
    "to_local_enum",
    "to_remote_enum",
]
