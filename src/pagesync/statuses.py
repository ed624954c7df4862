"""Knowledge-base document lifecycle statuses."""

from __future__ import annotations

from typing import Any, Final, Mapping

PENDING: Final[str] = "pending"
CONVERTING: Final[str] = "converting"
CHUNKING: Final[str] = "chunking"
EXTRACTING: Final[str] = "extracting"
EMBEDDING: Final[str] = "embedding"
STORING: Final[str] = "storing"
COMPLETED: Final[str] = "completed"
ERROR: Final[str] = "error"
MAINTENANCE: Final[str] = "maintenance"
RESTORING: Final[str] = "restoring"

PIPELINE_STATUSES: Final[tuple[str, ...]] = (
    PENDING,
    CONVERTING,
    CHUNKING,
    EXTRACTING,
    EMBEDDING,
    STORING,
)
TERMINAL_STATUSES: Final[frozenset[str]] = frozenset({COMPLETED, ERROR})
# Polled like the pipeline states but shown without a progress alarm.
QUIET_STATUSES: Final[frozenset[str]] = frozenset({MAINTENANCE, RESTORING})


def status_of(record: Any) -> str | None:
    """Read a ``status`` value from a mapping or an object attribute."""

    if isinstance(record, Mapping):
        value = record.get("status")
    else:
        value = getattr(record, "status", None)
    if value is None:
        return None
    return str(value).strip().lower() or None


def is_transient_status(status: str | None) -> bool:
    # Unknown or missing statuses are treated as settled so they never keep a poller alive.
    if status is None:
        return False
    return status in PIPELINE_STATUSES or status in QUIET_STATUSES


def is_quiet_status(status: str | None) -> bool:
    return status in QUIET_STATUSES


def is_transient_document(record: Any) -> bool:
    """Default ``is_transient`` predicate for document and segment rows."""

    return is_transient_status(status_of(record))


__all__ = [
    "PENDING",
    "CONVERTING",
    "CHUNKING",
    "EXTRACTING",
    "EMBEDDING",
    "STORING",
    "COMPLETED",
    "ERROR",
    "MAINTENANCE",
    "RESTORING",
    "PIPELINE_STATUSES",
    "TERMINAL_STATUSES",
    "QUIET_STATUSES",
    "status_of",
    "is_transient_status",
    "is_quiet_status",
    "is_transient_document",
]
