"""Error taxonomy for list synchronisation."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """User-visible failure categories reported through ``ListEvents.on_error``."""

    NETWORK = "network"
    BACKEND = "backend"


class FetchError(Exception):
    """Base class for failures raised by a page fetch adapter."""

    kind: ErrorKind = ErrorKind.BACKEND

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NetworkError(FetchError):
    """The backend could not be reached or the transport failed (timeouts included)."""

    kind = ErrorKind.NETWORK


class BackendError(FetchError):
    """The backend answered with an application-level error envelope."""

    kind = ErrorKind.BACKEND

    def __init__(self, code: str, description: str | None = None, *, status_code: int | None = None) -> None:
        self.code = code
        self.description = description or code
        self.status_code = status_code
        super().__init__(self.description)


class StaleResponseDiscarded(Exception):
    """A response arrived for a superseded session or a cancelled fetch.

    Never surfaced to listeners; the coordinator logs it at debug level.
    """

    def __init__(self, operation: str, session: int, current: int) -> None:
        super().__init__(f"{operation} response for session {session} discarded (current {current})")
        self.operation = operation
        self.session = session
        self.current = current


class InvariantViolation(Warning):
    """Backend data broke a store invariant; the store clamps and carries on."""


__all__ = [
    "ErrorKind",
    "FetchError",
    "NetworkError",
    "BackendError",
    "StaleResponseDiscarded",
    "InvariantViolation",
]
