"""Paginated list synchronisation for knowledge-base views."""

from __future__ import annotations

from .config import Settings
from .coordinator import FetchCoordinator, FetchPage, ListEvents, Page
from .cursor import OffsetCursor, PaginationStyle, TokenCursor
from .errors import BackendError, ErrorKind, FetchError, NetworkError
from .query import QuerySpec
from .store import RecordStore
from .watcher import StatusWatcher, WatcherState

__all__ = [
    "Settings",
    "FetchCoordinator",
    "FetchPage",
    "ListEvents",
    "Page",
    "OffsetCursor",
    "TokenCursor",
    "PaginationStyle",
    "QuerySpec",
    "RecordStore",
    "StatusWatcher",
    "WatcherState",
    "ErrorKind",
    "FetchError",
    "NetworkError",
    "BackendError",
    "KnowledgeBaseClient",
    "HttpPageFetcher",
]


def __getattr__(name: str):  # pragma: no cover - small helper
    if name in {"KnowledgeBaseClient", "HttpPageFetcher"}:
        from .http import HttpPageFetcher, KnowledgeBaseClient

        return {"KnowledgeBaseClient": KnowledgeBaseClient, "HttpPageFetcher": HttpPageFetcher}[name]
    raise AttributeError(f"module 'pagesync' has no attribute {name}")
