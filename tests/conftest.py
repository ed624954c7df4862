from __future__ import annotations

import asyncio
from typing import Any, Sequence

import pytest

from pagesync.coordinator import FetchCoordinator, ListEvents, Page
from pagesync.cursor import Cursor, OffsetCursor, PaginationStyle, TokenCursor
from pagesync.errors import ErrorKind
from pagesync.query import QuerySpec


def make_docs(count: int, *, status: str = "completed", prefix: str = "doc") -> list[dict[str, Any]]:
    return [{"id": f"{prefix}-{idx:03d}", "name": f"{prefix} {idx}", "status": status} for idx in range(count)]


class FakeBackend:
    """Scripted in-memory list endpoint.

    The page is computed when the request arrives; when ``block`` is set the
    response is held until :meth:`release` is called.
    """

    def __init__(self, records: Sequence[dict[str, Any]], *, pagination: PaginationStyle = PaginationStyle.OFFSET) -> None:
        self.records = [dict(record) for record in records]
        self.pagination = pagination
        self.calls: list[tuple[QuerySpec, Cursor, int]] = []
        self.block = False
        self.errors: list[BaseException] = []
        self.cancelled = 0
        self._gates: list[asyncio.Event] = []

    async def __call__(self, query: QuerySpec, cursor: Cursor, session: int) -> Page:
        self.calls.append((query, cursor, session))
        error = self.errors.pop(0) if self.errors else None
        page = None if error is not None else self._page(query, cursor)
        if self.block:
            gate = asyncio.Event()
            self._gates.append(gate)
            try:
                await gate.wait()
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if error is not None:
            raise error
        return page

    def release(self, count: int = 1) -> None:
        for _ in range(count):
            self._gates.pop(0).set()

    @property
    def pending(self) -> int:
        return sum(1 for gate in self._gates if not gate.is_set())

    async def wait_for_calls(self, count: int, timeout: float = 1.0) -> None:
        async def _poll() -> None:
            while len(self.calls) < count:
                await asyncio.sleep(0)

        await asyncio.wait_for(_poll(), timeout)

    def set_status(self, record_id: str, status: str) -> None:
        for record in self.records:
            if record["id"] == record_id:
                record["status"] = status

    def remove(self, record_id: str) -> None:
        self.records = [record for record in self.records if record["id"] != record_id]

    def _matching(self, query: QuerySpec) -> list[dict[str, Any]]:
        if not query.keywords:
            return list(self.records)
        needle = query.keywords.lower()
        return [record for record in self.records if needle in record["name"].lower()]

    def _page(self, query: QuerySpec, cursor: Cursor) -> Page:
        matching = self._matching(query)
        if isinstance(cursor, OffsetCursor):
            start = cursor.offset
            end = start + cursor.page_size
            chunk = [dict(record) for record in matching[start:end]]
            return Page(records=chunk, cursor=cursor, total=len(matching), has_more=end < len(matching))
        assert isinstance(cursor, TokenCursor)
        start = int(cursor.token) if cursor.token else 0
        end = start + query.page_size
        chunk = [dict(record) for record in matching[start:end]]
        token = str(end) if end < len(matching) else None
        return Page(records=chunk, cursor=TokenCursor(token=token), total=None, has_more=token is not None)


class RecordingEvents(ListEvents):
    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []
        self.errors: list[tuple[ErrorKind, str]] = []
        self.loading: list[tuple[bool, bool]] = []
        self.polling: list[bool] = []

    def on_reset(self, records, total, has_more) -> None:
        self.events.append(("reset", ([r["id"] for r in records], total, has_more)))

    def on_append(self, records, total, has_more) -> None:
        self.events.append(("append", ([r["id"] for r in records], total, has_more)))

    def on_refresh(self, records, total, has_more) -> None:
        self.events.append(("refresh", ([r["id"] for r in records], total, has_more)))

    def on_error(self, kind, message) -> None:
        self.errors.append((kind, message))

    def on_loading_change(self, initial_loading, loading_more) -> None:
        self.loading.append((initial_loading, loading_more))

    def on_polling_change(self, polling) -> None:
        self.polling.append(polling)

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def is_processing(record: dict[str, Any]) -> bool:
    return record.get("status") not in {"completed", "error"}


def build_coordinator(
    backend: FakeBackend,
    *,
    events: ListEvents | None = None,
    poll_interval: float = 60.0,
    **kwargs: Any,
) -> FetchCoordinator:
    return FetchCoordinator(
        fetch_page=backend,
        key_of=lambda record: record["id"],
        is_transient=is_processing,
        pagination=backend.pagination,
        poll_interval=poll_interval,
        events=events,
        **kwargs,
    )


@pytest.fixture()
def events() -> RecordingEvents:
    return RecordingEvents()
