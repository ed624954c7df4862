"""Fetch coordination for paginated, status-polled list views."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from .cursor import Cursor, PaginationStyle, initial_cursor, next_request_cursor
from .errors import ErrorKind, FetchError, StaleResponseDiscarded
from .observability import MetricsRecorder
from .query import QuerySpec, SessionCounter
from .store import RecordStore
from .watcher import StatusWatcher

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Page(Generic[T]):
    """One page returned by a fetch adapter."""

    records: Sequence[T]
    cursor: Cursor
    total: int | None = None
    has_more: bool = False


FetchPage = Callable[[QuerySpec, Cursor, int], Awaitable[Page]]


class ListEvents:
    """Presentation callbacks; override the ones a view cares about."""

    def on_reset(self, records: Sequence[Any], total: int, has_more: bool) -> None:
        pass

    def on_append(self, records: Sequence[Any], total: int, has_more: bool) -> None:
        pass

    def on_refresh(self, records: Sequence[Any], total: int, has_more: bool) -> None:
        pass

    def on_error(self, kind: ErrorKind, message: str) -> None:
        pass

    def on_loading_change(self, initial_loading: bool, loading_more: bool) -> None:
        pass

    def on_polling_change(self, polling: bool) -> None:
        pass


@dataclass(slots=True)
class _LocalEdit:
    epoch: int
    delete: bool = False
    patches: list[Callable[[Any], Any]] = field(default_factory=list)


@dataclass(slots=True)
class _Outcome(Generic[T]):
    page: Page[T] | None = None
    error: BaseException | None = None
    cancelled: bool = False


class FetchCoordinator(Generic[T]):
    """Own one list view's query, session, cursor, store and status watcher.

    The presentation layer only calls :meth:`reset`, :meth:`load_more`,
    :meth:`refresh`, :meth:`mutate_local` and :meth:`dispose`. Every fetch runs
    in its own task so that a newer ``reset`` can cancel it; responses are also
    checked against the session they were issued under.
    """

    def __init__(
        self,
        *,
        fetch_page: FetchPage,
        key_of: Callable[[T], str],
        is_transient: Callable[[T], bool],
        pagination: PaginationStyle = PaginationStyle.OFFSET,
        poll_interval: float = 15.0,
        events: ListEvents | None = None,
        metrics: MetricsRecorder | None = None,
        name: str = "list",
    ) -> None:
        self._fetch_page = fetch_page
        self._key_of = key_of
        self._pagination = pagination
        self._events = events or ListEvents()
        self._metrics = metrics
        self._name = name
        self._sessions = SessionCounter()
        self._store: RecordStore[T] = RecordStore(key_of, pagination=pagination)
        self._watcher: StatusWatcher[T] = StatusWatcher(
            is_transient=is_transient,
            interval=poll_interval,
            on_tick=self.refresh,
            on_state_change=self._on_polling_change,
            name=name,
        )
        self._query: QuerySpec | None = None
        self._cursor: Cursor | None = None
        self._reset_task: asyncio.Task | None = None
        self._load_more_task: asyncio.Task | None = None
        self._refresh_task: asyncio.Task | None = None
        self._edit_epoch = 0
        self._local_edits: dict[str, _LocalEdit] = {}
        self._disposed = False

    # -- read-only state -------------------------------------------------

    @property
    def query(self) -> QuerySpec | None:
        return self._query

    @property
    def session(self) -> int:
        return self._sessions.current

    @property
    def cursor(self) -> Cursor | None:
        return self._cursor

    @property
    def store(self) -> RecordStore[T]:
        return self._store

    @property
    def records(self) -> tuple[T, ...]:
        return self._store.records

    @property
    def total(self) -> int:
        return self._store.total

    @property
    def has_more(self) -> bool:
        return self._store.has_more

    @property
    def watcher(self) -> StatusWatcher[T]:
        return self._watcher

    @property
    def initial_loading(self) -> bool:
        return self._reset_task is not None

    @property
    def loading_more(self) -> bool:
        return self._load_more_task is not None

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    # -- operations ------------------------------------------------------

    async def reset(self, query: QuerySpec) -> None:
        """Start a new query: drop everything in flight and load page 1."""

        if self._disposed:
            raise RuntimeError("FetchCoordinator has been disposed")

        self._cancel_inflight()
        session = self._sessions.bump()
        self._query = query
        self._cursor = initial_cursor(self._pagination, query.page_size)
        self._local_edits.clear()
        self._store.clear()
        self._watcher.evaluate(())

        task = self._spawn("reset", query, self._cursor, session)
        self._reset_task = task
        self._emit_loading()
        try:
            outcome = await self._settle(task)
        finally:
            if self._reset_task is task:
                self._reset_task = None
                self._emit_loading()

        if not self._accept("reset", session, outcome):
            return
        if outcome.error is not None:
            self._store.clear()
            self._report_error("reset", outcome.error)
            return

        page = outcome.page
        assert page is not None
        self._store.replace(page.records, page.total, page.has_more)
        self._cursor = page.cursor
        self._apply_cursor_exhaustion()
        self._publish(self._events.on_reset)

    async def load_more(self) -> None:
        """Fetch and append the next page; duplicate calls while loading are ignored."""

        if self._disposed or self._query is None or self._cursor is None:
            return
        if self._reset_task is not None or self._load_more_task is not None:
            return
        if not self._store.has_more:
            return
        request_cursor = next_request_cursor(self._cursor)
        if request_cursor is None:
            return

        query = self._query
        session = self._sessions.current
        epoch = self._edit_epoch
        task = self._spawn("load_more", query, request_cursor, session)
        self._load_more_task = task
        self._emit_loading()
        try:
            outcome = await self._settle(task)
        finally:
            if self._load_more_task is task:
                self._load_more_task = None
                self._emit_loading()

        if not self._accept("load_more", session, outcome):
            return
        if outcome.error is not None:
            self._report_error("load_more", outcome.error)
            return

        page = outcome.page
        assert page is not None
        records = self._reconcile(page.records, epoch)
        total = page.total if epoch == self._edit_epoch else self._store.total
        self._store.append(records, total, page.has_more)
        self._cursor = page.cursor
        self._apply_cursor_exhaustion()
        self._publish(self._events.on_append)

    async def refresh(self) -> None:
        """Re-fetch page 1 under the current session and replace the head window."""

        if self._disposed or self._query is None:
            return
        if self._reset_task is not None or self._refresh_task is not None:
            return

        query = self._query
        session = self._sessions.current
        epoch = self._edit_epoch
        task = self._spawn("refresh", query, initial_cursor(self._pagination, query.page_size), session)
        self._refresh_task = task
        try:
            outcome = await self._settle(task)
        finally:
            if self._refresh_task is task:
                self._refresh_task = None

        if not self._accept("refresh", session, outcome):
            return
        if outcome.error is not None:
            self._report_error("refresh", outcome.error)
            return

        page = outcome.page
        assert page is not None
        records = self._reconcile(page.records, epoch)
        # Rows deleted locally after this request went out already left the store,
        # so the head window shrinks by the same amount.
        window = max(0, query.page_size - (len(page.records) - len(records)))
        total = page.total if epoch == self._edit_epoch else None
        self._store.replace_head(records, window, total=total)
        self._publish(self._events.on_refresh)

    def mutate_local(
        self,
        key: str,
        patch: Callable[[T], T] | None = None,
        *,
        delete: bool = False,
    ) -> bool:
        """Apply a local edit immediately; older in-flight responses cannot undo it."""

        if self._disposed:
            return False
        if patch is None and not delete:
            raise ValueError("mutate_local requires a patch function or delete=True")

        self._edit_epoch += 1
        edit = self._local_edits.get(key)
        if edit is None:
            edit = _LocalEdit(epoch=self._edit_epoch)
            self._local_edits[key] = edit
        edit.epoch = self._edit_epoch
        if delete:
            edit.delete = True
            changed = self._store.remove_one(key)
        else:
            assert patch is not None
            edit.patches.append(patch)
            changed = self._store.patch_one(key, patch)
        self._watcher.evaluate(self._store.records)
        return changed

    async def dispose(self) -> None:
        """Cancel everything in flight, stop polling and release the store."""

        if self._disposed:
            return
        self._disposed = True
        self._watcher.dispose()
        tasks = self._cancel_inflight()
        if tasks:
            await asyncio.wait(tasks)
        self._store.clear()
        self._local_edits.clear()
        self._query = None
        self._cursor = None
        self._events = ListEvents()
        logger.debug("list.disposed name=%s session=%s", self._name, self._sessions.current)

    # -- internals -------------------------------------------------------

    def _spawn(self, operation: str, query: QuerySpec, cursor: Cursor, session: int) -> asyncio.Task:
        return asyncio.get_running_loop().create_task(
            self._timed_fetch(operation, query, cursor, session),
            name=f"{self._name}-{operation}-{session}",
        )

    async def _timed_fetch(self, operation: str, query: QuerySpec, cursor: Cursor, session: int) -> Page[T]:
        start = time.perf_counter()
        try:
            return await self._fetch_page(query, cursor, session)
        finally:
            if self._metrics:
                self._metrics.record_timing(
                    "list.fetch.duration",
                    time.perf_counter() - start,
                    list=self._name,
                    op=operation,
                )

    @staticmethod
    async def _settle(task: asyncio.Task) -> _Outcome:
        # Wait without letting the fetch task's own cancellation propagate here.
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            # The caller was cancelled, so the fetch it started goes too.
            task.cancel()
            raise
        if task.cancelled():
            return _Outcome(cancelled=True)
        error = task.exception()
        if error is not None:
            return _Outcome(error=error)
        return _Outcome(page=task.result())

    def _cancel_inflight(self) -> list[asyncio.Task]:
        tasks = [task for task in (self._reset_task, self._load_more_task, self._refresh_task) if task is not None]
        for task in tasks:
            task.cancel()
        self._reset_task = None
        self._load_more_task = None
        self._refresh_task = None
        return tasks

    def _accept(self, operation: str, session: int, outcome: _Outcome) -> bool:
        if outcome.cancelled or self._disposed or not self._sessions.is_current(session):
            stale = StaleResponseDiscarded(operation, session, self._sessions.current)
            logger.debug("list.%s.discarded name=%s detail=%s", operation, self._name, stale)
            self._count(operation, "discarded")
            return False
        self._count(operation, "error" if outcome.error is not None else "success")
        return True

    def _reconcile(self, records: Sequence[T], epoch: int) -> list[T]:
        """Re-apply local edits made after a response's request was issued."""

        if not self._local_edits:
            return list(records)
        reconciled: list[T] = []
        for record in records:
            edit = self._local_edits.get(self._key_of(record))
            if edit is None or edit.epoch <= epoch:
                reconciled.append(record)
                continue
            if edit.delete:
                continue
            for patch in edit.patches:
                record = patch(record)
            reconciled.append(record)
        return reconciled

    def _apply_cursor_exhaustion(self) -> None:
        # A token cursor without a token cannot fetch further, whatever the flag says.
        if self._pagination is PaginationStyle.TOKEN and getattr(self._cursor, "exhausted", False):
            if self._store.has_more:
                self._store.append((), None, False)

    def _publish(self, handler: Callable[[Sequence[T], int, bool], None]) -> None:
        records = self._store.records
        self._watcher.evaluate(records)
        if self._metrics:
            self._metrics.set_gauge("list.records", float(len(records)), list=self._name)
        try:
            handler(records, self._store.total, self._store.has_more)
        except Exception:
            logger.exception("list.listener_failed name=%s handler=%s", self._name, handler.__name__)

    def _report_error(self, operation: str, error: BaseException) -> None:
        if isinstance(error, FetchError):
            kind, message = error.kind, error.message
            logger.warning(
                "list.%s.failed name=%s kind=%s error=%s",
                operation,
                self._name,
                kind.value,
                message,
            )
        else:
            kind, message = ErrorKind.BACKEND, str(error) or error.__class__.__name__
            logger.error(
                "list.%s.failed name=%s unexpected error",
                operation,
                self._name,
                exc_info=error,
            )
        try:
            self._events.on_error(kind, message)
        except Exception:
            logger.exception("list.listener_failed name=%s handler=on_error", self._name)

    def _emit_loading(self) -> None:
        try:
            self._events.on_loading_change(self.initial_loading, self.loading_more)
        except Exception:
            logger.exception("list.listener_failed name=%s handler=on_loading_change", self._name)

    def _on_polling_change(self, polling: bool) -> None:
        self._events.on_polling_change(polling)

    def _count(self, operation: str, outcome: str) -> None:
        if self._metrics:
            self._metrics.increment("list.fetch", list=self._name, op=operation, outcome=outcome)


__all__ = ["FetchCoordinator", "FetchPage", "ListEvents", "Page"]
