"""Polling state machine that re-fetches while records are still processing."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Generic, Iterable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class WatcherState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"


@dataclass(slots=True)
class _PollingHandle:
    task: asyncio.Task


class StatusWatcher(Generic[T]):
    """Arm a periodic tick while any record is transient, disarm once none are.

    The watcher has exactly two states. ``evaluate`` is called after every store
    mutation; entering the state it is already in does nothing, so a tick can
    never be armed twice.
    """

    def __init__(
        self,
        *,
        is_transient: Callable[[T], bool],
        interval: float,
        on_tick: Callable[[], Awaitable[None]],
        on_state_change: Callable[[bool], None] | None = None,
        name: str = "list",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0 (got {interval})")
        self._is_transient = is_transient
        self._interval = interval
        self._on_tick = on_tick
        self._on_state_change = on_state_change
        self._name = name
        self._handle: _PollingHandle | None = None
        self._ticks = 0
        self._transient_count = 0

    @property
    def state(self) -> WatcherState:
        return WatcherState.POLLING if self._handle is not None else WatcherState.IDLE

    @property
    def polling(self) -> bool:
        return self._handle is not None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def transient_count(self) -> int:
        return self._transient_count

    def evaluate(self, records: Iterable[T]) -> WatcherState:
        """Recount transient records and move to the matching state."""

        self._transient_count = sum(1 for record in records if self._is_transient(record))
        if self._transient_count:
            self._arm()
        else:
            self._disarm()
        return self.state

    def dispose(self) -> None:
        self._disarm()

    def _arm(self) -> None:
        if self._handle is not None:
            return
        task = asyncio.get_running_loop().create_task(
            self._run(),
            name=f"{self._name}-status-poll",
        )
        self._handle = _PollingHandle(task=task)
        logger.debug(
            "list.watcher.polling name=%s transient=%s interval=%s",
            self._name,
            self._transient_count,
            self._interval,
        )
        self._notify(True)

    def _disarm(self) -> None:
        handle = self._handle
        if handle is None:
            return
        self._handle = None
        # A tick that settles every record disarms from inside the polling task;
        # the loop notices the cleared handle instead of cancelling itself mid-callback.
        if handle.task is not asyncio.current_task():
            handle.task.cancel()
        logger.debug("list.watcher.idle name=%s ticks=%s", self._name, self._ticks)
        self._notify(False)

    async def _run(self) -> None:
        handle_task = asyncio.current_task()
        while self._owns(handle_task):
            await asyncio.sleep(self._interval)
            if not self._owns(handle_task):
                break
            self._ticks += 1
            try:
                await self._on_tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("list.watcher.tick_failed name=%s", self._name)

    def _owns(self, task: asyncio.Task | None) -> bool:
        return self._handle is not None and self._handle.task is task

    def _notify(self, polling: bool) -> None:
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(polling)
        except Exception:
            logger.exception("list.watcher.listener_failed name=%s", self._name)


__all__ = ["StatusWatcher", "WatcherState"]
