"""Debounce helper — coalesce bursts of triggers into one delayed call.

Shared by every realtime subscriber instead of per-screen timer bookkeeping.

Usage:
    d = debounce(refresh, 1000)
    d.call()      # (re)starts the quiet-period timer
    d.cancel()    # drops a pending call

Must be driven from the event loop's own thread; cross-thread callers go
through loop.call_soon_threadsafe(d.call).
"""

import asyncio
import inspect
from typing import Callable

from loguru import logger


class Debouncer:
    def __init__(self, fn: Callable, delay_ms: int, *, loop: asyncio.AbstractEventLoop | None = None):
        self._fn = fn
        self._delay = delay_ms / 1000
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Future] = set()
        self.fire_count = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def running(self) -> int:
        """Async calls fired and not yet finished."""
        return len(self._tasks)

    def call(self) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self.cancel()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.fire_count += 1
        result = self._fn()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            # The loop only holds weak references to running tasks
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            task.add_done_callback(_log_failure)


def _log_failure(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Debounced call failed: {}", exc)


def debounce(fn: Callable, delay_ms: int) -> Debouncer:
    return Debouncer(fn, delay_ms)
