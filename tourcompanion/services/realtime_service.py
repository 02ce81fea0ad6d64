"""Realtime refresh coordinator — debounced dashboard invalidation.

Subscribes to change events on the tables the dashboard reads and turns any
burst of them into a single refresh() once the feed has been quiet for the
debounce window. Payloads are not inspected: this is a coarse invalidation
signal, not an incremental patcher.

Business Rules:
- Every event resets one shared timer; N events inside the window → 1 refresh
- stop() unsubscribes every table and cancels the pending timer; nothing
  fires afterwards, including events already queued onto the loop

Called by: services/session_manager.py
Depends on: realtime.py (ChangeFeed), utils/debounce.py, config.py
"""

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from ..config import settings
from ..realtime import ChangeEvent, ChangeFeed, Subscription
from ..utils.debounce import Debouncer

DASHBOARD_TABLES = ("end_clients", "projects", "chatbots", "analytics", "requests", "assets")


class RealtimeRefreshCoordinator:
    def __init__(
        self,
        feed: ChangeFeed,
        refresh: Callable[[], Awaitable],
        *,
        delay_ms: int | None = None,
        tables: tuple[str, ...] = DASHBOARD_TABLES,
    ):
        self.feed = feed
        self.tables = tables
        self._refresh = refresh
        self._delay_ms = settings.refresh_debounce_ms if delay_ms is None else delay_ms
        self._subscriptions: list[Subscription] = []
        self._debouncer: Debouncer | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._active = False
        self.events_seen = 0

    @property
    def active(self) -> bool:
        return self._active

    @property
    def refresh_pending(self) -> bool:
        return self._debouncer is not None and self._debouncer.pending

    def start(self) -> None:
        """Subscribe to every dashboard table. Must be called on the event loop."""
        if self._active:
            return
        self._loop = asyncio.get_running_loop()
        self._debouncer = Debouncer(self._refresh, self._delay_ms, loop=self._loop)
        self._subscriptions = [self.feed.subscribe(t, self._on_change) for t in self.tables]
        self._active = True
        logger.debug("Refresh coordinator watching {} tables", len(self.tables))

    def _on_change(self, change: ChangeEvent) -> None:
        # Runs on the publishing thread
        if not self._active or self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._schedule)
        except RuntimeError:
            logger.debug("Event loop closed, dropping {} change", change.table)

    def _schedule(self) -> None:
        if not self._active:
            return
        self.events_seen += 1
        self._debouncer.call()

    def stop(self) -> None:
        self._active = False
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []
        if self._debouncer is not None:
            self._debouncer.cancel()
        logger.debug("Refresh coordinator stopped")
