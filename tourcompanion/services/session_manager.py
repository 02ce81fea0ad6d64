"""Per-creator live sessions — aggregator, refresh coordinator and notification pipeline.

A CreatorSession is created the first time a user hits the API and lives
until shutdown (or an explicit close). All sessions share one ChangeFeed and
one notification store.

Business Rules:
- Every refresh (manual or realtime) re-syncs the notification pipeline's
  creator_id from the snapshot, so a creator row created after login is picked up
- A cached session is returned without waiting on anything; only callers for
  a user whose session is still starting wait, and they share one start task
- A session whose start fails is closed and not cached

Called by: main.py (lifespan), dependencies.py
Depends on: services/dashboard_service.py, services/realtime_service.py,
            services/notification_service.py
"""

import asyncio

from loguru import logger

from ..cache.notification_store import NotificationStore
from ..datastore import DataStore
from ..realtime import ChangeFeed
from ..schemas.dashboard import DashboardSnapshot
from .dashboard_service import DashboardAggregator
from .notification_service import NotificationPipeline, PushNotifier, Toaster
from .realtime_service import RealtimeRefreshCoordinator


class CreatorSession:
    def __init__(
        self,
        user_id: str,
        store: DataStore,
        feed: ChangeFeed,
        kv: NotificationStore,
        *,
        toaster: Toaster | None = None,
        push: PushNotifier | None = None,
        debounce_ms: int | None = None,
    ):
        self.user_id = user_id
        self.feed = feed
        self.aggregator = DashboardAggregator(store, user_id)
        self.coordinator = RealtimeRefreshCoordinator(feed, self.refresh, delay_ms=debounce_ms)
        self.notifications = NotificationPipeline(store, kv, user_id, toaster=toaster, push=push)
        self.closed = False

    async def start(self) -> None:
        await self.refresh()
        self.coordinator.start()
        await self.notifications.start(self.feed, resolve_creator=False)

    async def refresh(self) -> DashboardSnapshot:
        snapshot = await self.aggregator.refresh()
        if snapshot.creator and snapshot.creator.get("id") != self.notifications.creator_id:
            self.notifications.creator_id = snapshot.creator["id"]
        return snapshot

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.coordinator.stop()
        self.notifications.stop()
        self.aggregator.close()


class SessionManager:
    def __init__(self, store: DataStore, feed: ChangeFeed, kv: NotificationStore, **session_options):
        self.store = store
        self.feed = feed
        self.kv = kv
        self._options = session_options
        self._sessions: dict[str, CreatorSession] = {}
        self._starting: dict[str, asyncio.Task] = {}

    def __len__(self):
        return len(self._sessions)

    async def get(self, user_id: str) -> CreatorSession:
        """Existing session for user_id, or a freshly started one."""
        session = self._sessions.get(user_id)
        if session is not None:
            return session

        task = self._starting.get(user_id)
        if task is None:
            task = asyncio.ensure_future(self._start(user_id))
            self._starting[user_id] = task
            task.add_done_callback(lambda _t: self._starting.pop(user_id, None))
        # A cancelled caller must not cancel the start other callers wait on
        return await asyncio.shield(task)

    async def _start(self, user_id: str) -> CreatorSession:
        session = CreatorSession(user_id, self.store, self.feed, self.kv, **self._options)
        try:
            await session.start()
        except BaseException:
            session.close()
            raise
        self._sessions[user_id] = session
        logger.info("Started creator session for user {}", user_id)
        return session

    def close(self, user_id: str) -> bool:
        session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        session.close()
        return True

    def close_all(self) -> int:
        for task in list(self._starting.values()):
            task.cancel()
        count = len(self._sessions)
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
        if count:
            logger.info("Closed {} creator sessions", count)
        return count
