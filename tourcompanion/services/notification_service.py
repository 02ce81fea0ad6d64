"""Notification pipeline — turn new requests, chatbot requests and leads into notifications.

Listens for INSERT events, re-fetches each inserted row with its ownership
chain, runs it through the plausibility policy and, when it passes, appends a
notification to the user's durable feed. A toast and an optional push alert
follow; neither can block or undo persistence.

Business Rules:
- Only INSERTs on requests, chatbot_requests and leads qualify
- The record must belong to this pipeline's creator (request/lead via
  project → end_client → creator, chatbot_request via creator_id)
- Message is cut to 100 chars + "..."; priority comes from the source row,
  leads derive it from lead_score (>=80 high, >=60 medium, else low)
- Feed key notifications_<user_id>; stored entries are re-filtered through
  is_valid_notification on load, and everything stored before the filter
  existed is purged once per user (flag notification_cleanup_done_<user_id>)
- clear_all() wipes every notifications_* key the store holds
- Event handlers never raise; a failed lookup skips the notification

Called by: services/session_manager.py, routers/notifications.py
Depends on: utils/plausibility.py, utils/safe_query.py, cache/notification_store.py,
            realtime.py, http_client.py
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone

from loguru import logger

from ..cache.notification_store import NotificationStore
from ..config import settings
from ..datastore import DataStore
from ..realtime import INSERT, ChangeEvent, ChangeFeed, Subscription
from ..schemas.notifications import Notification
from ..utils import truncate
from ..utils.plausibility import is_valid_notification, rejection_reason
from ..utils.safe_query import safe_single_query

NOTIFICATIONS_PREFIX = "notifications_"
CLEANUP_FLAG_PREFIX = "notification_cleanup_done_"

TABLE_KINDS = {"requests": "request", "chatbot_requests": "chatbot_request", "leads": "lead"}
KIND_TABLES = {kind: table for table, kind in TABLE_KINDS.items()}

_EMBEDS = {
    "request": ("project.end_client",),
    "chatbot_request": (),
    "lead": ("chatbot.project.end_client",),
}
_OWNER_CHAINS = {
    "request": ("project", "end_client"),
    "chatbot_request": (),
    "lead": ("chatbot", "project", "end_client"),
}
PRIORITIES = ("low", "medium", "high", "urgent")


def notifications_key(user_id: str) -> str:
    return f"{NOTIFICATIONS_PREFIX}{user_id}"


def cleanup_flag_key(user_id: str) -> str:
    return f"{CLEANUP_FLAG_PREFIX}{user_id}"


def lead_priority(score) -> str:
    score = score or 0
    if score >= settings.lead_priority_high_score:
        return "high"
    if score >= settings.lead_priority_medium_score:
        return "medium"
    return "low"


def owner_of(kind: str, record: dict) -> str | None:
    """Creator id at the end of the record's ownership chain."""
    node = record
    for name in _OWNER_CHAINS[kind]:
        node = (node or {}).get(name)
    return (node or {}).get("creator_id")


def new_notification_id() -> str:
    return f"notification_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _source_priority(value) -> str:
    return value if value in PRIORITIES else "medium"


def build_notification(kind: str, record: dict) -> dict:
    """Notification dict for a record that already passed the plausibility policy."""
    if kind == "request":
        project = record.get("project") or {}
        title = f"New request: {record['title'].strip()}"
        message = record["description"].strip()
        priority = _source_priority(record.get("priority"))
        data = {
            "request_id": record["id"],
            "project_id": record.get("project_id"),
            "end_client_id": record.get("end_client_id"),
            "project_title": project.get("title"),
        }
    elif kind == "chatbot_request":
        title = f"New chatbot request: {record['chatbot_name'].strip()}"
        message = record["chatbot_purpose"].strip()
        priority = _source_priority(record.get("priority"))
        data = {"chatbot_request_id": record["id"], "project_id": record.get("project_id")}
    elif kind == "lead":
        chatbot = record.get("chatbot") or {}
        title = "New lead captured"
        message = f"Visitor asked: {record['question_asked'].strip()}"
        priority = lead_priority(record.get("lead_score"))
        data = {
            "lead_id": record["id"],
            "chatbot_id": record.get("chatbot_id"),
            "project_id": chatbot.get("project_id"),
            "lead_score": record.get("lead_score"),
        }
    else:
        raise ValueError(f"Unknown notification kind: {kind}")

    return Notification(
        id=new_notification_id(),
        type=kind,
        title=title,
        message=truncate(message, settings.notification_message_max_chars),
        priority=priority,
        read=False,
        created_at=datetime.now(timezone.utc).isoformat(),
        data=data,
    ).model_dump()


class Toaster:
    """Transient on-screen message. The server side only records it."""

    def show(self, title: str, message: str, variant: str = "default") -> None:
        logger.info("Toast [{}] {}: {}", variant, title, message)


class PushNotifier:
    """Permission-gated platform alert, delivered to a webhook."""

    def __init__(self, webhook_url: str | None = None, enabled: bool | None = None, client=None):
        self.webhook_url = settings.push_webhook_url if webhook_url is None else webhook_url
        self.enabled = settings.push_enabled if enabled is None else enabled
        self._client = client

    @property
    def permitted(self) -> bool:
        return bool(self.enabled and self.webhook_url)

    async def send(self, title: str, body: str, user_id: str | None = None) -> bool:
        if not self.permitted:
            return False
        client = self._client
        if client is None:
            from ..http_client import http

            client = http
        try:
            resp = await client.post(
                self.webhook_url,
                json={"title": title, "body": body, "user_id": user_id},
                timeout=5,
            )
            if resp.status_code >= 400:
                logger.warning("Push alert rejected: {} {}", resp.status_code, resp.text[:200])
                return False
            return True
        except Exception as e:
            logger.warning("Push alert failed: {}", e)
            return False


class NotificationPipeline:
    def __init__(
        self,
        store: DataStore,
        kv: NotificationStore,
        user_id: str,
        *,
        creator_id: str | None = None,
        toaster: Toaster | None = None,
        push: PushNotifier | None = None,
    ):
        self.store = store
        self.kv = kv
        self.user_id = user_id
        self.creator_id = creator_id
        self.toaster = toaster or Toaster()
        self.push = push or PushNotifier()
        self._notifications: list[dict] = []
        self._subscriptions: list[Subscription] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set = set()
        self._active = False

    # ── State ──

    @property
    def notifications(self) -> list[dict]:
        return list(self._notifications)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._notifications if not n.get("read"))

    def load(self) -> list[dict]:
        """Read the durable feed, running the one-time purge first."""
        flag = cleanup_flag_key(self.user_id)
        key = notifications_key(self.user_id)
        if not self.kv.get(flag):
            self.kv.remove(key)
            self.kv.set(flag, True)
            logger.info("Purged pre-filter notifications for user {}", self.user_id)

        stored = self.kv.get(key) or []
        valid = [n for n in stored if is_valid_notification(n)]
        if len(valid) != len(stored):
            logger.info("Dropped {} invalid stored notifications for user {}", len(stored) - len(valid), self.user_id)
            self.kv.set(key, valid)
        self._notifications = valid
        return self.notifications

    def _persist(self) -> None:
        self.kv.set(notifications_key(self.user_id), self._notifications)

    # ── Lifecycle ──

    async def start(self, feed: ChangeFeed, *, resolve_creator: bool = True) -> None:
        """Load the feed and subscribe to inserts.

        With resolve_creator=False the caller has already looked the creator up
        (or found none); a missing creator_id is then resolved on the first insert.
        """
        if self._active:
            return
        self._loop = asyncio.get_running_loop()
        if self.creator_id is None and resolve_creator:
            self.creator_id = await self._resolve_creator_id()
            if self.creator_id is None:
                logger.warning("No creator yet for user {}; will retry on the next insert", self.user_id)
        self.load()
        self._subscriptions = [
            feed.subscribe(table, self._on_insert, event_types=(INSERT,)) for table in TABLE_KINDS
        ]
        self._active = True

    def stop(self) -> None:
        self._active = False
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []

    async def drain(self) -> None:
        """Wait for every event handler already scheduled from the feed."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.gather(*(asyncio.wrap_future(f) for f in pending), return_exceptions=True)
            self._pending.difference_update(pending)

    async def _resolve_creator_id(self) -> str | None:
        result = await safe_single_query(self.store, "creators", {"user_id": self.user_id})
        if not result.success or not result.data:
            logger.debug("Creator lookup for user {} found nothing: {}", self.user_id, result.error)
            return None
        return result.data["id"]

    def _on_insert(self, change: ChangeEvent) -> None:
        # Runs on the publishing thread
        if not self._active or self._loop is None:
            return
        try:
            fut = asyncio.run_coroutine_threadsafe(
                self.handle_insert(change.table, change.new_row), self._loop
            )
        except RuntimeError:
            logger.debug("Event loop closed, dropping {} insert", change.table)
            return
        self._pending.add(fut)
        fut.add_done_callback(self._pending.discard)

    # ── Event handling ──

    async def handle_insert(self, table: str, row: dict | None) -> dict | None:
        """Create a notification for an inserted row, or None when it does not qualify."""
        kind = TABLE_KINDS.get(table)
        if kind is None or not row or not row.get("id"):
            return None
        try:
            record = await self._fetch_owned(kind, row["id"])
            if record is None:
                return None
            reason = rejection_reason(kind, record)
            if reason:
                logger.debug("Skipping {} {}: {}", kind, row["id"], reason)
                return None
            return await self.add_notification(build_notification(kind, record))
        except Exception as e:
            logger.error("Notification handler failed for {} {}: {}", table, row.get("id"), e)
            return None

    async def _fetch_owned(self, kind: str, record_id: str) -> dict | None:
        result = await safe_single_query(
            self.store, KIND_TABLES[kind], {"id": record_id}, embed=_EMBEDS[kind]
        )
        if not result.success or not result.data:
            logger.debug("Could not load {} {}: {}", kind, record_id, result.error)
            return None
        record = result.data
        if self.creator_id is None:
            # Creator row may have been created after this pipeline started
            self.creator_id = await self._resolve_creator_id()
        if not self.creator_id or owner_of(kind, record) != self.creator_id:
            return None
        return record

    async def add_notification(self, notification: dict) -> dict:
        self._notifications.insert(0, notification)
        self._persist()

        try:
            variant = "destructive" if notification.get("priority") == "urgent" else "default"
            self.toaster.show(notification["title"], notification["message"], variant)
        except Exception as e:
            logger.warning("Toast failed: {}", e)
        await self.push.send(notification["title"], notification["message"], self.user_id)
        return notification

    async def add_system_notification(
        self, title: str, message: str, *, event: str = "system", priority: str = "medium"
    ) -> dict | None:
        notification = Notification(
            id=new_notification_id(),
            type="system",
            title=title,
            message=truncate(message, settings.notification_message_max_chars),
            priority=_source_priority(priority),
            created_at=datetime.now(timezone.utc).isoformat(),
            data={"system_event": event},
        ).model_dump()
        if not is_valid_notification(notification):
            logger.debug("Skipping system notification {!r}", title)
            return None
        return await self.add_notification(notification)

    # ── Transitions ──

    def mark_as_read(self, notification_id: str) -> bool:
        for n in self._notifications:
            if n["id"] == notification_id:
                if not n.get("read"):
                    n["read"] = True
                    n["read_at"] = datetime.now(timezone.utc).isoformat()
                    self._persist()
                return True
        return False

    def mark_all_as_read(self) -> int:
        now = datetime.now(timezone.utc).isoformat()
        changed = 0
        for n in self._notifications:
            if not n.get("read"):
                n["read"] = True
                n["read_at"] = now
                changed += 1
        if changed:
            self._persist()
        return changed

    def clear(self, notification_id: str) -> bool:
        remaining = [n for n in self._notifications if n["id"] != notification_id]
        if len(remaining) == len(self._notifications):
            return False
        self._notifications = remaining
        self._persist()
        return True

    def clear_all(self) -> int:
        """Empty this feed and every other notifications_* key in the store."""
        keys = self.kv.keys(NOTIFICATIONS_PREFIX)
        for key in keys:
            self.kv.remove(key)
        self._notifications = []
        logger.info("Cleared {} notification feeds", len(keys))
        return len(keys)
