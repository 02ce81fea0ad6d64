"""Change notification channel — in-process pub/sub of row-level change events.

Committed ORM inserts/updates/deletes are captured from SQLAlchemy session
events and published per table. Subscribers filter by table, event type and
an optional row predicate.

Usage:
    feed = ChangeFeed()
    install_change_capture(SessionLocal, feed)
    sub = feed.subscribe("requests", on_change, event_types=(INSERT,))
    ...
    sub.unsubscribe()

Business Rules:
- Events are published only after the transaction commits (rollback drops them)
- A failing subscriber callback is logged and never reaches the publisher
- Callbacks run on the publishing thread; async consumers must marshal
  onto their own event loop

Called by: services/realtime_service.py, services/notification_service.py, main.py
Depends on: models (to_dict on every mapped row)
"""

import threading
from dataclasses import dataclass
from typing import Callable

from loguru import logger
from sqlalchemy import event, inspect

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
ALL_EVENTS = "*"

_PENDING_KEY = "tourcompanion_pending_changes"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: str
    new_row: dict | None = None
    old_row: dict | None = None


class Subscription:
    def __init__(self, feed: "ChangeFeed", table: str, callback: Callable, event_types, predicate):
        self._feed = feed
        self.table = table
        self.callback = callback
        self.event_types = tuple(event_types)
        self.predicate = predicate
        self.active = True

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        if ALL_EVENTS not in self.event_types and change.event_type not in self.event_types:
            return False
        if self.predicate is not None:
            return bool(self.predicate(change.new_row or change.old_row or {}))
        return True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._feed._remove(self)


class ChangeFeed:
    def __init__(self):
        self._subs: list[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangeEvent], None],
        event_types=(ALL_EVENTS,),
        predicate: Callable[[dict], bool] | None = None,
    ) -> Subscription:
        sub = Subscription(self, table, callback, event_types, predicate)
        with self._lock:
            self._subs.append(sub)
        logger.debug("Subscribed to {} changes ({})", table, ",".join(sub.event_types))
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subs:
                self._subs.remove(sub)

    def subscriber_count(self, table: str | None = None) -> int:
        with self._lock:
            return sum(1 for s in self._subs if table is None or s.table == table)

    def publish(self, change: ChangeEvent) -> int:
        """Deliver an event to every matching subscriber. Returns deliveries."""
        with self._lock:
            targets = [s for s in self._subs if s.active]
        delivered = 0
        for sub in targets:
            try:
                if not sub.matches(change):
                    continue
                sub.callback(change)
                delivered += 1
            except Exception as e:
                logger.warning("Change subscriber for {} failed: {}", change.table, e)
        return delivered


# ── SQLAlchemy capture ───────────────────────────────────────────────


def _previous_row(obj) -> dict:
    """Row values before the pending update (from attribute history)."""
    row = obj.to_dict()
    state = inspect(obj)
    for attr in state.mapper.column_attrs:
        hist = state.attrs[attr.key].history
        if hist.deleted:
            row[attr.columns[0].name] = hist.deleted[0]
    return row


def install_change_capture(session_factory, feed: ChangeFeed) -> Callable[[], None]:
    """Publish committed ORM changes from sessions made by session_factory.

    Returns a callable that removes the listeners again.
    """

    def _collect(session, flush_context):
        pending = session.info.setdefault(_PENDING_KEY, [])
        for obj in session.new:
            pending.append(ChangeEvent(obj.__tablename__, INSERT, new_row=obj.to_dict()))
        for obj in session.dirty:
            if session.is_modified(obj, include_collections=False):
                pending.append(
                    ChangeEvent(obj.__tablename__, UPDATE, new_row=obj.to_dict(), old_row=_previous_row(obj))
                )
        for obj in session.deleted:
            pending.append(ChangeEvent(obj.__tablename__, DELETE, old_row=obj.to_dict()))

    def _publish(session):
        for change in session.info.pop(_PENDING_KEY, []):
            feed.publish(change)

    def _discard(session):
        session.info.pop(_PENDING_KEY, None)

    listeners = [("after_flush", _collect), ("after_commit", _publish), ("after_rollback", _discard)]
    for name, fn in listeners:
        event.listen(session_factory, name, fn)

    def uninstall():
        for name, fn in listeners:
            if event.contains(session_factory, name, fn):
                event.remove(session_factory, name, fn)

    return uninstall
