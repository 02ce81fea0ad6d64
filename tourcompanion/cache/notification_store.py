"""Durable per-user key-value store — Redis primary with PostgreSQL fallback.

Used for: per-user notification feeds (notifications_<user_id>) and the
one-time cleanup flags (notification_cleanup_done_<user_id>).

Redis is preferred for speed. Falls back to the kv_store table if Redis is
unavailable (e.g., during development without Docker). No transactional
guarantees: last write wins.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any

from sqlalchemy import select

from ..database import SessionLocal
from ..models import KeyValueEntry

log = logging.getLogger("tourcompanion.store")

_REDIS_PREFIX = "tc:"


class NotificationStore(ABC):
    """String key → JSON value."""

    @abstractmethod
    def get(self, key: str) -> Any: ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None: ...

    @abstractmethod
    def remove(self, key: str) -> None: ...

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]: ...


class PostgresNotificationStore(NotificationStore):
    def __init__(self, session_factory=None):
        self._session_factory = session_factory or SessionLocal

    def get(self, key):
        with self._session_factory() as db:
            row = db.get(KeyValueEntry, key)
            return row.value if row else None

    def set(self, key, value):
        with self._session_factory() as db:
            db.merge(KeyValueEntry(key=key, value=value))
            db.commit()

    def remove(self, key):
        with self._session_factory() as db:
            row = db.get(KeyValueEntry, key)
            if row:
                db.delete(row)
                db.commit()

    def keys(self, prefix=""):
        with self._session_factory() as db:
            stmt = select(KeyValueEntry.key)
            if prefix:
                stmt = stmt.where(KeyValueEntry.key.startswith(prefix))
            return list(db.execute(stmt).scalars().all())


class RedisNotificationStore(NotificationStore):
    """Redis-backed store; every operation falls back to `fallback` on Redis errors."""

    def __init__(self, client, fallback: NotificationStore | None = None):
        self._redis = client
        self._fallback = fallback or PostgresNotificationStore()

    def get(self, key):
        try:
            data = self._redis.get(f"{_REDIS_PREFIX}{key}")
            return json.loads(data) if data else None
        except Exception as e:
            log.debug("Redis read error for %s: %s", key, e)
        return self._fallback.get(key)

    def set(self, key, value):
        try:
            self._redis.set(f"{_REDIS_PREFIX}{key}", json.dumps(value))
            return  # skip PG write
        except Exception as e:
            log.debug("Redis write error for %s: %s", key, e)
        self._fallback.set(key, value)

    def remove(self, key):
        try:
            self._redis.delete(f"{_REDIS_PREFIX}{key}")
        except Exception as e:
            log.debug("Redis delete error for %s: %s", key, e)
        # Also clean PostgreSQL (may hold an entry written while Redis was down)
        self._fallback.remove(key)

    def keys(self, prefix=""):
        found = set(self._fallback.keys(prefix))
        try:
            for k in self._redis.scan_iter(match=f"{_REDIS_PREFIX}{prefix}*"):
                found.add(k[len(_REDIS_PREFIX):])
        except Exception as e:
            log.debug("Redis scan error for %s: %s", prefix, e)
        return sorted(found)


# Lazy-initialized shared store
_store: NotificationStore | None = None


def _connect_redis():
    """Connect to Redis. Returns client or None if unavailable."""
    if os.environ.get("TESTING"):
        return None

    from ..config import settings

    if settings.notification_store_backend == "postgres":
        log.info("Notification store backend set to postgres — skipping Redis")
        return None

    try:
        import redis

        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=2,
            retry_on_timeout=True,
        )
        client.ping()
        log.info("Redis notification store connected: %s", settings.redis_url)
        return client
    except Exception as e:
        log.warning("Redis unavailable, falling back to PostgreSQL store: %s", e)
        return None


def get_notification_store() -> NotificationStore:
    """Process-wide store, created on first use."""
    global _store
    if _store is None:
        client = _connect_redis()
        _store = RedisNotificationStore(client) if client else PostgresNotificationStore()
    return _store


def reset_notification_store() -> None:
    global _store
    _store = None
