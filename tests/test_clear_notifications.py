"""
test_clear_notifications.py — Tests for scripts/clear_notifications.py

Covers: purge of every feed, single-user purge, flag reset, dry run, CLI entry.

Called by: pytest
Depends on: scripts/clear_notifications.py
"""

import importlib.util
from pathlib import Path

import pytest

from tourcompanion.cache.notification_store import NotificationStore

SCRIPT = Path(__file__).parent.parent / "scripts" / "clear_notifications.py"


class DictStore(NotificationStore):
    def __init__(self, data):
        self.data = dict(data)

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def remove(self, key):
        self.data.pop(key, None)

    def keys(self, prefix=""):
        return sorted(k for k in self.data if k.startswith(prefix))


@pytest.fixture(scope="module")
def script():
    spec = importlib.util.spec_from_file_location("clear_notifications", SCRIPT)
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


@pytest.fixture()
def kv():
    return DictStore(
        {
            "notifications_u1": [{"id": "a"}],
            "notifications_u2": [{"id": "b"}],
            "notification_cleanup_done_u1": True,
            "notification_cleanup_done_u2": True,
        }
    )


def test_clears_every_feed(script, kv):
    removed = script.clear_notifications(kv)
    assert removed == ["notifications_u1", "notifications_u2"]
    assert kv.keys() == ["notification_cleanup_done_u1", "notification_cleanup_done_u2"]


def test_single_user_with_flag(script, kv):
    removed = script.clear_notifications(kv, user_id="u1", reset_flags=True)
    assert removed == ["notifications_u1", "notification_cleanup_done_u1"]
    assert kv.keys() == ["notification_cleanup_done_u2", "notifications_u2"]


def test_unknown_user(script, kv):
    assert script.clear_notifications(kv, user_id="u9") == []


def test_dry_run_keeps_everything(script, kv):
    removed = script.clear_notifications(kv, reset_flags=True, dry_run=True)
    assert len(removed) == 4
    assert len(kv.keys()) == 4


def test_main(script, kv, monkeypatch):
    monkeypatch.setattr(script, "get_notification_store", lambda: kv)
    assert script.main(["--user", "u2"]) == 0
    assert kv.get("notifications_u2") is None
    assert kv.get("notifications_u1") == [{"id": "a"}]
