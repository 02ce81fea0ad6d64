"""
test_routers_dashboard.py — Tests for the creator-facing routers

Covers: /health, 401 without a session, dashboard snapshot and refresh,
snapshot lookup routes, notification feed listing and read/clear routes,
live notification after a committed insert.

Called by: pytest
Depends on: tourcompanion/routers/dashboard.py, tourcompanion/routers/notifications.py, conftest.py
"""

import time

import pytest
from fastapi.testclient import TestClient

from tourcompanion.cache.notification_store import PostgresNotificationStore
from tourcompanion.services.notification_service import cleanup_flag_key, notifications_key


def _stored(id_, read=False):
    return {
        "id": id_,
        "type": "request",
        "title": "New request: Move sofa",
        "message": "Please move the blue sofa to the window",
        "priority": "medium",
        "read": read,
        "read_at": None,
        "created_at": "2026-01-01T00:00:00+00:00",
        "data": {"request_id": "r1"},
    }


@pytest.fixture()
def seeded_feed(db_session):
    """Two stored notifications for user-1 (cleanup already done)."""
    kv = PostgresNotificationStore()
    kv.set(cleanup_flag_key("user-1"), True)
    kv.set(notifications_key("user-1"), [_stored("n1"), _stored("n2", read=True)])
    return kv


# ── Health / auth ───────────────────────────────────────────────────


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_dashboard_requires_session(db_session):
    from tourcompanion.main import app

    with TestClient(app) as c:
        assert c.get("/api/dashboard").status_code == 401
        assert c.get("/api/notifications").status_code == 401


# ── Dashboard ───────────────────────────────────────────────────────


class TestDashboard:
    def test_snapshot(self, client, test_creator, test_project, test_chatbot, make_request, make_lead):
        make_request(test_project)
        make_lead(test_chatbot)
        resp = client.get("/api/dashboard")
        assert resp.status_code == 200
        body = resp.json()
        assert body["creator"]["id"] == test_creator.id
        assert body["stats"]["total_projects"] == 1
        assert body["stats"]["pending_requests"] == 1
        assert body["stats"]["total_leads"] == 1
        assert body["is_loading"] is False
        assert body["error"] is None

    def test_refresh_picks_up_new_rows(self, client, test_client_row, make_request, test_project):
        assert client.get("/api/dashboard").json()["stats"]["total_requests"] == 0
        make_request(test_project)
        body = client.post("/api/dashboard/refresh").json()
        assert body["stats"]["total_requests"] == 1

    def test_lookups(self, client, test_client_row, test_project, test_chatbot, make_request, make_lead):
        make_request(test_project, status="open")
        make_request(test_project, title="Finished change", status="resolved")
        make_lead(test_chatbot)
        client.get("/api/dashboard")

        projects = client.get(f"/api/dashboard/clients/{test_client_row.id}/projects").json()
        assert [p["id"] for p in projects] == [test_project.id]
        chatbots = client.get(f"/api/dashboard/projects/{test_project.id}/chatbots").json()
        assert [c["id"] for c in chatbots] == [test_chatbot.id]
        assert len(client.get(f"/api/dashboard/chatbots/{test_chatbot.id}/leads").json()) == 1
        assert len(client.get("/api/dashboard/leads/recent?limit=5").json()) == 1
        pending = client.get("/api/dashboard/requests/pending").json()
        assert [r["status"] for r in pending] == ["open"]

    def test_recent_leads_limit_validated(self, client):
        assert client.get("/api/dashboard/leads/recent?limit=0").status_code == 422


# ── Notifications ───────────────────────────────────────────────────


class TestNotifications:
    def test_list(self, client, seeded_feed):
        body = client.get("/api/notifications").json()
        assert [n["id"] for n in body["notifications"]] == ["n1", "n2"]
        assert body["unread_count"] == 1

    def test_mark_read(self, client, seeded_feed):
        resp = client.post("/api/notifications/n1/read")
        assert resp.status_code == 200
        assert resp.json()["unread_count"] == 0
        assert seeded_feed.get(notifications_key("user-1"))[0]["read"] is True

    def test_mark_read_unknown(self, client, seeded_feed):
        assert client.post("/api/notifications/nope/read").status_code == 404

    def test_mark_all_read(self, client, seeded_feed):
        body = client.post("/api/notifications/read-all").json()
        assert body == {"ok": True, "updated": 1, "unread_count": 0}

    def test_clear_one(self, client, seeded_feed):
        assert client.delete("/api/notifications/n2").status_code == 200
        assert [n["id"] for n in client.get("/api/notifications").json()["notifications"]] == ["n1"]
        assert client.delete("/api/notifications/n2").status_code == 404

    def test_clear_all(self, client, seeded_feed):
        seeded_feed.set(notifications_key("user-7"), [_stored("x")])
        body = client.delete("/api/notifications").json()
        assert body == {"ok": True, "cleared_feeds": 2}
        assert seeded_feed.keys("notifications_") == []

    def test_live_insert_shows_up(self, client, test_project, make_request):
        assert client.get("/api/notifications").json()["unread_count"] == 0
        make_request(test_project)
        body = {}
        for _ in range(50):
            body = client.get("/api/notifications").json()
            if body["unread_count"]:
                break
            time.sleep(0.02)
        assert body["unread_count"] == 1
        assert body["notifications"][0]["title"] == "New request: Move sofa in showroom"

    def test_test_data_never_shows_up(self, client, test_project, make_request):
        client.get("/api/notifications")
        make_request(test_project, title="test", description="this is a test description")
        time.sleep(0.2)
        assert client.get("/api/notifications").json()["unread_count"] == 0
