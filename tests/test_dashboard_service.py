"""
test_dashboard_service.py — Tests for tourcompanion/services/dashboard_service.py

Covers: full aggregation, empty identity, fatal creator lookup, partial
failure isolation, statistics, empty-id short circuit, idempotence,
superseded and post-close refreshes, lookup helpers.

Called by: pytest
Depends on: tourcompanion/services/dashboard_service.py, conftest factories
"""

import asyncio
from datetime import datetime, timezone

import pytest

from tourcompanion.datastore import QueryResponse, SqlAlchemyDataStore, StoreError
from tourcompanion.database import SessionLocal
from tourcompanion.models import Asset, Project
from tourcompanion.services.dashboard_service import (
    CREATOR_NOT_FOUND,
    DashboardAggregator,
    aggregate_dashboard,
    compute_stats,
)


class RecordingStore(SqlAlchemyDataStore):
    """Real store that records every select and can fail chosen tables."""

    def __init__(self, fail_tables=(), error="syntax error at or near WHERE"):
        super().__init__(SessionLocal)
        self.calls = []
        self.fail_tables = set(fail_tables)
        self.error = error

    async def select(self, table, **kwargs):
        self.calls.append((table, kwargs))
        if table in self.fail_tables:
            return QueryResponse(error=StoreError(self.error))
        return await super().select(table, **kwargs)


class GatedStore(SqlAlchemyDataStore):
    """Holds the first creator lookup until `release` is set."""

    def __init__(self):
        super().__init__(SessionLocal)
        self.release = asyncio.Event()
        self._first = True

    async def single(self, table, match, *, embed=()):
        if table == "creators" and self._first:
            self._first = False
            await self.release.wait()
        return await super().single(table, match, embed=embed)


@pytest.fixture()
def populated(db_session, test_creator, test_project, test_chatbot, make_request, make_lead, make_analytics):
    """One client, one active + one draft project, a chatbot, leads, analytics, requests, an asset."""
    draft = Project(end_client_id=test_project.end_client_id, title="Spa preview", status="draft")
    db_session.add(draft)
    db_session.add(Asset(creator_id=test_creator.id, filename="lobby.jpg", file_type="image/jpeg"))
    db_session.commit()
    make_request(test_project, status="open")
    make_request(test_project, title="Fix hotspot", status="in_progress")
    make_request(test_project, title="Old change", status="resolved")
    make_lead(test_chatbot)
    make_lead(test_chatbot, question_asked="Do you allow pets?")
    make_analytics(test_project, "view", 5)
    make_analytics(test_project, "view", 3, days_ago=1)
    make_analytics(test_project, "conversion", 1)
    return {"draft": draft}


# ── Aggregation ─────────────────────────────────────────────────────


class TestAggregate:
    @pytest.mark.asyncio
    async def test_full_snapshot(self, populated, test_creator, test_project, test_chatbot):
        snap = await aggregate_dashboard(RecordingStore(), "user-1")
        assert snap.error is None
        assert snap.is_loading is False
        assert snap.creator["id"] == test_creator.id
        assert len(snap.clients) == 1
        assert {p["id"] for p in snap.projects} == {test_project.id, populated["draft"].id}
        assert [c["id"] for c in snap.chatbots] == [test_chatbot.id]
        assert len(snap.leads) == 2
        assert len(snap.requests) == 3
        assert len(snap.analytics) == 3
        assert len(snap.assets) == 1
        assert snap.last_updated is not None

    @pytest.mark.asyncio
    async def test_stats(self, populated):
        snap = await aggregate_dashboard(RecordingStore(), "user-1")
        stats = snap.stats
        assert stats.total_views == 8
        assert stats.active_projects == 1
        assert stats.total_projects == 2
        assert stats.total_clients == 1
        assert stats.total_chatbots == 1
        assert stats.total_leads == 2
        assert stats.total_requests == 3
        assert stats.pending_requests == 2
        assert stats.total_analytics == 3
        assert stats.total_assets == 1

    @pytest.mark.asyncio
    async def test_analytics_newest_date_first(self, populated):
        snap = await aggregate_dashboard(RecordingStore(), "user-1")
        dates = [a["date"] for a in snap.analytics]
        assert dates == sorted(dates, reverse=True)

    @pytest.mark.asyncio
    async def test_empty_identity_issues_no_queries(self):
        store = RecordingStore()
        snap = await aggregate_dashboard(store, "")
        assert snap.is_loading is False
        assert snap.creator is None and snap.error is None
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_missing_creator_is_fatal(self, populated):
        snap = await aggregate_dashboard(RecordingStore(), "someone-else")
        assert snap.error == CREATOR_NOT_FOUND
        assert snap.creator is None
        assert snap.projects == [] and snap.leads == []
        assert snap.is_loading is False

    @pytest.mark.asyncio
    async def test_other_tenant_data_not_included(self, populated, other_creator, db_session):
        from tourcompanion.models import EndClient

        db_session.add(EndClient(creator_id=other_creator.id, name="Rossi client"))
        db_session.commit()
        snap = await aggregate_dashboard(RecordingStore(), "user-2")
        assert [c["name"] for c in snap.clients] == ["Rossi client"]
        assert snap.projects == [] and snap.leads == []


class TestPartialFailure:
    @pytest.mark.asyncio
    async def test_leads_failure_degrades_to_empty(self, populated):
        snap = await aggregate_dashboard(RecordingStore(fail_tables={"leads"}), "user-1")
        assert snap.error is None
        assert snap.leads == []
        assert snap.stats.total_leads == 0
        assert len(snap.clients) == 1
        assert len(snap.projects) == 2
        assert len(snap.chatbots) == 1
        assert len(snap.analytics) == 3
        assert len(snap.requests) == 3
        assert len(snap.assets) == 1

    @pytest.mark.asyncio
    async def test_recoverable_failure_retried_then_degraded(self, populated):
        store = RecordingStore(fail_tables={"chatbots"}, error="connection reset")
        snap = await aggregate_dashboard(store, "user-1")
        assert snap.chatbots == []
        assert snap.error is None
        chatbot_calls = [c for c in store.calls if c[0] == "chatbots"]
        assert len(chatbot_calls) == 2  # first try + dashboard_subquery_retry_attempts


class TestShortCircuit:
    @pytest.mark.asyncio
    async def test_creator_without_clients(self, test_creator):
        store = RecordingStore()
        snap = await aggregate_dashboard(store, "user-1")
        tables = [t for t, _ in store.calls]
        assert sorted(tables) == ["assets", "end_clients"]
        assert snap.projects == snap.chatbots == snap.analytics == snap.requests == snap.leads == []
        assert snap.error is None

    @pytest.mark.asyncio
    async def test_clients_without_projects(self, test_client_row):
        store = RecordingStore()
        await aggregate_dashboard(store, "user-1")
        tables = sorted(t for t, _ in store.calls)
        assert tables == ["assets", "end_clients", "projects"]
        assert all(kw.get("in_filter") is None or kw["in_filter"].values for _, kw in store.calls)


def test_compute_stats_sums_only_views():
    analytics = [
        {"metric_type": "view", "metric_value": 5},
        {"metric_type": "view", "metric_value": 3},
        {"metric_type": "conversion", "metric_value": 1},
    ]
    stats = compute_stats([], [{"status": "active"}], [], analytics, [], [], [])
    assert stats.total_views == 8
    assert stats.active_projects == 1


# ── Aggregator lifecycle ────────────────────────────────────────────


class TestAggregator:
    @pytest.mark.asyncio
    async def test_refresh_is_idempotent(self, populated):
        agg = DashboardAggregator(RecordingStore(), "user-1")
        first = await agg.refresh()
        second = await agg.refresh()
        assert first.model_dump(exclude={"last_updated"}) == second.model_dump(exclude={"last_updated"})
        assert second.last_updated >= first.last_updated

    @pytest.mark.asyncio
    async def test_superseded_refresh_is_discarded(self, populated):
        store = GatedStore()
        agg = DashboardAggregator(store, "user-1")
        stale = asyncio.create_task(agg.refresh())
        await asyncio.sleep(0.05)
        fresh = await agg.refresh()
        store.release.set()
        await stale
        assert agg.snapshot is fresh

    @pytest.mark.asyncio
    async def test_result_discarded_after_close(self, populated):
        store = GatedStore()
        agg = DashboardAggregator(store, "user-1")
        pending = asyncio.create_task(agg.refresh())
        await asyncio.sleep(0.05)
        agg.close()
        store.release.set()
        await pending
        assert agg.snapshot.creator is None
        assert agg.closed

    @pytest.mark.asyncio
    async def test_refresh_after_close_is_noop(self, populated):
        agg = DashboardAggregator(RecordingStore(), "user-1")
        agg.close()
        snap = await agg.refresh()
        assert snap.creator is None
        assert agg.refresh_count == 0

    @pytest.mark.asyncio
    async def test_crash_becomes_error_state(self, populated):
        class Broken(RecordingStore):
            async def single(self, *a, **kw):
                raise AssertionError("unexpected")

        agg = DashboardAggregator(Broken(), "user-1")
        snap = await agg.refresh()
        assert snap.error
        assert snap.is_loading is False


class TestLookupHelpers:
    @pytest.mark.asyncio
    async def test_helpers(self, populated, test_client_row, test_project, test_chatbot, make_lead):
        make_lead(test_chatbot, question_asked="Newest question here", created_at=datetime(2030, 1, 1, tzinfo=timezone.utc))
        agg = DashboardAggregator(RecordingStore(), "user-1")
        await agg.refresh()

        assert len(agg.projects_for_client(test_client_row.id)) == 2
        assert agg.projects_for_client("nobody") == []
        assert len(agg.chatbots_for_project(test_project.id)) == 1
        assert len(agg.leads_for_chatbot(test_chatbot.id)) == 3
        recent = agg.recent_leads(2)
        assert len(recent) == 2
        assert recent[0]["question_asked"] == "Newest question here"
        assert {r["status"] for r in agg.pending_requests()} == {"open", "in_progress"}
