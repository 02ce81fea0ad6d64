"""Creator dashboard aggregator — one consistent snapshot of everything a creator owns.

Fetch-and-stitch over flat tables: resolve the creator, then clients, then
projects, then fan out to the project-scoped tables and assets. Every
sub-fetch goes through the safe query wrapper so a failing table degrades to
an empty collection instead of failing the whole dashboard.

Business Rules:
- Empty user id → not loading, empty data, no queries issued
- Creator lookup failure or absence is fatal → snapshot.error, empty data
- Any other sub-fetch failure → [] for that collection, logged as warning
- Empty parent id lists short-circuit; no "IN ()" queries are issued
- total_views sums metric_value over analytics rows with metric_type "view"
- pending requests are those with status open or in_progress
- refresh() swaps the snapshot in one assignment; a refresh superseded by a
  newer one, or finishing after close(), is discarded

Called by: services/session_manager.py, services/realtime_service.py (refresh),
           routers/dashboard.py
Depends on: utils/safe_query.py, datastore.py, schemas/dashboard.py
"""

import asyncio
from datetime import datetime, timezone

from loguru import logger

from ..config import settings
from ..datastore import DataStore, InFilter
from ..schemas.dashboard import DashboardSnapshot, DashboardStats
from ..utils import safe_float
from ..utils.safe_query import safe_multi_query, safe_single_query

PENDING_REQUEST_STATUSES = ("open", "in_progress")
VIEW_METRIC = "view"
CREATOR_NOT_FOUND = "Creator profile not found"


# ── Pure stitching ───────────────────────────────────────────────────


def compute_stats(
    clients: list[dict],
    projects: list[dict],
    chatbots: list[dict],
    analytics: list[dict],
    requests: list[dict],
    leads: list[dict],
    assets: list[dict],
) -> DashboardStats:
    total_views = sum(
        safe_float(a.get("metric_value")) or 0
        for a in analytics
        if a.get("metric_type") == VIEW_METRIC
    )
    return DashboardStats(
        total_clients=len(clients),
        total_projects=len(projects),
        active_projects=sum(1 for p in projects if p.get("status") == "active"),
        total_chatbots=len(chatbots),
        total_analytics=len(analytics),
        total_views=total_views,
        total_requests=len(requests),
        pending_requests=sum(1 for r in requests if r.get("status") in PENDING_REQUEST_STATUSES),
        total_leads=len(leads),
        total_assets=len(assets),
    )


def build_snapshot(creator: dict, **collections) -> DashboardSnapshot:
    stats = compute_stats(
        collections.get("clients", []),
        collections.get("projects", []),
        collections.get("chatbots", []),
        collections.get("analytics", []),
        collections.get("requests", []),
        collections.get("leads", []),
        collections.get("assets", []),
    )
    return DashboardSnapshot(
        creator=creator,
        stats=stats,
        is_loading=False,
        error=None,
        last_updated=datetime.now(timezone.utc),
        **collections,
    )


def error_snapshot(message: str) -> DashboardSnapshot:
    return DashboardSnapshot(is_loading=False, error=message, last_updated=datetime.now(timezone.utc))


def projects_for_client(snapshot: DashboardSnapshot, client_id: str) -> list[dict]:
    return [p for p in snapshot.projects if p.get("end_client_id") == client_id]


def chatbots_for_project(snapshot: DashboardSnapshot, project_id: str) -> list[dict]:
    return [c for c in snapshot.chatbots if c.get("project_id") == project_id]


def leads_for_chatbot(snapshot: DashboardSnapshot, chatbot_id: str) -> list[dict]:
    return [lead for lead in snapshot.leads if lead.get("chatbot_id") == chatbot_id]


def recent_leads(snapshot: DashboardSnapshot, limit: int = 10) -> list[dict]:
    return list(snapshot.leads[:limit])


def pending_requests(snapshot: DashboardSnapshot) -> list[dict]:
    return [r for r in snapshot.requests if r.get("status") in PENDING_REQUEST_STATUSES]


def row_ids(rows: list[dict]) -> list[str]:
    return [r["id"] for r in rows if r.get("id")]


# ── I/O ──────────────────────────────────────────────────────────────


async def fetch_collection(store: DataStore, label: str, table: str, retry_attempts: int, **query) -> list[dict]:
    """One degradable sub-fetch: failure → [] with a warning."""
    result = await safe_multi_query(store, table, retry_attempts=retry_attempts, **query)
    if not result.success:
        logger.warning("Dashboard {} fetch failed, using empty list: {}", label, result.error)
        return []
    return result.data or []


async def fetch_scoped(
    store: DataStore, label: str, table: str, column: str, ids: list[str], retry_attempts: int, **query
) -> list[dict]:
    if not ids:
        return []
    return await fetch_collection(
        store, label, table, retry_attempts, in_filter=InFilter(column, ids), **query
    )


async def aggregate_dashboard(store: DataStore, user_id: str) -> DashboardSnapshot:
    """Run the full aggregation for one creator identity and return a fresh snapshot."""
    if not user_id:
        return DashboardSnapshot(is_loading=False)

    creator_result = await safe_single_query(
        store,
        "creators",
        {"user_id": user_id},
        fallback_to_empty=False,
        retry_attempts=settings.safe_query_retry_attempts,
    )
    if not creator_result.success or not creator_result.data:
        reason = creator_result.error or CREATOR_NOT_FOUND
        logger.error("Dashboard creator lookup failed for user {}: {}", user_id, reason)
        if "no rows" in reason:
            reason = CREATOR_NOT_FOUND
        return error_snapshot(reason)

    creator = creator_result.data
    retries = settings.dashboard_subquery_retry_attempts

    clients = await fetch_collection(store, "clients", "end_clients", retries, match={"creator_id": creator["id"]})
    projects = await fetch_scoped(store, "projects", "projects", "end_client_id", row_ids(clients), retries)
    project_ids = row_ids(projects)

    chatbots, analytics, requests, leads, assets = await asyncio.gather(
        fetch_scoped(store, "chatbots", "chatbots", "project_id", project_ids, retries),
        fetch_scoped(store, "analytics", "analytics", "project_id", project_ids, retries, order_by="date"),
        fetch_scoped(store, "requests", "requests", "project_id", project_ids, retries),
        fetch_scoped(store, "leads", "leads", "chatbot.project_id", project_ids, retries),
        fetch_collection(store, "assets", "assets", retries, match={"creator_id": creator["id"]}),
    )

    return build_snapshot(
        creator,
        clients=clients,
        projects=projects,
        chatbots=chatbots,
        analytics=analytics,
        requests=requests,
        leads=leads,
        assets=assets,
    )


class DashboardAggregator:
    """Holds the current snapshot for one creator session."""

    def __init__(self, store: DataStore, user_id: str):
        self.store = store
        self.user_id = user_id
        self._snapshot = DashboardSnapshot(is_loading=bool(user_id))
        self._generation = 0
        self._closed = False
        self.refresh_count = 0

    @property
    def snapshot(self) -> DashboardSnapshot:
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    async def refresh(self) -> DashboardSnapshot:
        """Re-run the aggregation; never raises."""
        if self._closed:
            return self._snapshot

        self._generation += 1
        generation = self._generation
        self.refresh_count += 1
        if self.user_id and not self._snapshot.is_loading:
            self._snapshot = self._snapshot.model_copy(update={"is_loading": True})

        try:
            fresh = await aggregate_dashboard(self.store, self.user_id)
        except Exception as e:
            logger.exception("Dashboard aggregation crashed for user {}", self.user_id)
            fresh = error_snapshot(str(e) or "Dashboard aggregation failed")

        if self._closed:
            logger.debug("Dashboard closed during refresh, discarding result")
            return self._snapshot
        if generation != self._generation:
            logger.debug("Dashboard refresh {} superseded, discarding result", generation)
            return self._snapshot

        self._snapshot = fresh
        return fresh

    def close(self) -> None:
        self._closed = True

    # Lookup helpers over the current snapshot (no I/O)

    def projects_for_client(self, client_id: str) -> list[dict]:
        return projects_for_client(self._snapshot, client_id)

    def chatbots_for_project(self, project_id: str) -> list[dict]:
        return chatbots_for_project(self._snapshot, project_id)

    def leads_for_chatbot(self, chatbot_id: str) -> list[dict]:
        return leads_for_chatbot(self._snapshot, chatbot_id)

    def recent_leads(self, limit: int = 10) -> list[dict]:
        return recent_leads(self._snapshot, limit)

    def pending_requests(self) -> list[dict]:
        return pending_requests(self._snapshot)
