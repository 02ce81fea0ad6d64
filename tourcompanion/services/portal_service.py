"""Client portal aggregator — what one end client may see of their creator's work.

Same fetch-and-stitch approach as the creator dashboard, rooted at an end
client instead of a creator, and restricted to active projects.

Business Rules:
- Only projects with status "active" are exposed; chatbots, leads, analytics
  and requests hanging off other projects are left out
- Client lookup failure is fatal (snapshot.error); other sub-fetches degrade to []
- A client may file change requests only against their own active projects

Called by: routers/portal.py
Depends on: utils/safe_query.py, services/dashboard_service.py (stitching helpers)
"""

import asyncio
from collections import Counter
from datetime import datetime, timezone

from loguru import logger

from ..config import settings
from ..datastore import DataStore
from ..schemas.dashboard import PortalSnapshot, PortalStats
from ..utils import safe_float
from ..utils.safe_query import safe_insert, safe_single_query
from .dashboard_service import PENDING_REQUEST_STATUSES, VIEW_METRIC, fetch_collection, fetch_scoped, row_ids

REQUEST_TYPES = ("hotspot_update", "content_change", "design_modification", "new_feature", "bug_fix")
REQUEST_PRIORITIES = ("low", "medium", "high", "urgent")
CLIENT_NOT_FOUND = "Client profile not found"


class RequestRejected(ValueError):
    """A client change request that cannot be filed."""


def portal_stats(projects, chatbots, leads, analytics, requests) -> PortalStats:
    return PortalStats(
        total_projects=len(projects),
        active_projects=sum(1 for p in projects if p.get("status") == "active"),
        total_chatbots=len(chatbots),
        total_leads=len(leads),
        total_views=sum(
            safe_float(a.get("metric_value")) or 0 for a in analytics if a.get("metric_type") == VIEW_METRIC
        ),
        pending_requests=sum(1 for r in requests if r.get("status") in PENDING_REQUEST_STATUSES),
    )


async def aggregate_portal(store: DataStore, client_id: str) -> PortalSnapshot:
    if not client_id:
        return PortalSnapshot(is_loading=False)

    client_result = await safe_single_query(store, "end_clients", {"id": client_id}, fallback_to_empty=False)
    if not client_result.success or not client_result.data:
        reason = client_result.error or CLIENT_NOT_FOUND
        logger.error("Portal client lookup failed for {}: {}", client_id, reason)
        if "no rows" in reason:
            reason = CLIENT_NOT_FOUND
        return PortalSnapshot(is_loading=False, error=reason, last_updated=datetime.now(timezone.utc))

    retries = settings.dashboard_subquery_retry_attempts
    projects = await fetch_collection(
        store, "portal projects", "projects", retries, match={"end_client_id": client_id, "status": "active"}
    )
    project_ids = row_ids(projects)

    chatbots, leads, analytics, requests = await asyncio.gather(
        fetch_scoped(store, "portal chatbots", "chatbots", "project_id", project_ids, retries),
        fetch_scoped(store, "portal leads", "leads", "chatbot.project_id", project_ids, retries),
        fetch_scoped(store, "portal analytics", "analytics", "project_id", project_ids, retries, order_by="date"),
        fetch_scoped(
            store, "portal requests", "requests", "project_id", project_ids, retries,
            match={"end_client_id": client_id},
        ),
    )

    return PortalSnapshot(
        client=client_result.data,
        projects=projects,
        chatbots=chatbots,
        leads=leads,
        analytics=analytics,
        requests=requests,
        stats=portal_stats(projects, chatbots, leads, analytics, requests),
        is_loading=False,
        last_updated=datetime.now(timezone.utc),
    )


def top_questions(leads: list[dict], limit: int = 5) -> list[dict]:
    """Most frequent visitor questions, case-folded and trimmed."""
    counts = Counter(
        lead["question_asked"].strip().lower() for lead in leads if lead.get("question_asked")
    )
    return [{"question": q, "count": c} for q, c in counts.most_common(limit)]


class PortalAggregator:
    def __init__(self, store: DataStore, client_id: str):
        self.store = store
        self.client_id = client_id
        self._snapshot = PortalSnapshot(is_loading=bool(client_id))

    @property
    def snapshot(self) -> PortalSnapshot:
        return self._snapshot

    async def refresh(self) -> PortalSnapshot:
        try:
            fresh = await aggregate_portal(self.store, self.client_id)
        except Exception as e:
            logger.exception("Portal aggregation crashed for client {}", self.client_id)
            fresh = PortalSnapshot(is_loading=False, error=str(e) or "Portal aggregation failed")
        self._snapshot = fresh
        return fresh

    def chatbots_for_project(self, project_id: str) -> list[dict]:
        return [c for c in self._snapshot.chatbots if c.get("project_id") == project_id]

    def leads_for_chatbot(self, chatbot_id: str) -> list[dict]:
        return [lead for lead in self._snapshot.leads if lead.get("chatbot_id") == chatbot_id]

    def recent_leads(self, limit: int = 10) -> list[dict]:
        return list(self._snapshot.leads[:limit])

    def analytics_for_project(self, project_id: str) -> list[dict]:
        return [a for a in self._snapshot.analytics if a.get("project_id") == project_id]

    def top_questions(self, limit: int = 5) -> list[dict]:
        return top_questions(self._snapshot.leads, limit)

    async def create_request(
        self,
        project_id: str,
        title: str,
        description: str,
        request_type: str,
        priority: str | None = None,
    ) -> dict:
        """File a change request against one of the client's active projects.

        Raises RequestRejected when the project is not servable, the type or
        priority is unknown, or the insert fails.
        """
        if request_type not in REQUEST_TYPES:
            raise RequestRejected(f"Unknown request type: {request_type}")
        priority = priority or "medium"
        if priority not in REQUEST_PRIORITIES:
            raise RequestRejected(f"Unknown priority: {priority}")
        if not any(p["id"] == project_id for p in self._snapshot.projects):
            raise RequestRejected("Project is not available to this client")

        result = await safe_insert(
            self.store,
            "requests",
            {
                "project_id": project_id,
                "end_client_id": self.client_id,
                "title": title,
                "description": description,
                "request_type": request_type,
                "priority": priority,
                "status": "open",
            },
        )
        if not result.success:
            raise RequestRejected(f"Failed to create request: {result.error}")

        request = result.data
        requests = [request, *self._snapshot.requests]
        self._snapshot = self._snapshot.model_copy(
            update={
                "requests": requests,
                "stats": self._snapshot.stats.model_copy(
                    update={"pending_requests": self._snapshot.stats.pending_requests + 1}
                ),
            }
        )
        logger.info("Client {} filed {} request {}", self.client_id, request_type, request["id"])
        return request
