"""Creator dashboard API — snapshot, manual refresh and snapshot lookups."""

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_creator_session
from ..schemas.dashboard import DashboardSnapshot
from ..services.session_manager import CreatorSession

router = APIRouter(tags=["dashboard"])


@router.get("/api/dashboard", response_model=DashboardSnapshot)
async def get_dashboard(session: CreatorSession = Depends(get_creator_session)):
    return session.aggregator.snapshot


@router.post("/api/dashboard/refresh", response_model=DashboardSnapshot)
async def refresh_dashboard(session: CreatorSession = Depends(get_creator_session)):
    return await session.refresh()


# ── Lookups over the current snapshot (no I/O) ──────────────────────


@router.get("/api/dashboard/clients/{client_id}/projects")
async def client_projects(client_id: str, session: CreatorSession = Depends(get_creator_session)):
    return session.aggregator.projects_for_client(client_id)


@router.get("/api/dashboard/projects/{project_id}/chatbots")
async def project_chatbots(project_id: str, session: CreatorSession = Depends(get_creator_session)):
    return session.aggregator.chatbots_for_project(project_id)


@router.get("/api/dashboard/chatbots/{chatbot_id}/leads")
async def chatbot_leads(chatbot_id: str, session: CreatorSession = Depends(get_creator_session)):
    return session.aggregator.leads_for_chatbot(chatbot_id)


@router.get("/api/dashboard/leads/recent")
async def recent_leads(
    limit: int = Query(10, ge=1, le=100),
    session: CreatorSession = Depends(get_creator_session),
):
    return session.aggregator.recent_leads(limit)


@router.get("/api/dashboard/requests/pending")
async def pending_requests(session: CreatorSession = Depends(get_creator_session)):
    return session.aggregator.pending_requests()
