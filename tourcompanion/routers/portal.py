"""Client portal API — read-only view of an end client's active projects, plus change requests.

Portal links are shared with end clients directly, so these routes are keyed
by client id rather than the creator session.
"""

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from ..datastore import DataStore
from ..dependencies import get_store
from ..schemas.dashboard import PortalSnapshot
from ..schemas.requests import ClientRequestCreate
from ..services.portal_service import CLIENT_NOT_FOUND, PortalAggregator, RequestRejected

router = APIRouter(tags=["portal"])


async def _load_portal(client_id: str, store: DataStore) -> PortalAggregator:
    portal = PortalAggregator(store, client_id)
    snapshot = await portal.refresh()
    if snapshot.error == CLIENT_NOT_FOUND:
        raise HTTPException(404, CLIENT_NOT_FOUND)
    if snapshot.error:
        raise HTTPException(503, snapshot.error)
    return portal


@router.get("/api/portal/{client_id}", response_model=PortalSnapshot)
async def get_portal(client_id: str, store: DataStore = Depends(get_store)):
    portal = await _load_portal(client_id, store)
    return portal.snapshot


@router.get("/api/portal/{client_id}/top-questions")
async def get_top_questions(client_id: str, store: DataStore = Depends(get_store)):
    portal = await _load_portal(client_id, store)
    return portal.top_questions()


@router.post("/api/portal/{client_id}/requests", status_code=201)
async def create_portal_request(
    client_id: str,
    body: ClientRequestCreate,
    store: DataStore = Depends(get_store),
):
    portal = await _load_portal(client_id, store)
    try:
        return await portal.create_request(
            body.project_id, body.title, body.description, body.request_type, body.priority
        )
    except RequestRejected as e:
        logger.info("Portal request rejected for client {}: {}", client_id, e)
        raise HTTPException(422, str(e))
