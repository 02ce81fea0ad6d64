"""
dependencies.py — Shared FastAPI dependencies

Business Rules:
- require_user_id raises 401 if the session carries no user_id
- get_current_creator raises 403 if the user has no creator profile, 503 if
  the lookup itself fails
- is_admin(creator) mirrors the role column ("admin")
- get_creator_session returns the caller's live CreatorSession, starting it
  on first use
- Shared collaborators (store, feed, session manager) live on app.state and
  are set up by the lifespan in main.py

Called by: all routers
"""

from fastapi import Depends, HTTPException, Request

from .datastore import DataStore
from .utils.safe_query import safe_single_query
from .services.session_manager import CreatorSession, SessionManager


def get_user_id(request: Request) -> str | None:
    """Current user id from the signed session cookie, or None."""
    return request.session.get("user_id")


def require_user_id(request: Request) -> str:
    uid = get_user_id(request)
    if not uid:
        raise HTTPException(401, "Not authenticated")
    return uid


def get_store(request: Request) -> DataStore:
    return request.app.state.store


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


async def get_creator_session(
    user_id: str = Depends(require_user_id),
    sessions: SessionManager = Depends(get_session_manager),
) -> CreatorSession:
    return await sessions.get(user_id)


async def get_current_creator(
    user_id: str = Depends(require_user_id),
    store: DataStore = Depends(get_store),
) -> dict:
    """Creator row for the signed-in user."""
    result = await safe_single_query(store, "creators", {"user_id": user_id})
    if not result.success:
        raise HTTPException(503, "Creator lookup failed")
    if not result.data:
        raise HTTPException(403, "Creator profile required")
    return result.data


def is_admin(creator: dict) -> bool:
    return creator.get("role") == "admin"
