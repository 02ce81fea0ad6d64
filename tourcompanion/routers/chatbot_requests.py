"""Chatbot request API — status workflow transitions.

Creators move their own requests forward; admins can move any request and
are the only callers allowed to set admin_override.
"""

from fastapi import APIRouter, Depends, HTTPException

from ..datastore import DataStore
from ..dependencies import get_current_creator, get_store, is_admin
from ..schemas.requests import ChatbotRequestStatusUpdate
from ..services.chatbot_request_service import (
    ChatbotRequestNotFound,
    InvalidTransition,
    OverrideNotAllowed,
    transition_chatbot_request,
)

router = APIRouter(tags=["chatbot-requests"])


@router.patch("/api/chatbot-requests/{request_id}/status")
async def update_status(
    request_id: str,
    body: ChatbotRequestStatusUpdate,
    creator: dict = Depends(get_current_creator),
    store: DataStore = Depends(get_store),
):
    admin = is_admin(creator)
    try:
        return await transition_chatbot_request(
            store,
            request_id,
            body.status,
            creator_id=None if admin else creator["id"],
            admin_override=body.admin_override,
            admin_notes=body.admin_notes,
            chatbot_url=body.chatbot_url,
        )
    except OverrideNotAllowed:
        raise HTTPException(403, "Admin access required")
    except ChatbotRequestNotFound:
        raise HTTPException(404, "Chatbot request not found")
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    except RuntimeError as e:
        raise HTTPException(503, str(e))
