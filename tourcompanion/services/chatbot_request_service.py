"""Chatbot request workflow — one-directional status transitions.

    pending → in_review → in_progress → completed
    pending / in_review / in_progress → cancelled

completed and cancelled are terminal. Any other move (including going back)
needs admin_override.

Business Rules:
- A creator can only move their own requests (lookup scoped by creator_id);
  someone else's request is reported as not found
- creator_id=None means an admin acting across creators; only admins may
  pass admin_override

Called by: routers/chatbot_requests.py
Depends on: utils/safe_query.py
"""

from loguru import logger

from ..datastore import DataStore
from ..utils.safe_query import safe_single_query, safe_update

STATUSES = ("pending", "in_review", "in_progress", "completed", "cancelled")

ALLOWED_TRANSITIONS = {
    "pending": {"in_review", "cancelled"},
    "in_review": {"in_progress", "cancelled"},
    "in_progress": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


class InvalidTransition(ValueError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move chatbot request from {current} to {requested}")
        self.current = current
        self.requested = requested


class ChatbotRequestNotFound(LookupError):
    pass


class OverrideNotAllowed(PermissionError):
    pass


def can_transition(current: str, requested: str) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, set())


async def transition_chatbot_request(
    store: DataStore,
    request_id: str,
    new_status: str,
    *,
    creator_id: str | None = None,
    admin_override: bool = False,
    admin_notes: str | None = None,
    chatbot_url: str | None = None,
) -> dict:
    if new_status not in STATUSES:
        raise ValueError(f"Unknown status: {new_status}")
    if admin_override and creator_id is not None:
        raise OverrideNotAllowed("admin_override requires admin access")

    match = {"id": request_id}
    if creator_id is not None:
        match["creator_id"] = creator_id
    found = await safe_single_query(store, "chatbot_requests", match)
    if not found.success:
        raise RuntimeError(found.error)
    if not found.data:
        raise ChatbotRequestNotFound(request_id)

    current = found.data["status"]
    if not can_transition(current, new_status):
        if not admin_override:
            raise InvalidTransition(current, new_status)
        logger.warning("Admin override: chatbot request {} {} → {}", request_id, current, new_status)

    values = {"status": new_status}
    if admin_notes is not None:
        values["admin_notes"] = admin_notes
    if chatbot_url is not None:
        values["chatbot_url"] = chatbot_url

    result = await safe_update(store, "chatbot_requests", values, match)
    if not result.success:
        raise RuntimeError(result.error)
    logger.info("Chatbot request {}: {} → {}", request_id, current, new_status)
    return result.data
