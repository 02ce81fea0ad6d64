"""Notifications API — the caller's notification feed and its read/clear transitions."""

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_creator_session
from ..schemas.notifications import NotificationListResponse
from ..services.session_manager import CreatorSession

router = APIRouter(tags=["notifications"])


@router.get("/api/notifications", response_model=NotificationListResponse)
async def list_notifications(session: CreatorSession = Depends(get_creator_session)):
    pipeline = session.notifications
    return {"notifications": pipeline.notifications, "unread_count": pipeline.unread_count}


@router.post("/api/notifications/read-all")
async def mark_all_read(session: CreatorSession = Depends(get_creator_session)):
    updated = session.notifications.mark_all_as_read()
    return {"ok": True, "updated": updated, "unread_count": session.notifications.unread_count}


@router.post("/api/notifications/{notification_id}/read")
async def mark_read(notification_id: str, session: CreatorSession = Depends(get_creator_session)):
    if not session.notifications.mark_as_read(notification_id):
        raise HTTPException(404, "Notification not found")
    return {"ok": True, "unread_count": session.notifications.unread_count}


@router.delete("/api/notifications/{notification_id}")
async def clear_notification(notification_id: str, session: CreatorSession = Depends(get_creator_session)):
    if not session.notifications.clear(notification_id):
        raise HTTPException(404, "Notification not found")
    return {"ok": True}


@router.delete("/api/notifications")
async def clear_all_notifications(session: CreatorSession = Depends(get_creator_session)):
    cleared = session.notifications.clear_all()
    return {"ok": True, "cleared_feeds": cleared}
