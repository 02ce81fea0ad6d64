"""
schemas/notifications.py — Notification feed entries

Stored as JSON in the per-user durable store; the same shape is returned by
the notifications API.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

NotificationType = Literal["request", "chatbot_request", "lead", "system"]
Priority = Literal["low", "medium", "high", "urgent"]


class Notification(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: str
    priority: Priority = "medium"
    read: bool = False
    read_at: str | None = None
    created_at: str
    data: dict = Field(default_factory=dict)


class NotificationListResponse(BaseModel):
    notifications: list[Notification] = Field(default_factory=list)
    unread_count: int = 0
