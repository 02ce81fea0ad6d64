"""
schemas/requests.py — Request bodies for portal, analytics and chatbot-request endpoints
"""

from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field

RequestType = Literal["hotspot_update", "content_change", "design_modification", "new_feature", "bug_fix"]
ChatbotRequestStatus = Literal["pending", "in_review", "in_progress", "completed", "cancelled"]


class ClientRequestCreate(BaseModel):
    project_id: str
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=5000)
    request_type: RequestType
    priority: Literal["low", "medium", "high", "urgent"] = "medium"


class AnalyticsIngest(BaseModel):
    external_tour_id: str = Field(..., min_length=1)
    date: date
    metric_type: str = Field(..., min_length=1, max_length=50)
    metric_value: float
    metadata: dict = Field(default_factory=dict)


class ChatbotRequestStatusUpdate(BaseModel):
    status: ChatbotRequestStatus
    admin_override: bool = False
    admin_notes: Optional[str] = None
    chatbot_url: Optional[str] = None
