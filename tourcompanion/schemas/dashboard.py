"""
schemas/dashboard.py — Dashboard and client-portal snapshot models

Snapshots are frozen: a refresh builds a new snapshot and swaps it in,
readers never observe a half-built one. Rows are plain dicts straight from
the data store (column name → JSON value).

Called by: services/dashboard_service.py, services/portal_service.py, routers
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DashboardStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_clients: int = 0
    total_projects: int = 0
    active_projects: int = 0
    total_chatbots: int = 0
    total_analytics: int = 0
    total_views: float = 0
    total_requests: int = 0
    pending_requests: int = 0
    total_leads: int = 0
    total_assets: int = 0


class DashboardSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    creator: dict | None = None
    clients: list[dict] = Field(default_factory=list)
    projects: list[dict] = Field(default_factory=list)
    chatbots: list[dict] = Field(default_factory=list)
    analytics: list[dict] = Field(default_factory=list)
    requests: list[dict] = Field(default_factory=list)
    leads: list[dict] = Field(default_factory=list)
    assets: list[dict] = Field(default_factory=list)
    stats: DashboardStats = Field(default_factory=DashboardStats)
    is_loading: bool = False
    error: str | None = None
    last_updated: datetime | None = None


class PortalStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_projects: int = 0
    active_projects: int = 0
    total_chatbots: int = 0
    total_leads: int = 0
    total_views: float = 0
    pending_requests: int = 0


class PortalSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    client: dict | None = None
    projects: list[dict] = Field(default_factory=list)
    chatbots: list[dict] = Field(default_factory=list)
    leads: list[dict] = Field(default_factory=list)
    analytics: list[dict] = Field(default_factory=list)
    requests: list[dict] = Field(default_factory=list)
    stats: PortalStats = Field(default_factory=PortalStats)
    is_loading: bool = False
    error: str | None = None
    last_updated: datetime | None = None


class TopQuestion(BaseModel):
    question: str
    count: int
