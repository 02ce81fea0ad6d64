"""Project models — Projects, Chatbots, Analytics rows and media Assets."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base, new_id


class Project(Base):
    """A deliverable (virtual tour, 3D showcase) for one end client."""

    __tablename__ = "projects"
    id = Column(String(36), primary_key=True, default=new_id)
    end_client_id = Column(
        String(36), ForeignKey("end_clients.id", ondelete="CASCADE"), nullable=False
    )
    title = Column(String(255), nullable=False)
    description = Column(Text)
    project_type = Column(String(50), default="virtual_tour")  # virtual_tour, 3d_showcase, ...
    # Status workflow: setup/draft → active ⇄ inactive → completed
    status = Column(String(20), default="draft", nullable=False)
    external_tour_id = Column(String(255), unique=True)
    tour_url = Column(String(1000))
    thumbnail_url = Column(String(1000))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    end_client = relationship("EndClient", back_populates="projects")
    chatbots = relationship("Chatbot", back_populates="project", cascade="all, delete-orphan")
    analytics = relationship("Analytics", back_populates="project", cascade="all, delete-orphan")
    requests = relationship("Request", back_populates="project", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_projects_client_created", "end_client_id", "created_at"),
        Index("ix_projects_status", "status"),
    )


class Chatbot(Base):
    """AI assistant configuration attached to a project."""

    __tablename__ = "chatbots"
    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)

    # Branding
    primary_color = Column(String(20), default="#3B82F6")
    widget_style = Column(String(50), default="modern")
    position = Column(String(50), default="bottom-right")
    logo_url = Column(String(1000))

    # Behavior
    welcome_message = Column(Text)
    fallback_message = Column(Text)
    response_style = Column(String(50), default="friendly")
    language = Column(String(10), default="en")
    knowledge_base = Column(Text)

    status = Column(String(20), default="draft")  # draft, active, inactive
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project = relationship("Project", back_populates="chatbots")
    leads = relationship("Lead", back_populates="chatbot", cascade="all, delete-orphan")

    __table_args__ = (Index("ix_chatbots_project", "project_id"),)


class Analytics(Base):
    """Time-stamped metric row per project. metric_type is an open string."""

    __tablename__ = "analytics"
    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    metric_type = Column(String(50), nullable=False)  # view, unique_visitor, time_spent, ...
    metric_value = Column(Float, nullable=False, default=0)
    date = Column(Date, default=lambda: datetime.now(timezone.utc).date())
    extra = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    project = relationship("Project", back_populates="analytics")

    __table_args__ = (
        Index("ix_analytics_project_date", "project_id", "date"),
        Index("ix_analytics_metric_type", "metric_type"),
    )


class Asset(Base):
    """Uploaded media file owned directly by a creator."""

    __tablename__ = "assets"
    id = Column(String(36), primary_key=True, default=new_id)
    creator_id = Column(
        String(36), ForeignKey("creators.id", ondelete="CASCADE"), nullable=False
    )
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="SET NULL"))
    filename = Column(String(500), nullable=False)
    file_type = Column(String(100))
    file_size = Column(Integer)
    file_url = Column(String(1000))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    creator = relationship("Creator", back_populates="assets")
    project = relationship("Project")

    __table_args__ = (Index("ix_assets_creator_created", "creator_id", "created_at"),)
