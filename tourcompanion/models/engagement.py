"""Engagement models — client change Requests, Chatbot build requests, Leads."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base, new_id


class Request(Base):
    """Change/support request from an end client against a project."""

    __tablename__ = "requests"
    id = Column(String(36), primary_key=True, default=new_id)
    project_id = Column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    end_client_id = Column(
        String(36), ForeignKey("end_clients.id", ondelete="CASCADE"), nullable=False
    )
    title = Column(String(255), nullable=False)
    description = Column(Text)
    # hotspot_update, content_change, design_modification, new_feature, bug_fix
    request_type = Column(String(50), default="content_change")
    priority = Column(String(20), default="medium")  # low, medium, high, urgent
    # Status workflow: open → in_progress → resolved | cancelled
    status = Column(String(20), default="open", nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project = relationship("Project", back_populates="requests")
    end_client = relationship("EndClient")

    __table_args__ = (
        Index("ix_requests_project_created", "project_id", "created_at"),
        Index("ix_requests_status", "status"),
    )


class ChatbotRequest(Base):
    """A creator's ask for a custom chatbot build (not a live Chatbot row)."""

    __tablename__ = "chatbot_requests"
    id = Column(String(36), primary_key=True, default=new_id)
    creator_id = Column(
        String(36), ForeignKey("creators.id", ondelete="CASCADE"), nullable=False
    )
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="SET NULL"))
    chatbot_name = Column(String(255), nullable=False)
    chatbot_purpose = Column(Text, nullable=False)
    target_audience = Column(Text)
    knowledge_content = Column(Text)
    file_links = Column(JSON, default=list)
    priority = Column(String(20), default="medium")
    # Status workflow: pending → in_review → in_progress → completed | cancelled
    status = Column(String(20), default="pending", nullable=False)
    admin_notes = Column(Text)
    chatbot_url = Column(String(1000))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    creator = relationship("Creator")
    project = relationship("Project")

    __table_args__ = (Index("ix_chatbot_requests_creator_status", "creator_id", "status"),)


class Lead(Base):
    """Visitor interaction captured through a chatbot widget."""

    __tablename__ = "leads"
    id = Column(String(36), primary_key=True, default=new_id)
    chatbot_id = Column(
        String(36), ForeignKey("chatbots.id", ondelete="CASCADE"), nullable=False
    )
    visitor_name = Column(String(255))
    visitor_email = Column(String(255))
    visitor_phone = Column(String(100))
    question_asked = Column(Text, nullable=False)
    lead_score = Column(Integer, default=0)  # 0-100
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    chatbot = relationship("Chatbot", back_populates="leads")

    __table_args__ = (Index("ix_leads_chatbot_created", "chatbot_id", "created_at"),)
