"""Tenancy models — Creators (agencies) and their End Clients."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from .base import Base, new_id


class Creator(Base):
    """Agency account — root of the ownership tree."""

    __tablename__ = "creators"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(255), nullable=False, unique=True)  # external auth identity
    full_name = Column(String(255))
    agency_name = Column(String(255))
    email = Column(String(255))
    phone = Column(String(100))
    website = Column(String(500))
    subscription_tier = Column(String(50), default="free")  # free, pro, agency
    role = Column(String(20), default="creator", nullable=False)  # creator, admin
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    clients = relationship("EndClient", back_populates="creator", cascade="all, delete-orphan")
    assets = relationship("Asset", back_populates="creator", cascade="all, delete-orphan")


class EndClient(Base):
    """A creator's customer — owner of projects."""

    __tablename__ = "end_clients"
    id = Column(String(36), primary_key=True, default=new_id)
    creator_id = Column(
        String(36), ForeignKey("creators.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    company = Column(String(255))
    phone = Column(String(100))
    notes = Column(Text)
    status = Column(String(20), default="active")  # active, inactive, invited
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    creator = relationship("Creator", back_populates="clients")
    projects = relationship("Project", back_populates="end_client", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_end_clients_creator_created", "creator_id", "created_at"),
    )
