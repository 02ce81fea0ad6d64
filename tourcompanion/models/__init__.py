"""Database models — re-exports all models.

Import from here:  from tourcompanion.models import Creator, Project, ...
Or from submodules: from tourcompanion.models.projects import Project
"""

from .base import Base  # noqa: F401

# Tenancy: Creators & End Clients
from .tenancy import Creator, EndClient  # noqa: F401

# Projects, Chatbots, Analytics, Assets
from .projects import Analytics, Asset, Chatbot, Project  # noqa: F401

# Requests, Chatbot Requests, Leads
from .engagement import ChatbotRequest, Lead, Request  # noqa: F401

# Durable key-value store
from .kv_store import KeyValueEntry  # noqa: F401
