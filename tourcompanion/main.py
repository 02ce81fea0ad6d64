"""
TourCompanion — creator dashboard, client portal and notification service.

Wires the shared collaborators once per process (data store, change feed,
notification store, session manager) and mounts the routers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger
from starlette.middleware.sessions import SessionMiddleware

from .cache.notification_store import get_notification_store
from .config import settings
from .database import SessionLocal
from .datastore import SqlAlchemyDataStore
from .http_client import close_clients
from .logging_config import setup_logging
from .realtime import ChangeFeed, install_change_capture
from .routers import analytics, chatbot_requests, dashboard, notifications, portal
from .services.session_manager import SessionManager
from .startup import run_startup_migrations

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    run_startup_migrations()

    feed = ChangeFeed()
    uninstall_capture = install_change_capture(SessionLocal, feed)
    store = SqlAlchemyDataStore(SessionLocal)
    app.state.feed = feed
    app.state.store = store
    app.state.sessions = SessionManager(store, feed, get_notification_store())
    logger.info("TourCompanion {} started ({})", VERSION, settings.app_url)

    yield

    app.state.sessions.close_all()
    uninstall_capture()
    await close_clients()
    logger.info("TourCompanion stopped")


app = FastAPI(title="TourCompanion", version=VERSION, lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=settings.secret_key)

app.include_router(dashboard.router)
app.include_router(notifications.router)
app.include_router(portal.router)
app.include_router(analytics.router)
app.include_router(chatbot_requests.router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": VERSION}
