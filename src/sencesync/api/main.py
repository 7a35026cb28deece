"""FastAPI application factory."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlmodel import SQLModel

from sencesync.api.routes import courses, declarations, sync as sync_routes
from sencesync.config import Settings, get_settings
from sencesync.db.engine import get_engine
from sencesync.scheduler.jobs import build_scheduler
from sencesync.sence.client import SenceClient
from sencesync.sence.coordinator import SyncCoordinator
from sencesync.sence.reconciler import DeclarationReconciler
from sencesync.sence.session_store import SessionStore
from sencesync.sence.status import SyncStatusTracker
from sencesync.sence.trigger import SyncTrigger
from sencesync.services.courses import CourseService


def create_app(
    engine=None,
    client=None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build and return the FastAPI app.

    The session store and status tracker are created here, one per app, so
    each test can build an isolated app.

    Args:
        engine: SQLAlchemy engine. Defaults to get_engine().
        client: SenceClient (or AsyncMock in tests). Defaults to SenceClient().
        settings: Defaults to get_settings().
    """
    settings = settings or get_settings()
    engine = engine if engine is not None else get_engine()
    client = client if client is not None else SenceClient()

    store = SessionStore(ttl_seconds=settings.session_ttl_seconds)
    tracker = SyncStatusTracker()
    coordinator = SyncCoordinator(
        store=store,
        tracker=tracker,
        client=client,
        reconciler=DeclarationReconciler(engine),
        settings=settings,
    )
    course_service = CourseService(engine, SyncTrigger(client))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create tables on startup (idempotent)
        SQLModel.metadata.create_all(engine)
        scheduler = build_scheduler(store)
        scheduler.start()
        try:
            yield
        finally:
            scheduler.shutdown(wait=False)

    app = FastAPI(
        title="SENCE Sync API",
        description="SENCE course and declaration synchronization",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.store = store
    app.state.tracker = tracker
    app.state.coordinator = coordinator
    app.state.course_service = course_service

    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])
    app.include_router(courses.router, prefix="/courses", tags=["courses"])
    app.include_router(declarations.router, prefix="/declarations", tags=["declarations"])

    return app
