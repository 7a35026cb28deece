"""Shared test fixtures."""
from datetime import datetime, timedelta
from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from sencesync.models.course import Course  # noqa: F401
from sencesync.models.declaration import DeclarationRecord  # noqa: F401
from sencesync.sence.reconciler import DeclarationReconciler
from sencesync.sence.session_store import SessionStore
from sencesync.sence.status import SyncStatusTracker


class FakeClock:
    """Callable clock whose time only moves when a test says so."""

    def __init__(self, start: datetime = datetime(2025, 3, 10, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="clock")
def clock_fixture() -> FakeClock:
    return FakeClock()


@pytest.fixture(name="store")
def store_fixture(clock) -> SessionStore:
    return SessionStore(ttl_seconds=600, clock=clock)


@pytest.fixture(name="tracker")
def tracker_fixture(clock) -> SyncStatusTracker:
    return SyncStatusTracker(clock=clock)


@pytest.fixture(name="reconciler")
def reconciler_fixture(engine) -> DeclarationReconciler:
    return DeclarationReconciler(engine)
