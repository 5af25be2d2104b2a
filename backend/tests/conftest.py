import os

# Must be set before slotking.config is imported (engine is created at import time)
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import slotking.models  # noqa: F401
from slotking.db.base import Base
from slotking.db.session import get_db
from slotking.main import app
from slotking.services import events
from slotking.services.identity import resolve_voter
from slotking.services.time_slots import SlotWindow


@pytest.fixture
def engine():
    # One shared in-memory connection so every session sees the same tables
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite: separate connections per session (for concurrent writers)."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'slotking.sqlite3'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory) -> Generator[TestClient, None, None]:
    def get_db_override():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = get_db_override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def captured_events():
    received: list[tuple[str, dict]] = []

    def handler(event_type: str, message: dict) -> None:
        received.append((event_type, message))

    events.subscribe(handler)
    yield received
    events.unsubscribe(handler)


@pytest.fixture
def two_slot_window() -> SlotWindow:
    """2024-01-01, 09:00-11:00, 60-minute slots -> 09:00 and 10:00."""
    return SlotWindow(
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 1),
        start_hour=9,
        end_hour=11,
        slot_duration_minutes=60,
    )


@pytest.fixture
def week_window() -> SlotWindow:
    return SlotWindow(
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 5),
        start_hour=9,
        end_hour=17,
        slot_duration_minutes=30,
    )


def make_voter(uid: str, name: str | None = None):
    return resolve_voter(uid, display_name=name or uid.title())
