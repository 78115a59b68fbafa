"""Shared fixtures: a throwaway SQLite database per test, users, slots and an API client."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.database import Base, build_engine, get_db
from app.main import app
from app.models import Event, EventStatus, User, utcnow
from app.security_utils import create_access_token

TOMORROW = (utcnow() + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)


def at(hour: int, minute: int = 0) -> datetime:
    """A naive UTC datetime tomorrow at the given time"""
    return TOMORROW.replace(hour=hour, minute=minute)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'slotswap_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(name: str | None = None) -> User:
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        user = User(email=f"{name.lower().replace(' ', '.')}@example.com", full_name=name)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_slot(db):
    def _make_slot(
        owner: User,
        title: str = "Slot",
        start: datetime | None = None,
        minutes: int = 30,
        status: EventStatus = EventStatus.SWAPPABLE,
    ) -> Event:
        start = start or at(9)
        event = Event(
            title=title,
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            status=status.value,
            user_id=owner.id,
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    return _make_slot


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
