# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from datetime import datetime, timedelta
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from community_trust.core.security import create_access_token
from community_trust.db.session import Base
from community_trust.db.session import get_db as app_get_session
from community_trust.db.time import utcnow
from community_trust.main import app as fastapi_app
from community_trust.models import (
    Community,
    CommunityMember,
    CommunityRole,
    EventAttendance,
    User,
)

TEST_DB_URL = "sqlite://"

_EVENT_COUNTER = count(1)


class FrozenClock:
    """Controllable clock injected into services under test."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


class RecordingNotifier:
    """Collects events instead of delivering them."""

    def __init__(self) -> None:
        self.events: list = []

    def notify(self, event) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> list[str]:
        return [event.kind.value for event in self.events]


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(utcnow().replace(microsecond=0))


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users."""

    def _make(display_name: str = "Member") -> User:
        user = User(display_name=display_name)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def admin(make_user: Callable[..., User]) -> User:
    return make_user("Admin")


@pytest.fixture()
def member_user(make_user: Callable[..., User]) -> User:
    return make_user("Member")


@pytest.fixture()
def community(db_session: Session, admin: User) -> Community:
    """A community requiring approval, with ``admin`` as its approved ADMIN."""
    community = Community(
        name="Riverside Runners",
        description="Weekly group runs along the river",
        category="sports",
        interests=["running"],
        requires_approval=True,
        created_by_id=admin.id,
    )
    db_session.add(community)
    db_session.flush()
    db_session.add(
        CommunityMember(
            user_id=admin.id,
            community_id=community.id,
            role=CommunityRole.ADMIN,
            is_approved=True,
        )
    )
    db_session.commit()
    return community


@pytest.fixture()
def add_member(db_session: Session) -> Callable[..., CommunityMember]:
    """Return a factory inserting memberships directly."""

    def _add(
        user: User,
        community: Community,
        *,
        role: CommunityRole = CommunityRole.MEMBER,
        is_approved: bool = True,
        joined_at: datetime | None = None,
    ) -> CommunityMember:
        member = CommunityMember(
            user_id=user.id,
            community_id=community.id,
            role=role,
            is_approved=is_approved,
            joined_at=joined_at or utcnow(),
        )
        db_session.add(member)
        db_session.commit()
        return member

    return _add


@pytest.fixture()
def attend_events(db_session: Session) -> Callable[[User, Community, int], None]:
    """Return a helper recording ``n`` distinct event check-ins."""

    def _attend(user: User, community: Community, n: int) -> None:
        for _ in range(n):
            db_session.add(
                EventAttendance(
                    user_id=user.id,
                    community_id=community.id,
                    event_id=f"event-{next(_EVENT_COUNTER)}",
                )
            )
        db_session.commit()

    return _attend


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Return a helper building bearer headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id)
        return {"Authorization": f"Bearer {token}"}

    return _headers
