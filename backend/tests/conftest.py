"""
Pytest fixtures for the test database, HTTP client and bearer tokens.

Each test gets a fresh schema. SQLite (aiosqlite) is the default so the
suite runs anywhere; point TEST_DATABASE_URL at a PostgreSQL database to
exercise the real partial index and timezone handling.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from campusrsvp.core.security import create_access_token
from campusrsvp.db.base import Base
from campusrsvp.db.session import get_db
from campusrsvp.main import app
from campusrsvp.models.event import Event, EventStatus
from campusrsvp.services.rsvp_service import RsvpStateMachine
from campusrsvp.services.rsvp_store import RsvpStore
from campusrsvp.services.waitlist_service import WaitlistPromoter


@pytest_asyncio.fixture(scope="function")
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield a session, then drop everything."""
    url = os.environ.get("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'rsvp_test.db'}")
    engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers_for() -> Callable[..., dict]:
    """Build Authorization headers for any user id (and optional role)."""

    def _headers(user_id: str, role: str = None) -> dict:
        claims = {"sub": user_id}
        if role:
            claims["role"] = role
        return {"Authorization": f"Bearer {create_access_token(data=claims)}"}

    return _headers


@pytest.fixture
def auth_headers(auth_headers_for) -> dict:
    return auth_headers_for("user-alice")


@pytest.fixture
def admin_headers(auth_headers_for) -> dict:
    return auth_headers_for("admin-1", role="admin")


@pytest.fixture
def make_event(db_session: AsyncSession):
    """Insert an approved upcoming event; override any column via kwargs."""

    async def _make_event(**overrides) -> Event:
        start = datetime.now(timezone.utc) + timedelta(days=7)
        values = dict(
            title="Robotics Club Demo Night",
            description="Bring your bots",
            location="Engineering Hall 101",
            start_time=start,
            end_time=start + timedelta(hours=2),
            capacity=2,
            rsvp_buffer=0,
            is_waitlist_enabled=True,
            rsvp_close_time=None,
            status=EventStatus.APPROVED.value,
            created_by="club-robotics",
        )
        values.update(overrides)
        event = Event(**values)
        db_session.add(event)
        await db_session.commit()
        await db_session.refresh(event)
        return event

    return _make_event


@pytest.fixture
def store(db_session: AsyncSession) -> RsvpStore:
    return RsvpStore(db_session)


@pytest.fixture
def promoter(store: RsvpStore) -> WaitlistPromoter:
    return WaitlistPromoter(store)


@pytest.fixture
def machine(store: RsvpStore, promoter: WaitlistPromoter) -> RsvpStateMachine:
    return RsvpStateMachine(store, promoter)
