"""
Pytest configuration and fixtures for async database testing.

Each test gets its own SQLite file (aiosqlite) with the full schema, a
Database bound to it on app.state.db, and an httpx AsyncClient talking to the
app over ASGITransport. Outbound HTTP never leaves the process: integrations
are overridden per test with httpx.MockTransport or AsyncMock.
"""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient, ASGITransport

from eventflow.auth import Session, SignedSessionVerifier
from eventflow.core.config import Settings, get_settings
from eventflow.core.db import Database
from eventflow.main import create_app
from eventflow.models import Event, Guest, InviteModel, Planner, RsvpStatus

TEST_SESSION_SECRET = "test-session-secret-please-ignore"
TEST_ENCRYPTION_KEY = "0123456789abcdef" * 4


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'eventflow_test.db'}",
        session_secret=TEST_SESSION_SECRET,
        encryption_key=TEST_ENCRYPTION_KEY,
        app_url="https://app.test",
        allowed_origins="http://localhost:3000",
    )


@pytest.fixture
async def database(settings):
    """Fresh schema per test; disposed afterwards."""
    db = Database.from_settings(settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def app(settings, database):
    application = create_app()
    application.state.db = database
    application.dependency_overrides[get_settings] = lambda: settings
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    """
    AsyncClient over ASGITransport. Lifespan does not run, so the Database
    comes from the app fixture.
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ────────────────────────────────────────────────────────────────
# Sessions
# ────────────────────────────────────────────────────────────────

@pytest.fixture
def token_for(settings):
    """token_for(planner, secret=None, now=None) -> signed session token."""

    def _token(planner: Planner, secret: str = None, **kwargs) -> str:
        verifier = SignedSessionVerifier(secret or settings.session_secret)
        return verifier.issue(Session(uid=planner.id, email=planner.email, name=planner.name), **kwargs)

    return _token


@pytest.fixture
def headers_for(token_for):
    def _headers(planner: Planner) -> dict:
        return {"Authorization": f"Bearer {token_for(planner)}"}

    return _headers


# ────────────────────────────────────────────────────────────────
# Factories
# ────────────────────────────────────────────────────────────────

@pytest.fixture
def make_planner(db_session):
    async def _make(email: str = "ada@example.com", **fields) -> Planner:
        planner = Planner(id=fields.pop("id", f"uid-{uuid.uuid4().hex[:12]}"), email=email, **fields)
        db_session.add(planner)
        await db_session.commit()
        return planner

    return _make


@pytest.fixture
def make_event(db_session):
    async def _make(planner: Planner, name: str = "Ada & Tunde Wedding", **fields) -> Event:
        fields.setdefault("event_date", datetime.now(timezone.utc) + timedelta(days=30))
        fields.setdefault("invite_model", InviteModel.OPEN)
        event = Event(
            planner_id=planner.id,
            name=name,
            slug=f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:8]}",
            **fields,
        )
        db_session.add(event)
        await db_session.commit()
        return event

    return _make


@pytest.fixture
def make_guest(db_session):
    async def _make(event: Event, first_name: str = "Chidi", last_name: str = "Okafor", **fields) -> Guest:
        fields.setdefault("rsvp_status", RsvpStatus.PENDING)
        guest = Guest(event_id=event.id, first_name=first_name, last_name=last_name, **fields)
        db_session.add(guest)
        await db_session.commit()
        return guest

    return _make


@pytest.fixture
async def planner(make_planner):
    return await make_planner("ada@example.com", name="Ada")


@pytest.fixture
async def other_planner(make_planner):
    return await make_planner("bola@example.com", name="Bola")


@pytest.fixture
async def event(make_event, planner):
    return await make_event(planner)


@pytest.fixture
def headers(headers_for, planner):
    return headers_for(planner)
