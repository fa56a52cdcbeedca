"""Shared pytest fixtures configured to use SQLite in-memory and a local-only realtime hub."""

import logging
import os
from types import SimpleNamespace
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Tell app lifespan to skip real DB init
os.environ.setdefault("NOTECOLLAB_SKIP_LIFESPAN_DB", "1")

from notecollab.config import Settings  # noqa: E402
from notecollab.core.models import BaseModel  # noqa: E402
from notecollab.core.realtime import RealtimeHub, get_realtime_hub  # noqa: E402
from notecollab.core.redis_client import RedisClient  # noqa: E402
from notecollab.core.repositories import NoteRepository, ProfileRepository  # noqa: E402
from notecollab.database import get_db_session  # noqa: E402
from notecollab.main import app  # noqa: E402
from notecollab.security.jwt import create_identity_token  # noqa: E402

# Silence extremely verbose DEBUG logs from aiosqlite to keep test output readable
logging.getLogger("aiosqlite").setLevel(logging.WARNING)


@pytest.fixture
def test_settings():
    """Settings handed explicitly to services under test."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        secret_key="test-secret-key",
        debug=True,
        public_origin="https://notes.example.com",
        presence_refresh_seconds=0.05,
    )


@pytest.fixture
async def test_engine():
    """Fresh SQLite in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,  # keep the same memory DB across connections
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def make_file_engine(tmp_path):
    """File-backed SQLite engines with real connection pooling.

    In-memory SQLite pins a single shared connection, which hides both pool
    exhaustion and lock contention between sessions.
    """
    engines = []

    async def _make(**pool_options):
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'notecollab.db'}", echo=False, **pool_options
        )
        async with engine.begin() as conn:
            await conn.run_sync(BaseModel.metadata.create_all)
        engines.append(engine)
        return engine

    try:
        yield _make
    finally:
        for engine in engines:
            await engine.dispose()


@pytest.fixture
async def test_session(test_engine):
    """Database session for one test."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        # Avoid implicit attribute refreshes after commit
        expire_on_commit=False,
    )
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
def hub():
    """Realtime hub with a never-connected Redis client (process-local only)."""
    return RealtimeHub(redis_client=RedisClient(), events_per_second=10, presence_ttl_seconds=600)


@pytest.fixture
def test_app(test_session, hub):
    """FastAPI app with the test session and hub injected."""

    async def _override_get_db():
        yield test_session

    app.dependency_overrides[get_db_session] = _override_get_db
    app.dependency_overrides[get_realtime_hub] = lambda: hub
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(test_app):
    """Async HTTP client bound to the app (same event loop as the session)."""
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user():
    """Identity as the identity provider would issue it."""

    def _make(name: str):
        user_id = uuid4()
        email = f"{name}@example.com"
        token = create_identity_token(user_id, email)
        return SimpleNamespace(
            id=user_id,
            email=email,
            token=token,
            headers={"Authorization": f"Bearer {token}"},
        )

    return _make


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol")


@pytest.fixture
async def profiles(test_session, alice, bob, carol):
    """Profiles for the three test users, as if each had signed in once."""
    repo = ProfileRepository(test_session)
    await repo.upsert(alice.id, alice.email, first_name="Alice", last_name="Archer")
    await repo.upsert(bob.id, bob.email, first_name="Bob", last_name="Baker")
    await repo.upsert(carol.id, carol.email, first_name="Carol", last_name="Cole")
    return SimpleNamespace(alice=alice, bob=bob, carol=carol)


@pytest.fixture
async def note(test_session, alice):
    """A note owned by alice with two entries and no collaborators."""
    repo = NoteRepository(test_session)
    return await repo.create_note(
        {"title": "Groceries", "owner_id": alice.id, "collaborators": []},
        [{"content": "milk"}, {"content": "eggs", "audio_url": "https://blobs.example.com/a.webm"}],
    )
