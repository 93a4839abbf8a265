"""Pytest configuration and shared fixtures for API tests."""

import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete

# Set test DB and settings before app imports so config/engine use them
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_mindwell.db")
os.environ.setdefault("ADVISORY_PROVIDER", "static")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from mindwell.db.base import Base
from mindwell.db.session import async_session_maker, engine, init_db
from mindwell.main import app
from mindwell.schemas.advisory import CBTPrompt, ModerationResult, MoodInsight, PersonalizedIntervention
from mindwell.services import storage
from mindwell.services.advisory import get_advisory

pytest_plugins = ["pytest_asyncio"]

UNSAFE_MARKERS = ("hopeless", "end it", "kill")


class StubAdvisory:
    """Deterministic advisory provider: records calls, flags obvious self-harm phrases."""

    def __init__(self):
        self.calls: list[tuple] = []

    async def generate_intervention(self, mood, intensity, recent_moods, user_name):
        self.calls.append(("intervention", mood, intensity, list(recent_moods), user_name))
        return PersonalizedIntervention(
            type="grounding",
            title=f"Grounding for {mood}",
            content="Notice five things you can see.",
            duration=4,
            instructions=["Look around", "Name five things you can see"],
        )

    async def generate_cbt_prompt(self, mood, intensity, user_name):
        self.calls.append(("cbt", mood, intensity, user_name))
        return CBTPrompt(
            question="What thought is loudest right now?",
            follow_up="What evidence supports it?",
            reframing_technique="Say it as a friend would.",
        )

    async def analyze_mood_pattern(self, history):
        self.calls.append(("insight", len(history)))
        return MoodInsight(pattern=f"{len(history)} entries", recommendation="Keep going", confidence=0.9)

    async def moderate_content(self, text):
        self.calls.append(("moderation", text))
        lowered = text.lower()
        if any(marker in lowered for marker in UNSAFE_MARKERS):
            return ModerationResult(safe=False, reason="Possible self-harm content")
        return ModerationResult(safe=True)


async def _wipe_all():
    """Delete all rows in reverse dependency order so tests start clean."""
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(delete(table))


@pytest_asyncio.fixture
async def clean_db():
    """Create tables if needed and wipe them; dispose pooled connections after the test's loop ends."""
    await init_db()
    await _wipe_all()
    yield
    await engine.dispose()


@pytest.fixture
def advisory():
    stub = StubAdvisory()
    app.dependency_overrides[get_advisory] = lambda: stub
    yield stub
    app.dependency_overrides.pop(get_advisory, None)


@pytest_asyncio.fixture
async def client(clean_db, advisory):
    """AsyncClient against the ASGI app (no lifespan, so no scheduler)."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def test_user(clean_db):
    """Create a user (with progress row) via storage, committed; return its id."""
    async with async_session_maker() as session:
        user = await storage.create_user(session, name="Alex", email="alex@test.com")
        await session.commit()
        return user.id


@pytest_asyncio.fixture
async def db_session(clean_db):
    async with async_session_maker() as session:
        yield session
