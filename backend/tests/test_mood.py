"""Tests for mood check-ins: validation, recommendation, history, trailing-week window, streak side effect."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from mindwell.db.session import async_session_maker
from mindwell.models import MoodEntry
from mindwell.services import storage


async def _count_entries(user_id: int) -> int:
    async with async_session_maker() as session:
        return (await session.execute(
            select(func.count()).select_from(MoodEntry).where(MoodEntry.user_id == user_id)
        )).scalar()


@pytest.mark.asyncio
async def test_mood_entry_with_recommendation(client: AsyncClient, advisory):
    user = await client.post("/api/v1/users", json={"name": "Jordan"})
    uid = user.json()["user"]["id"]
    resp = await client.post("/api/v1/mood-entries", json={"user_id": uid, "mood": "anxious", "intensity": 5})
    assert resp.status_code == 201
    data = resp.json()
    assert data["mood_entry"]["mood"] == "anxious"
    assert data["mood_entry"]["intensity"] == 5
    rec = data["recommendation"]
    assert rec is not None
    assert rec["title"]
    assert isinstance(rec["instructions"], list)
    assert len(rec["instructions"]) >= 1
    assert all(isinstance(step, str) for step in rec["instructions"])
    kind, mood, intensity, recent, name = advisory.calls[-1]
    assert (kind, mood, intensity, name) == ("intervention", "anxious", 5, "Jordan")
    assert recent == ["anxious"]


@pytest.mark.asyncio
@pytest.mark.parametrize("intensity", [0, 6, -1, 2.5])
async def test_mood_entry_intensity_out_of_range(client: AsyncClient, test_user: int, intensity):
    resp = await client.post(
        "/api/v1/mood-entries",
        json={"user_id": test_user, "mood": "calm", "intensity": intensity},
    )
    assert resp.status_code == 400
    assert "intensity" in resp.json()["error"]
    assert await _count_entries(test_user) == 0


@pytest.mark.asyncio
async def test_mood_entry_unknown_mood(client: AsyncClient, test_user: int):
    resp = await client.post(
        "/api/v1/mood-entries",
        json={"user_id": test_user, "mood": "ecstatic", "intensity": 3},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_mood_entry_unknown_user(client: AsyncClient):
    resp = await client.post("/api/v1/mood-entries", json={"user_id": 999, "mood": "joy", "intensity": 4})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_recent_moods_passed_newest_first(client: AsyncClient, test_user: int, advisory):
    for mood in ("joy", "calm", "neutral", "stressed", "anxious", "calm"):
        await client.post("/api/v1/mood-entries", json={"user_id": test_user, "mood": mood, "intensity": 3})
    recent = advisory.calls[-1][3]
    assert recent == ["calm", "anxious", "stressed", "neutral", "calm"]


@pytest.mark.asyncio
async def test_list_mood_entries(client: AsyncClient, test_user: int):
    await client.post("/api/v1/mood-entries", json={"user_id": test_user, "mood": "joy", "intensity": 4, "note": "sunny"})
    resp = await client.get(f"/api/v1/mood-entries/{test_user}")
    assert resp.status_code == 200
    entries = resp.json()["entries"]
    assert len(entries) == 1
    assert entries[0]["note"] == "sunny"


@pytest.mark.asyncio
async def test_check_in_updates_progress(client: AsyncClient, test_user: int):
    await client.post("/api/v1/mood-entries", json={"user_id": test_user, "mood": "calm", "intensity": 2})
    await client.post("/api/v1/mood-entries", json={"user_id": test_user, "mood": "joy", "intensity": 4})
    async with async_session_maker() as session:
        progress = await storage.get_user_progress(session, test_user)
    assert progress.last_check_in is not None
    assert progress.streak == 1


@pytest.mark.asyncio
async def test_weekly_window_inclusive_boundary(db_session, test_user: int):
    now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
    week = timedelta(days=7)
    db_session.add_all([
        MoodEntry(user_id=test_user, mood="joy", intensity=5, created_at=now - week),
        MoodEntry(user_id=test_user, mood="calm", intensity=3, created_at=now - week - timedelta(seconds=1)),
        MoodEntry(user_id=test_user, mood="neutral", intensity=2, created_at=now - timedelta(days=1)),
    ])
    await db_session.commit()
    entries = await storage.get_weekly_mood_data(db_session, test_user, now=now)
    assert [e.mood for e in entries] == ["neutral", "joy"]


@pytest.mark.asyncio
async def test_weekly_endpoint_and_chart(client: AsyncClient, test_user: int):
    await client.post("/api/v1/mood-entries", json={"user_id": test_user, "mood": "joy", "intensity": 5})
    await client.post("/api/v1/mood-entries", json={"user_id": test_user, "mood": "stressed", "intensity": 2})

    weekly = await client.get(f"/api/v1/mood-entries/{test_user}/weekly")
    assert weekly.status_code == 200
    assert len(weekly.json()["entries"]) == 2

    chart = await client.get(f"/api/v1/mood-entries/{test_user}/weekly-chart")
    assert chart.status_code == 200
    data = chart.json()
    assert data["has_data"] is True
    days = data["days"]
    assert len(days) == 7
    today = days[-1]
    assert today["has_data"] is True
    assert today["intensity"] == 3.5
    assert all(d["bar_height"] == 8 for d in days[:-1])
