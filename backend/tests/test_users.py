"""Tests for user endpoints: create, guest, external sync, update, delete with cascade."""

from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete, func, select

from mindwell.db.session import async_session_maker
from mindwell.main import app
from mindwell.models import CommunityPost, Intervention, MoodEntry, PostComment, User, UserProgress
from mindwell.services import storage


@pytest.mark.asyncio
async def test_create_user_returns_public_fields(client: AsyncClient):
    resp = await client.post(
        "/api/v1/users",
        json={"name": "Sam", "email": "Sam@Test.com", "password": "secret123"},
    )
    assert resp.status_code == 201
    user = resp.json()["user"]
    assert set(user) == {"id", "name", "email"}
    assert user["name"] == "Sam"
    assert user["email"] == "sam@test.com"


@pytest.mark.asyncio
async def test_create_user_creates_single_progress_row(client: AsyncClient):
    resp = await client.post("/api/v1/users", json={"name": "Kim"})
    uid = resp.json()["user"]["id"]
    async with async_session_maker() as session:
        rows = (await session.execute(select(UserProgress).where(UserProgress.user_id == uid))).scalars().all()
    assert len(rows) == 1
    assert rows[0].streak == 0
    assert rows[0].total_interventions == 0


@pytest.mark.asyncio
async def test_create_user_duplicate_email(client: AsyncClient, test_user: int):
    resp = await client.post("/api/v1/users", json={"name": "Other", "email": "alex@test.com"})
    assert resp.status_code == 400
    assert "error" in resp.json()


@pytest.mark.asyncio
async def test_create_user_missing_name(client: AsyncClient):
    resp = await client.post("/api/v1/users", json={"email": "x@test.com"})
    assert resp.status_code == 400
    assert "name" in resp.json()["error"]


@pytest.mark.asyncio
async def test_create_guest(client: AsyncClient):
    resp = await client.post("/api/v1/users/guest")
    assert resp.status_code == 201
    user = resp.json()["user"]
    assert user["is_guest"] is True
    assert user["name"].startswith("Guest")


@pytest.mark.asyncio
async def test_get_user_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/users/999")
    assert resp.status_code == 404
    assert resp.json()["error"] == "User not found"


@pytest.mark.asyncio
async def test_external_sync_creates_then_links(client: AsyncClient, test_user: int):
    first = await client.post(
        "/api/v1/users/external",
        json={"external_id": "uid-1", "email": "new@test.com", "name": "  "},
    )
    assert first.status_code == 200
    created = first.json()["user"]
    assert created["name"] == "new"
    assert created["external_id"] == "uid-1"

    again = await client.post("/api/v1/users/external", json={"external_id": "uid-1", "email": "new@test.com"})
    assert again.json()["user"]["id"] == created["id"]

    linked = await client.post("/api/v1/users/external", json={"external_id": "uid-2", "email": "alex@test.com"})
    assert linked.json()["user"]["id"] == test_user
    assert linked.json()["user"]["external_id"] == "uid-2"


@pytest.mark.asyncio
async def test_external_sync_without_email(client: AsyncClient):
    resp = await client.post("/api/v1/users/external", json={"external_id": "abc"})
    assert resp.status_code == 200
    user = resp.json()["user"]
    assert user["email"] == "external_abc@example.com"
    assert user["name"] == "Member"


@pytest.mark.asyncio
async def test_external_sync_requires_external_id(client: AsyncClient):
    resp = await client.post("/api/v1/users/external", json={"email": "a@test.com"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_update_profile(client: AsyncClient, test_user: int):
    resp = await client.patch(f"/api/v1/users/{test_user}", json={"name": "Alexandra", "username": "alex"})
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Alexandra"
    assert resp.json()["user"]["username"] == "alex"


@pytest.mark.asyncio
async def test_change_password_requires_old_password(client: AsyncClient):
    create = await client.post("/api/v1/users", json={"name": "Pat", "password": "first-pass"})
    uid = create.json()["user"]["id"]

    missing = await client.patch(f"/api/v1/users/{uid}", json={"password": "second-pass"})
    assert missing.status_code == 400
    assert missing.json()["error"] == "Old password is incorrect"

    wrong = await client.patch(f"/api/v1/users/{uid}", json={"password": "second-pass", "old_password": "nope"})
    assert wrong.status_code == 400

    ok = await client.patch(f"/api/v1/users/{uid}", json={"password": "second-pass", "old_password": "first-pass"})
    assert ok.status_code == 200
    assert "password" not in ok.json()["user"]
    assert "password_hash" not in ok.json()["user"]


@pytest.mark.asyncio
async def test_update_unknown_user(client: AsyncClient):
    resp = await client.patch("/api/v1/users/4242", json={"name": "Ghost"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_user_removes_all_owned_rows(client: AsyncClient, test_user: int):
    other = await client.post("/api/v1/users", json={"name": "Other"})
    other_id = other.json()["user"]["id"]
    await client.post("/api/v1/mood-entries", json={"user_id": test_user, "mood": "calm", "intensity": 3})
    await client.post(
        "/api/v1/interventions",
        json={"user_id": test_user, "type": "breathing", "title": "Box", "content": "4-4-4-4", "duration": 3},
    )
    post = await client.post("/api/v1/community/posts", json={"user_id": test_user, "content": "Hello all"})
    post_id = post.json()["post"]["id"]
    await client.post(f"/api/v1/community/posts/{post_id}/comments", json={"user_id": other_id, "content": "Hi!"})

    resp = await client.delete(f"/api/v1/users/{test_user}")
    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    async with async_session_maker() as session:
        for model in (MoodEntry, Intervention, CommunityPost, UserProgress):
            count = (await session.execute(
                select(func.count()).select_from(model).where(model.user_id == test_user)
            )).scalar()
            assert count == 0, model.__name__
        comments = (await session.execute(select(func.count()).select_from(PostComment))).scalar()
        assert comments == 0
        assert await storage.get_user(session, test_user) is None
        assert await session.get(User, other_id) is not None

    assert (await client.get(f"/api/v1/users/{test_user}")).status_code == 404


@pytest.mark.asyncio
async def test_delete_unknown_user(client: AsyncClient):
    resp = await client.delete("/api/v1/users/777")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_failed_delete_rolls_back_every_table(client: AsyncClient, test_user: int):
    await client.post("/api/v1/mood-entries", json={"user_id": test_user, "mood": "calm", "intensity": 3})

    async def delete_moods_then_fail(session, user_id):
        await session.execute(delete(MoodEntry).where(MoodEntry.user_id == user_id))
        raise RuntimeError("connection lost mid-delete")

    with patch.object(storage, "delete_user_and_data", delete_moods_then_fail):
        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False),
            base_url="http://test",
        ) as raw:
            resp = await raw.delete(f"/api/v1/users/{test_user}")
    assert resp.status_code == 500

    async with async_session_maker() as session:
        moods = (await session.execute(
            select(func.count()).select_from(MoodEntry).where(MoodEntry.user_id == test_user)
        )).scalar()
        assert moods == 1
        assert await storage.get_user(session, test_user) is not None
        assert await storage.get_user_progress(session, test_user) is not None


@pytest.mark.asyncio
async def test_external_sync_blank_email_and_name(client: AsyncClient):
    resp = await client.post("/api/v1/users/external", json={"external_id": "xyz", "email": "   ", "name": " "})
    assert resp.status_code == 200
    user = resp.json()["user"]
    assert user["email"] == "external_xyz@example.com"
    assert user["name"] == "Member"


@pytest.mark.asyncio
async def test_complete_onboarding(client: AsyncClient, test_user: int):
    before = await client.patch(f"/api/v1/users/{test_user}", json={"name": "Alex"})
    assert before.json()["user"]["onboarding_completed"] is False

    resp = await client.patch(f"/api/v1/users/{test_user}", json={"onboarding_completed": True})
    assert resp.status_code == 200
    assert resp.json()["user"]["onboarding_completed"] is True
    assert resp.json()["user"]["name"] == "Alex"
