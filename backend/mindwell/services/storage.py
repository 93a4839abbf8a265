"""
Storage access layer: one coroutine per read/write operation.
Callers own the session and its transaction; nothing here commits, so multi-step
effects (check-in, completion, cascade delete) are atomic per request.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mindwell.db.base import as_utc, utcnow
from mindwell.models.community_post import CommunityPost
from mindwell.models.intervention import Intervention
from mindwell.models.mood_entry import MoodEntry
from mindwell.models.post_comment import PostComment
from mindwell.models.user import User
from mindwell.models.user_progress import UserProgress

logger = logging.getLogger(__name__)

USER_UPDATABLE_FIELDS = frozenset({"name", "email", "username", "password_hash", "external_id", "onboarding_completed"})
PROGRESS_UPDATABLE_FIELDS = frozenset({"streak", "total_interventions", "last_check_in", "weekly_mood_data"})
WEEK = timedelta(days=7)


# --- users ---


async def create_user(session: AsyncSession, **fields: Any) -> User:
    """Insert the user and its progress row (streak 0, total 0)."""
    user = User(**fields)
    session.add(user)
    await session.flush()
    session.add(
        UserProgress(
            user_id=user.id,
            streak=0,
            total_interventions=0,
            weekly_mood_data={},
        )
    )
    await session.flush()
    await session.refresh(user)
    return user


async def get_user(session: AsyncSession, user_id: int) -> User | None:
    r = await session.execute(select(User).where(User.id == user_id))
    return r.scalar_one_or_none()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    r = await session.execute(select(User).where(User.email == email))
    return r.scalar_one_or_none()


async def get_user_by_username(session: AsyncSession, username: str) -> User | None:
    r = await session.execute(select(User).where(User.username == username))
    return r.scalar_one_or_none()


async def get_user_by_external_id(session: AsyncSession, external_id: str) -> User | None:
    r = await session.execute(select(User).where(User.external_id == external_id))
    return r.scalar_one_or_none()


async def update_user(session: AsyncSession, user_id: int, updates: dict[str, Any]) -> User | None:
    """Apply a partial update; unknown keys are ignored. Returns None if the user does not exist."""
    user = await get_user(session, user_id)
    if user is None:
        return None
    for key, value in updates.items():
        if key in USER_UPDATABLE_FIELDS:
            setattr(user, key, value)
    await session.flush()
    return user


async def delete_user_and_data(session: AsyncSession, user_id: int) -> None:
    """Delete everything the user owns, then the user, in dependency order."""
    await session.execute(delete(PostComment).where(PostComment.user_id == user_id))
    # Other users' comments on this user's posts go with the posts
    own_posts = select(CommunityPost.id).where(CommunityPost.user_id == user_id)
    await session.execute(delete(PostComment).where(PostComment.post_id.in_(own_posts)))
    await session.execute(delete(CommunityPost).where(CommunityPost.user_id == user_id))
    await session.execute(delete(MoodEntry).where(MoodEntry.user_id == user_id))
    await session.execute(delete(Intervention).where(Intervention.user_id == user_id))
    await session.execute(delete(UserProgress).where(UserProgress.user_id == user_id))
    await session.execute(delete(User).where(User.id == user_id))
    logger.info("Deleted user %s and all owned rows", user_id)


# --- mood entries ---


def next_streak(current: int, last_check_in: datetime | None, now: datetime) -> int:
    """Consecutive-day rule: same day keeps the streak, next day extends it, a gap restarts at 1."""
    if last_check_in is None:
        return 1
    gap = (now.date() - as_utc(last_check_in).date()).days
    if gap <= 0:
        return max(current, 1)
    if gap == 1:
        return current + 1
    return 1


async def create_mood_entry(
    session: AsyncSession,
    user_id: int,
    mood: str,
    intensity: int,
    note: str | None = None,
) -> MoodEntry:
    """Insert a check-in and apply it to the progress row (last_check_in, streak)."""
    now = utcnow()
    entry = MoodEntry(user_id=user_id, mood=mood, intensity=intensity, note=note, created_at=now)
    session.add(entry)
    progress = await get_user_progress(session, user_id)
    if progress is not None:
        progress.streak = next_streak(progress.streak or 0, progress.last_check_in, now)
        progress.last_check_in = now
        progress.updated_at = now
    await session.flush()
    await session.refresh(entry)
    return entry


async def get_user_mood_entries(session: AsyncSession, user_id: int, limit: int = 10) -> list[MoodEntry]:
    r = await session.execute(
        select(MoodEntry)
        .where(MoodEntry.user_id == user_id)
        .order_by(MoodEntry.created_at.desc(), MoodEntry.id.desc())
        .limit(limit)
    )
    return list(r.scalars().all())


async def get_weekly_mood_data(
    session: AsyncSession, user_id: int, now: datetime | None = None
) -> list[MoodEntry]:
    """Entries from the trailing 7 days; an entry exactly 7x24h old is included."""
    since = (now or utcnow()) - WEEK
    r = await session.execute(
        select(MoodEntry)
        .where(
            MoodEntry.user_id == user_id,
            MoodEntry.created_at >= since,
        )
        .order_by(MoodEntry.created_at.desc(), MoodEntry.id.desc())
    )
    return list(r.scalars().all())


# --- interventions ---


async def create_intervention(session: AsyncSession, **fields: Any) -> Intervention:
    intervention = Intervention(**fields)
    if intervention.completed:
        intervention.completed_at = utcnow()
    session.add(intervention)
    await session.flush()
    if intervention.completed:
        await _increment_total_interventions(session, intervention.user_id)
    await session.refresh(intervention)
    return intervention


async def get_user_interventions(session: AsyncSession, user_id: int) -> list[Intervention]:
    r = await session.execute(
        select(Intervention)
        .where(Intervention.user_id == user_id)
        .order_by(Intervention.created_at.desc(), Intervention.id.desc())
    )
    return list(r.scalars().all())


async def complete_intervention(session: AsyncSession, intervention_id: int) -> tuple[Intervention | None, bool]:
    """
    Mark completed and count it on the user's progress.
    Returns (row, changed); changed is False when it was already completed, so
    total_interventions is incremented at most once per intervention.
    """
    r = await session.execute(
        update(Intervention)
        .where(Intervention.id == intervention_id, Intervention.completed.is_(False))
        .values(completed=True, completed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    changed = r.rowcount == 1
    r2 = await session.execute(
        select(Intervention).where(Intervention.id == intervention_id).execution_options(populate_existing=True)
    )
    intervention = r2.scalar_one_or_none()
    if intervention is None:
        return None, False
    if changed:
        await _increment_total_interventions(session, intervention.user_id)
    return intervention, changed


async def _increment_total_interventions(session: AsyncSession, user_id: int) -> None:
    await session.execute(
        update(UserProgress)
        .where(UserProgress.user_id == user_id)
        .values(total_interventions=UserProgress.total_interventions + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )


# --- community ---


async def create_community_post(session: AsyncSession, **fields: Any) -> CommunityPost:
    post = CommunityPost(**fields)
    session.add(post)
    await session.flush()
    await session.refresh(post)
    return post


async def get_community_posts(session: AsyncSession, limit: int = 10) -> list[CommunityPost]:
    """Most recent unflagged posts."""
    r = await session.execute(
        select(CommunityPost)
        .where(CommunityPost.flagged.is_(False))
        .order_by(CommunityPost.created_at.desc(), CommunityPost.id.desc())
        .limit(limit)
    )
    return list(r.scalars().all())


async def get_post(session: AsyncSession, post_id: int) -> CommunityPost | None:
    r = await session.execute(select(CommunityPost).where(CommunityPost.id == post_id))
    return r.scalar_one_or_none()


async def like_post(session: AsyncSession, post_id: int) -> int | None:
    """Atomic increment in a single UPDATE. Returns the new count, or None if no such post."""
    r = await session.execute(
        update(CommunityPost)
        .where(CommunityPost.id == post_id)
        .values(likes=CommunityPost.likes + 1)
        .returning(CommunityPost.likes)
        .execution_options(synchronize_session=False)
    )
    return r.scalar_one_or_none()


async def create_post_comment(session: AsyncSession, **fields: Any) -> PostComment:
    comment = PostComment(**fields)
    session.add(comment)
    await session.flush()
    await session.refresh(comment)
    return comment


async def get_post_comments(session: AsyncSession, post_id: int) -> list[PostComment]:
    r = await session.execute(
        select(PostComment)
        .where(PostComment.post_id == post_id)
        .order_by(PostComment.created_at.desc(), PostComment.id.desc())
    )
    return list(r.scalars().all())


# --- progress ---


async def get_user_progress(session: AsyncSession, user_id: int) -> UserProgress | None:
    r = await session.execute(select(UserProgress).where(UserProgress.user_id == user_id))
    return r.scalar_one_or_none()


async def update_user_progress(
    session: AsyncSession, user_id: int, updates: dict[str, Any]
) -> UserProgress | None:
    progress = await get_user_progress(session, user_id)
    if progress is None:
        return None
    for key, value in updates.items():
        if key in PROGRESS_UPDATABLE_FIELDS:
            setattr(progress, key, value)
    progress.updated_at = utcnow()
    await session.flush()
    return progress


async def increment_streak(session: AsyncSession, user_id: int) -> int | None:
    """Atomic streak + 1. Returns the new streak, or None if the user has no progress row."""
    r = await session.execute(
        update(UserProgress)
        .where(UserProgress.user_id == user_id)
        .values(streak=UserProgress.streak + 1, updated_at=utcnow())
        .returning(UserProgress.streak)
        .execution_options(synchronize_session=False)
    )
    return r.scalar_one_or_none()


async def reset_stale_streaks(session: AsyncSession, today: date) -> int:
    """Zero streaks whose last check-in is before yesterday (UTC). Returns rows reset."""
    cutoff = datetime.combine(today - timedelta(days=1), datetime.min.time()).replace(tzinfo=timezone.utc)
    r = await session.execute(
        update(UserProgress)
        .where(
            UserProgress.streak > 0,
            UserProgress.last_check_in.is_not(None),
            UserProgress.last_check_in < cutoff,
        )
        .values(streak=0, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return r.rowcount or 0
