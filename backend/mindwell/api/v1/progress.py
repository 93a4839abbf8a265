"""Progress API: streak/intervention counters plus a fresh mood-pattern insight."""

from fastapi import APIRouter

from mindwell.api.deps import AdvisoryDep, SessionDep
from mindwell.api.errors import not_found
from mindwell.config import settings
from mindwell.db.base import utcnow
from mindwell.models.user_progress import UserProgress
from mindwell.schemas.advisory import MoodSample
from mindwell.services import storage

router = APIRouter(prefix="/progress", tags=["progress"])


def progress_to_response(row: UserProgress) -> dict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "streak": row.streak,
        "total_interventions": row.total_interventions,
        "last_check_in": row.last_check_in.isoformat() if row.last_check_in else None,
        "weekly_mood_data": row.weekly_mood_data or {},
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


@router.get(
    "/{user_id}",
    summary="Get progress and mood insight",
    responses={404: {"description": "Progress not found"}},
)
async def get_progress(session: SessionDep, advisory: AdvisoryDep, user_id: int) -> dict:
    progress = await storage.get_user_progress(session, user_id)
    if progress is None:
        raise not_found("Progress")
    history = await storage.get_user_mood_entries(session, user_id, settings.mood_history_limit)
    samples = [
        MoodSample(mood=e.mood, intensity=e.intensity, date=e.created_at or utcnow())
        for e in history
    ]
    insights = await advisory.analyze_mood_pattern(samples)
    return {"progress": progress_to_response(progress), "insights": insights.model_dump()}


@router.post(
    "/{user_id}/streak",
    summary="Increment the streak",
    responses={404: {"description": "Progress not found"}},
)
async def increment_streak(session: SessionDep, user_id: int) -> dict:
    streak = await storage.increment_streak(session, user_id)
    if streak is None:
        raise not_found("Progress")
    return {"success": True, "streak": streak}
