"""Mood check-ins: create (with an AI recommendation), recent history, last 7 days, weekly chart."""

from fastapi import APIRouter

from mindwell.api.deps import AdvisoryDep, PathUserDep, SessionDep, require_user
from mindwell.config import settings
from mindwell.db.base import utcnow
from mindwell.models.mood_entry import MoodEntry
from mindwell.schemas.mood import MoodEntryCreate, MoodEntryResponse
from mindwell.services import storage
from mindwell.services.trends import weekly_chart

router = APIRouter(prefix="/mood-entries", tags=["mood"])

RECENT_MOODS_FOR_RECOMMENDATION = 5


def mood_entry_to_response(row: MoodEntry) -> dict:
    return MoodEntryResponse(
        id=row.id,
        user_id=row.user_id,
        mood=row.mood,
        intensity=row.intensity,
        note=row.note,
        created_at=row.created_at,
    ).model_dump(mode="json")


@router.post(
    "",
    status_code=201,
    summary="Log a mood and get a recommendation",
    responses={400: {"description": "Invalid mood or intensity outside 1-5"}, 404: {"description": "User not found"}},
)
async def create_mood_entry(session: SessionDep, advisory: AdvisoryDep, body: MoodEntryCreate) -> dict:
    """Store the check-in, then synchronously ask the advisory service for an intervention."""
    user = await require_user(session, body.user_id)
    entry = await storage.create_mood_entry(
        session,
        user_id=user.id,
        mood=body.mood.value,
        intensity=body.intensity,
        note=body.note,
    )
    recent = await storage.get_user_mood_entries(session, user.id, RECENT_MOODS_FOR_RECOMMENDATION)
    recommendation = await advisory.generate_intervention(
        body.mood.value,
        body.intensity,
        [m.mood for m in recent],
        user.name,
    )
    return {"mood_entry": mood_entry_to_response(entry), "recommendation": recommendation.model_dump()}


@router.get("/{user_id}", summary="Recent mood entries", responses={404: {"description": "User not found"}})
async def list_mood_entries(session: SessionDep, user: PathUserDep) -> dict:
    entries = await storage.get_user_mood_entries(session, user.id, settings.mood_history_limit)
    return {"entries": [mood_entry_to_response(e) for e in entries]}


@router.get("/{user_id}/weekly", summary="Mood entries of the last 7 days", responses={404: {"description": "User not found"}})
async def list_weekly_mood_entries(session: SessionDep, user: PathUserDep) -> dict:
    entries = await storage.get_weekly_mood_data(session, user.id)
    return {"entries": [mood_entry_to_response(e) for e in entries]}


@router.get(
    "/{user_id}/weekly-chart",
    summary="Per-day mean intensity for the last 7 calendar days",
    responses={404: {"description": "User not found"}},
)
async def get_weekly_chart(session: SessionDep, user: PathUserDep) -> dict:
    now = utcnow()
    entries = await storage.get_weekly_mood_data(session, user.id, now=now)
    days = weekly_chart(entries, now.date())
    return {
        "days": [d.model_dump(mode="json") for d in days],
        "has_data": any(d.has_data for d in days),
    }
