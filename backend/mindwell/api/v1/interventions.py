"""Interventions API: log, list, complete, and generate on demand; CBT thought prompts."""

from fastapi import APIRouter

from mindwell.api.deps import AdvisoryDep, PathUserDep, SessionDep, require_user
from mindwell.api.errors import not_found
from mindwell.models.intervention import Intervention
from mindwell.schemas.intervention import AdvisoryRequest, InterventionCreate
from mindwell.services import storage

router = APIRouter(prefix="/interventions", tags=["interventions"])
cbt_router = APIRouter(tags=["interventions"])

RECENT_MOODS_FOR_GENERATION = 5


def intervention_to_response(row: Intervention) -> dict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "type": row.type,
        "title": row.title,
        "content": row.content,
        "duration": row.duration,
        "completed": row.completed,
        "completed_at": row.completed_at.isoformat() if row.completed_at else None,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


@router.post(
    "",
    status_code=201,
    summary="Log an intervention",
    responses={400: {"description": "Invalid body"}, 404: {"description": "User not found"}},
)
async def create_intervention(session: SessionDep, body: InterventionCreate) -> dict:
    await require_user(session, body.user_id)
    row = await storage.create_intervention(
        session,
        user_id=body.user_id,
        type=body.type.value,
        title=body.title,
        content=body.content,
        duration=body.duration,
        completed=body.completed,
    )
    return {"intervention": intervention_to_response(row)}


@router.post(
    "/generate",
    summary="Generate a personalized intervention",
    responses={404: {"description": "User not found"}},
)
async def generate_intervention(session: SessionDep, advisory: AdvisoryDep, body: AdvisoryRequest) -> dict:
    user = await require_user(session, body.user_id)
    recent = await storage.get_user_mood_entries(session, user.id, RECENT_MOODS_FOR_GENERATION)
    intervention = await advisory.generate_intervention(
        body.mood.value,
        body.intensity,
        [m.mood for m in recent],
        user.name,
    )
    return {"intervention": intervention.model_dump()}


@router.get("/{user_id}", summary="List a user's interventions", responses={404: {"description": "User not found"}})
async def list_interventions(session: SessionDep, user: PathUserDep) -> dict:
    rows = await storage.get_user_interventions(session, user.id)
    return {"interventions": [intervention_to_response(r) for r in rows]}


@router.patch(
    "/{intervention_id}/complete",
    summary="Mark an intervention completed",
    responses={404: {"description": "Intervention not found"}},
)
async def complete_intervention(session: SessionDep, intervention_id: int) -> dict:
    """Completing twice is a no-op: total_interventions only counts the first completion."""
    row, changed = await storage.complete_intervention(session, intervention_id)
    if row is None:
        raise not_found("Intervention")
    return {"intervention": intervention_to_response(row), "changed": changed}


@cbt_router.post(
    "/cbt-prompt",
    summary="Generate a CBT thought check-in prompt",
    responses={404: {"description": "User not found"}},
)
async def generate_cbt_prompt(session: SessionDep, advisory: AdvisoryDep, body: AdvisoryRequest) -> dict:
    user = await require_user(session, body.user_id)
    prompt = await advisory.generate_cbt_prompt(body.mood.value, body.intensity, user.name)
    return {"prompt": prompt.model_dump()}
