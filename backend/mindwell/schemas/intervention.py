"""Pydantic schemas for interventions API."""

from pydantic import BaseModel, Field

from mindwell.models.intervention import InterventionType
from mindwell.models.mood_entry import Mood


class InterventionCreate(BaseModel):
    """Body for logging an intervention (generated or started by the user)."""

    user_id: int
    type: InterventionType
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    duration: int = Field(..., ge=1, le=120)
    completed: bool = False


class AdvisoryRequest(BaseModel):
    """Body for on-demand advisory calls (intervention generation, CBT prompt)."""

    user_id: int
    mood: Mood
    intensity: int = Field(..., ge=1, le=5)
