"""Pydantic schemas for mood check-ins and the weekly chart."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from mindwell.models.mood_entry import Mood


class MoodEntryCreate(BaseModel):
    """Body for a mood check-in. Intensity is on a 1-5 scale."""

    user_id: int
    mood: Mood
    intensity: int = Field(..., ge=1, le=5)
    note: str | None = Field(None, max_length=2000)


class MoodEntryResponse(BaseModel):
    id: int
    user_id: int
    mood: str
    intensity: int
    note: str | None
    created_at: datetime | None


class WeeklyChartDay(BaseModel):
    """One bar of the weekly chart: mean intensity of the day's entries."""

    date: date
    day: str
    intensity: float
    has_data: bool
    bar_height: float
