"""Structured output of the advisory service. The LLM must return only these shapes."""

from datetime import datetime

from pydantic import BaseModel, Field


class PersonalizedIntervention(BaseModel):
    type: str
    title: str
    content: str
    duration: int  # minutes
    instructions: list[str]


class CBTPrompt(BaseModel):
    question: str
    follow_up: str
    reframing_technique: str


class MoodInsight(BaseModel):
    pattern: str
    recommendation: str
    confidence: float = Field(..., ge=0, le=1)


class ModerationResult(BaseModel):
    safe: bool
    reason: str | None = None


class MoodSample(BaseModel):
    """One point of mood history fed to pattern analysis."""

    mood: str
    intensity: int
    date: datetime
