"""Pydantic schemas for user accounts (named, emailed, guest or externally authenticated)."""

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    """Body for creating an account. Only name is required."""

    name: str = Field(..., min_length=1, max_length=255)
    username: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=255)
    password: str | None = None
    is_guest: bool = False


class UserUpdate(BaseModel):
    """Body for updating a profile (partial). Changing password requires old_password."""

    name: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=255)
    username: str | None = Field(None, max_length=255)
    password: str | None = None
    old_password: str | None = None
    onboarding_completed: bool | None = None


class ExternalUserSync(BaseModel):
    """Identity established by the external provider, passed by value."""

    external_id: str = Field(..., min_length=1, max_length=255)
    email: str | None = Field(None, max_length=255)
    name: str | None = None


class UserOut(BaseModel):
    id: int
    name: str
    email: str | None = None
    username: str | None = None
    is_guest: bool = False
    external_id: str | None = None
    onboarding_completed: bool = False
