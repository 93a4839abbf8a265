"""Pydantic schemas for the community feed."""

from pydantic import BaseModel, Field


class CommunityPostCreate(BaseModel):
    user_id: int
    content: str = Field(..., min_length=1, max_length=2000)
    anonymous: bool = True


class PostCommentCreate(BaseModel):
    user_id: int
    content: str = Field(..., min_length=1, max_length=1000)
    anonymous: bool = True
