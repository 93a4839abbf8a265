"""Community feed: moderated posts and comments, likes."""

import logging

from fastapi import APIRouter, Query

from mindwell.api.deps import AdvisoryDep, SessionDep, require_user
from mindwell.api.errors import ApiError, not_found
from mindwell.config import settings
from mindwell.models.community_post import CommunityPost
from mindwell.models.post_comment import PostComment
from mindwell.schemas.advisory import ModerationResult
from mindwell.schemas.community import CommunityPostCreate, PostCommentCreate
from mindwell.services import storage

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/community", tags=["community"])

GUIDELINES_VIOLATION = "Content violates community guidelines"


def post_to_response(row: CommunityPost) -> dict:
    """Anonymous posts never expose their author."""
    return {
        "id": row.id,
        "user_id": None if row.anonymous else row.user_id,
        "content": row.content,
        "anonymous": row.anonymous,
        "likes": row.likes,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def comment_to_response(row: PostComment) -> dict:
    return {
        "id": row.id,
        "post_id": row.post_id,
        "user_id": None if row.anonymous else row.user_id,
        "content": row.content,
        "anonymous": row.anonymous,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def _reject_unsafe(verdict: ModerationResult) -> None:
    if not verdict.safe:
        logger.info("Moderation rejected content: %s", verdict.reason)
        raise ApiError(400, GUIDELINES_VIOLATION, reason=verdict.reason or GUIDELINES_VIOLATION)


@router.post(
    "/posts",
    status_code=201,
    summary="Create a post (moderated)",
    responses={400: {"description": "Invalid body or rejected by moderation"}, 404: {"description": "User not found"}},
)
async def create_post(session: SessionDep, advisory: AdvisoryDep, body: CommunityPostCreate) -> dict:
    """Moderate first; unsafe content is never stored."""
    await require_user(session, body.user_id)
    _reject_unsafe(await advisory.moderate_content(body.content))
    post = await storage.create_community_post(
        session,
        user_id=body.user_id,
        content=body.content,
        anonymous=body.anonymous,
    )
    return {"post": post_to_response(post)}


@router.get("/posts", summary="List recent posts")
async def list_posts(
    session: SessionDep,
    limit: int = Query(default=settings.community_default_limit, ge=1, le=100),
) -> dict:
    posts = await storage.get_community_posts(session, limit)
    return {"posts": [post_to_response(p) for p in posts]}


@router.post(
    "/posts/{post_id}/like",
    summary="Like a post",
    responses={404: {"description": "Post not found"}},
)
async def like_post(session: SessionDep, post_id: int) -> dict:
    likes = await storage.like_post(session, post_id)
    if likes is None:
        raise not_found("Post")
    return {"success": True, "likes": likes}


@router.post(
    "/posts/{post_id}/comments",
    status_code=201,
    summary="Comment on a post (moderated)",
    responses={
        400: {"description": "Invalid body or rejected by moderation"},
        404: {"description": "Post or user not found"},
    },
)
async def create_comment(
    session: SessionDep,
    advisory: AdvisoryDep,
    post_id: int,
    body: PostCommentCreate,
) -> dict:
    if await storage.get_post(session, post_id) is None:
        raise not_found("Post")
    await require_user(session, body.user_id)
    _reject_unsafe(await advisory.moderate_content(body.content))
    comment = await storage.create_post_comment(
        session,
        post_id=post_id,
        user_id=body.user_id,
        content=body.content,
        anonymous=body.anonymous,
    )
    return {"comment": comment_to_response(comment)}


@router.get("/posts/{post_id}/comments", summary="List comments of a post")
async def list_comments(session: SessionDep, post_id: int) -> dict:
    comments = await storage.get_post_comments(session, post_id)
    return {"comments": [comment_to_response(c) for c in comments]}
