"""User endpoints: create, guest, external identity sync, profile/password update, delete with all data."""

import logging
import random

from fastapi import APIRouter

from mindwell.api.deps import PathUserDep, SessionDep, require_user
from mindwell.api.errors import ApiError, not_found
from mindwell.core.security import hash_password, random_password, verify_password
from mindwell.models.user import User
from mindwell.schemas.user import ExternalUserSync, UserCreate, UserOut, UserUpdate
from mindwell.services import storage

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["users"])

DEFAULT_EXTERNAL_NAME = "Member"


def _user_out(user: User) -> dict:
    """Public fields only; the password hash never leaves the server."""
    return UserOut(
        id=user.id,
        name=user.name,
        email=user.email,
        username=user.username,
        is_guest=user.is_guest,
        external_id=user.external_id,
        onboarding_completed=user.onboarding_completed,
    ).model_dump()


@router.post(
    "",
    status_code=201,
    summary="Create an account",
    responses={400: {"description": "Invalid body or email/username already taken"}},
)
async def create_user(session: SessionDep, body: UserCreate) -> dict:
    user = await storage.create_user(
        session,
        name=body.name.strip(),
        username=(body.username or "").strip() or None,
        email=(body.email or "").strip().lower() or None,
        password_hash=hash_password(body.password) if body.password else None,
        is_guest=body.is_guest,
    )
    return {"user": {"id": user.id, "name": user.name, "email": user.email}}


@router.post("/guest", status_code=201, summary="Create a randomly named guest account")
async def create_guest(session: SessionDep) -> dict:
    guest_name = f"Guest{random.randint(0, 99999)}"
    existing = await storage.get_user_by_username(session, guest_name)
    username = guest_name if existing is None else None
    user = await storage.create_user(
        session,
        name=guest_name,
        username=username,
        password_hash=hash_password(random_password()),
        is_guest=True,
    )
    return {"user": {"id": user.id, "name": user.name, "is_guest": True}}


@router.post(
    "/external",
    summary="Mirror an externally authenticated identity",
    responses={400: {"description": "Missing external_id"}},
)
async def sync_external_user(session: SessionDep, body: ExternalUserSync) -> dict:
    """Upsert by email: create on first sight, otherwise link the external id if it is unset."""
    external_id = body.external_id.strip()
    given_email = (body.email or "").strip().lower()
    email = given_email or f"external_{external_id}@example.com"
    user = await storage.get_user_by_email(session, email)
    if user is None:
        user = await storage.get_user_by_external_id(session, external_id)
    if user is None:
        name = (body.name or "").strip() or given_email.split("@")[0].strip() or DEFAULT_EXTERNAL_NAME
        user = await storage.create_user(
            session,
            name=name,
            email=email,
            external_id=external_id,
            is_guest=False,
        )
        logger.info("Created user %s for external identity", user.id)
    elif not user.external_id:
        user = await storage.update_user(session, user.id, {"external_id": external_id})
    return {"user": _user_out(user)}


@router.get("/{user_id}", summary="Get a user", responses={404: {"description": "User not found"}})
async def get_user(user: PathUserDep) -> dict:
    return {"user": {"id": user.id, "name": user.name, "email": user.email}}


@router.patch(
    "/{user_id}",
    summary="Update profile or password",
    responses={
        400: {"description": "Old password is incorrect, or email/username taken"},
        404: {"description": "User not found"},
    },
)
async def update_user(session: SessionDep, user_id: int, body: UserUpdate) -> dict:
    user = await require_user(session, user_id)
    updates: dict = {}
    if body.password:
        if user.password_hash and not (
            body.old_password and verify_password(body.old_password, user.password_hash)
        ):
            raise ApiError(400, "Old password is incorrect")
        updates["password_hash"] = hash_password(body.password)
    if body.name and body.name.strip():
        updates["name"] = body.name.strip()
    if body.email and body.email.strip():
        updates["email"] = body.email.strip().lower()
    if body.username and body.username.strip():
        updates["username"] = body.username.strip()
    if body.onboarding_completed is not None:
        updates["onboarding_completed"] = body.onboarding_completed
    updated = await storage.update_user(session, user_id, updates)
    if updated is None:
        raise not_found("User")
    return {"user": _user_out(updated)}


@router.delete(
    "/{user_id}",
    summary="Delete the account and all of its data",
    responses={404: {"description": "User not found"}, 500: {"description": "User still present after delete"}},
)
async def delete_user(session: SessionDep, user_id: int) -> dict:
    await require_user(session, user_id)
    logger.info("Deleting user %s", user_id)
    await storage.delete_user_and_data(session, user_id)
    if await storage.get_user(session, user_id) is not None:
        logger.error("User %s still exists after delete", user_id)
        raise ApiError(500, "User was not deleted from database.")
    return {"success": True}
