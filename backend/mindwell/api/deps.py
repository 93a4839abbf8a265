"""FastAPI dependencies: database session, advisory provider, user lookup by explicit id."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mindwell.api.errors import not_found
from mindwell.db.session import get_db
from mindwell.models.user import User
from mindwell.services import storage
from mindwell.services.advisory import AdvisoryProvider, get_advisory

SessionDep = Annotated[AsyncSession, Depends(get_db)]
AdvisoryDep = Annotated[AdvisoryProvider, Depends(get_advisory)]


async def require_user(session: AsyncSession, user_id: int) -> User:
    """Load the user named by the request or raise 404. Identity is passed by value, never ambient."""
    user = await storage.get_user(session, user_id)
    if user is None:
        raise not_found("User")
    return user


async def get_path_user(user_id: int, session: SessionDep) -> User:
    return await require_user(session, user_id)


PathUserDep = Annotated[User, Depends(get_path_user)]
