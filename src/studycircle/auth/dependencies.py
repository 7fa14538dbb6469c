"""FastAPI authentication dependencies.

Routes receive the caller as an explicit :class:`Actor`; nothing reads a
global session.
"""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import ANONYMOUS, Actor
from studycircle.auth.jwt import user_id_from_token
from studycircle.auth.service import get_user_by_id
from studycircle.database import get_session
from studycircle.db.models import User

_bearer = HTTPBearer()
_optional_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Extract and verify the JWT, return the User. Raises 401 on failure."""
    try:
        user_id = user_id_from_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_current_actor(user: User = Depends(get_current_user)) -> Actor:
    """Authenticated actor for write endpoints."""
    return Actor(user_id=user.id)


async def get_optional_actor(
    credentials: HTTPAuthorizationCredentials | None = Security(_optional_bearer),
) -> Actor:
    """Actor for read endpoints: anonymous when no (or an invalid) bearer token is sent."""
    if credentials is None:
        return ANONYMOUS
    try:
        return Actor(user_id=user_id_from_token(credentials.credentials))
    except jwt.InvalidTokenError:
        return ANONYMOUS
