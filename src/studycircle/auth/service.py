"""Account registration and login."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.auth.password import hash_password, validate_password_strength, verify_password
from studycircle.config import get_settings
from studycircle.db.models import Profile, User
from studycircle.errors import Conflict, ValidationFailed

logger = structlog.get_logger()

DEFAULT_FULL_NAME = "Student"


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower().strip()))
    return result.scalar_one_or_none()


async def register_user(
    db: AsyncSession,
    email: str,
    password: str,
    full_name: str | None = None,
) -> User:
    """
    Register a new user with email + password and create their profile.

    Raises:
        ValidationFailed: If the password is too weak.
        Conflict: If the email is already registered.
    """
    validate_password_strength(password, get_settings().password_min_length)

    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise Conflict(msg)

    user = User(
        email=email.lower().strip(),
        password_hash=hash_password(password),
        last_login=datetime.now(timezone.utc),
    )
    db.add(user)
    await db.flush()

    profile = Profile(user_id=user.id, full_name=(full_name or "").strip() or DEFAULT_FULL_NAME, points=0)
    db.add(profile)
    await db.flush()

    logger.info("user_created", user_id=str(user.id))
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """
    Authenticate a user with email + password.

    Raises:
        ValidationFailed: If the credentials are invalid.
    """
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        raise ValidationFailed("credentials", "Invalid email or password")

    user.last_login = datetime.now(timezone.utc)
    await db.flush()
    logger.info("user_login", user_id=str(user.id))
    return user
