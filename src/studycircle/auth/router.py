"""Authentication router: /api/v1/auth/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.auth.dependencies import get_current_user
from studycircle.auth.jwt import create_access_token
from studycircle.auth.schemas import AccountResponse, LoginRequest, RegisterRequest, TokenResponse
from studycircle.auth.service import authenticate_user, register_user
from studycircle.database import get_session
from studycircle.db.models import User

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        user=AccountResponse(id=user.id, email=user.email),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_session)) -> TokenResponse:
    """Create an account and its profile, return an access token."""
    user = await register_user(db, body.email, body.password, body.full_name)
    await db.commit()
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_session)) -> TokenResponse:
    user = await authenticate_user(db, body.email, body.password)
    await db.commit()
    return _token_response(user)


@router.get("/me", response_model=AccountResponse)
async def me(user: User = Depends(get_current_user)) -> AccountResponse:
    return AccountResponse(id=user.id, email=user.email)
