"""Shared test fixtures.

Tests run against a throwaway SQLite file per test (aiosqlite) with the
schema created from the ORM metadata. Redis is absent unless a test passes
an AsyncMock.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from studycircle.access.policies import Actor
from studycircle.auth.jwt import create_access_token
from studycircle.auth.service import register_user
from studycircle.catalog.seed import seed_catalog
from studycircle.database import get_session
from studycircle.db import models  # noqa: F401
from studycircle.db.base import Base
from studycircle.db.models import User
from studycircle.main import create_app


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'studycircle.db'}", poolclass=NullPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await seed_catalog(session)
    return factory


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A session on the seeded test database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(session_factory: async_sessionmaker[AsyncSession]) -> Generator[FastAPI, None, None]:
    """The application with sessions bound to the test database."""
    application = create_app()

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_session] = _override_session
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def make_user(db: AsyncSession, name: str = "Student", email: str | None = None) -> User:
    """Register a user directly through the service and commit."""
    email = email or f"{name.lower().replace(' ', '.')}.{uuid.uuid4().hex[:8]}@example.com"
    user = await register_user(db, email, "Correct-Horse-9", full_name=name)
    await db.commit()
    return user


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


async def api_user(client: AsyncClient, name: str = "Student") -> tuple[uuid.UUID, dict[str, str]]:
    """Register through the API. Returns (user_id, auth headers)."""
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "email": f"{name.lower().replace(' ', '.')}.{uuid.uuid4().hex[:8]}@example.com",
            "password": "Correct-Horse-9",
            "full_name": name,
        },
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return uuid.UUID(body["user"]["id"]), {"Authorization": f"Bearer {body['access_token']}"}
