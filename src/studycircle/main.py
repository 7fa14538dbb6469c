"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from studycircle.auth.router import router as auth_router
from studycircle.catalog.router import router as catalog_router
from studycircle.catalog.seed import seed_catalog
from studycircle.chat.bridge import PubSubBridge
from studycircle.chat.router import router as chat_router
from studycircle.config import get_settings
from studycircle.dashboard.router import router as dashboard_router
from studycircle.database import close_db, get_session, init_db
from studycircle.gamification.router import router as gamification_router
from studycircle.groups.router import router as groups_router
from studycircle.health.router import router as health_router
from studycircle.middleware import setup_middleware
from studycircle.notifications.router import router as notifications_router
from studycircle.profiles.router import router as profiles_router
from studycircle.questions.router import router as questions_router
from studycircle.redis_client import close_redis, get_redis, init_redis
from studycircle.resources.router import router as resources_router
from studycircle.suggestions.router import router as suggestions_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed subjects and badges (idempotent)
    try:
        async for db in get_session():
            await seed_catalog(db)
            break
    except Exception:
        logger.warning("Catalog seeding failed (tables may not exist yet)", exc_info=True)

    # Start the Redis pub/sub -> WebSocket bridge
    bridge = PubSubBridge(get_redis())
    bridge_task = asyncio.create_task(bridge.start())

    yield

    await bridge.stop()
    bridge_task.cancel()
    try:
        await bridge_task
    except asyncio.CancelledError:
        pass

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="StudyCircle API",
        description="Backend API for StudyCircle, a peer-learning platform for students",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(profiles_router)
    app.include_router(catalog_router)
    app.include_router(questions_router)
    app.include_router(groups_router)
    app.include_router(chat_router)
    app.include_router(resources_router)
    app.include_router(gamification_router)
    app.include_router(notifications_router)
    app.include_router(dashboard_router)
    app.include_router(suggestions_router)

    return app


app = create_app()
