"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pathwise.config import get_settings
from pathwise.database import close_db, get_session_factory, init_db
from pathwise.gamification.admin_router import router as admin_router
from pathwise.gamification.engine import close_engine, init_engine
from pathwise.gamification.router import router as gamification_router
from pathwise.gamification.seed import seed_achievements
from pathwise.health.router import router as health_router
from pathwise.middleware import setup_middleware
from pathwise.pathways.router import router as pathways_router
from pathwise.redis_client import close_redis, get_redis_optional, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    init_engine(get_session_factory(), redis=get_redis_optional(), settings=settings)

    # Seed achievement definitions (idempotent)
    if settings.seed_achievements_on_startup:
        try:
            async with get_session_factory()() as db:
                await seed_achievements(db)
        except Exception:
            logger.warning("Achievement seeding failed (tables may not exist yet)", exc_info=True)

    yield

    close_engine()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Pathwise API",
        description="Learning progression engine: XP, levels, streaks, achievements and pathway progress",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(gamification_router)
    app.include_router(admin_router)
    app.include_router(pathways_router)

    return app


app = create_app()
