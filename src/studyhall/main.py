"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from studyhall.advisor.router import router as tutor_router
from studyhall.config import get_settings
from studyhall.database import close_db, init_db, session_scope
from studyhall.gamification.router import router as gamification_router
from studyhall.gamification.seed import seed_badges
from studyhall.health.router import router as health_router
from studyhall.learning.router import router as learning_router
from studyhall.middleware import setup_middleware
from studyhall.quiz.router import router as quiz_router
from studyhall.recommendations.router import router as recommendations_router
from studyhall.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings)
    await init_redis(settings)

    # Seed badge catalog (idempotent)
    try:
        async with session_scope() as db:
            await seed_badges(db)
    except SQLAlchemyError:
        logger.warning("Badge seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="StudyHall API",
        description="Learning progression, gamification and timed quizzes for the StudyHall learner app",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(learning_router)
    app.include_router(gamification_router)
    app.include_router(quiz_router)
    app.include_router(recommendations_router)
    app.include_router(tutor_router)

    return app


app = create_app()
