"""
Forum Engagement Engine Application.

Serves forum categories, topics, threaded replies, moderation and
engagement statistics under the versioned API prefix.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1 import router as forum_api
from app.core.config import settings
from app.core.database import close_db, get_db, init_db
from app.core.errors import register_error_handlers
from app.modules.forum.events import close_event_publisher, get_event_publisher


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the schema and the event publisher; release both on exit."""
    logger.info(f"Starting {settings.app_name} {settings.app_version}")
    await init_db()

    if settings.forum_events_enabled:
        try:
            await get_event_publisher()
        except Exception as e:
            # Notifications are still stored; only live delivery is lost
            logger.warning(f"Forum events disabled, Redis unreachable: {e}")

    yield

    await close_event_publisher()
    await close_db()
    logger.info(f"{settings.app_name} stopped")


def create_app() -> FastAPI:
    """Build the ASGI application."""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Community forum backend: categories, topics and threaded replies "
            "with moderation, likes, views, notifications and an activity feed."
        ),
        openapi_url=f"{settings.api_v1_prefix}/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(application)
    application.include_router(forum_api, prefix=settings.api_v1_prefix)

    @application.get("/health", tags=["System"])
    async def health_check(db: AsyncSession = Depends(get_db)) -> dict:
        """Liveness plus a round trip to the database."""
        await db.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "version": settings.app_version,
            "database": "ok",
            "events": settings.forum_events_enabled,
        }

    @application.get("/", tags=["System"])
    async def root() -> dict:
        """Service name and where to find the API."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "api": f"{settings.api_v1_prefix}/forum",
        }

    return application


app = create_app()
