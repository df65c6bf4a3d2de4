"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from bloodlink.admin.router import router as admin_router
from bloodlink.admin.seed import seed_admin
from bloodlink.auth.router import router as auth_router
from bloodlink.blood_requests.router import router as recipients_router
from bloodlink.camps.router import router as camps_router
from bloodlink.config import get_settings
from bloodlink.database import close_db, get_session, init_db
from bloodlink.donations.router import router as donations_router
from bloodlink.donors.router import router as donors_router
from bloodlink.email.service import get_email_service, reset_email_service
from bloodlink.health.router import router as health_router
from bloodlink.middleware import setup_middleware
from bloodlink.notifications.router import router as notifications_router
from bloodlink.redis_client import close_redis, get_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Email rate limiting shares the Redis client
    get_email_service(get_redis())

    try:
        async for db in get_session():
            await seed_admin(db)
            break
    except SQLAlchemyError:
        logger.warning("Admin seeding failed (tables may not exist yet)", exc_info=True)

    yield

    reset_email_service()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="BloodLink API",
        description="Blood donation coordination: donors, requests, camps and verification",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(donors_router)
    app.include_router(recipients_router)
    app.include_router(camps_router)
    app.include_router(donations_router)
    app.include_router(notifications_router)
    app.include_router(admin_router)

    return app


app = create_app()
