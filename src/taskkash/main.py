"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from taskkash.admin.router import router as admin_router
from taskkash.auth.router import router as auth_router
from taskkash.config import get_settings
from taskkash.database import close_db, init_db
from taskkash.health.router import router as health_router
from taskkash.ledger.router import router as ledger_router
from taskkash.middleware import setup_middleware
from taskkash.redis_client import close_redis, init_redis
from taskkash.social.notification_router import router as notification_router
from taskkash.social.router import router as activity_router
from taskkash.tasks.router import router as tasks_router
from taskkash.users.router import router as users_router
from taskkash.withdrawals.router import router as withdrawals_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the database and Redis pools for the lifetime of the app."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="TaskKash API",
        description="Backend API for TaskKash: complete tasks, earn Task Points, withdraw to bank or USDT",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(ledger_router)
    app.include_router(tasks_router)
    app.include_router(withdrawals_router)
    app.include_router(notification_router)
    app.include_router(activity_router)
    app.include_router(admin_router)

    return app


app = create_app()
