"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sharkband.analytics.router import router as analytics_router
from sharkband.cards.router import router as cards_router
from sharkband.checkins.router import router as checkins_router
from sharkband.config import get_settings
from sharkband.health.router import router as health_router
from sharkband.middleware import setup_middleware
from sharkband.redis_client import close_redis, init_redis
from sharkband.runtime import close_runtime, init_runtime
from sharkband.seed import seed_demo_data
from sharkband.users.router import router as users_router
from sharkband.wallet.router import router as wallet_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    runtime = await init_runtime(settings)
    await init_redis(settings.redis_url, settings.redis_max_connections)

    if settings.seed_demo_data:
        await seed_demo_data(runtime.store, runtime.clock)

    yield

    await close_redis()
    await close_runtime()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="SharkBand API",
        description="Loyalty card check-ins, points and analytics",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(users_router)
    app.include_router(cards_router)
    app.include_router(wallet_router)
    app.include_router(checkins_router)
    app.include_router(analytics_router)

    return app


app = create_app()
