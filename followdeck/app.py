"""followdeck FastAPI application"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from followdeck import __version__
from followdeck.core.config import get_settings
from followdeck.core.database import get_database_manager, init_database_manager
from followdeck.core.dependencies import close_twitch_api
from followdeck.core.logging import setup_logging
from followdeck.routers import auth_router, channels_router, favorites_router
from presence.database import PoolConfig
from presence.migrations import MigrationRunner

logger = logging.getLogger(__name__)

DB_CONNECT_TIMEOUT = 30

_started_at: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the pool and bring the schema up to date; close both clients on exit"""
    global _started_at
    _started_at = time.time()

    settings = get_settings()
    logger.info(f"followdeck {__version__} starting (env={settings.environment})")

    db_manager = init_database_manager(
        settings.database_url,
        PoolConfig(max_size=settings.db_pool_max_size, ssl=settings.db_ssl),
    )
    await asyncio.wait_for(db_manager.connect(), timeout=DB_CONNECT_TIMEOUT)
    try:
        applied = await MigrationRunner(db_manager.pool).run_pending()
    except Exception:
        logger.error("Migrations failed, closing database pool")
        await db_manager.disconnect()
        raise
    logger.info(f"Ledger ready ({len(applied)} migration(s) applied)")

    yield

    logger.info("followdeck shutting down")
    try:
        await close_twitch_api()
    finally:
        await db_manager.disconnect()


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="followdeck",
        description="Followed Twitch channels with live status, favorites and last-seen times",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["*"],
    )

    for module in (auth_router, channels_router, favorites_router):
        app.include_router(module.router)

    @app.get("/health")
    async def health():
        """Liveness; does not touch the database"""
        return {"status": "healthy", "uptime_seconds": int(time.time() - _started_at)}

    @app.get("/status")
    async def status():
        """Readiness, including a round trip to PostgreSQL"""
        try:
            db_ok = await get_database_manager().check_health()
        except RuntimeError:
            db_ok = False
        return {
            "service": "followdeck",
            "version": __version__,
            "db_connected": db_ok,
            "environment": settings.environment,
        }

    return app
