import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from ..cache import OnDemandCache
from ..config import Settings, get_settings
from ..net import Downloader
from ..storage import DatabaseManager, VersionStore
from ..updates import DailyScheduler, UpdateManager
from .middleware import IPFilterMiddleware

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, start_scheduler: Optional[bool] = None) -> FastAPI:
    settings = settings or get_settings()
    if start_scheduler is None:
        start_scheduler = settings.schedule.enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting feedgate...")

        db_manager = DatabaseManager(settings=settings)
        await db_manager.init_db()
        app.state.db_manager = db_manager
        app.state.store = VersionStore(db_manager)

        settings.mirror_root.mkdir(parents=True, exist_ok=True)

        downloader = Downloader.from_settings(settings)
        app.state.downloader = downloader
        app.state.manager = UpdateManager(settings, app.state.store, downloader=downloader)

        proxy_timeout = settings.download.proxy_timeout_seconds
        app.state.matrix_cache = OnDemandCache(
            settings.mirror_root / "matrix", downloader, timeout=proxy_timeout, name="matrix",
        )
        app.state.bitdefender_cache = OnDemandCache(
            settings.mirror_root / "bitdefender", downloader, timeout=proxy_timeout, name="bitdefender",
        )

        app.state.scheduler = None
        if start_scheduler:
            app.state.scheduler = DailyScheduler(app.state.manager, settings.schedule.time)
            await app.state.scheduler.start()

        logger.info("feedgate started successfully")

        yield

        logger.info("Shutting down feedgate...")
        if app.state.scheduler:
            await app.state.scheduler.stop()
        await app.state.manager.close()
        await downloader.aclose()
        await db_manager.close()

    app = FastAPI(
        title="feedgate",
        description="Update mirror and caching gateway for security appliance feeds",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        IPFilterMiddleware,
        allowed=settings.ip_filter.allowed,
        blocked=settings.ip_filter.blocked,
        trust_forwarded=settings.ip_filter.trust_forwarded,
    )

    from .routes import content, protocol, system

    app.include_router(system.router, prefix="/api/system", tags=["System"])
    app.include_router(protocol.router, tags=["Protocol"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "feedgate"}

    # Catch-all route; must stay last.
    app.include_router(content.router, tags=["Content"])

    return app


app = create_app()
