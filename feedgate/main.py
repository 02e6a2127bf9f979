import logging
import sys
from logging.handlers import RotatingFileHandler

import uvicorn

from feedgate.config import get_settings


def setup_logging():
    settings = get_settings()

    log_path = settings.resolve_path(settings.logging.file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            RotatingFileHandler(
                str(log_path),
                maxBytes=settings.logging.max_size_mb * 1024 * 1024,
                backupCount=settings.logging.backup_count,
            ),
        ],
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def main():
    setup_logging()
    logger = logging.getLogger(__name__)

    settings = get_settings()

    logger.info("=" * 60)
    logger.info("  feedgate - update mirror and caching gateway")
    logger.info("=" * 60)
    logger.info(f"  Host: {settings.server.host}")
    logger.info(f"  Port: {settings.server.port}")
    logger.info(f"  Mirror: {settings.mirror_root}")
    logger.info(f"  Schedule: {settings.schedule.time if settings.schedule.enabled else 'disabled'}")
    logger.info("=" * 60)

    settings.resolve_path(settings.database.path).parent.mkdir(parents=True, exist_ok=True)
    settings.mirror_root.mkdir(parents=True, exist_ok=True)

    ssl_options = {}
    if settings.server.ssl_certfile and settings.server.ssl_keyfile:
        ssl_options = {
            "ssl_certfile": str(settings.resolve_path(settings.server.ssl_certfile)),
            "ssl_keyfile": str(settings.resolve_path(settings.server.ssl_keyfile)),
        }

    # One worker: the scheduler and the update cycles live in-process.
    uvicorn.run(
        "feedgate.api.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.debug,
        workers=1,
        log_config=None,
        **ssl_options,
    )


if __name__ == "__main__":
    main()
