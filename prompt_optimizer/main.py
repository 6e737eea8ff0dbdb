"""
Prompt Optimizer Cache Runtime

Lifecycle management for the cache layer: logging setup, manager
construction, background expiry sweeping and shutdown.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog

from .constants import APP_NAME, APP_VERSION
from .core.config import Settings, get_settings
from .core.logging import configure_logging
from .services.cache.cache_manager import CacheManager
from .services.cache.factory import build_cache_manager
from .services.cache.sweeper import ExpirySweeper

logger = structlog.get_logger()


@asynccontextmanager
async def cache_lifespan(
    settings: Optional[Settings] = None,
    session_id: Optional[str] = None,
    manager: Optional[CacheManager] = None,
) -> AsyncIterator[CacheManager]:
    """
    Run the cache layer for the lifetime of the block.

    Builds the manager from settings unless one is supplied, starts the
    expiry sweeper and always stops it and closes the manager on exit.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)
    logger.info(
        f"Starting {APP_NAME} cache",
        version=APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    manager = manager or build_cache_manager(settings, session_id=session_id)
    sweeper = ExpirySweeper(manager, settings.CACHE_SWEEP_INTERVAL_SECONDS)
    await sweeper.start()

    try:
        yield manager
    finally:
        logger.info(f"Shutting down {APP_NAME} cache")
        await sweeper.stop()
        await manager.close()
        logger.info(f"{APP_NAME} cache shutdown completed")
