"""
Expiry Sweeper

Background task that periodically removes expired entries from every
configured tier, so entries that are never read again do not linger.
"""

import asyncio
from typing import Dict, Optional

import structlog

from ...constants import DEFAULT_SWEEP_INTERVAL_SECONDS
from .cache_manager import CacheManager

logger = structlog.get_logger(__name__)


class ExpirySweeper:
    """Periodic eager expiry for a cache manager."""

    def __init__(
        self,
        manager: CacheManager,
        interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ):
        if interval_seconds <= 0:
            raise ValueError("Sweep interval must be positive")
        self.manager = manager
        self.interval_seconds = interval_seconds
        self._sweep_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def run_once(self) -> Dict[str, int]:
        """
        Sweep every tier once.

        A tier that fails is logged and skipped; the others are still swept.

        Returns:
            Removed entry counts keyed by tier name
        """
        removed: Dict[str, int] = {}
        for tier in self.manager.tiers:
            try:
                removed.update(await self.manager.clear_expired(tier))
            except Exception as e:
                logger.error("Expiry sweep failed", tier=tier.value, error=str(e))

        total = sum(removed.values())
        if total:
            logger.info("Expired cache entries removed", removed=removed, total=total)
        return removed

    async def start(self) -> None:
        """Start background sweeping."""
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())
            logger.info("Cache expiry sweeper started", interval=self.interval_seconds)

    async def stop(self) -> None:
        """Stop background sweeping."""
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
            logger.info("Cache expiry sweeper stopped")

    async def _sweep_loop(self) -> None:
        """Background sweep loop."""
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Cache expiry sweep error", error=str(e))

    async def __aenter__(self) -> "ExpirySweeper":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
