"""Cache Cleanup Worker - sweeps expired entries out of the in-process caches.

Hey future me - the caches only evict on READ. EntityCache gets every artist,
album and track that was ever materialized, and most of them are never looked
up again. Same for OAuth states of logins the user abandoned. Without this
sweep those entries sit in memory until the process dies.

Runs every cache.cleanup_interval_seconds (default 5 min) and calls
cleanup_expired() on each registered cache.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class ExpiringCache(Protocol):
    async def cleanup_expired(self) -> int: ...


class CacheCleanupWorker:
    """Periodically remove expired cache entries.

    Lifecycle:
    - Created in lifecycle.py during app startup
    - Runs as asyncio task via start()
    - stop() ends the loop, the lifespan cancels the task on shutdown
    """

    def __init__(
        self,
        caches: dict[str, ExpiringCache],
        check_interval: int = 300,
    ) -> None:
        self._caches = caches
        self._check_interval = check_interval
        self._running = False
        self._stats: dict[str, Any] = {
            "total_removed": 0,
            "removed_last_cycle": 0,
            "last_run_at": None,
        }

    async def start(self) -> None:
        """Sweep until stop() is called."""
        self._running = True
        logger.info(
            "CacheCleanupWorker started (check_interval=%ss, caches=%s)",
            self._check_interval,
            sorted(self._caches),
        )

        while self._running:
            await asyncio.sleep(self._check_interval)
            try:
                await self.run_once()
            except Exception as e:
                # Log but keep going, the next cycle may well succeed
                logger.exception("CacheCleanupWorker error: %s", e)

    def stop(self) -> None:
        """Signal the worker to stop."""
        self._running = False
        logger.info("CacheCleanupWorker stopping...")

    async def run_once(self) -> int:
        """Sweep every cache once.

        Returns:
            Number of entries removed across all caches
        """
        removed = 0
        for name, cache in self._caches.items():
            count = await cache.cleanup_expired()
            if count:
                logger.debug("Removed %d expired entries from %s", count, name)
            removed += count

        self._stats["total_removed"] += removed
        self._stats["removed_last_cycle"] = removed
        self._stats["last_run_at"] = datetime.now(UTC).isoformat()
        return removed

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "running": self._running,
            "check_interval": self._check_interval,
        }
