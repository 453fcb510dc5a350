"""Background workers started by the application lifespan."""

from spotlink.application.workers.cache_cleanup_worker import (
    CacheCleanupWorker,
    ExpiringCache,
)

__all__ = ["CacheCleanupWorker", "ExpiringCache"]
