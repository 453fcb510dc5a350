"""Cache of materialized catalog entities.

Hey future me - this sits in FRONT of the catalog store when materializing
Spotify items. A search for "daft punk" returns the same artists over and
over, and without the cache every hit would be a store round-trip. The store
stays authoritative: a miss here just means "go ask the store".
"""

from typing import Any
from uuid import UUID

from spotlink.application.cache.base_cache import InMemoryCache
from spotlink.domain.entities import CatalogEntity


class EntityCache:
    """TTL cache of CatalogEntity keyed by local id.

    Every successful lookup and every put restarts the entry's TTL, so items
    that keep showing up in results stay warm.
    """

    DEFAULT_TTL = 3600  # 1 hour

    def __init__(self, ttl_seconds: int = DEFAULT_TTL) -> None:
        self.ttl_seconds = ttl_seconds
        self._cache: InMemoryCache[UUID, CatalogEntity] = InMemoryCache()

    async def get(self, item_id: UUID) -> CatalogEntity | None:
        """Get an entity and refresh its TTL."""
        item = await self._cache.get(item_id)
        if item is not None:
            await self._cache.set(item_id, item, self.ttl_seconds)
        return item

    async def put(self, item: CatalogEntity) -> None:
        await self._cache.set(item.id, item, self.ttl_seconds)

    async def cleanup_expired(self) -> int:
        return await self._cache.cleanup_expired()

    def get_stats(self) -> dict[str, Any]:
        return self._cache.get_stats()
