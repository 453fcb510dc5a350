"""Short-lived OAuth state storage."""

from typing import Any
from uuid import UUID

from spotlink.application.cache.base_cache import InMemoryCache


class AuthStateCache:
    """Maps a pending OAuth `state` value to the user that started the login.

    Entries live 5 minutes by default and are consumed on first use.
    """

    DEFAULT_TTL = 300

    def __init__(self, ttl_seconds: int = DEFAULT_TTL) -> None:
        self.ttl_seconds = ttl_seconds
        self._cache: InMemoryCache[str, UUID] = InMemoryCache()

    async def remember(self, state: str, user_id: UUID) -> None:
        await self._cache.set(state, user_id, self.ttl_seconds)

    async def consume(self, state: str) -> UUID | None:
        """Return the user for state and forget it, None if unknown or expired."""
        return await self._cache.pop(state)

    async def cleanup_expired(self) -> int:
        """Drop states of logins that were never completed."""
        return await self._cache.cleanup_expired()

    def get_stats(self) -> dict[str, Any]:
        return self._cache.get_stats()
