"""Caching layer - in-process caches for entities and OAuth state."""

from spotlink.application.cache.auth_state_cache import AuthStateCache
from spotlink.application.cache.base_cache import BaseCache, InMemoryCache
from spotlink.application.cache.entity_cache import EntityCache

__all__ = [
    "AuthStateCache",
    "BaseCache",
    "EntityCache",
    "InMemoryCache",
]
