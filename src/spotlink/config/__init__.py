"""Configuration module for SpotLink."""

from .settings import (
    CacheSettings,
    DatabaseSettings,
    FederationSettings,
    ObservabilitySettings,
    Settings,
    SpotifySettings,
    get_settings,
)

__all__ = [
    "CacheSettings",
    "DatabaseSettings",
    "FederationSettings",
    "ObservabilitySettings",
    "Settings",
    "SpotifySettings",
    "get_settings",
]
