"""External integration client implementations."""

from spotlink.infrastructure.integrations.spotify_client import SpotifyClient

__all__ = ["SpotifyClient"]
