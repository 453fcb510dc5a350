"""User and per-user item state."""

from dataclasses import dataclass
from uuid import UUID


@dataclass
class User:
    """A local user and their stored Spotify credentials.

    Attributes:
        spotify_api_key: Application credential as "clientId:clientSecret"
        spotify_token: Last client-credentials access token
        spotify_web_token: User-authorized (OAuth) access token
        spotify_refresh_token: Refresh token for the web token
        spotify_market: Region code from GET /me, passed as market= on catalog calls
    """

    id: UUID
    username: str
    spotify_api_key: str | None = None
    spotify_token: str | None = None
    spotify_web_token: str | None = None
    spotify_refresh_token: str | None = None
    spotify_market: str | None = None

    @property
    def spotify_client_id(self) -> str | None:
        """Client id half of the application credential."""
        if not self.spotify_api_key:
            return None
        return self.spotify_api_key.split(":", 1)[0]

    @property
    def has_spotify_credentials(self) -> bool:
        return bool(self.spotify_api_key or self.spotify_web_token)


@dataclass
class UserItemData:
    """Per-user state for a catalog item."""

    user_id: UUID
    item_id: UUID
    is_favorite: bool = False
    play_count: int = 0
