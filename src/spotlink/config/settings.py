"""Application settings loaded from environment variables and .env files."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_", env_file=".env", extra="ignore"
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./spotlink.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")


class SpotifySettings(BaseSettings):
    """Spotify Web API endpoints and OAuth settings.

    The application credential itself ("clientId:clientSecret") is stored per
    user, not here. These are the process-wide knobs.
    """

    model_config = SettingsConfigDict(
        env_prefix="SPOTIFY_", env_file=".env", extra="ignore"
    )

    api_base_url: str = Field(default="https://api.spotify.com/v1")
    accounts_url: str = Field(default="https://accounts.spotify.com")
    redirect_uri: str = Field(
        default="http://localhost:8000/spotify/auth-callback",
        description="OAuth redirect URI registered in the Spotify developer dashboard",
    )
    scopes: list[str] = Field(
        default_factory=lambda: [
            "user-library-read",
            "user-read-private",
            "user-follow-read",
            "user-top-read",
            "playlist-read-private",
        ]
    )
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    post_login_redirect: str = Field(
        default="/", description="Where the browser lands after the OAuth callback"
    )

    @property
    def token_url(self) -> str:
        return f"{self.accounts_url.rstrip('/')}/api/token"

    @property
    def authorize_url(self) -> str:
        return f"{self.accounts_url.rstrip('/')}/authorize"


class CacheSettings(BaseSettings):
    """In-process cache lifetimes."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_", env_file=".env", extra="ignore"
    )

    entity_ttl_seconds: int = Field(default=3600, ge=1)
    auth_state_ttl_seconds: int = Field(default=300, ge=1)
    cleanup_interval_seconds: int = Field(
        default=300, ge=1, description="Seconds between sweeps of expired cache entries"
    )


class FederationSettings(BaseSettings):
    """Limits applied when augmenting local queries with remote results."""

    model_config = SettingsConfigDict(
        env_prefix="FEDERATION_", env_file=".env", extra="ignore"
    )

    default_artist_limit: int = Field(default=20, ge=1)
    default_search_limit: int = Field(default=25, ge=1)
    artist_album_limit: int = Field(default=50, ge=1, le=50)
    favorites_page_size: int = Field(default=50, ge=1, le=50)
    # Hey future me - hard stop for the favorites loop. A user with 5000 liked
    # songs and limit=None would otherwise page through everything.
    favorites_max_pages: int = Field(default=20, ge=1)


class ObservabilitySettings(BaseSettings):
    """Logging output settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_", env_file=".env", extra="ignore")

    json_format: bool = Field(default=False, description="Emit JSON log lines")


class Settings(BaseSettings):
    """Top-level settings container."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = Field(default="spotlink")
    log_level: str = Field(default="INFO")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    federation: FederationSettings = Field(default_factory=FederationSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
