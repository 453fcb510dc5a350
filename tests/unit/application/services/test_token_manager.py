"""Tests for the per-user Spotify token lifecycle."""

import asyncio
from uuid import uuid4

import pytest

from spotlink.application.services import SpotifyTokenManager, SpotifyTokenStore, TokenState
from spotlink.domain.entities import User
from spotlink.domain.exceptions import (
    AuthenticationError,
    ExternalServiceError,
    TokenRefreshException,
)


class TestTokenSelection:
    """Test web token -> client token -> client-credentials login order."""

    async def test_prefers_web_token(self, tokens: SpotifyTokenManager, spotify) -> None:
        user = User(
            id=uuid4(),
            username="u",
            spotify_api_key="id:secret",
            spotify_token="client",
            spotify_web_token="web",
        )
        assert await tokens.select_token(user) == "web"
        assert spotify.token_requests == []

    async def test_falls_back_to_client_token(self, tokens: SpotifyTokenManager) -> None:
        user = User(id=uuid4(), username="u", spotify_api_key="id:secret", spotify_token="client")
        assert await tokens.select_token(user) == "client"

    async def test_force_client_credentials_skips_web_token(
        self, tokens: SpotifyTokenManager
    ) -> None:
        user = User(
            id=uuid4(), username="u", spotify_token="client", spotify_web_token="web"
        )
        assert await tokens.select_token(user, force_client_credentials=True) == "client"

    async def test_logs_in_with_client_credentials(
        self, tokens: SpotifyTokenManager, spotify, user: User, user_repository
    ) -> None:
        token = await tokens.select_token(user)

        assert token == "client-token"
        assert spotify.token_requests == [
            ("client-id:client-secret", {"grant_type": "client_credentials"})
        ]
        assert user.spotify_token == "client-token"
        assert user_repository.updates == 1
        assert tokens.state_of(user) is TokenState.HAS_TOKEN

    async def test_no_credentials_means_no_token(
        self, tokens: SpotifyTokenManager, spotify
    ) -> None:
        user = User(id=uuid4(), username="nobody")
        assert await tokens.select_token(user) is None
        assert spotify.token_requests == []
        assert tokens.state_of(user) is TokenState.NO_CREDENTIALS

    async def test_failed_login_returns_none(
        self, tokens: SpotifyTokenManager, spotify, user: User
    ) -> None:
        spotify.token_payload = ExternalServiceError("spotify", "boom", status_code=500)
        assert await tokens.select_token(user) is None
        assert tokens.state_of(user) is TokenState.HAS_API_KEY

    async def test_response_without_access_token_returns_none(
        self, tokens: SpotifyTokenManager, spotify, user: User
    ) -> None:
        spotify.token_payload = {"token_type": "Bearer"}
        assert await tokens.select_token(user) is None

    async def test_concurrent_cold_start_logs_in_once(
        self, tokens: SpotifyTokenManager, spotify, user: User
    ) -> None:
        """Test that N concurrent queries for one user share a single login."""
        results = await asyncio.gather(*(tokens.select_token(user) for _ in range(10)))

        assert results == ["client-token"] * 10
        assert len(spotify.token_requests) == 1

    async def test_store_is_shared_between_managers(self, spotify, user: User) -> None:
        store = SpotifyTokenStore()
        first = SpotifyTokenManager(spotify, store)
        second = SpotifyTokenManager(spotify, store)

        await first.select_token(user)
        await second.select_token(user)

        assert len(spotify.token_requests) == 1
        assert len(store) == 1


class TestInvalidate:
    async def test_invalidate_client_token(
        self, tokens: SpotifyTokenManager, spotify, user: User
    ) -> None:
        await tokens.select_token(user)

        tokens.invalidate(user, "client-token")

        assert tokens.state_of(user) is TokenState.INVALID
        spotify.token_payload = {"access_token": "fresh-token"}
        assert await tokens.select_token(user) == "fresh-token"
        assert tokens.state_of(user) is TokenState.HAS_TOKEN

    async def test_invalidate_other_token_is_ignored(self, tokens: SpotifyTokenManager) -> None:
        user = User(id=uuid4(), username="u", spotify_token="client", spotify_web_token="web")

        tokens.invalidate(user, "web")

        assert await tokens.select_token(user, force_client_credentials=True) == "client"


class TestWarmUp:
    async def test_warm_up_counts_ready_users(self, tokens: SpotifyTokenManager) -> None:
        ready = User(id=uuid4(), username="a", spotify_api_key="id:secret")
        empty = User(id=uuid4(), username="b")

        assert await tokens.warm_up([ready, empty]) == 1


class TestWebTokens:
    """Test the authorization-code and refresh-token grants."""

    async def test_exchange_authorization_code(
        self, tokens: SpotifyTokenManager, spotify, user: User
    ) -> None:
        spotify.token_payload = {"access_token": "web", "refresh_token": "refresh"}

        token = await tokens.exchange_authorization_code(user, "the-code")

        assert token == "web"
        assert spotify.token_requests[-1][1] == {
            "grant_type": "authorization_code",
            "code": "the-code",
            "redirect_uri": "http://localhost:8000/spotify/auth-callback",
        }
        assert user.spotify_web_token == "web"
        assert user.spotify_refresh_token == "refresh"
        assert tokens.has_refresh_token(user)

    async def test_exchange_without_api_key_raises(self, tokens: SpotifyTokenManager) -> None:
        with pytest.raises(AuthenticationError):
            await tokens.exchange_authorization_code(User(id=uuid4(), username="u"), "code")

    async def test_refresh_keeps_old_refresh_token(
        self, tokens: SpotifyTokenManager, spotify, user: User
    ) -> None:
        """Test that a refresh response without a new refresh token keeps the old one."""
        user.spotify_refresh_token = "old-refresh"
        spotify.token_payload = {"access_token": "new-web"}

        assert await tokens.refresh_web_token(user) == "new-web"
        assert spotify.token_requests[-1][1] == {
            "grant_type": "refresh_token",
            "refresh_token": "old-refresh",
        }
        assert user.spotify_refresh_token == "old-refresh"
        assert tokens.web_token(user) == "new-web"

    async def test_refresh_without_refresh_token_raises(
        self, tokens: SpotifyTokenManager, user: User
    ) -> None:
        with pytest.raises(AuthenticationError):
            await tokens.refresh_web_token(user)

    async def test_refresh_rejected(self, tokens: SpotifyTokenManager, spotify, user: User) -> None:
        user.spotify_refresh_token = "revoked"
        spotify.token_payload = TokenRefreshException(error_code="invalid_grant", http_status=400)

        with pytest.raises(TokenRefreshException) as exc_info:
            await tokens.refresh_web_token(user)
        assert exc_info.value.requires_reauth

    async def test_register_api_key_drops_client_token(
        self, tokens: SpotifyTokenManager, user: User
    ) -> None:
        await tokens.select_token(user)

        await tokens.register_api_key(user, "other:secret")

        assert user.spotify_api_key == "other:secret"
        assert user.spotify_token is None
        assert tokens.state_of(user) is TokenState.HAS_API_KEY

    async def test_store_market(self, tokens: SpotifyTokenManager, user: User) -> None:
        await tokens.store_market(user, "SE")
        assert tokens.market_for(user) == "SE"
        assert user.spotify_market == "SE"
