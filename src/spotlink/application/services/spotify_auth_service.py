"""Spotify credential management for end users.

Hey future me - this is the user-facing side of the token lifecycle:

1. register_api_key() -> user pastes "clientId:clientSecret", we test it with a
   client-credentials login before storing it
2. get_access_token() -> web token if we have one, else a LoginRedirect
3. user visits the redirect URL, Spotify calls back with code + state
4. handle_callback() -> checks state, trades code for tokens, then refreshes
   the user's market in the background
5. refresh_token() -> new web token, or a LoginRedirect when the refresh token
   is missing or dead

Catalog queries never come through here. They only use SpotifyTokenManager.
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass
from uuid import UUID

from spotlink.application.cache.auth_state_cache import AuthStateCache
from spotlink.application.services.token_manager import SpotifyTokenManager
from spotlink.domain.entities import User
from spotlink.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    EntityNotFoundException,
    ExternalServiceError,
    TokenRefreshException,
    ValidationError,
)
from spotlink.domain.ports import ISpotifyClient, IUserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginRedirect:
    """Where to send the browser to authorize the app."""

    authorization_url: str
    state: str


@dataclass(frozen=True)
class AccessTokenResult:
    """Either a usable web token or the redirect needed to get one."""

    access_token: str | None = None
    login_redirect: LoginRedirect | None = None

    @property
    def needs_login(self) -> bool:
        return self.access_token is None


class SpotifyAuthService:
    """Registers application credentials and runs the OAuth redirect flow."""

    def __init__(
        self,
        client: ISpotifyClient,
        tokens: SpotifyTokenManager,
        users: IUserRepository,
        states: AuthStateCache,
    ) -> None:
        self._client = client
        self._tokens = tokens
        self._users = users
        self._states = states
        self._background: set[asyncio.Task[str | None]] = set()

    async def register_api_key(self, user: User, api_key: str) -> None:
        """Validate and store an application credential.

        Raises:
            ValidationError: Not of the form "clientId:clientSecret"
            AuthenticationError: Spotify rejected the credential
        """
        api_key = api_key.strip()
        client_id, sep, secret = api_key.partition(":")
        if not sep or not client_id or not secret:
            raise ValidationError("Expected credential as 'clientId:clientSecret'")

        if await self._tokens.client_credentials_login(api_key) is None:
            raise AuthenticationError("Spotify rejected the application credential")

        await self._tokens.register_api_key(user, api_key)
        logger.info("Registered Spotify application %s for user %s", client_id, user.id)

    def get_api_id(self, user: User) -> str | None:
        """Client id of the registered credential, never the secret."""
        return user.spotify_client_id

    async def get_access_token(self, user: User) -> AccessTokenResult:
        token = self._tokens.web_token(user)
        if token:
            return AccessTokenResult(access_token=token)
        return AccessTokenResult(login_redirect=await self.login_redirect(user))

    async def login_redirect(self, user: User) -> LoginRedirect:
        """Create a single-use state and the matching authorize URL.

        Raises:
            ConfigurationError: No application credential registered
        """
        client_id = user.spotify_client_id
        if not client_id:
            raise ConfigurationError("No Spotify application credential registered")

        state = secrets.token_hex(16)
        await self._states.remember(state, user.id)
        return LoginRedirect(
            authorization_url=self._client.authorize_url(client_id, state),
            state=state,
        )

    # Hey future me - state is consumed FIRST, even when Spotify reports an error.
    # A state value is good for exactly one callback, whatever happens next.
    async def handle_callback(
        self,
        state: str | None,
        code: str | None,
        error: str | None = None,
    ) -> User:
        """Finish the OAuth flow.

        Raises:
            AuthenticationError: Unknown/expired state, or the user denied access
            ValidationError: Callback without a code
            EntityNotFoundException: The user behind the state is gone
        """
        user_id = await self._states.consume(state) if state else None
        if user_id is None:
            raise AuthenticationError("Invalid or expired OAuth state")
        if error:
            raise AuthenticationError(f"Spotify authorization failed: {error}")
        if not code:
            raise ValidationError("OAuth callback without authorization code")

        user = await self._load_user(user_id)
        await self._tokens.exchange_authorization_code(user, code)
        logger.info("Spotify login completed for user %s", user.id)

        self.schedule_market_refresh(user)
        return user

    async def refresh_token(self, user: User) -> AccessTokenResult:
        """Refresh the web token, falling back to the login redirect.

        Raises:
            ExternalServiceError: Token endpoint unreachable or failing
        """
        if not self._tokens.has_refresh_token(user):
            return AccessTokenResult(login_redirect=await self.login_redirect(user))

        try:
            token = await self._tokens.refresh_web_token(user)
        except TokenRefreshException as e:
            logger.info("Spotify refresh token rejected for user %s: %s", user.id, e.message)
            return AccessTokenResult(login_redirect=await self.login_redirect(user))
        return AccessTokenResult(access_token=token)

    async def update_user_market(self, user: User) -> str | None:
        """Read the user's country from GET /me and store it as market."""
        token = self._tokens.web_token(user)
        if not token:
            return None
        try:
            profile = await self._client.get_current_user(token)
        except ExternalServiceError as e:
            logger.warning("Could not read Spotify profile for user %s: %s", user.id, e.message)
            return None

        market = profile.get("country")
        await self._tokens.store_market(user, market)
        logger.debug("Spotify market for user %s is %s", user.id, market)
        return market

    def schedule_market_refresh(self, user: User) -> None:
        """Run update_user_market without making the caller wait."""
        task = asyncio.create_task(self.update_user_market(user))
        self._background.add(task)
        task.add_done_callback(self._finish_background)

    async def drain(self) -> None:
        """Wait for scheduled background work (shutdown, tests)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _finish_background(self, task: "asyncio.Task[str | None]") -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Background Spotify market refresh failed", exc_info=task.exception()
            )

    async def _load_user(self, user_id: UUID) -> User:
        user = await self._users.get(user_id)
        if user is None:
            raise EntityNotFoundException("User", user_id)
        return user
