"""Per-user Spotify token lifecycle.

Hey future me - two kinds of tokens exist for every user:

- client-credentials token: app-level, obtained with the user's registered
  application credential ("clientId:clientSecret"). Good enough for search and
  browse, NOT for /me endpoints.
- web token: user-authorized via the OAuth redirect flow. Can do everything,
  comes with a refresh token.

select_token() prefers the web token, falls back to the client token and only
then does a client-credentials login. The login is serialized per user, so N
concurrent queries for a cold user cause exactly ONE token request.

The refresh-token and authorization-code grants live here too, but only the
user-facing auth service calls them. A catalog query never refreshes a web
token on its own; on 401 it falls back to client credentials instead.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from spotlink.domain.entities import User
from spotlink.domain.exceptions import AuthenticationError, ExternalServiceError
from spotlink.domain.ports import ISpotifyClient, IUserRepository

logger = logging.getLogger(__name__)


class TokenState(str, Enum):
    """Where a user is in the credential lifecycle."""

    NO_CREDENTIALS = "no_credentials"
    HAS_API_KEY = "has_api_key"
    HAS_TOKEN = "has_token"
    INVALID = "invalid"


@dataclass
class SpotifyTokenRecord:
    """In-memory token state for one user."""

    api_key: str | None = None
    client_token: str | None = None
    web_token: str | None = None
    refresh_token: str | None = None
    market: str | None = None
    invalidated: bool = False

    @property
    def state(self) -> TokenState:
        if self.client_token or self.web_token:
            return TokenState.HAS_TOKEN
        if self.invalidated:
            return TokenState.INVALID
        if self.api_key:
            return TokenState.HAS_API_KEY
        return TokenState.NO_CREDENTIALS


class SpotifyTokenStore:
    """Process-wide token records and per-user locks.

    One instance per process, injected into the token manager. Records are
    seeded from the User on first sight and from then on only change through
    SpotifyTokenManager, which also writes the changes back to the user.
    """

    def __init__(self) -> None:
        self._records: dict[UUID, SpotifyTokenRecord] = {}
        self._locks: dict[UUID, asyncio.Lock] = {}

    def record_for(self, user: User) -> SpotifyTokenRecord:
        record = self._records.get(user.id)
        if record is None:
            record = SpotifyTokenRecord(
                api_key=user.spotify_api_key,
                client_token=user.spotify_token,
                web_token=user.spotify_web_token,
                refresh_token=user.spotify_refresh_token,
                market=user.spotify_market,
            )
            self._records[user.id] = record
        return record

    def lock_for(self, user_id: UUID) -> asyncio.Lock:
        return self._locks.setdefault(user_id, asyncio.Lock())

    def forget(self, user_id: UUID) -> None:
        self._records.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._records)


class SpotifyTokenManager:
    """Obtains, selects and invalidates Spotify tokens per user."""

    def __init__(
        self,
        client: ISpotifyClient,
        store: SpotifyTokenStore,
        user_repository: IUserRepository | None = None,
        redirect_uri: str | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._users = user_repository
        self._redirect_uri = redirect_uri

    def state_of(self, user: User) -> TokenState:
        return self._store.record_for(user).state

    def market_for(self, user: User) -> str | None:
        return self._store.record_for(user).market

    async def client_credentials_login(self, api_key: str | None) -> str | None:
        """Exchange an application credential for an app-level token.

        Returns:
            Access token, or None on missing credential or any failure
        """
        if not api_key:
            return None
        try:
            payload = await self._client.request_token(
                api_key, {"grant_type": "client_credentials"}
            )
        except (ExternalServiceError, AuthenticationError) as e:
            logger.warning("Spotify client-credentials login failed: %s", e.message)
            return None

        token = payload.get("access_token")
        if not token:
            logger.warning("Spotify token response without access_token")
            return None
        return str(token)

    # Hey future me - the second record check INSIDE the lock is what makes
    # concurrent cold-start queries share one login. Whoever gets the lock
    # first logs in, everyone else finds the token already there.
    async def select_token(
        self, user: User, force_client_credentials: bool = False
    ) -> str | None:
        """Pick the token for a remote call.

        Args:
            user: User the call is made for
            force_client_credentials: Skip the web token (retry after a 401)

        Returns:
            Access token or None if the user has no usable credentials
        """
        record = self._store.record_for(user)
        if not force_client_credentials and record.web_token:
            return record.web_token
        if record.client_token:
            return record.client_token

        async with self._store.lock_for(user.id):
            if record.client_token:
                return record.client_token

            token = await self.client_credentials_login(record.api_key)
            if token is None:
                return None

            record.client_token = token
            record.invalidated = False
            user.spotify_token = token
            await self._persist(user)
            logger.debug("Acquired Spotify client token for user %s", user.id)
            return token

    def invalidate(self, user: User, token: str) -> None:
        """Drop token if it is the user's client-credentials token.

        A rejected web token is left alone: it can only be replaced through the
        interactive refresh flow, and the retry uses client credentials anyway.
        """
        record = self._store.record_for(user)
        if token and record.client_token == token:
            record.client_token = None
            record.invalidated = True
            logger.info("Invalidated Spotify client token for user %s", user.id)

    async def warm_up(self, users: list[User]) -> int:
        """Log in every user with a stored credential but no token.

        Returns:
            Number of users holding a token afterwards
        """
        ready = 0
        for user in users:
            if await self.select_token(user) is not None:
                ready += 1
        logger.info("Spotify tokens warmed up for %d of %d users", ready, len(users))
        return ready

    async def register_api_key(self, user: User, api_key: str) -> None:
        """Store a new application credential, dropping the old client token."""
        record = self._store.record_for(user)
        record.api_key = api_key
        record.client_token = None
        record.invalidated = False
        user.spotify_api_key = api_key
        user.spotify_token = None
        await self._persist(user)

    async def exchange_authorization_code(self, user: User, code: str) -> str:
        """Trade an OAuth authorization code for web + refresh tokens.

        Raises:
            AuthenticationError: No application credential, or grant rejected
            ExternalServiceError: Token endpoint unreachable or failing
        """
        api_key = self._require_api_key(user)
        payload = await self._client.request_token(
            api_key,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri or "",
            },
        )
        access_token = payload.get("access_token")
        if not access_token:
            raise AuthenticationError("Spotify did not return an access token")
        await self.store_web_tokens(user, str(access_token), payload.get("refresh_token"))
        return str(access_token)

    async def refresh_web_token(self, user: User) -> str:
        """Get a new web token with the stored refresh token.

        Raises:
            AuthenticationError: No refresh token or credential stored
            TokenRefreshException: Refresh token rejected (invalid_grant)
            ExternalServiceError: Token endpoint unreachable or failing
        """
        record = self._store.record_for(user)
        if not record.refresh_token:
            raise AuthenticationError("No Spotify refresh token stored")
        api_key = self._require_api_key(user)

        payload = await self._client.request_token(
            api_key,
            {"grant_type": "refresh_token", "refresh_token": record.refresh_token},
        )
        access_token = payload.get("access_token")
        if not access_token:
            raise AuthenticationError("Spotify did not return an access token")
        # Spotify only sometimes rotates the refresh token
        await self.store_web_tokens(user, str(access_token), payload.get("refresh_token"))
        return str(access_token)

    async def store_web_tokens(
        self, user: User, access_token: str, refresh_token: str | None = None
    ) -> None:
        record = self._store.record_for(user)
        record.web_token = access_token
        user.spotify_web_token = access_token
        if refresh_token:
            record.refresh_token = refresh_token
            user.spotify_refresh_token = refresh_token
        await self._persist(user)

    async def store_market(self, user: User, market: str | None) -> None:
        record = self._store.record_for(user)
        record.market = market
        user.spotify_market = market
        await self._persist(user)

    def web_token(self, user: User) -> str | None:
        return self._store.record_for(user).web_token

    def has_refresh_token(self, user: User) -> bool:
        return bool(self._store.record_for(user).refresh_token)

    def _require_api_key(self, user: User) -> str:
        api_key = self._store.record_for(user).api_key or user.spotify_api_key
        if not api_key:
            raise AuthenticationError("No Spotify application credential registered")
        return api_key

    async def _persist(self, user: User) -> None:
        if self._users is not None:
            await self._users.update(user)
