"""Spotify HTTP client for the Web API and the accounts service."""

import base64
import logging
from typing import Any, cast
from urllib.parse import urlencode

import httpx

from spotlink.config.settings import SpotifySettings
from spotlink.domain.exceptions import ExternalServiceError, TokenRefreshException
from spotlink.domain.ports import ApiResponse, ISpotifyClient

logger = logging.getLogger(__name__)

SERVICE = "spotify"


def basic_auth_header(api_key: str) -> str:
    """Authorization header value for an application credential "id:secret"."""
    encoded = base64.b64encode(api_key.encode("utf-8")).decode("ascii")
    return f"Basic {encoded}"


class SpotifyClient(ISpotifyClient):
    """Thin async transport for Spotify.

    Knows nothing about users or which token to pick. Callers pass the token
    (or the application credential for the token endpoint) explicitly.
    """

    # Hey future me, the httpx client is created lazily in _get_client() so this
    # object can be built outside a running event loop (app factory, tests).
    def __init__(
        self,
        settings: SpotifySettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize Spotify client.

        Args:
            settings: Spotify configuration settings
            client: Optional preconfigured httpx client (shared pools, tests)
        """
        self.settings = settings
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def api_url(self, path: str, **params: Any) -> str:
        """Build an absolute Web API URL.

        Params with value None are dropped, so callers can pass market=None
        for users without a region code.
        """
        base = self.settings.api_base_url.rstrip("/")
        url = f"{base}/{path.lstrip('/')}"
        query = {key: value for key, value in params.items() if value is not None}
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    def authorize_url(self, client_id: str, state: str) -> str:
        params = {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": self.settings.redirect_uri,
            "state": state,
            "scope": " ".join(self.settings.scopes),
        }
        return f"{self.settings.authorize_url}?{urlencode(params)}"

    # Hey future me - the token endpoint wants form-urlencoded, NOT JSON, and
    # the credential goes in a Basic header. 400 invalid_grant is checked BEFORE
    # the generic status check because it means "log in again", not "retry".
    async def request_token(self, api_key: str, form: dict[str, str]) -> dict[str, Any]:
        """POST a grant to the token endpoint.

        Args:
            api_key: Application credential "clientId:clientSecret"
            form: grant_type plus grant specific fields

        Returns:
            Token response (access_token, token_type, expires_in, maybe refresh_token)

        Raises:
            TokenRefreshException: Grant rejected with invalid_grant
            ExternalServiceError: Transport failure or other non-200 status
        """
        client = await self._get_client()
        try:
            response = await client.post(
                self.settings.token_url,
                data=form,
                headers={
                    "Authorization": basic_auth_header(api_key),
                    "Content-Type": "application/x-www-form-urlencoded",
                },
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError(SERVICE, f"token request failed: {e}") from e

        if response.status_code != 200:
            error_code, description = self._parse_error(response)
            if response.status_code == 400 and error_code == "invalid_grant":
                raise TokenRefreshException(
                    message=f"Grant rejected: {description}",
                    error_code=error_code,
                    http_status=400,
                )
            raise ExternalServiceError(
                SERVICE,
                f"token endpoint returned {response.status_code}: {description}",
                status_code=response.status_code,
                error_code=error_code,
            )

        try:
            return cast(dict[str, Any], response.json())
        except ValueError as e:
            raise ExternalServiceError(
                SERVICE, "token endpoint returned invalid JSON", status_code=200
            ) from e

    async def get(self, url: str, access_token: str) -> ApiResponse:
        """Authenticated GET.

        Non-200 statuses come back as ApiResponse, only transport failures raise.
        A body that isn't JSON is reported as body=None.
        """
        client = await self._get_client()
        try:
            response = await client.get(
                url, headers={"Authorization": f"Bearer {access_token}"}
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError(SERVICE, f"GET {url} failed: {e}") from e

        body: Any = None
        if response.content:
            try:
                body = response.json()
            except ValueError:
                logger.debug("Non-JSON body from %s", url)
        return ApiResponse(status_code=response.status_code, body=body)

    async def get_current_user(self, access_token: str) -> dict[str, Any]:
        """Get the profile of the token's user (GET /me)."""
        response = await self.get(self.api_url("me"), access_token)
        if not response.ok or not isinstance(response.body, dict):
            raise ExternalServiceError(
                SERVICE,
                f"GET /me returned {response.status_code}",
                status_code=response.status_code,
            )
        return cast(dict[str, Any], response.body)

    @staticmethod
    def _parse_error(response: httpx.Response) -> tuple[str | None, str]:
        try:
            data = response.json()
        except ValueError:
            return None, response.text or response.reason_phrase
        if not isinstance(data, dict):
            return None, str(data)
        error = data.get("error")
        # Web API errors nest as {"error": {"status", "message"}}, the accounts
        # service uses {"error": "...", "error_description": "..."}
        if isinstance(error, dict):
            return None, str(error.get("message", ""))
        return error, str(data.get("error_description") or error or "")
