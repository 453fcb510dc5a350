"""Spotify credential endpoints.

Hey future me - the browser flow is:

    GET /spotify/access-token   -> {"login_redirect": {"authorization_url": ...}}
    (user authorizes at Spotify)
    GET /spotify/auth-callback  -> 303 to SPOTIFY_POST_LOGIN_REDIRECT

The callback carries no X-User-Id header. The user comes from the OAuth state.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from spotlink.api.dependencies import get_app_settings, get_auth_service, get_current_user
from spotlink.application.services.spotify_auth_service import (
    AccessTokenResult,
    SpotifyAuthService,
)
from spotlink.config import Settings
from spotlink.domain.entities import User

logger = logging.getLogger(__name__)

router = APIRouter()


class ApiKeyRequest(BaseModel):
    """Application credential to register."""

    api_key: str = Field(description="Spotify application credential as 'clientId:clientSecret'")


class ApiIdResponse(BaseModel):
    """Client id of the registered credential."""

    api_id: str | None = Field(default=None, description="Client id, never the secret")


class LoginRedirectResponse(BaseModel):
    authorization_url: str
    state: str


class AccessTokenResponse(BaseModel):
    """A web token, or where to send the user to get one."""

    access_token: str | None = None
    login_redirect: LoginRedirectResponse | None = None


def _to_response(result: AccessTokenResult) -> AccessTokenResponse:
    if result.login_redirect is None:
        return AccessTokenResponse(access_token=result.access_token)
    return AccessTokenResponse(
        login_redirect=LoginRedirectResponse(
            authorization_url=result.login_redirect.authorization_url,
            state=result.login_redirect.state,
        )
    )


@router.post("/api-id")
async def set_api_key(
    request: ApiKeyRequest,
    user: User = Depends(get_current_user),
    auth: SpotifyAuthService = Depends(get_auth_service),
) -> ApiIdResponse:
    """Validate and store the user's Spotify application credential."""
    await auth.register_api_key(user, request.api_key)
    return ApiIdResponse(api_id=auth.get_api_id(user))


@router.get("/api-id")
async def get_api_id(
    user: User = Depends(get_current_user),
    auth: SpotifyAuthService = Depends(get_auth_service),
) -> ApiIdResponse:
    return ApiIdResponse(api_id=auth.get_api_id(user))


@router.get("/access-token")
async def get_access_token(
    user: User = Depends(get_current_user),
    auth: SpotifyAuthService = Depends(get_auth_service),
) -> AccessTokenResponse:
    """Current web token, or a login redirect when the user never authorized."""
    return _to_response(await auth.get_access_token(user))


@router.get("/auth-callback")
async def auth_callback(
    state: str | None = None,
    code: str | None = None,
    error: str | None = None,
    auth: SpotifyAuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    """OAuth redirect target registered in the Spotify dashboard."""
    await auth.handle_callback(state, code, error)
    return RedirectResponse(
        url=settings.spotify.post_login_redirect,
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.get("/refresh-token")
async def refresh_token(
    user: User = Depends(get_current_user),
    auth: SpotifyAuthService = Depends(get_auth_service),
) -> AccessTokenResponse:
    """Refresh the web token, or ask for a new login if that's impossible."""
    return _to_response(await auth.refresh_token(user))
