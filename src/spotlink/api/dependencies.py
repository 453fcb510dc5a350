"""FastAPI dependency providers.

Everything long-lived is created once in the lifespan and hung on app.state.
These functions hand it to the routes and turn "not there" into a 503.
"""

from typing import Annotated, cast
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request

from spotlink.application.services.federated_catalog import FederatedCatalogRepository
from spotlink.application.services.spotify_auth_service import SpotifyAuthService
from spotlink.config import Settings, get_settings
from spotlink.domain.entities import User
from spotlink.domain.exceptions import (
    AuthenticationError,
    EntityNotFoundException,
    ValidationError,
)
from spotlink.domain.ports import IUserRepository


def _state(request: Request, name: str) -> object:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return value


def get_app_settings(request: Request) -> Settings:
    return cast(Settings, getattr(request.app.state, "settings", None) or get_settings())


def get_auth_service(request: Request) -> SpotifyAuthService:
    return cast(SpotifyAuthService, _state(request, "spotify_auth"))


def get_user_repository(request: Request) -> IUserRepository:
    return cast(IUserRepository, _state(request, "user_repository"))


def get_catalog(request: Request) -> FederatedCatalogRepository:
    return cast(FederatedCatalogRepository, _state(request, "catalog"))


# Hey future me - X-User-Id stands in for the host application's session layer.
# Whatever sits in front of this API (reverse proxy, main app) authenticates the
# user and forwards the id. We only check that it exists.
async def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
    users: IUserRepository = Depends(get_user_repository),
) -> User:
    if not x_user_id:
        raise AuthenticationError("Missing X-User-Id header")
    try:
        user_id = UUID(x_user_id)
    except ValueError as e:
        raise ValidationError(f"Invalid user id: {x_user_id}") from e

    user = await users.get(user_id)
    if user is None:
        raise EntityNotFoundException("User", user_id)
    return user
