"""API router initialization."""

from fastapi import APIRouter

from spotlink.api.routers import catalog, spotify

api_router = APIRouter()
api_router.include_router(spotify.router, prefix="/spotify", tags=["Spotify"])
api_router.include_router(catalog.router, prefix="/catalog", tags=["Catalog"])

__all__ = ["api_router"]
