"""Federated catalog browsing.

Thin read-only view over FederatedCatalogRepository, mostly for clients that
want to page through local + Spotify results without embedding the engine.
"""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from spotlink.api.dependencies import get_catalog, get_current_user
from spotlink.application.services.federated_catalog import FederatedCatalogRepository
from spotlink.domain.entities import CatalogQuery, ItemKind, MediaType, User

router = APIRouter()


class ItemsResponse(BaseModel):
    items: list[dict[str, Any]]
    total_record_count: int
    start_index: int


class ArtistEntry(BaseModel):
    item: dict[str, Any]
    album_count: int
    song_count: int


class ArtistsResponse(BaseModel):
    items: list[ArtistEntry]
    total_record_count: int
    start_index: int


@router.get("/items")
async def get_items(
    user: Annotated[User, Depends(get_current_user)],
    catalog: Annotated[FederatedCatalogRepository, Depends(get_catalog)],
    include_item_types: Annotated[list[ItemKind] | None, Query()] = None,
    media_types: Annotated[list[MediaType] | None, Query()] = None,
    parent_id: UUID | None = None,
    artist_ids: Annotated[list[UUID] | None, Query()] = None,
    ancestor_ids: Annotated[list[UUID] | None, Query()] = None,
    search_term: str | None = None,
    is_favorite: bool | None = None,
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
    start_index: Annotated[int | None, Query(ge=0)] = None,
) -> ItemsResponse:
    """Query items, augmented with Spotify results where the query allows it."""
    query = CatalogQuery(
        user=user,
        include_item_types=include_item_types or [],
        media_types=media_types or [],
        parent_id=parent_id,
        artist_ids=artist_ids or [],
        ancestor_ids=ancestor_ids or [],
        search_term=search_term,
        is_favorite=is_favorite,
        limit=limit,
        start_index=start_index,
    )
    result = await catalog.get_items(query)
    return ItemsResponse(
        items=[item.to_dict() for item in result.items],
        total_record_count=result.total_record_count,
        start_index=result.start_index,
    )


@router.get("/artists")
async def get_artists(
    user: Annotated[User, Depends(get_current_user)],
    catalog: Annotated[FederatedCatalogRepository, Depends(get_catalog)],
    search_term: str | None = None,
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
    start_index: Annotated[int | None, Query(ge=0)] = None,
) -> ArtistsResponse:
    query = CatalogQuery(
        user=user, search_term=search_term, limit=limit, start_index=start_index
    )
    result = await catalog.get_artists(query)
    return ArtistsResponse(
        items=[
            ArtistEntry(
                item=artist.to_dict(),
                album_count=counts.album_count,
                song_count=counts.song_count,
            )
            for artist, counts in result.items
        ],
        total_record_count=result.total_record_count,
        start_index=result.start_index,
    )
