"""Typed envelopes for Spotify Web API JSON responses.

Hey future me - every endpoint the federation layer calls maps to exactly one
envelope here:

    /search                 -> SearchResponse
    /artists/{id}/albums    -> AlbumList
    /albums/{id}/tracks     -> TrackList (items)
    /artists/{id}/top-tracks -> TrackList (tracks)
    /me/tracks              -> FavoriteTrackList

Each envelope knows how to turn itself into catalog entities via to_items(),
so the query executor never has to switch on response shapes. Field names are
matched case-insensitively and unknown fields are ignored.
"""

import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from spotlink.domain.entities import CatalogEntity, ItemCounts
from spotlink.domain.exceptions import IdentifierDecodeError
from spotlink.domain.value_objects import ImageRef

if TYPE_CHECKING:
    from spotlink.application.services.catalog_materializer import CatalogMaterializer

logger = logging.getLogger(__name__)

MaterializedItems = list[tuple[CatalogEntity, ItemCounts]]


class SpotifyModel(BaseModel):
    """Base model: ignore unknown fields, match keys case-insensitively."""

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _lowercase_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key.lower() if isinstance(key, str) else key: value
                for key, value in data.items()
            }
        return data


class SpotifyImage(SpotifyModel):
    url: str
    # Spotify sends null width/height for some user-uploaded artist images
    width: int | None = None
    height: int | None = None

    def to_ref(self) -> ImageRef:
        return ImageRef(url=self.url, width=self.width, height=self.height)


class SpotifyBaseItem(SpotifyModel):
    """Fields shared by artists, albums and tracks."""

    id: str | None = None
    name: str = ""
    href: str | None = None
    type: str | None = None
    uri: str | None = None
    external_urls: dict[str, str] = Field(default_factory=dict)
    genres: list[str] = Field(default_factory=list)
    images: list[SpotifyImage] = Field(default_factory=list)

    @property
    def home_page_url(self) -> str | None:
        return self.external_urls.get("spotify")

    @property
    def image_refs(self) -> list[ImageRef]:
        return [image.to_ref() for image in self.images]


class SpotifyArtist(SpotifyBaseItem):
    popularity: int | None = None


class SpotifyAlbum(SpotifyBaseItem):
    album_type: str | None = None
    release_date: str | None = None
    total_tracks: int | None = None
    artists: list[SpotifyArtist] = Field(default_factory=list)


class SpotifyTrack(SpotifyBaseItem):
    duration_ms: int | None = None
    track_number: int = 0
    disc_number: int = 0
    artists: list[SpotifyArtist] = Field(default_factory=list)
    album: SpotifyAlbum | None = None


class SavedTrack(SpotifyModel):
    added_at: str | None = None
    track: SpotifyTrack | None = None


async def _collect(
    results: MaterializedItems,
    remote_id: str,
    conversion: Awaitable[tuple[CatalogEntity, ItemCounts]],
) -> None:
    try:
        results.append(await conversion)
    except IdentifierDecodeError:
        logger.warning("Skipping Spotify item with undecodable id %r", remote_id)


# Hey future me - items with a null id (local files in a user's library, region
# locked tracks) can't get a local id, so envelopes silently skip them.
class ArtistList(SpotifyModel):
    items: list[SpotifyArtist] = Field(default_factory=list)
    total: int | None = None

    @property
    def raw_count(self) -> int:
        return len(self.items)

    async def to_items(
        self,
        materializer: "CatalogMaterializer",
        parent_id: UUID | None,
        owner_id: UUID | None,
    ) -> MaterializedItems:
        results: MaterializedItems = []
        for artist in self.items:
            if artist.id:
                await _collect(
                    results, artist.id, materializer.artist_to_entity(artist, parent_id, owner_id)
                )
        return results


class AlbumList(SpotifyModel):
    items: list[SpotifyAlbum] = Field(default_factory=list)
    total: int | None = None

    @property
    def raw_count(self) -> int:
        return len(self.items)

    async def to_items(
        self,
        materializer: "CatalogMaterializer",
        parent_id: UUID | None,
        owner_id: UUID | None,
    ) -> MaterializedItems:
        results: MaterializedItems = []
        for album in self.items:
            if album.id:
                await _collect(
                    results, album.id, materializer.album_to_entity(album, parent_id, owner_id)
                )
        return results


class TrackList(SpotifyModel):
    """Album tracks come back as `items`, artist top tracks as `tracks`."""

    items: list[SpotifyTrack] | None = None
    tracks: list[SpotifyTrack] | None = None
    total: int | None = None

    @property
    def all_tracks(self) -> list[SpotifyTrack]:
        return self.items if self.items is not None else (self.tracks or [])

    @property
    def raw_count(self) -> int:
        return len(self.all_tracks)

    async def to_items(
        self,
        materializer: "CatalogMaterializer",
        parent_id: UUID | None,
        owner_id: UUID | None,
    ) -> MaterializedItems:
        results: MaterializedItems = []
        for track in self.all_tracks:
            if track.id:
                await _collect(
                    results, track.id, materializer.track_to_entity(track, parent_id, owner_id)
                )
        return results


class FavoriteTrackList(SpotifyModel):
    items: list[SavedTrack] = Field(default_factory=list)
    total: int | None = None

    # Counts saved entries as Spotify sent them, null-id tracks included. Paging
    # offsets have to advance by this, not by what to_items() kept.
    @property
    def raw_count(self) -> int:
        return len(self.items)

    async def to_items(
        self,
        materializer: "CatalogMaterializer",
        parent_id: UUID | None,
        owner_id: UUID | None,
    ) -> MaterializedItems:
        results: MaterializedItems = []
        for saved in self.items:
            if saved.track is not None and saved.track.id:
                await _collect(
                    results,
                    saved.track.id,
                    materializer.track_to_entity(saved.track, parent_id, owner_id),
                )
        return results


class SearchResponse(SpotifyModel):
    """Only the sections named in `type=` are present."""

    artists: ArtistList | None = None
    albums: AlbumList | None = None
    tracks: TrackList | None = None

    @property
    def raw_count(self) -> int:
        return sum(
            section.raw_count
            for section in (self.artists, self.albums, self.tracks)
            if section is not None
        )

    async def to_items(
        self,
        materializer: "CatalogMaterializer",
        parent_id: UUID | None,
        owner_id: UUID | None,
    ) -> MaterializedItems:
        results: MaterializedItems = []
        for section in (self.artists, self.albums, self.tracks):
            if section is not None:
                results.extend(await section.to_items(materializer, parent_id, owner_id))
        return results


SpotifyEnvelope = ArtistList | AlbumList | TrackList | FavoriteTrackList | SearchResponse

__all__ = [
    "AlbumList",
    "ArtistList",
    "FavoriteTrackList",
    "MaterializedItems",
    "SavedTrack",
    "SearchResponse",
    "SpotifyAlbum",
    "SpotifyArtist",
    "SpotifyEnvelope",
    "SpotifyImage",
    "SpotifyTrack",
    "TrackList",
]
