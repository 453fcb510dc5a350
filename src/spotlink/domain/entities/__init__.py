"""Domain entities."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

from spotlink.domain.entities.user import User, UserItemData
from spotlink.domain.value_objects import ImageRef

# Every remote-origin entity carries an external_id starting with this marker.
# The derived UUID is lossy, so this prefix is the ONLY reliable "came from
# Spotify" test.
ORIGIN_MARKER = "spotify"
SERVICE_NAME = "spotify"
PROVIDER_KEY = "Spotify"

ROOT_FOLDER_ID = UUID("55e493c8-6411-4424-a2e7-0e2dec791e47")
ROOT_FOLDER_NAME = "Spotify"


class ItemKind(str, Enum):
    """Kind of catalog item."""

    ARTIST = "MusicArtist"
    ALBUM = "MusicAlbum"
    AUDIO = "Audio"
    FOLDER = "Folder"


class MediaType(str, Enum):
    """Media type filter values used by catalog queries."""

    AUDIO = "Audio"
    VIDEO = "Video"


@dataclass(frozen=True)
class LinkedChild:
    """Known member of an album: local id plus the remote reference."""

    item_id: UUID
    external_id: str | None = None


@dataclass
class CatalogEntity:
    """An artist, album, track or folder in the catalog.

    Local items and materialized Spotify items share this shape. Remote items
    are recognized by external_id, see is_remote.
    """

    id: UUID
    kind: ItemKind
    name: str
    sort_name: str | None = None
    parent_id: UUID | None = None
    owner_id: UUID | None = None
    service_name: str | None = None
    external_id: str | None = None
    path: str | None = None
    provider_ids: dict[str, str] = field(default_factory=dict)
    home_page_url: str | None = None
    genres: list[str] = field(default_factory=list)
    primary_image: ImageRef | None = None
    thumb_image: ImageRef | None = None
    production_year: int | None = None
    run_time_ticks: int | None = None
    index_number: int | None = None
    parent_index_number: int | None = None
    artists: list[str] = field(default_factory=list)
    album_artists: list[str] = field(default_factory=list)
    linked_children: list[LinkedChild] = field(default_factory=list)

    @property
    def is_remote(self) -> bool:
        """True if this item was materialized from the Spotify catalog."""
        return self.external_id is not None and self.external_id.startswith(ORIGIN_MARKER)

    @property
    def remote_id(self) -> str | None:
        """Native Spotify id, taken from the provider ids."""
        return self.provider_ids.get(PROVIDER_KEY)

    def to_dict(self) -> dict[str, Any]:
        """Convert entity to a JSON-friendly dictionary."""
        return {
            "id": str(self.id),
            "kind": self.kind.value,
            "name": self.name,
            "sort_name": self.sort_name,
            "parent_id": str(self.parent_id) if self.parent_id else None,
            "external_id": self.external_id,
            "provider_ids": dict(self.provider_ids),
            "home_page_url": self.home_page_url,
            "genres": list(self.genres),
            "primary_image": self.primary_image.url if self.primary_image else None,
            "thumb_image": self.thumb_image.url if self.thumb_image else None,
            "production_year": self.production_year,
            "run_time_ticks": self.run_time_ticks,
            "index_number": self.index_number,
            "parent_index_number": self.parent_index_number,
            "artists": list(self.artists),
        }


@dataclass(frozen=True)
class ItemCounts:
    """Per-item count delta reported alongside materialized entities."""

    artist_count: int = 0
    album_count: int = 0
    song_count: int = 0

    @classmethod
    def for_kind(cls, kind: ItemKind) -> "ItemCounts":
        if kind is ItemKind.ARTIST:
            return cls(artist_count=1)
        if kind is ItemKind.ALBUM:
            return cls(album_count=1)
        if kind is ItemKind.AUDIO:
            return cls(song_count=1)
        return cls()


# Hey future me - CatalogQuery is deliberately a plain mutable dataclass. The
# federated engine copies it (dataclasses.replace) when it has to tweak
# scoping (root folder in top_parent_ids) so the caller's object stays intact.
@dataclass
class CatalogQuery:
    """Filter/paging options for catalog queries."""

    user: User | None = None
    include_item_types: list[ItemKind] = field(default_factory=list)
    media_types: list[MediaType] = field(default_factory=list)
    parent_id: UUID | None = None
    artist_ids: list[UUID] = field(default_factory=list)
    album_artist_ids: list[UUID] = field(default_factory=list)
    ancestor_ids: list[UUID] = field(default_factory=list)
    top_parent_ids: list[UUID] = field(default_factory=list)
    search_term: str | None = None
    name: str | None = None
    is_favorite: bool | None = None
    limit: int | None = None
    start_index: int | None = None

    def wants(self, kind: ItemKind) -> bool:
        """True if the type filter includes kind."""
        return kind in self.include_item_types

    @property
    def wants_audio(self) -> bool:
        return self.wants(ItemKind.AUDIO) or MediaType.AUDIO in self.media_types


@dataclass
class QueryResult[T]:
    """A page of results plus the total the caller should display."""

    items: list[T] = field(default_factory=list)
    total_record_count: int = 0
    start_index: int = 0


__all__ = [
    "ORIGIN_MARKER",
    "PROVIDER_KEY",
    "ROOT_FOLDER_ID",
    "ROOT_FOLDER_NAME",
    "SERVICE_NAME",
    "CatalogEntity",
    "CatalogQuery",
    "ItemCounts",
    "ItemKind",
    "LinkedChild",
    "MediaType",
    "QueryResult",
    "User",
    "UserItemData",
]
