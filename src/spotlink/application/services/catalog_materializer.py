"""Turns Spotify artists, albums and tracks into local catalog entities.

Hey future me - materialization is create-or-reuse:

1. derive the local UUID from the Spotify id
2. look it up in the entity cache, then in the store
3. reuse it only if it exists AND is origin-marked (external_id starts with
   "spotify") AND has the expected kind. A local item that happens to share
   the id is never hijacked.
4. otherwise build a fresh entity, save it right away and cache it

Nothing is batched. Each new entity is one save_item() call, so a second
materialization of the same Spotify object does no write at all.
"""

import logging
from uuid import UUID

from spotlink.application.cache.entity_cache import EntityCache
from spotlink.domain.entities import (
    PROVIDER_KEY,
    ROOT_FOLDER_ID,
    ROOT_FOLDER_NAME,
    SERVICE_NAME,
    CatalogEntity,
    ItemCounts,
    ItemKind,
    LinkedChild,
)
from spotlink.domain.ports import ICatalogRepository
from spotlink.domain.value_objects import derive_local_id, select_artwork
from spotlink.infrastructure.integrations.spotify_models import (
    SpotifyAlbum,
    SpotifyArtist,
    SpotifyBaseItem,
    SpotifyTrack,
)

logger = logging.getLogger(__name__)

# 1 ms = 10,000 ticks of 100 ns
TICKS_PER_MILLISECOND = 10_000


def parse_release_year(release_date: str | None) -> int | None:
    """Year from "YYYY", "YYYY-MM" or "YYYY-MM-DD", None if unparseable."""
    if not release_date:
        return None
    try:
        return int(release_date.split("-")[0])
    except ValueError:
        return None


def track_sort_name(disc_number: int, track_number: int, name: str) -> str:
    """Sort key that orders tracks by disc, then track, then name."""
    return f"{disc_number:03d}-{track_number:03d}-{name}"


class CatalogMaterializer:
    """Create-or-reuse conversion of Spotify objects into CatalogEntity."""

    def __init__(self, store: ICatalogRepository, cache: EntityCache) -> None:
        self._store = store
        self._cache = cache

    async def try_retrieve(self, item_id: UUID, kind: ItemKind) -> CatalogEntity | None:
        """Known origin-marked item of the given kind, refreshing its cache TTL."""
        item = await self._cache.get(item_id)
        if item is None:
            item = await self._store.retrieve_item(item_id)
            if item is None:
                return None

        if not item.is_remote or item.kind is not kind:
            return None

        await self._cache.put(item)
        return item

    async def artist_to_entity(
        self,
        artist: SpotifyArtist,
        parent_id: UUID | None,
        owner_id: UUID | None,
    ) -> tuple[CatalogEntity, ItemCounts]:
        item_id = derive_local_id(artist.id or "")
        existing = await self.try_retrieve(item_id, ItemKind.ARTIST)
        if existing is not None:
            return existing, ItemCounts.for_kind(ItemKind.ARTIST)

        entity = self._base_entity(artist, item_id, ItemKind.ARTIST, parent_id, owner_id)
        entity.sort_name = artist.name
        await self._persist(entity)
        return entity, ItemCounts.for_kind(ItemKind.ARTIST)

    async def album_to_entity(
        self,
        album: SpotifyAlbum,
        parent_id: UUID | None,
        owner_id: UUID | None,
    ) -> tuple[CatalogEntity, ItemCounts]:
        item_id = derive_local_id(album.id or "")
        existing = await self.try_retrieve(item_id, ItemKind.ALBUM)
        if existing is not None:
            return existing, ItemCounts.for_kind(ItemKind.ALBUM)

        artist_ids = await self._materialize_artists(album.artists, owner_id)
        if parent_id is None and artist_ids:
            parent_id = artist_ids[0]

        names = [artist.name for artist in album.artists]
        entity = self._base_entity(album, item_id, ItemKind.ALBUM, parent_id, owner_id)
        entity.sort_name = album.name
        entity.artists = list(names)
        entity.album_artists = list(names)
        entity.production_year = parse_release_year(album.release_date)
        await self._persist(entity)
        return entity, ItemCounts.for_kind(ItemKind.ALBUM)

    # Hey future me - top-tracks and favorites hand us tracks WITHOUT a parent. Those
    # get their album materialized as parent. When the same track later shows up in
    # an album listing (with a parent), the orphan is linked after the fact.
    async def track_to_entity(
        self,
        track: SpotifyTrack,
        parent_id: UUID | None,
        owner_id: UUID | None,
    ) -> tuple[CatalogEntity, ItemCounts]:
        item_id = derive_local_id(track.id or "")
        existing = await self.try_retrieve(item_id, ItemKind.AUDIO)
        if existing is not None:
            if existing.parent_id is None and parent_id is not None:
                existing.parent_id = parent_id
                await self._persist(existing)
                logger.debug("Linked orphan track %s to parent %s", existing.id, parent_id)
            return existing, ItemCounts.for_kind(ItemKind.AUDIO)

        album_artists: list[str] = []
        if track.album is not None:
            album_artists = [artist.name for artist in track.album.artists]
            if parent_id is None and track.album.id:
                album, _ = await self.album_to_entity(track.album, None, owner_id)
                parent_id = album.id

        await self._materialize_artists(track.artists, owner_id)

        entity = self._base_entity(track, item_id, ItemKind.AUDIO, parent_id, owner_id)
        entity.sort_name = track_sort_name(track.disc_number, track.track_number, track.name)
        entity.index_number = track.track_number
        entity.parent_index_number = track.disc_number
        if track.duration_ms is not None:
            entity.run_time_ticks = track.duration_ms * TICKS_PER_MILLISECOND
        entity.artists = [artist.name for artist in track.artists]
        entity.album_artists = album_artists
        await self._persist(entity)
        return entity, ItemCounts.for_kind(ItemKind.AUDIO)

    async def link_album_tracks(
        self, album: CatalogEntity, tracks: list[CatalogEntity]
    ) -> None:
        """Replace the album's linked children with the given tracks and save it."""
        album.linked_children = [
            LinkedChild(item_id=track.id, external_id=track.external_id)
            for track in tracks
            if track.kind is ItemKind.AUDIO
        ]
        await self._persist(album)

    async def get_or_create_root_folder(self) -> CatalogEntity:
        """The fixed "Spotify" folder that anchors remote artists."""
        folder = await self._store.retrieve_item(ROOT_FOLDER_ID)
        if folder is not None:
            return folder

        folder = CatalogEntity(
            id=ROOT_FOLDER_ID,
            kind=ItemKind.FOLDER,
            name=ROOT_FOLDER_NAME,
            sort_name=ROOT_FOLDER_NAME,
            service_name=SERVICE_NAME,
        )
        await self._store.save_item(folder)
        logger.info("Created Spotify root folder %s", ROOT_FOLDER_ID)
        return folder

    async def _materialize_artists(
        self, artists: list[SpotifyArtist], owner_id: UUID | None
    ) -> list[UUID]:
        ids: list[UUID] = []
        for artist in artists:
            if not artist.id:
                continue
            entity, _ = await self.artist_to_entity(artist, None, owner_id)
            ids.append(entity.id)
        return ids

    def _base_entity(
        self,
        remote: SpotifyBaseItem,
        item_id: UUID,
        kind: ItemKind,
        parent_id: UUID | None,
        owner_id: UUID | None,
    ) -> CatalogEntity:
        primary, thumb = select_artwork(remote.image_refs)
        return CatalogEntity(
            id=item_id,
            kind=kind,
            name=remote.name,
            parent_id=parent_id,
            owner_id=owner_id,
            service_name=SERVICE_NAME,
            external_id=f"spotify:{_external_kind(kind)}:{remote.id}",
            path=remote.href,
            provider_ids={PROVIDER_KEY: remote.id or ""},
            home_page_url=remote.home_page_url,
            genres=list(remote.genres),
            primary_image=primary,
            thumb_image=thumb,
        )

    async def _persist(self, entity: CatalogEntity) -> None:
        await self._store.save_item(entity)
        await self._cache.put(entity)


def _external_kind(kind: ItemKind) -> str:
    return {
        ItemKind.ARTIST: "artist",
        ItemKind.ALBUM: "album",
        ItemKind.AUDIO: "track",
    }.get(kind, "item")
