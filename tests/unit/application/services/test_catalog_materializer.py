"""Tests for create-or-reuse materialization of Spotify objects."""

from uuid import uuid4

import pytest

from spotlink.application.cache import EntityCache
from spotlink.application.services import CatalogMaterializer
from spotlink.application.services.catalog_materializer import (
    parse_release_year,
    track_sort_name,
)
from spotlink.domain.entities import ROOT_FOLDER_ID, CatalogEntity, ItemKind
from spotlink.domain.value_objects import derive_local_id
from spotlink.infrastructure.integrations.spotify_models import (
    SpotifyAlbum,
    SpotifyArtist,
    SpotifyTrack,
)


class TestHelpers:
    @pytest.mark.parametrize(
        ("release_date", "year"),
        [("2001", 2001), ("2001-03", 2001), ("2001-03-12", 2001), ("", None), (None, None)],
    )
    def test_parse_release_year(self, release_date: str | None, year: int | None) -> None:
        assert parse_release_year(release_date) == year

    def test_parse_release_year_garbage(self) -> None:
        assert parse_release_year("soon") is None

    def test_track_sort_name(self) -> None:
        assert track_sort_name(1, 7, "Digital Love") == "001-007-Digital Love"
        assert track_sort_name(2, 12, "x") < track_sort_name(10, 1, "x")


class TestArtist:
    async def test_new_artist(
        self, materializer: CatalogMaterializer, store, payloads
    ) -> None:
        artist = SpotifyArtist.model_validate(
            payloads.artist(1, name="Daft Punk", genres=["french house"])
        )
        owner = uuid4()

        entity, counts = await materializer.artist_to_entity(artist, ROOT_FOLDER_ID, owner)

        assert entity.id == derive_local_id(artist.id)
        assert entity.kind is ItemKind.ARTIST
        assert entity.external_id == f"spotify:artist:{artist.id}"
        assert entity.provider_ids == {"Spotify": artist.id}
        assert entity.parent_id == ROOT_FOLDER_ID
        assert entity.owner_id == owner
        assert entity.service_name == "spotify"
        assert entity.genres == ["french house"]
        assert entity.home_page_url == f"https://open.spotify.test/artist/{artist.id}"
        assert entity.path == artist.href
        assert counts.artist_count == 1
        assert store.items[entity.id] is entity

    async def test_second_materialization_does_not_write(
        self, materializer: CatalogMaterializer, store, payloads
    ) -> None:
        artist = SpotifyArtist.model_validate(payloads.artist(1))

        first, _ = await materializer.artist_to_entity(artist, None, None)
        second, _ = await materializer.artist_to_entity(artist, None, None)

        assert second.id == first.id
        assert store.saves == [first.id]

    async def test_reuse_from_store_when_cache_is_cold(
        self, materializer: CatalogMaterializer, store, payloads
    ) -> None:
        artist = SpotifyArtist.model_validate(payloads.artist(1))
        first, _ = await materializer.artist_to_entity(artist, None, None)
        cold_cache = EntityCache()
        cold = CatalogMaterializer(store, cold_cache)

        second, _ = await cold.artist_to_entity(artist, None, None)

        assert second is first
        assert len(store.saves) == 1
        assert await cold_cache.get(first.id) is first

    async def test_local_item_with_same_id_is_replaced(
        self, materializer: CatalogMaterializer, store, payloads
    ) -> None:
        """Test that a non-origin-marked item is never reused."""
        artist = SpotifyArtist.model_validate(payloads.artist(1))
        local = CatalogEntity(id=derive_local_id(artist.id), kind=ItemKind.ARTIST, name="Local")
        store.items[local.id] = local

        entity, _ = await materializer.artist_to_entity(artist, None, None)

        assert entity is not local
        assert entity.is_remote
        assert store.items[local.id] is entity

    @pytest.mark.parametrize(
        ("images", "primary", "thumb"),
        [
            ([], None, None),
            ([{"url": "https://i.test/640", "width": 640, "height": 640}], "https://i.test/640", None),
            (
                [
                    {"url": "https://i.test/300", "width": 300, "height": 300},
                    {"url": "https://i.test/640", "width": 640, "height": 640},
                    {"url": "https://i.test/64", "width": 64, "height": 64},
                ],
                "https://i.test/640",
                "https://i.test/64",
            ),
        ],
    )
    async def test_artwork(
        self,
        materializer: CatalogMaterializer,
        payloads,
        images: list[dict],
        primary: str | None,
        thumb: str | None,
    ) -> None:
        artist = SpotifyArtist.model_validate(payloads.artist(1, images=images))

        entity, _ = await materializer.artist_to_entity(artist, None, None)

        assert (entity.primary_image.url if entity.primary_image else None) == primary
        assert (entity.thumb_image.url if entity.thumb_image else None) == thumb


class TestAlbum:
    async def test_album_hangs_below_first_artist(
        self, materializer: CatalogMaterializer, store, payloads
    ) -> None:
        album = SpotifyAlbum.model_validate(
            payloads.album(1, artists=[payloads.artist(1), payloads.artist(2)])
        )

        entity, counts = await materializer.album_to_entity(album, None, None)

        first_artist = derive_local_id(payloads.spotify_id("art", 1))
        assert entity.parent_id == first_artist
        assert first_artist in store.items
        assert derive_local_id(payloads.spotify_id("art", 2)) in store.items
        assert entity.artists == ["Artist 1", "Artist 2"]
        assert entity.album_artists == ["Artist 1", "Artist 2"]
        assert entity.production_year == 2001
        assert entity.external_id == f"spotify:album:{album.id}"
        assert counts.album_count == 1

    async def test_explicit_parent_wins(
        self, materializer: CatalogMaterializer, payloads
    ) -> None:
        parent = uuid4()
        album = SpotifyAlbum.model_validate(payloads.album(1))

        entity, _ = await materializer.album_to_entity(album, parent, None)

        assert entity.parent_id == parent


class TestTrack:
    async def test_track_fields(
        self, materializer: CatalogMaterializer, payloads
    ) -> None:
        album = payloads.album(1, artists=[payloads.artist(5, name="Album Artist")])
        track = SpotifyTrack.model_validate(
            payloads.track(3, album=album, disc_number=2, duration_ms=123_456)
        )

        entity, counts = await materializer.track_to_entity(track, None, None)

        assert entity.kind is ItemKind.AUDIO
        assert entity.parent_id == derive_local_id(payloads.spotify_id("alb", 1))
        assert entity.index_number == 3
        assert entity.parent_index_number == 2
        assert entity.sort_name == "002-003-Track 3"
        assert entity.run_time_ticks == 1_234_560_000
        assert entity.artists == ["Artist 1"]
        assert entity.album_artists == ["Album Artist"]
        assert entity.external_id == f"spotify:track:{track.id}"
        assert counts.song_count == 1

    async def test_track_without_album_has_no_parent(
        self, materializer: CatalogMaterializer, payloads
    ) -> None:
        track = SpotifyTrack.model_validate(payloads.track(1))

        entity, _ = await materializer.track_to_entity(track, None, None)

        assert entity.parent_id is None
        assert entity.album_artists == []

    async def test_orphan_is_linked_later(
        self, materializer: CatalogMaterializer, store, payloads
    ) -> None:
        """Test that a parentless track gets its parent when seen in an album listing."""
        track = SpotifyTrack.model_validate(payloads.track(1))
        orphan, _ = await materializer.track_to_entity(track, None, None)
        album_id = uuid4()

        linked, _ = await materializer.track_to_entity(track, album_id, None)

        assert linked.id == orphan.id
        assert linked.parent_id == album_id
        assert store.items[orphan.id].parent_id == album_id

    async def test_existing_parent_is_kept(
        self, materializer: CatalogMaterializer, payloads
    ) -> None:
        first_parent, second_parent = uuid4(), uuid4()
        track = SpotifyTrack.model_validate(payloads.track(1))
        await materializer.track_to_entity(track, first_parent, None)

        entity, _ = await materializer.track_to_entity(track, second_parent, None)

        assert entity.parent_id == first_parent

    async def test_kind_mismatch_is_not_reused(
        self, materializer: CatalogMaterializer, store, payloads
    ) -> None:
        track = SpotifyTrack.model_validate(payloads.track(1))
        clash = CatalogEntity(
            id=derive_local_id(track.id),
            kind=ItemKind.ALBUM,
            name="Clash",
            external_id="spotify:album:whatever",
        )
        store.items[clash.id] = clash

        entity, _ = await materializer.track_to_entity(track, None, None)

        assert entity.kind is ItemKind.AUDIO


class TestLinksAndRoot:
    async def test_link_album_tracks(
        self, materializer: CatalogMaterializer, store, payloads
    ) -> None:
        album, _ = await materializer.album_to_entity(
            SpotifyAlbum.model_validate(payloads.album(1)), None, None
        )
        tracks = []
        for number in (1, 2):
            track = SpotifyTrack.model_validate(payloads.track(number))
            entity, _ = await materializer.track_to_entity(track, album.id, None)
            tracks.append(entity)

        await materializer.link_album_tracks(album, tracks)

        assert [child.item_id for child in store.items[album.id].linked_children] == [
            track.id for track in tracks
        ]

    async def test_root_folder_created_once(
        self, materializer: CatalogMaterializer, store
    ) -> None:
        first = await materializer.get_or_create_root_folder()
        second = await materializer.get_or_create_root_folder()

        assert first.id == ROOT_FOLDER_ID
        assert first.kind is ItemKind.FOLDER
        assert first.name == "Spotify"
        assert second is first
        assert store.saves == [ROOT_FOLDER_ID]
