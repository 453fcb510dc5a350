"""Catalog repository that merges local results with the Spotify catalog.

Hey future me - FederatedCatalogRepository WRAPS the real store, it doesn't
inherit from it. Most methods are straight pass-throughs. Only these reach out
to Spotify:

- get_artists: free-text artist search fills up a short local result
- get_items / get_item_list: album tracks, artist top tracks, track search,
  the user's liked songs, artist discographies and album search, depending on
  the item-type filter

Remote trouble never fails a query. The executor swallows transport, auth and
parse errors and returns nothing, so the worst case is "local results only".

Every call deduplicates by id across store + all remote sources. Store items
come first, so on a collision the local copy wins.
"""

import dataclasses
import logging
from collections.abc import Callable, Hashable, Iterable
from uuid import UUID

from spotlink.application.services.catalog_materializer import CatalogMaterializer
from spotlink.application.services.remote_query_executor import RemoteQueryExecutor
from spotlink.application.services.token_manager import SpotifyTokenManager
from spotlink.config.settings import FederationSettings
from spotlink.domain.entities import (
    ROOT_FOLDER_ID,
    CatalogEntity,
    CatalogQuery,
    ItemCounts,
    ItemKind,
    QueryResult,
    User,
    UserItemData,
)
from spotlink.domain.ports import (
    ICatalogRepository,
    ISpotifyClient,
    IUserDataRepository,
    IUserRepository,
)
from spotlink.infrastructure.integrations.spotify_models import (
    AlbumList,
    FavoriteTrackList,
    SearchResponse,
    TrackList,
)

logger = logging.getLogger(__name__)

# Largest `limit` the Spotify search and paging endpoints accept. Anything above
# is answered with a 400.
SPOTIFY_MAX_PAGE_SIZE = 50


class ResultMerger[T]:
    """Ordered, id-unique accumulator that counts rejected duplicates."""

    def __init__(self, key: Callable[[T], Hashable], items: Iterable[T] = ()) -> None:
        self._key = key
        self._seen: set[Hashable] = set()
        self.items: list[T] = []
        self.duplicates = 0
        self.extend(items)

    def add(self, item: T) -> bool:
        """Append item unless its id was seen already. Returns True if added."""
        key = self._key(item)
        if key in self._seen:
            self.duplicates += 1
            return False
        self._seen.add(key)
        self.items.append(item)
        return True

    def extend(self, items: Iterable[T]) -> int:
        return sum(1 for item in items if self.add(item))

    def is_full(self, limit: int | None) -> bool:
        return limit is not None and len(self.items) >= limit

    def __len__(self) -> int:
        return len(self.items)


def _entity_key(item: CatalogEntity) -> UUID:
    return item.id


def _pair_key(pair: tuple[CatalogEntity, ItemCounts]) -> UUID:
    return pair[0].id


def _track_order(item: CatalogEntity) -> tuple[int, int, str]:
    return (item.parent_index_number or 0, item.index_number or 0, item.sort_name or item.name)


class FederatedCatalogRepository(ICatalogRepository):
    """ICatalogRepository that augments a backing store with Spotify results."""

    def __init__(
        self,
        store: ICatalogRepository,
        executor: RemoteQueryExecutor,
        materializer: CatalogMaterializer,
        client: ISpotifyClient,
        tokens: SpotifyTokenManager,
        users: IUserRepository,
        user_data: IUserDataRepository,
        settings: FederationSettings | None = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._materializer = materializer
        self._client = client
        self._tokens = tokens
        self._users = users
        self._user_data = user_data
        self._settings = settings or FederationSettings()

    async def initialize(self) -> None:
        """Create the Spotify root folder and log in users with stored credentials."""
        await self._materializer.get_or_create_root_folder()
        users = await self._users.list_with_spotify_credentials()
        await self._tokens.warm_up(users)

    # -- pass-throughs ---------------------------------------------------------

    async def save_item(self, item: CatalogEntity) -> None:
        await self._store.save_item(item)

    async def save_items(self, items: list[CatalogEntity]) -> None:
        await self._store.save_items(items)

    async def retrieve_item(self, item_id: UUID) -> CatalogEntity | None:
        return await self._store.retrieve_item(item_id)

    async def delete_item(self, item_id: UUID) -> None:
        await self._store.delete_item(item_id)

    async def get_item_ids(self, query: CatalogQuery) -> list[UUID]:
        return await self._store.get_item_ids(self._scoped(query))

    async def get_count(self, query: CatalogQuery) -> int:
        return await self._store.get_count(self._scoped(query))

    async def get_album_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        return await self._store.get_album_artists(self._scoped(query))

    async def get_all_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        return await self._store.get_all_artists(self._scoped(query))

    async def get_genre_names(self) -> list[str]:
        return await self._store.get_genre_names()

    async def get_all_artist_names(self) -> list[str]:
        return await self._store.get_all_artist_names()

    # -- augmented -------------------------------------------------------------

    async def get_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        """Store artists, topped up with a Spotify artist search.

        Only a search term with a query user triggers the remote search, and only
        for the shortfall between the local hits and the limit (default 20).
        """
        result = await self._store.get_artists(self._scoped(query))
        if not query.search_term or query.user is None:
            return result

        limit = query.limit or self._settings.default_artist_limit
        shortfall = limit - len(result.items)
        if shortfall <= 0:
            return result

        url = self._client.api_url(
            "search",
            q=query.search_term,
            type="artist",
            limit=min(shortfall, SPOTIFY_MAX_PAGE_SIZE),
        )
        remote = await self._executor.execute(
            SearchResponse, query.user, url, parent_id=ROOT_FOLDER_ID
        )

        merger = ResultMerger(_pair_key, result.items)
        added = merger.extend(remote)
        logger.info(
            "Artist search %r for user %s: %d local, %d remote, %d added, %d duplicates",
            query.search_term,
            query.user.id,
            len(result.items),
            len(remote),
            added,
            merger.duplicates,
        )
        return QueryResult(
            items=merger.items,
            total_record_count=len(merger.items),
            start_index=result.start_index,
        )

    async def get_item_list(self, query: CatalogQuery) -> list[CatalogEntity]:
        items = await self._store.get_item_list(self._scoped(query))
        merged, _ = await self._augment(query, items)
        return merged

    # Hey future me - the count fix-up is a heuristic, not a real total. We can't
    # know how many Spotify results exist without asking for all of them, so when
    # Spotify contributed to a FULL page we claim one more page exists. Clients
    # then keep paging instead of stopping at the store's (too small) total.
    async def get_items(self, query: CatalogQuery) -> QueryResult[CatalogEntity]:
        result = await self._store.get_items(self._scoped(query))
        merged, added = await self._augment(query, result.items)

        start = query.start_index or 0
        total = result.total_record_count + added
        if added and query.limit and len(merged) >= query.limit:
            total = max(total, start + len(merged) + query.limit)

        return QueryResult(items=merged, total_record_count=total, start_index=start)

    # -- internals -------------------------------------------------------------

    def _scoped(self, query: CatalogQuery) -> CatalogQuery:
        """Add the Spotify root folder to top-parent scoping.

        Library-scoped views filter by top parent. Remote artists hang below the
        root folder, so without this they would never show up there.
        """
        if not query.top_parent_ids or ROOT_FOLDER_ID in query.top_parent_ids:
            return query
        return dataclasses.replace(
            query, top_parent_ids=[*query.top_parent_ids, ROOT_FOLDER_ID]
        )

    async def _augment(
        self, query: CatalogQuery, local_items: list[CatalogEntity]
    ) -> tuple[list[CatalogEntity], int]:
        """Merge remote items into local_items.

        Returns:
            (merged items truncated to the limit, number of remote items kept)
        """
        limit = query.limit
        if limit is not None and len(local_items) >= limit:
            return local_items, 0

        merger = ResultMerger(_entity_key, local_items)

        if not query.include_item_types and query.parent_id:
            await self._add_album_tracks_for(query, query.parent_id, merger)

        if query.wants_audio:
            await self._add_audio(query, merger)

        if query.wants(ItemKind.ALBUM) and not merger.is_full(limit):
            await self._add_albums(query, merger)

        items = merger.items[:limit] if limit is not None else merger.items
        added = max(0, len(items) - len(local_items))

        logger.info(
            "Federated query user=%s search=%r types=%s parent=%s artists=%s "
            "ancestors=%s favorites=%s: %d local, %d remote added, %d duplicates",
            query.user.id if query.user else None,
            query.search_term,
            [kind.value for kind in query.include_item_types],
            query.parent_id,
            query.artist_ids or query.album_artist_ids,
            query.ancestor_ids,
            query.is_favorite,
            len(local_items),
            added,
            merger.duplicates,
        )
        return items, added

    async def _add_audio(
        self, query: CatalogQuery, merger: ResultMerger[CatalogEntity]
    ) -> None:
        limit = query.limit

        for artist_id in query.artist_ids:
            if merger.is_full(limit):
                return
            artist = await self._materializer.try_retrieve(artist_id, ItemKind.ARTIST)
            if artist is None:
                continue
            user = await self._resolve_user(query, artist)
            if user is None:
                continue
            url = self._client.api_url(
                f"artists/{artist.remote_id}/top-tracks",
                market=self._tokens.market_for(user),
            )
            tracks = await self._executor.execute(TrackList, user, url)
            merger.extend(entity for entity, _ in tracks)

        for ancestor_id in query.ancestor_ids:
            if merger.is_full(limit):
                return
            await self._add_album_tracks_for(query, ancestor_id, merger)

        if query.search_term and query.user is not None and not merger.is_full(limit):
            url = self._client.api_url(
                "search",
                q=query.search_term,
                type="track",
                limit=self._search_limit(limit),
                offset=query.start_index or None,
            )
            found = await self._executor.execute(SearchResponse, query.user, url)
            merger.extend(entity for entity, _ in found)

        if query.is_favorite and query.user is not None and not merger.is_full(limit):
            await self._add_favorites(query.user, limit, query.start_index or 0, merger)

    async def _add_albums(
        self, query: CatalogQuery, merger: ResultMerger[CatalogEntity]
    ) -> None:
        limit = query.limit

        for artist_id in [*query.artist_ids, *query.album_artist_ids]:
            if merger.is_full(limit):
                return
            artist = await self._materializer.try_retrieve(artist_id, ItemKind.ARTIST)
            if artist is None:
                continue
            user = await self._resolve_user(query, artist)
            if user is None:
                continue
            url = self._client.api_url(
                f"artists/{artist.remote_id}/albums",
                include_groups="album",
                limit=self._settings.artist_album_limit,
                market=self._tokens.market_for(user),
            )
            albums = await self._executor.execute(AlbumList, user, url, parent_id=artist.id)
            merger.extend(entity for entity, _ in albums)

        if query.search_term and query.user is not None and not merger.is_full(limit):
            url = self._client.api_url(
                "search",
                q=query.search_term,
                type="album",
                limit=self._search_limit(limit),
                offset=query.start_index or None,
            )
            found = await self._executor.execute(SearchResponse, query.user, url)
            merger.extend(entity for entity, _ in found)

    async def _add_album_tracks_for(
        self, query: CatalogQuery, album_id: UUID, merger: ResultMerger[CatalogEntity]
    ) -> None:
        album = await self._materializer.try_retrieve(album_id, ItemKind.ALBUM)
        if album is None:
            return
        tracks = await self._album_tracks(query, album)
        merger.extend(sorted(tracks, key=_track_order))

    # Hey future me - linked children are the "we already fetched this album"
    # marker. If every child is still in the store we skip Spotify entirely. One
    # missing child (deleted by a library cleanup) means refetch and relink.
    async def _album_tracks(
        self, query: CatalogQuery, album: CatalogEntity
    ) -> list[CatalogEntity]:
        if album.linked_children:
            known: list[CatalogEntity] = []
            for child in album.linked_children:
                track = await self._materializer.try_retrieve(child.item_id, ItemKind.AUDIO)
                if track is None:
                    break
                known.append(track)
            else:
                return known

        user = await self._resolve_user(query, album)
        if user is None:
            return []

        url = self._client.api_url(
            f"albums/{album.remote_id}/tracks",
            market=self._tokens.market_for(user),
            limit=self._settings.artist_album_limit,
        )
        fetched = await self._executor.execute(TrackList, user, url, parent_id=album.id)
        tracks = [entity for entity, _ in fetched]
        if tracks:
            await self._materializer.link_album_tracks(album, tracks)
        return tracks

    def _search_limit(self, limit: int | None) -> int:
        return min(limit or self._settings.default_search_limit, SPOTIFY_MAX_PAGE_SIZE)

    # Hey future me - the offset walks Spotify's list, so it moves by what Spotify
    # SENT (page.fetched), not by what survived materialization. Liked local files
    # have no id and get dropped, a page full of them is still not the end.
    async def _add_favorites(
        self,
        user: User,
        limit: int | None,
        start_index: int,
        merger: ResultMerger[CatalogEntity],
    ) -> None:
        page_size = self._settings.favorites_page_size
        if limit is not None:
            page_size = min(page_size, limit)

        offset = start_index
        for _ in range(self._settings.favorites_max_pages):
            url = self._client.api_url(
                "me/tracks",
                limit=page_size,
                offset=offset,
                market=self._tokens.market_for(user),
            )
            page = await self._executor.execute_page(FavoriteTrackList, user, url)
            if page.fetched == 0:
                return
            for entity, _ in page.items:
                await self._mark_favorite(user, entity)
                merger.add(entity)
            offset += page.fetched
            if merger.is_full(limit):
                return

        logger.info(
            "Stopped paging Spotify favorites for user %s after %d pages",
            user.id,
            self._settings.favorites_max_pages,
        )

    async def _mark_favorite(self, user: User, item: CatalogEntity) -> None:
        data = await self._user_data.get(user.id, item.id)
        if data is None:
            data = UserItemData(user_id=user.id, item_id=item.id)
        if not data.is_favorite:
            data.is_favorite = True
            await self._user_data.save(data)

    async def _resolve_user(self, query: CatalogQuery, item: CatalogEntity) -> User | None:
        """Query user, else the owner of the browsed item, else nobody."""
        if query.user is not None:
            return query.user
        if item.owner_id is None:
            return None
        return await self._users.get(item.owner_id)
