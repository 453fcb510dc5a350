"""Shared fixtures: in-memory stores and a scripted Spotify client.

Hey future me - FakeSpotifyClient answers by URL path ("search",
"albums/<id>/tracks", ...). Register responses with route(); each call pops the
next one and the last one repeats. Unrouted paths answer 404, which the
executor treats as "no remote results".
"""

import asyncio
from typing import Any
from urllib.parse import parse_qs, urlencode, urlsplit
from uuid import UUID, uuid4

import pytest

from spotlink.application.cache import AuthStateCache, EntityCache
from spotlink.application.services import (
    CatalogMaterializer,
    FederatedCatalogRepository,
    RemoteQueryExecutor,
    SpotifyAuthService,
    SpotifyTokenManager,
    SpotifyTokenStore,
)
from spotlink.config import FederationSettings
from spotlink.domain.entities import (
    CatalogEntity,
    CatalogQuery,
    ItemCounts,
    ItemKind,
    MediaType,
    QueryResult,
    User,
    UserItemData,
)
from spotlink.domain.ports import (
    ApiResponse,
    ICatalogRepository,
    ISpotifyClient,
    IUserDataRepository,
    IUserRepository,
)

API_KEY = "client-id:client-secret"


class InMemoryCatalogStore(ICatalogRepository):
    """Dict-backed store with just enough filtering for the federation tests."""

    def __init__(self) -> None:
        self.items: dict[UUID, CatalogEntity] = {}
        self.saves: list[UUID] = []

    async def save_item(self, item: CatalogEntity) -> None:
        self.saves.append(item.id)
        self.items[item.id] = item

    async def save_items(self, items: list[CatalogEntity]) -> None:
        for item in items:
            await self.save_item(item)

    async def retrieve_item(self, item_id: UUID) -> CatalogEntity | None:
        return self.items.get(item_id)

    async def delete_item(self, item_id: UUID) -> None:
        self.items.pop(item_id, None)

    def _matching(self, query: CatalogQuery) -> list[CatalogEntity]:
        kinds = set(query.include_item_types)
        if MediaType.AUDIO in query.media_types:
            kinds.add(ItemKind.AUDIO)
        found = []
        for item in self.items.values():
            if kinds and item.kind not in kinds:
                continue
            if query.parent_id and item.parent_id != query.parent_id:
                continue
            if query.search_term and query.search_term.lower() not in item.name.lower():
                continue
            found.append(item)
        return sorted(found, key=lambda item: item.sort_name or item.name)

    def _page(self, items: list[Any], query: CatalogQuery) -> list[Any]:
        start = query.start_index or 0
        end = start + query.limit if query.limit is not None else None
        return items[start:end]

    async def get_items(self, query: CatalogQuery) -> QueryResult[CatalogEntity]:
        matching = self._matching(query)
        return QueryResult(
            items=self._page(matching, query),
            total_record_count=len(matching),
            start_index=query.start_index or 0,
        )

    async def get_item_list(self, query: CatalogQuery) -> list[CatalogEntity]:
        return self._page(self._matching(query), query)

    async def get_item_ids(self, query: CatalogQuery) -> list[UUID]:
        return [item.id for item in await self.get_item_list(query)]

    async def get_count(self, query: CatalogQuery) -> int:
        return len(self._matching(query))

    async def get_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        artists = self._matching(
            CatalogQuery(include_item_types=[ItemKind.ARTIST], search_term=query.search_term)
        )
        pairs = [(artist, ItemCounts(artist_count=1)) for artist in artists]
        return QueryResult(
            items=self._page(pairs, query),
            total_record_count=len(pairs),
            start_index=query.start_index or 0,
        )

    async def get_album_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        return await self.get_artists(query)

    async def get_all_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        return await self.get_artists(query)

    async def get_genre_names(self) -> list[str]:
        return sorted({genre for item in self.items.values() for genre in item.genres})

    async def get_all_artist_names(self) -> list[str]:
        return sorted(
            {item.name for item in self.items.values() if item.kind is ItemKind.ARTIST}
        )


class InMemoryUserRepository(IUserRepository):
    def __init__(self) -> None:
        self.users: dict[UUID, User] = {}
        self.updates = 0

    async def get(self, user_id: UUID) -> User | None:
        return self.users.get(user_id)

    async def add(self, user: User) -> None:
        self.users[user.id] = user

    async def update(self, user: User) -> None:
        self.updates += 1
        self.users[user.id] = user

    async def list_with_spotify_credentials(self) -> list[User]:
        return [user for user in self.users.values() if user.has_spotify_credentials]


class InMemoryUserDataRepository(IUserDataRepository):
    def __init__(self) -> None:
        self.data: dict[tuple[UUID, UUID], UserItemData] = {}

    async def get(self, user_id: UUID, item_id: UUID) -> UserItemData | None:
        return self.data.get((user_id, item_id))

    async def save(self, data: UserItemData) -> None:
        self.data[(data.user_id, data.item_id)] = data


class FakeSpotifyClient(ISpotifyClient):
    """Scripted ISpotifyClient. Records every request."""

    base_url = "https://api.spotify.test/v1"

    def __init__(self) -> None:
        self.routes: dict[str, list[Any]] = {}
        self.requests: list[tuple[str, str]] = []
        self.token_requests: list[tuple[str, dict[str, str]]] = []
        self.token_payload: dict[str, Any] | Exception = {"access_token": "client-token"}
        self.profile: dict[str, Any] = {"id": "listener", "country": "DE"}

    def route(self, path: str, *responses: Any) -> None:
        """Queue responses for path: dicts become 200s, ints bare statuses."""
        queue = []
        for response in responses:
            if isinstance(response, dict):
                response = ApiResponse(200, response)
            elif isinstance(response, int):
                response = ApiResponse(response)
            queue.append(response)
        self.routes[path] = queue

    def calls_to(self, path: str) -> list[str]:
        return [url for url, _ in self.requests if _path_of(url) == path]

    def tokens_used(self) -> list[str]:
        return [token for _, token in self.requests]

    async def request_token(self, api_key: str, form: dict[str, str]) -> dict[str, Any]:
        self.token_requests.append((api_key, dict(form)))
        await asyncio.sleep(0)
        if isinstance(self.token_payload, Exception):
            raise self.token_payload
        return dict(self.token_payload)

    async def get(self, url: str, access_token: str) -> ApiResponse:
        self.requests.append((url, access_token))
        await asyncio.sleep(0)
        queue = self.routes.get(_path_of(url))
        if not queue:
            return ApiResponse(404)
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def get_current_user(self, access_token: str) -> dict[str, Any]:
        return dict(self.profile)

    def api_url(self, path: str, **params: Any) -> str:
        query = {key: value for key, value in params.items() if value is not None}
        url = f"{self.base_url}/{path}"
        return f"{url}?{urlencode(query)}" if query else url

    def authorize_url(self, client_id: str, state: str) -> str:
        return f"https://accounts.spotify.test/authorize?client_id={client_id}&state={state}"

    async def close(self) -> None:
        pass


def _path_of(url: str) -> str:
    return urlsplit(url).path.removeprefix("/v1/")


def query_of(url: str) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}


# Spotify JSON builders. Ids are 22 base-62 chars like the real thing.


def spotify_id(prefix: str, number: int) -> str:
    return f"{prefix}{number:0{22 - len(prefix)}d}"


def artist_json(number: int, name: str | None = None, **extra: Any) -> dict[str, Any]:
    remote_id = spotify_id("art", number)
    return {
        "id": remote_id,
        "name": name or f"Artist {number}",
        "type": "artist",
        "href": f"https://api.spotify.test/v1/artists/{remote_id}",
        "external_urls": {"spotify": f"https://open.spotify.test/artist/{remote_id}"},
        "genres": [],
        "images": [],
        **extra,
    }


def album_json(
    number: int, artists: list[dict[str, Any]] | None = None, **extra: Any
) -> dict[str, Any]:
    remote_id = spotify_id("alb", number)
    return {
        "id": remote_id,
        "name": f"Album {number}",
        "type": "album",
        "album_type": "album",
        "release_date": "2001-03-12",
        "href": f"https://api.spotify.test/v1/albums/{remote_id}",
        "artists": artists if artists is not None else [artist_json(number)],
        "images": [],
        **extra,
    }


def track_json(
    number: int,
    album: dict[str, Any] | None = None,
    artists: list[dict[str, Any]] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    remote_id = spotify_id("trk", number)
    payload = {
        "id": remote_id,
        "name": f"Track {number}",
        "type": "track",
        "duration_ms": 200_000,
        "track_number": number,
        "disc_number": 1,
        "href": f"https://api.spotify.test/v1/tracks/{remote_id}",
        "artists": artists if artists is not None else [artist_json(1)],
        **extra,
    }
    if album is not None:
        payload["album"] = album
    return payload


class Payloads:
    """Namespace handed to tests through the `payloads` fixture."""

    spotify_id = staticmethod(spotify_id)
    artist = staticmethod(artist_json)
    album = staticmethod(album_json)
    track = staticmethod(track_json)
    query_of = staticmethod(query_of)


@pytest.fixture
def payloads() -> type[Payloads]:
    return Payloads


@pytest.fixture
def user() -> User:
    return User(id=uuid4(), username="listener", spotify_api_key=API_KEY)


@pytest.fixture
def store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore()


@pytest.fixture
def user_repository(user: User) -> InMemoryUserRepository:
    repository = InMemoryUserRepository()
    repository.users[user.id] = user
    return repository


@pytest.fixture
def user_data() -> InMemoryUserDataRepository:
    return InMemoryUserDataRepository()


@pytest.fixture
def spotify() -> FakeSpotifyClient:
    return FakeSpotifyClient()


@pytest.fixture
def tokens(
    spotify: FakeSpotifyClient, user_repository: InMemoryUserRepository
) -> SpotifyTokenManager:
    return SpotifyTokenManager(
        spotify,
        SpotifyTokenStore(),
        user_repository=user_repository,
        redirect_uri="http://localhost:8000/spotify/auth-callback",
    )


@pytest.fixture
def entity_cache() -> EntityCache:
    return EntityCache(ttl_seconds=3600)


@pytest.fixture
def materializer(store: InMemoryCatalogStore, entity_cache: EntityCache) -> CatalogMaterializer:
    return CatalogMaterializer(store, entity_cache)


@pytest.fixture
def executor(
    spotify: FakeSpotifyClient,
    tokens: SpotifyTokenManager,
    materializer: CatalogMaterializer,
) -> RemoteQueryExecutor:
    return RemoteQueryExecutor(spotify, tokens, materializer)


@pytest.fixture
def catalog(
    store: InMemoryCatalogStore,
    executor: RemoteQueryExecutor,
    materializer: CatalogMaterializer,
    spotify: FakeSpotifyClient,
    tokens: SpotifyTokenManager,
    user_repository: InMemoryUserRepository,
    user_data: InMemoryUserDataRepository,
) -> FederatedCatalogRepository:
    return FederatedCatalogRepository(
        store,
        executor,
        materializer,
        spotify,
        tokens,
        user_repository,
        user_data,
        settings=FederationSettings(),
    )


@pytest.fixture
def auth_service(
    spotify: FakeSpotifyClient,
    tokens: SpotifyTokenManager,
    user_repository: InMemoryUserRepository,
) -> SpotifyAuthService:
    return SpotifyAuthService(spotify, tokens, user_repository, AuthStateCache())
