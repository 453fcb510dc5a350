"""Tests for RemoteQueryExecutor outcome handling."""

from uuid import uuid4

from spotlink.application.services import RemoteQueryExecutor, SpotifyTokenManager
from spotlink.domain.entities import ItemKind, User
from spotlink.domain.exceptions import ExternalServiceError
from spotlink.domain.ports import ApiResponse
from spotlink.infrastructure.integrations.spotify_models import (
    FavoriteTrackList,
    SearchResponse,
    TrackList,
)


class TestExecute:
    async def test_materializes_search_results(
        self, executor: RemoteQueryExecutor, spotify, user: User, payloads
    ) -> None:
        spotify.route("search", {"artists": {"items": [payloads.artist(1), payloads.artist(2)]}})

        results = await executor.execute(
            SearchResponse, user, spotify.api_url("search", q="x", type="artist")
        )

        assert [entity.name for entity, _ in results] == ["Artist 1", "Artist 2"]
        assert all(entity.kind is ItemKind.ARTIST for entity, _ in results)
        assert all(entity.owner_id == user.id for entity, _ in results)

    async def test_no_token_skips_request(
        self, executor: RemoteQueryExecutor, spotify
    ) -> None:
        nobody = User(id=uuid4(), username="nobody")

        assert await executor.execute(SearchResponse, nobody, spotify.api_url("search")) == []
        assert spotify.requests == []

    async def test_401_retries_once_with_client_credentials(
        self, executor: RemoteQueryExecutor, spotify, payloads
    ) -> None:
        """Test that a stale web token is routed around with one retry."""
        user = User(
            id=uuid4(),
            username="u",
            spotify_api_key="id:secret",
            spotify_token="client",
            spotify_web_token="stale-web",
        )
        spotify.route("search", 401, {"tracks": {"items": [payloads.track(1)]}})

        results = await executor.execute(SearchResponse, user, spotify.api_url("search"))

        assert len(results) == 1
        assert spotify.tokens_used() == ["stale-web", "client"]

    async def test_second_401_gives_up(
        self, executor: RemoteQueryExecutor, spotify, user: User, tokens: SpotifyTokenManager
    ) -> None:
        spotify.route("search", 401)

        assert await executor.execute(SearchResponse, user, spotify.api_url("search")) == []

        # first attempt logs in, 401 invalidates, retry logs in again, 401 again
        assert len(spotify.requests) == 2
        assert len(spotify.token_requests) == 2

    async def test_error_status_returns_empty(
        self, executor: RemoteQueryExecutor, spotify, user: User
    ) -> None:
        spotify.route("search", 503)
        assert await executor.execute(SearchResponse, user, spotify.api_url("search")) == []
        assert len(spotify.requests) == 1

    async def test_transport_error_returns_empty(
        self, executor: RemoteQueryExecutor, spotify, user: User
    ) -> None:
        spotify.route("search", ExternalServiceError("spotify", "connection reset"))
        assert await executor.execute(SearchResponse, user, spotify.api_url("search")) == []

    async def test_empty_body_returns_empty(
        self, executor: RemoteQueryExecutor, spotify, user: User
    ) -> None:
        spotify.route("search", ApiResponse(200, None))
        assert await executor.execute(SearchResponse, user, spotify.api_url("search")) == []

    async def test_unparseable_body_returns_empty(
        self, executor: RemoteQueryExecutor, spotify, user: User
    ) -> None:
        spotify.route("albums/x/tracks", {"items": "not a list"})

        results = await executor.execute(TrackList, user, spotify.api_url("albums/x/tracks"))

        assert results == []

    async def test_items_with_bad_ids_are_skipped(
        self, executor: RemoteQueryExecutor, spotify, user: User, payloads
    ) -> None:
        good = payloads.track(1)
        bad = {**payloads.track(2), "id": "not-base-62!"}
        missing = {**payloads.track(3), "id": None}
        spotify.route("search", {"tracks": {"items": [bad, good, missing]}})

        results = await executor.execute(SearchResponse, user, spotify.api_url("search"))

        assert [entity.name for entity, _ in results] == ["Track 1"]


class TestExecutePage:
    async def test_fetched_counts_entries_dropped_during_materialization(
        self, executor: RemoteQueryExecutor, spotify, user: User, payloads
    ) -> None:
        spotify.route(
            "me/tracks",
            {
                "items": [
                    {"track": payloads.track(1)},
                    {"track": {**payloads.track(2), "id": None}},
                    {"track": None},
                ]
            },
        )

        page = await executor.execute_page(
            FavoriteTrackList, user, spotify.api_url("me/tracks")
        )

        assert [entity.name for entity, _ in page.items] == ["Track 1"]
        assert page.fetched == 3

    async def test_failure_reports_nothing_fetched(
        self, executor: RemoteQueryExecutor, spotify, user: User
    ) -> None:
        spotify.route("me/tracks", 500)

        page = await executor.execute_page(
            FavoriteTrackList, user, spotify.api_url("me/tracks")
        )

        assert page.items == []
        assert page.fetched == 0
