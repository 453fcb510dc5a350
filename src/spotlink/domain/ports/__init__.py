"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from spotlink.domain.entities import (
    CatalogEntity,
    CatalogQuery,
    ItemCounts,
    QueryResult,
    User,
    UserItemData,
)


# Hey future me, ICatalogRepository is the BACKING STORE contract. The SQL repository
# implements it, and so does FederatedCatalogRepository (which wraps another
# ICatalogRepository and augments a few methods with Spotify results). Anything
# typed against this port gets federation for free by swapping the instance.
class ICatalogRepository(ABC):
    """Repository interface for catalog items."""

    @abstractmethod
    async def save_item(self, item: CatalogEntity) -> None:
        """Insert or update one item."""
        pass

    @abstractmethod
    async def save_items(self, items: list[CatalogEntity]) -> None:
        """Insert or update many items."""
        pass

    @abstractmethod
    async def retrieve_item(self, item_id: UUID) -> CatalogEntity | None:
        """Get an item by id."""
        pass

    @abstractmethod
    async def delete_item(self, item_id: UUID) -> None:
        """Delete an item by id. Missing ids are ignored."""
        pass

    @abstractmethod
    async def get_items(self, query: CatalogQuery) -> QueryResult[CatalogEntity]:
        """Get one page of items plus the total count."""
        pass

    @abstractmethod
    async def get_item_list(self, query: CatalogQuery) -> list[CatalogEntity]:
        """Get items without a total count."""
        pass

    @abstractmethod
    async def get_item_ids(self, query: CatalogQuery) -> list[UUID]:
        """Get matching item ids."""
        pass

    @abstractmethod
    async def get_count(self, query: CatalogQuery) -> int:
        """Count matching items."""
        pass

    @abstractmethod
    async def get_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        """Get artists (any role) matching the query."""
        pass

    @abstractmethod
    async def get_album_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        """Get artists credited as album artist."""
        pass

    @abstractmethod
    async def get_all_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        """Get every artist regardless of role."""
        pass

    @abstractmethod
    async def get_genre_names(self) -> list[str]:
        """Distinct genre names, sorted."""
        pass

    @abstractmethod
    async def get_all_artist_names(self) -> list[str]:
        """Distinct artist names, sorted."""
        pass


class IUserRepository(ABC):
    """Repository interface for users and their stored Spotify credentials."""

    @abstractmethod
    async def get(self, user_id: UUID) -> User | None:
        """Get a user by id."""
        pass

    @abstractmethod
    async def add(self, user: User) -> None:
        """Add a new user."""
        pass

    @abstractmethod
    async def update(self, user: User) -> None:
        """Persist changed user fields."""
        pass

    @abstractmethod
    async def list_with_spotify_credentials(self) -> list[User]:
        """Users that have an application credential or a web token stored."""
        pass


class IUserDataRepository(ABC):
    """Repository interface for per-user item state (favorites)."""

    @abstractmethod
    async def get(self, user_id: UUID, item_id: UUID) -> UserItemData | None:
        pass

    @abstractmethod
    async def save(self, data: UserItemData) -> None:
        pass


@dataclass(frozen=True)
class ApiResponse:
    """Status code plus decoded JSON body (None when empty, null or not JSON)."""

    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200


# Hey future me - ISpotifyClient is transport only. It knows URLs, headers and
# status codes. Which token to use, retries and what a response MEANS live in the
# token manager and the query executor.
class ISpotifyClient(ABC):
    """Port for the Spotify Web API and accounts service."""

    @abstractmethod
    async def request_token(self, api_key: str, form: dict[str, str]) -> dict[str, Any]:
        """POST to the token endpoint with Basic auth of api_key.

        Args:
            api_key: Application credential "clientId:clientSecret"
            form: Form fields (grant_type plus grant specific fields)

        Returns:
            Decoded token response

        Raises:
            ExternalServiceError: Transport failure or non-200 response
        """
        pass

    @abstractmethod
    async def get(self, url: str, access_token: str) -> ApiResponse:
        """Authenticated GET against the Web API.

        Raises:
            ExternalServiceError: Transport failure (no response at all)
        """
        pass

    @abstractmethod
    async def get_current_user(self, access_token: str) -> dict[str, Any]:
        """GET /me.

        Raises:
            ExternalServiceError: Transport failure or non-200 response
        """
        pass

    @abstractmethod
    def api_url(self, path: str, **params: Any) -> str:
        """Absolute Web API URL, dropping params that are None."""
        pass

    @abstractmethod
    def authorize_url(self, client_id: str, state: str) -> str:
        """URL of the interactive authorization page."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


__all__ = [
    "ApiResponse",
    "ICatalogRepository",
    "ISpotifyClient",
    "IUserDataRepository",
    "IUserRepository",
]
