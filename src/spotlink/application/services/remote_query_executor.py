"""Runs one Spotify read request and turns the response into catalog entities."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from spotlink.application.services.token_manager import SpotifyTokenManager
from spotlink.domain.entities import User
from spotlink.domain.exceptions import ExternalServiceError
from spotlink.domain.ports import ApiResponse, ISpotifyClient
from spotlink.infrastructure.integrations.spotify_models import (
    MaterializedItems,
    SpotifyEnvelope,
)

if TYPE_CHECKING:
    from spotlink.application.services.catalog_materializer import CatalogMaterializer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemotePage:
    """Materialized items plus how many entries Spotify actually sent.

    fetched can exceed len(items): entries without a usable id are dropped
    during materialization but still occupy a slot in Spotify's paging.
    """

    items: MaterializedItems = field(default_factory=list)
    fetched: int = 0


class RemoteQueryExecutor:
    """Issue a GET, classify the outcome, materialize the payload.

    Never raises for remote trouble. Every failure mode (no token, transport
    error, bad status, unparseable body) ends in an empty list plus a log line,
    so the federated engine can always fall back to local results.
    """

    def __init__(
        self,
        client: ISpotifyClient,
        tokens: SpotifyTokenManager,
        materializer: "CatalogMaterializer",
    ) -> None:
        self._client = client
        self._tokens = tokens
        self._materializer = materializer

    # Hey future me - the retry is EXACTLY one. A 401 invalidates the client token
    # (if that was the one used) and the second attempt forces client credentials,
    # so a stale web token gets routed around. A second 401 means the credential
    # itself is bad and hammering Spotify won't fix that.
    async def execute(
        self,
        envelope_type: type[SpotifyEnvelope],
        user: User,
        url: str,
        parent_id: UUID | None = None,
    ) -> MaterializedItems:
        """Fetch url for user and materialize it through envelope_type.

        Args:
            envelope_type: Envelope model matching the endpoint
            user: User whose credentials are used; also becomes the owner
            url: Absolute Web API URL
            parent_id: Parent to attach materialized items to

        Returns:
            Materialized (entity, counts) pairs, empty on any failure
        """
        page = await self.execute_page(envelope_type, user, url, parent_id)
        return page.items

    async def execute_page(
        self,
        envelope_type: type[SpotifyEnvelope],
        user: User,
        url: str,
        parent_id: UUID | None = None,
    ) -> RemotePage:
        """Like execute(), but also report the raw entry count for paging."""
        response = await self._fetch(user, url, force_client_credentials=False)
        if response is None:
            return RemotePage()

        if response.status_code == 401:
            logger.info("Spotify returned 401 for %s, retrying with client credentials", url)
            response = await self._fetch(user, url, force_client_credentials=True)
            if response is None:
                return RemotePage()

        if not response.ok:
            logger.warning("Spotify request %s failed with status %d", url, response.status_code)
            return RemotePage()

        if response.body is None:
            logger.warning("Spotify request %s returned an empty body", url)
            return RemotePage()

        try:
            envelope = envelope_type.model_validate(response.body)
        except PydanticValidationError as e:
            logger.warning(
                "Could not parse %s from %s: %d errors",
                envelope_type.__name__,
                url,
                e.error_count(),
            )
            return RemotePage()

        items = await envelope.to_items(self._materializer, parent_id, user.id)
        return RemotePage(items=items, fetched=envelope.raw_count)

    async def _fetch(
        self, user: User, url: str, force_client_credentials: bool
    ) -> ApiResponse | None:
        token = await self._tokens.select_token(
            user, force_client_credentials=force_client_credentials
        )
        if token is None:
            logger.debug("No Spotify token for user %s, skipping %s", user.id, url)
            return None

        try:
            response = await self._client.get(url, token)
        except ExternalServiceError as e:
            logger.warning("Spotify request failed: %s", e.message)
            return None

        if response.status_code == 401:
            self._tokens.invalidate(user, token)
        return response
