"""Application services - token lifecycle, materialization and federation."""

from spotlink.application.services.catalog_materializer import CatalogMaterializer
from spotlink.application.services.federated_catalog import (
    FederatedCatalogRepository,
    ResultMerger,
)
from spotlink.application.services.remote_query_executor import (
    RemotePage,
    RemoteQueryExecutor,
)
from spotlink.application.services.spotify_auth_service import (
    AccessTokenResult,
    LoginRedirect,
    SpotifyAuthService,
)
from spotlink.application.services.token_manager import (
    SpotifyTokenManager,
    SpotifyTokenRecord,
    SpotifyTokenStore,
    TokenState,
)

__all__ = [
    "AccessTokenResult",
    "CatalogMaterializer",
    "FederatedCatalogRepository",
    "LoginRedirect",
    "RemotePage",
    "RemoteQueryExecutor",
    "ResultMerger",
    "SpotifyAuthService",
    "SpotifyTokenManager",
    "SpotifyTokenRecord",
    "SpotifyTokenStore",
    "TokenState",
]
