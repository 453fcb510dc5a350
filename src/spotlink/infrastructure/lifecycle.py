"""Application lifecycle management for startup and shutdown tasks.

The lifespan wires the whole federation stack together and parks every piece on
app.state, where api.dependencies picks them up:

    db, catalog_store, user_repository, user_data_repository
    spotify_client, token_manager, entity_cache, materializer, executor
    catalog (the federated repository), auth_states, spotify_auth
    cache_cleanup (sweeps expired entries out of both caches)
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from spotlink.application.cache import AuthStateCache, EntityCache
from spotlink.application.services import (
    CatalogMaterializer,
    FederatedCatalogRepository,
    RemoteQueryExecutor,
    SpotifyAuthService,
    SpotifyTokenManager,
    SpotifyTokenStore,
)
from spotlink.application.workers import CacheCleanupWorker
from spotlink.config import Settings, get_settings
from spotlink.infrastructure.integrations import SpotifyClient
from spotlink.infrastructure.observability import configure_logging
from spotlink.infrastructure.persistence import (
    Database,
    SqlCatalogRepository,
    UserDataRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


def _settings_for(app: FastAPI) -> Settings:
    settings = getattr(app.state, "settings", None)
    if settings is None:
        settings = get_settings()
        app.state.settings = settings
    return settings


# Listen future me, everything before `yield` runs at STARTUP, everything after at
# SHUTDOWN. The finally block runs even when startup blew up halfway, so every
# close below has to cope with the thing never having been created.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles:
    - Logging configuration
    - Database initialization (tables are created if missing)
    - Spotify client, token manager and federation services
    - Root folder creation and token warm-up
    - Periodic cache cleanup
    - Resource cleanup
    """
    settings = _settings_for(app)

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    db: Database | None = None
    client: SpotifyClient | None = None
    auth: SpotifyAuthService | None = None
    cleanup: CacheCleanupWorker | None = None
    cleanup_task: asyncio.Task[None] | None = None
    try:
        db = Database(settings.database)
        await db.create_tables()
        app.state.db = db
        logger.info("Database initialized: %s", settings.database.url)

        store = SqlCatalogRepository(db)
        users = UserRepository(db)
        user_data = UserDataRepository(db)
        app.state.catalog_store = store
        app.state.user_repository = users
        app.state.user_data_repository = user_data

        client = SpotifyClient(settings.spotify)
        tokens = SpotifyTokenManager(
            client,
            SpotifyTokenStore(),
            user_repository=users,
            redirect_uri=settings.spotify.redirect_uri,
        )
        app.state.spotify_client = client
        app.state.token_manager = tokens

        cache = EntityCache(ttl_seconds=settings.cache.entity_ttl_seconds)
        materializer = CatalogMaterializer(store, cache)
        executor = RemoteQueryExecutor(client, tokens, materializer)
        app.state.entity_cache = cache
        app.state.materializer = materializer
        app.state.executor = executor

        catalog = FederatedCatalogRepository(
            store,
            executor,
            materializer,
            client,
            tokens,
            users,
            user_data,
            settings=settings.federation,
        )
        await catalog.initialize()
        app.state.catalog = catalog

        states = AuthStateCache(ttl_seconds=settings.cache.auth_state_ttl_seconds)
        auth = SpotifyAuthService(client, tokens, users, states)
        app.state.auth_states = states
        app.state.spotify_auth = auth

        cleanup = CacheCleanupWorker(
            {"entity_cache": cache, "auth_states": states},
            check_interval=settings.cache.cleanup_interval_seconds,
        )
        cleanup_task = asyncio.create_task(cleanup.start())
        app.state.cache_cleanup = cleanup

        logger.info("Spotify federation ready")
        yield

    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")

        if cleanup is not None and cleanup_task is not None:
            cleanup.stop()
            cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cleanup_task
            logger.info("Cache cleanup worker stopped")

        if auth is not None:
            await auth.drain()

        if client is not None:
            try:
                await client.close()
                logger.info("Spotify client closed")
            except Exception as e:
                logger.exception("Error closing Spotify client: %s", e)

        if db is not None:
            try:
                await db.close()
                logger.info("Database connection closed")
            except Exception as e:
                logger.exception("Error closing database: %s", e)
