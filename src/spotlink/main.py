"""FastAPI application entry point."""

from typing import Any

import uvicorn
from fastapi import FastAPI, Request

from spotlink import __version__
from spotlink.api.exception_handlers import register_exception_handlers
from spotlink.api.middleware import CorrelationIdMiddleware
from spotlink.api.routers import api_router
from spotlink.config import Settings, get_settings
from spotlink.infrastructure.lifecycle import lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Passing settings skips the environment entirely (tests do this).
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Spotify catalog federation for a local media library",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(CorrelationIdMiddleware)
    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health(request: Request) -> dict[str, Any]:
        body: dict[str, Any] = {"status": "ok", "version": __version__}
        state = request.app.state
        caches = {
            name: getattr(state, name).get_stats()
            for name in ("entity_cache", "auth_states")
            if getattr(state, name, None) is not None
        }
        if caches:
            body["caches"] = caches
        cleanup = getattr(state, "cache_cleanup", None)
        if cleanup is not None:
            body["cache_cleanup"] = cleanup.get_stats()
        return body

    return app


def run() -> None:
    """Console entry point: serve on 0.0.0.0:8000."""
    uvicorn.run("spotlink.main:create_app", factory=True, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
