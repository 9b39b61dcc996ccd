"""FastAPI application entrypoint and configuration.

This module provides the main FastAPI application factory that sets up
CORS middleware, logging, error handlers, and the API routers for tiles,
routing and table discovery, and exposes a health check endpoint.

The connection pool and the table registry are created once in the
application lifespan and shared read-only by every request.

Example:
    The application can be run with uvicorn:
        $ uvicorn trailmap.main:app --reload

    Or imported and used programmatically:
        >>> from trailmap.main import app
        >>> # Use app in ASGI server
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

import fastapi
from fastapi import responses
from fastapi.middleware import cors

from trailmap.api import layers, routing, tiles
from trailmap.core import config, errors
from trailmap.core import logging as trailmap_logging
from trailmap.db import catalog, database
from trailmap.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[errors.TrailmapError], int], ...] = (
    (errors.ValidationError, 400),
    (errors.RegistryLookupError, 404),
    (errors.MetadataError, 422),
)


@contextlib.asynccontextmanager
async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
    """Open the connection pool and load the registry for the app's life."""
    settings = config.get_settings()
    pool = database.get_connection_pool(settings)
    app.state.pool = pool
    if settings.load_registry_on_startup:
        app.state.registry = catalog.load_table_registry(pool)
    else:
        app.state.registry = db_models.TableRegistry.from_tables("", [])
    try:
        yield
    finally:
        pool.close()


async def _handle_trailmap_error(
    request: fastapi.Request, exc: Exception
) -> responses.JSONResponse:
    """Translate service errors into HTTP responses.

    Validation, lookup and metadata errors keep their message. Upstream
    failures all share one generic 500 response.
    """
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return responses.JSONResponse(
                status_code=status_code,
                content={"detail": str(exc)},
            )

    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return responses.JSONResponse(
        status_code=500,
        content={"detail": f"Something went wrong: {exc}"},
    )


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Configures logging, sets up CORS middleware, registers the error
    handlers, includes the tile, routing and layer routers, and adds a
    health check endpoint. CORS origins are configured from settings.

    Returns:
        Configured FastAPI application instance ready for ASGI server.

    Example:
        The app can be used with uvicorn or other ASGI servers:
            >>> app = create_app()
            >>> # Or use the module-level app instance:
            >>> from trailmap.main import app
    """
    settings = config.get_settings()
    trailmap_logging.configure_logging(settings.log_level)

    app = fastapi.FastAPI(title="Trailmap", version="0.1.0", lifespan=lifespan)

    app.include_router(tiles.router)
    app.include_router(routing.router)
    app.include_router(layers.router)

    app.add_exception_handler(errors.TrailmapError, _handle_trailmap_error)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
