"""FastAPI dependencies shared by the API routers.

The table registry and the connection pool are created once in the
application lifespan and stored on ``app.state``. These resolvers hand
them to endpoints by reference; tests replace them through
``app.dependency_overrides``.
"""

from __future__ import annotations

import fastapi

from trailmap.core import config
from trailmap.db import database
from trailmap.db import models as db_models
from trailmap.services import solver


def get_registry(request: fastapi.Request) -> db_models.TableRegistry:
    """Resolve the process-wide, read-only table registry."""
    return request.app.state.registry


def get_connection_source(
    request: fastapi.Request,
) -> database.ConnectionSource:
    """Resolve the shared connection pool."""
    return request.app.state.pool


def get_solver(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> solver.CircuitSolver:
    """Resolve the configured circuit solver.

    Args:
        settings: Application settings (injected via FastAPI Depends).
    """
    return solver.get_circuit_solver(settings)
