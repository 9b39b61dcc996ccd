"""API router subpackage for the trailmap backend.

This package organizes the REST endpoints of the service. Each module
exposes its own APIRouter for composition in the application's main
FastAPI instance.

Submodules:
    - tiles: XYZ vector tile (MVT) endpoint for registered tables.
    - routing: Loop route (circuit) search endpoint.
    - layers: Endpoints for discovering registered tables.
    - dependencies: Shared resolvers for the registry, pool and solver.

Routers are grouped by major feature domain to promote clarity and
independent testing.
"""
