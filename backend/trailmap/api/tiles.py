"""XYZ vector tile serving endpoint.

This module provides the REST API endpoint for serving map tiles in the
standard XYZ scheme. Tiles are generated on demand from any registered
PostGIS table: geometries are reprojected to EPSG:3857 (Web Mercator),
clipped to the tile and encoded as MVT (Mapbox Vector Tiles) by PostGIS.

Example:
    Request a vector tile:
        >>> response = client.get("/tiles/topo/edges/10/301/385.mvt")
        >>> # Returns MVT tile data with
        >>> # Content-Type: application/vnd.mapbox-vector-tile

    Use in MapLibre GL JS:
        >>> map.addSource('edges', {
        ...     type: 'vector',
        ...     tiles: ['http://api/tiles/topo/edges/{z}/{x}/{y}.mvt']
        ... });
"""

from __future__ import annotations

import fastapi
from fastapi import concurrency, responses

from trailmap.api import dependencies
from trailmap.core import errors
from trailmap.db import database
from trailmap.db import models as db_models
from trailmap.services import tiles_postgis

router = fastapi.APIRouter(prefix="/tiles", tags=["tiles"])


@router.get("/{schema}/{table}/{z}/{x}/{y}.{ext}")
async def vector_tile(
    schema: str,
    table: str,
    z: int,
    x: int,
    y: int,
    ext: str,
    registry: db_models.TableRegistry = fastapi.Depends(  # noqa: B008
        dependencies.get_registry
    ),
    source: database.ConnectionSource = fastapi.Depends(  # noqa: B008
        dependencies.get_connection_source
    ),
) -> responses.Response:
    """Generate an XYZ vector tile for a registered table.

    The tile carries the table's primary-key and attribute columns as
    feature properties. A tile with no features is returned as an empty
    body, not as an error.

    Args:
        schema: Schema of the table.
        table: Table name within the schema.
        z: Zoom level (standard XYZ tile zoom).
        x: Tile X coordinate, ``0 <= x < 2**z``.
        y: Tile Y coordinate, ``0 <= y < 2**z``.
        ext: Tile format extension; only "mvt" is supported.
        registry: Table registry (injected via FastAPI Depends).
        source: Connection pool (injected via FastAPI Depends).

    Returns:
        MVT bytes with Content-Type application/vnd.mapbox-vector-tile.

    Raises:
        UnsupportedFormatError: If ``ext`` is not "mvt" (400).
        InvalidTileError: If the coordinates are outside the pyramid (400).
        RegistryLookupError: If the schema or table is unknown (404).
        MissingGeometryError: If the table has no geometry column (422).
    """
    table_spec = registry.get(schema, table)
    if ext != tiles_postgis.MVT_FORMAT:
        raise errors.UnsupportedFormatError(
            f"Specified file extension not supported: {ext}"
        )

    tile = db_models.Tile(z=z, x=x, y=y)
    content = await concurrency.run_in_threadpool(
        tiles_postgis.fetch_tile, source, tile, table_spec
    )
    return responses.Response(
        content=content,
        media_type=tiles_postgis.MVT_MEDIA_TYPE,
    )
