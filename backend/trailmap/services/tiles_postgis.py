"""PostGIS MVT (Mapbox Vector Tiles) SQL query builder.

This module provides utilities for generating PostGIS SQL queries that
produce Mapbox Vector Tiles (MVT) format for any registered table. The
generated SQL uses PostGIS functions like ST_AsMVT, ST_AsMVTGeom and
ST_TileEnvelope to create clipped vector tiles from geometry data.

Geometries are reprojected from the table's native SRID into EPSG:3857
(Web Mercator) before being clipped. Two envelopes are used per tile:
the exact tile bounds for clipping, and the bounds widened by the tile
buffer for row selection, so features that only partly enter the tile
are still encoded.

Example:
    Generate MVT SQL for a registered table:
        >>> from trailmap.db import models as db_models
        >>> from trailmap.services import tiles_postgis

        >>> tile = db_models.Tile(z=10, x=512, y=384)
        >>> sql = tiles_postgis.make_tile_data_query(tile, table)
        >>> cursor.execute(sql)
        >>> mvt_data = cursor.fetchone()[0]
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from trailmap.core import errors
from trailmap.db import database
from trailmap.utils import sql_identifiers

if TYPE_CHECKING:
    from trailmap.db import models as db_models

logger = logging.getLogger(__name__)

WORLD_MERC_MAX = 20037508.3427892
WORLD_MERC_MIN = -WORLD_MERC_MAX
INCOMING_SRID = 3857
EXTENT = 4096
BUFFER = 64

MVT_FORMAT = "mvt"
MVT_MEDIA_TYPE = "application/vnd.mapbox-vector-tile"


def tile_envelope(tile: db_models.Tile, margin: float | None = None) -> str:
    """Return the ST_TileEnvelope expression for a tile.

    The envelope is computed within the fixed world Mercator extent. When
    ``margin`` is given it is appended as the envelope margin, a fraction
    of the tile's pixel extent.

    Args:
        tile: Tile to build the envelope for.
        margin: Optional margin fraction (e.g. ``BUFFER / EXTENT``).

    Returns:
        SQL expression text.

    Raises:
        InvalidTileError: If the tile lies outside the pyramid for its
            zoom. No SQL is produced in that case.

    Example:
        >>> tile_envelope(Tile(z=3, x=1, y=2), 0.5)
        'ST_TileEnvelope(3, 1, 2, ST_MakeEnvelope(-20037508.3427892, -20037508.3427892, 20037508.3427892, 20037508.3427892, 3857, 0.5))'
    """  # noqa: E501
    if not tile.is_valid():
        raise errors.InvalidTileError(tile.z, tile.x, tile.y)

    margin_text = "" if margin is None else f", {margin}"
    return (
        f"ST_TileEnvelope({tile.z}, {tile.x}, {tile.y}, "
        f"ST_MakeEnvelope({WORLD_MERC_MIN}, {WORLD_MERC_MIN}, "
        f"{WORLD_MERC_MAX}, {WORLD_MERC_MAX}, {INCOMING_SRID}{margin_text}))"
    )


def make_tile_data_query(tile: db_models.Tile, table: db_models.Table) -> str:
    """Return an ST_AsMVT query for one tile of a table.

    The selected attributes are the table's primary-key columns followed by
    its attribute columns, in declaration order. Identifiers are checked
    against the registry and quoted before interpolation.

    Args:
        tile: Tile to encode.
        table: Registered table providing the geometry.

    Returns:
        SQL query string whose single result value is the MVT buffer.

    Raises:
        InvalidTileError: If the tile coordinates are invalid.
        MissingGeometryError: If the table has no geometry column.
    """
    envelope = tile_envelope(tile)
    envelope_with_margin = tile_envelope(tile, BUFFER / EXTENT)

    if not table.geom_column:
        raise errors.MissingGeometryError(
            f"No geometry column found in table {table.qualified_name}. "
            "Unable to retrieve data."
        )

    geom = sql_identifiers.column_ref(table, table.geom_column)
    columns = [*table.primary_key_columns, *(table.attr_columns or ())]
    select_list = ", ".join(
        sql_identifiers.column_ref(table, column) for column in columns
    )

    return f"""
WITH mvtgeom AS (
    SELECT
        ST_AsMVTGeom(
            ST_Transform({geom}, {INCOMING_SRID}),
            {envelope},
            {EXTENT},
            {BUFFER}
        ) AS geom,
        {select_list}
    FROM {sql_identifiers.table_ref(table)} t
    WHERE ST_Transform({geom}, {INCOMING_SRID}) && {envelope_with_margin}
)
SELECT ST_AsMVT(mvtgeom.*) FROM mvtgeom;
""".strip()


def fetch_tile(
    source: database.ConnectionSource,
    tile: db_models.Tile,
    table: db_models.Table,
) -> bytes:
    """Build and run the tile query, returning the encoded tile.

    A query that yields no buffer is an empty tile, not an error.

    Raises:
        InvalidTileError: If the tile coordinates are invalid.
        MissingGeometryError: If the table has no geometry column.
        QueryError: If the database rejects the query.
    """
    sql = make_tile_data_query(tile, table)
    row = database.fetch_one(source, sql)
    if row is None or row[0] is None:
        logger.debug("Empty tile %s for %s", tile, table.qualified_name)
        return b""
    return bytes(row[0])
