"""Resolve reconstructed edge-id paths into one GeoJSON geometry."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from trailmap.core import errors
from trailmap.db import database
from trailmap.services import tiles_postgis
from trailmap.utils import sql_identifiers

if TYPE_CHECKING:
    from collections.abc import Sequence

    from trailmap.db import models as db_models

logger = logging.getLogger(__name__)

EMPTY_COLLECTION_WKT = "GEOMETRYCOLLECTION EMPTY"


def build_path_geometry_query(table: db_models.Table) -> str:
    """Return the query that collects a path's edges as GeoJSON.

    Rows are matched on the first primary-key column only; tables with a
    composite primary key are filtered by their leading key column. The
    ``edge_ids`` parameter is bound as an array.

    The statement is an ungrouped aggregate, so it always yields exactly
    one row. No matching edges produce an empty GeometryCollection.

    Raises:
        MissingGeometryError: If the table has no geometry column.
    """
    if not table.geom_column:
        raise errors.MissingGeometryError(
            f"No geometry column found in table {table.qualified_name}. "
            "Unable to retrieve path geometry."
        )

    srid = tiles_postgis.INCOMING_SRID
    geom = sql_identifiers.column_ref(table, table.geom_column)
    key = sql_identifiers.column_ref(table, table.primary_key_columns[0])
    return f"""
SELECT ST_AsGeoJSON(
    COALESCE(
        ST_ForceCollection(ST_Collect(ST_Transform({geom}, {srid}))),
        ST_GeomFromText('{EMPTY_COLLECTION_WKT}', {srid})
    )
)
FROM {sql_identifiers.table_ref(table)} t
WHERE {key} = ANY(%(edge_ids)s)
""".strip()


def fetch_path_geometry(
    source: database.ConnectionSource,
    table: db_models.Table,
    edge_ids: Sequence[int],
) -> dict[str, Any]:
    """Merge the geometries of the given edges into one GeoJSON document.

    Args:
        source: Connection pool to query.
        table: Edge table the ids belong to.
        edge_ids: Edge identifiers with gaps already removed.

    Returns:
        Parsed GeoJSON GeometryCollection in EPSG:3857.

    Raises:
        MissingGeometryError: If the table has no geometry column.
        QueryError: If the query fails or returns no document.
    """
    sql = build_path_geometry_query(table)
    row = database.fetch_one(source, sql, {"edge_ids": list(edge_ids)})
    if row is None or row[0] is None:
        raise errors.QueryError(
            f"Path geometry query on {table.qualified_name} returned no rows"
        )
    document = row[0]
    if isinstance(document, str):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as exc:
            raise errors.QueryError(
                f"Path geometry is not valid GeoJSON: {exc}"
            ) from exc
    return document
