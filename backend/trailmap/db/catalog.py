"""Table registry reflection from the PostGIS catalog.

The registry is loaded once when the application starts. Every table with
a primary key becomes a :class:`~trailmap.db.models.Table`; tables listed
in ``geometry_columns`` also get their geometry column, geometry type and
SRID. The linear unit of each SRID is read from the proj4 definition in
``spatial_ref_sys`` so distance budgets can be converted per table.

Example:
    Load the registry at startup:
        >>> from trailmap.db import catalog, database
        >>> pool = database.get_connection_pool(settings)
        >>> registry = catalog.load_table_registry(pool)
        >>> registry.get("topo", "edges").dist_unit
        'm'
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from trailmap.db import database
from trailmap.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

CATALOG_SQL = """
SELECT
    pks.schema_name,
    pks.table_name,
    pks.primary_key_columns,
    gc.f_geometry_column AS geom_column,
    gc.type AS geom_type,
    gc.srid AS srid,
    srs.proj4text AS proj4text,
    current_database() AS database_name
FROM (
    SELECT
        tab.table_schema AS schema_name,
        tab.table_name AS table_name,
        array_agg(tco.column_name::text ORDER BY tco.ordinal_position)
            AS primary_key_columns
    FROM information_schema.table_constraints tab
    JOIN information_schema.key_column_usage tco
        ON tab.table_schema = tco.table_schema
        AND tab.table_name = tco.table_name
        AND tab.constraint_name = tco.constraint_name
    WHERE tab.constraint_type = 'PRIMARY KEY'
        AND tab.table_schema NOT IN ('pg_catalog', 'information_schema')
    GROUP BY tab.table_schema, tab.table_name
) pks
LEFT JOIN geometry_columns gc
    ON pks.schema_name = gc.f_table_schema
    AND pks.table_name = gc.f_table_name
LEFT JOIN spatial_ref_sys srs
    ON srs.srid = gc.srid
ORDER BY pks.schema_name, pks.table_name, gc.f_geometry_column
"""

_UNITS_PATTERN = re.compile(r"\+units=(\S+)")
_LONGLAT_PATTERN = re.compile(r"\+proj=(longlat|latlong|lonlat|latlon)\b")


def parse_proj4_unit(proj4text: str | None) -> str | None:
    """Return the linear unit of a proj4 definition.

    Geographic definitions report "deg"; projected ones report the value of
    ``+units=`` ("m", "us-ft", "ft", ...). Definitions without either
    yield None.

    Example:
        >>> parse_proj4_unit("+proj=longlat +datum=WGS84 +no_defs")
        'deg'
        >>> parse_proj4_unit("+proj=lcc +lat_1=33 +units=us-ft +no_defs")
        'us-ft'
    """
    if not proj4text:
        return None
    if _LONGLAT_PATTERN.search(proj4text):
        return "deg"
    match = _UNITS_PATTERN.search(proj4text)
    if match:
        return match.group(1)
    return None


def table_from_row(row: tuple[Any, ...]) -> db_models.Table:
    """Convert one catalog row into a Table."""
    schema_name, table_name, pk_columns, geom_column, geom_type, srid = row[:6]
    dist_unit = parse_proj4_unit(row[6]) if srid is not None else None
    return db_models.Table(
        schema_name=str(schema_name),
        name=str(table_name),
        primary_key_columns=tuple(str(column) for column in pk_columns),
        geom_column=geom_column,
        geom_type=geom_type,
        srid=int(srid) if srid is not None else None,
        attr_columns=None,
        dist_unit=dist_unit,
        use_geog=dist_unit == "deg",
    )


def build_registry(
    name: str, rows: Iterable[tuple[Any, ...]]
) -> db_models.TableRegistry:
    """Group catalog rows into a registry.

    A table with several geometry columns keeps the first one (catalog
    order is by column name).
    """
    tables: dict[tuple[str, str], db_models.Table] = {}
    for row in rows:
        table = table_from_row(row)
        key = (table.schema_name, table.name)
        if key in tables:
            logger.warning(
                "Ignoring extra geometry column %s on %s",
                table.geom_column,
                table.qualified_name,
            )
            continue
        tables[key] = table
    return db_models.TableRegistry.from_tables(name, tables.values())


def load_table_registry(
    source: database.ConnectionSource,
) -> db_models.TableRegistry:
    """Reflect the database catalog into an immutable TableRegistry.

    Args:
        source: Connection pool to read the catalog from.

    Returns:
        Registry named after the current database.

    Raises:
        QueryError: If the catalog query fails.
    """
    rows = database.fetch_all(source, CATALOG_SQL)
    name = str(rows[0][7]) if rows else ""
    registry = build_registry(name, rows)
    logger.info(
        "Loaded %d tables across %d schemas from database %r",
        sum(1 for _ in registry.all()),
        len(registry.schemas),
        name,
    )
    return registry
