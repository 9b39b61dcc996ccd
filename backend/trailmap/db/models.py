"""Data models for table metadata, tiles and topology edges.

This module defines the core data structures shared by the tile and routing
services. Table describes a PostGIS table discovered in the catalog, and
TableRegistry groups tables by schema. Both are immutable: the registry is
built once at startup and read concurrently by every request without
locking.

Tile, TopoEdge and StartingGeometry are request-scoped values.

Example:
    Building a registry for a topology edge table:
        >>> from trailmap.db.models import Table, TableRegistry
        >>> edges = Table(
        ...     schema_name="topo",
        ...     name="edges",
        ...     primary_key_columns=("edge_id",),
        ...     geom_column="geom",
        ...     geom_type="LINESTRING",
        ...     srid=4326,
        ...     dist_unit="deg",
        ...     use_geog=True,
        ... )
        >>> registry = TableRegistry.from_tables("gis", [edges])
        >>> registry.get("topo", "edges") is edges
        True
"""

from __future__ import annotations

import dataclasses
import types
from typing import TYPE_CHECKING, Any

from trailmap.core import errors

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping


@dataclasses.dataclass(frozen=True)
class Table:
    """A PostGIS table the service knows about.

    Attributes:
        schema_name: Schema containing the table.
        name: Table name.
        primary_key_columns: Ordered primary-key column names. Never empty;
            may be composite.
        geom_column: Geometry column name, None for non-spatial tables.
        geom_type: Geometry type reported by ``geometry_columns``.
        srid: Native spatial reference identifier of ``geom_column``.
        attr_columns: Extra columns served alongside the geometry.
        dist_unit: Linear unit of the SRID ("m", "us-ft", "deg", ...).
        use_geog: Compare geometries geodesically (degree-based SRIDs).
    """

    schema_name: str
    name: str
    primary_key_columns: tuple[str, ...]
    geom_column: str | None = None
    geom_type: str | None = None
    srid: int | None = None
    attr_columns: tuple[str, ...] | None = None
    dist_unit: str | None = None
    use_geog: bool = False

    def __post_init__(self) -> None:
        if not self.primary_key_columns:
            raise ValueError(
                f"Table {self.schema_name}.{self.name} has no primary key"
            )
        # Lists passed by callers are frozen so instances stay hashable.
        object.__setattr__(
            self, "primary_key_columns", tuple(self.primary_key_columns)
        )
        if self.attr_columns is not None:
            object.__setattr__(self, "attr_columns", tuple(self.attr_columns))

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.name}"

    def known_columns(self) -> frozenset[str]:
        """Return every column name the registry declares for this table."""
        columns = set(self.primary_key_columns)
        if self.geom_column:
            columns.add(self.geom_column)
        columns.update(self.attr_columns or ())
        return frozenset(columns)

    def to_dict(self) -> dict[str, Any]:
        result = dataclasses.asdict(self)
        result["primary_key_columns"] = list(self.primary_key_columns)
        if self.attr_columns is not None:
            result["attr_columns"] = list(self.attr_columns)
        return result


@dataclasses.dataclass(frozen=True)
class Schema:
    """Tables of one database schema, keyed by table name."""

    name: str
    tables: Mapping[str, Table]


@dataclasses.dataclass(frozen=True)
class TableRegistry:
    """Read-only two-level mapping ``schema name -> table name -> Table``.

    Construct with :meth:`from_tables`; the mappings are exposed through
    ``types.MappingProxyType`` so no request can mutate shared state.
    """

    name: str
    schemas: Mapping[str, Schema]

    @classmethod
    def from_tables(cls, name: str, tables: Iterable[Table]) -> TableRegistry:
        grouped: dict[str, dict[str, Table]] = {}
        for table in tables:
            grouped.setdefault(table.schema_name, {})[table.name] = table
        schemas = {
            schema_name: Schema(
                name=schema_name,
                tables=types.MappingProxyType(schema_tables),
            )
            for schema_name, schema_tables in grouped.items()
        }
        return cls(name=name, schemas=types.MappingProxyType(schemas))

    def get(self, schema: str, table: str) -> Table:
        """Resolve a table by schema and table name.

        Raises:
            UnknownSchemaError: If the schema is not registered.
            UnknownTableError: If the schema has no such table.
        """
        found_schema = self.schemas.get(schema)
        if found_schema is None:
            raise errors.UnknownSchemaError(schema)
        found_table = found_schema.tables.get(table)
        if found_table is None:
            raise errors.UnknownTableError(schema, table)
        return found_table

    def all(self) -> Iterator[Table]:
        for schema in self.schemas.values():
            yield from schema.tables.values()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "schemas": {
                schema_name: {
                    "name": schema.name,
                    "tables": {
                        table_name: table.to_dict()
                        for table_name, table in schema.tables.items()
                    },
                }
                for schema_name, schema in self.schemas.items()
            },
        }


@dataclasses.dataclass(frozen=True)
class Tile:
    """XYZ tile address. Valid iff ``0 <= x, y < 2**z`` and ``z >= 0``."""

    z: int
    x: int
    y: int

    def is_valid(self) -> bool:
        if self.z < 0 or self.x < 0 or self.y < 0:
            return False
        # x >> z == 0 is x < 2**z without building the power; z is unbounded.
        return (self.x >> self.z) == 0 and (self.y >> self.z) == 0


@dataclasses.dataclass(frozen=True)
class TopoEdge:
    """One graph edge extracted from a topology table."""

    edge_id: int
    start_node: int
    end_node: int
    weight: float

    def to_dict(self) -> dict[str, int | float]:
        return dataclasses.asdict(self)


@dataclasses.dataclass(frozen=True)
class StartingGeometry:
    """Point in EPSG:3857 plus the graph node the route is anchored at."""

    x: float
    y: float
    anchor_node_id: int
