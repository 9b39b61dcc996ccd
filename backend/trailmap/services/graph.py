"""Proximity graph extraction and the edge/vertex index.

The routing pipeline works on the subgraph of topology edges that lie
within the distance budget of the starting point. This module builds and
runs that "edges within radius" query, turns the rows into TopoEdge
records, and indexes them by node pair so the solver's node sequences can
be mapped back to edge identifiers.

Example:
    >>> from trailmap.db.models import TopoEdge
    >>> from trailmap.services import graph
    >>> index = graph.EdgeVertexIndex.from_edges([TopoEdge(7, 1, 2, 10.0)])
    >>> index.get(2, 1)
    7
    >>> graph.process_routing_result_as_edge_list([1, 2, 3], index)
    [7, None]
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from trailmap.core import errors
from trailmap.db import database
from trailmap.db import models as db_models
from trailmap.services import tiles_postgis
from trailmap.utils import sql_identifiers

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)

START_NODE_COLUMN = "start_node"
END_NODE_COLUMN = "end_node"

NodePair = tuple[int, int]


def _require_spatial(table: db_models.Table) -> tuple[str, int]:
    if not table.geom_column or table.srid is None:
        raise errors.MissingGeometryError(
            f"Specified table {table.qualified_name} does not contain "
            "valid geometry data"
        )
    return table.geom_column, table.srid


def _node_columns(table: db_models.Table) -> tuple[str, ...]:
    if table.attr_columns:
        if len(table.attr_columns) < 2:
            raise errors.MissingTopologyError(
                f"Table {table.qualified_name} must declare start and end "
                "node columns first among its attribute columns"
            )
        return table.attr_columns
    return (START_NODE_COLUMN, END_NODE_COLUMN)


def build_proximal_edges_query(table: db_models.Table) -> str:
    """Return the "edges within radius" query for a table.

    Parameters ``x``, ``y`` (EPSG:3857 starting point) and ``distance``
    (in the table's native distance unit) are bound at execution time.

    Geography tables cast both the edge geometry and the query point to
    ``geography`` so distances and lengths are geodesic; other tables use
    planar comparisons in the SRID's unit.

    Raises:
        MissingGeometryError: If the table lacks a geometry column or SRID.
        MissingTopologyError: If declared attribute columns cannot supply
            the start and end node columns.
    """
    geom_column, srid = _require_spatial(table)
    allowed = (START_NODE_COLUMN, END_NODE_COLUMN)
    geom = sql_identifiers.column_ref(table, geom_column)
    columns = [*table.primary_key_columns, *_node_columns(table)]
    select_list = ", ".join(
        sql_identifiers.column_ref(table, column, extra_allowed=allowed)
        for column in columns
    )

    point = (
        "ST_Transform(ST_SetSRID(ST_MakePoint(%(x)s, %(y)s), "
        f"{tiles_postgis.INCOMING_SRID}), {int(srid)})"
    )
    if table.use_geog:
        geom = f"{geom}::geography"
        point = f"{point}::geography"

    return f"""
SELECT
    {select_list},
    TRUNC(ST_Length({geom}))::double precision AS weight
FROM {sql_identifiers.table_ref(table)} t
WHERE ST_DWithin({geom}, {point}, %(distance)s)
""".strip()


def edge_from_row(row: Sequence[Any], key_count: int) -> db_models.TopoEdge:
    """Convert a proximity query row into a TopoEdge.

    The edge id is the first primary-key column, the start and end nodes
    are the two columns following the primary key, and the weight is the
    last column.

    Raises:
        QueryError: If any of those values is NULL or not numeric, as in
            topology tables whose node columns were never populated.
    """
    try:
        return db_models.TopoEdge(
            edge_id=int(row[0]),
            start_node=int(row[key_count]),
            end_node=int(row[key_count + 1]),
            weight=float(row[-1]),
        )
    except (TypeError, ValueError) as exc:
        raise errors.QueryError(
            f"Edge row {tuple(row)!r} has missing or non-numeric topology "
            "values"
        ) from exc


def fetch_proximal_edges(
    source: database.ConnectionSource,
    table: db_models.Table,
    starting_geometry: db_models.StartingGeometry,
    distance: float,
) -> list[db_models.TopoEdge]:
    """Retrieve every edge within ``distance`` of the starting point.

    Edges come back in the database's natural order. An empty list is a
    valid result.

    Raises:
        MissingGeometryError: If the table lacks a geometry column or SRID.
        QueryError: If the database query fails.
    """
    sql = build_proximal_edges_query(table)
    rows = database.fetch_all(
        source,
        sql,
        {
            "x": starting_geometry.x,
            "y": starting_geometry.y,
            "distance": distance,
        },
    )
    key_count = len(table.primary_key_columns)
    edges = [edge_from_row(row, key_count) for row in rows]
    logger.debug(
        "Extracted %d edges within %s of (%s, %s) from %s",
        len(edges),
        distance,
        starting_geometry.x,
        starting_geometry.y,
        table.qualified_name,
    )
    return edges


class EdgeVertexIndex:
    """Maps unordered node pairs to the edge joining them.

    Parallel edges between the same two nodes collapse to the first one
    inserted, so the index describes a simple graph even when the source
    table is a multigraph.
    """

    def __init__(self) -> None:
        self._edges: dict[NodePair, int] = {}

    @classmethod
    def from_edges(cls, edges: Iterable[db_models.TopoEdge]) -> EdgeVertexIndex:
        index = cls()
        for edge in edges:
            index.add(edge.edge_id, edge.start_node, edge.end_node)
        return index

    def add(self, edge_id: int, u: int, v: int) -> None:
        self._edges.setdefault((u, v), edge_id)
        self._edges.setdefault((v, u), edge_id)

    def get(self, u: int, v: int) -> int | None:
        return self._edges.get((u, v))

    def __len__(self) -> int:
        return len(self._edges)

    def __contains__(self, pair: object) -> bool:
        return pair in self._edges


def process_routing_result_as_edge_list(
    nodes: Sequence[int],
    index: EdgeVertexIndex | Mapping[NodePair, int],
) -> list[int | None]:
    """Translate a node sequence into the edges walked between them.

    Each consecutive pair ``(nodes[i], nodes[i + 1])`` is looked up in the
    index. Pairs with no edge produce a None gap instead of aborting.

    Example:
        >>> process_routing_result_as_edge_list(
        ...     [1, 2, 3, 4], {(1, 2): 10, (2, 3): 20, (3, 4): 30}
        ... )
        [10, 20, 30]
        >>> process_routing_result_as_edge_list([1, 5], {})
        [None]
    """
    if isinstance(index, EdgeVertexIndex):
        lookup = index.get
    else:
        def lookup(u: int, v: int) -> int | None:
            return index.get((u, v))

    return [lookup(u, v) for u, v in zip(nodes, nodes[1:])]
