"""Unit tests for proximity graph extraction and the edge/vertex index.

Covers:
    - Planar and geography variants of the "edges within radius" query,
      including the reprojected starting point and truncated weights.
    - Column selection: primary key, then attribute or fallback node
      columns, then weight.
    - Row parsing into TopoEdge records in database order.
    - EdgeVertexIndex symmetry and first-write-wins collision policy.
    - Node sequence to edge-id reconstruction with gaps.

See Also:
    - backend/trailmap/services/graph.py for the implementation.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

import pytest

from trailmap.core import errors
from trailmap.db import models as db_models
from trailmap.services import graph

if TYPE_CHECKING:
    import psycopg2
    from conftest import FakeConnectionSource

START = db_models.StartingGeometry(x=-8236000.0, y=4975000.0, anchor_node_id=2)


def test_planar_query(edges_table: db_models.Table) -> None:
    """Test the planar within-distance query."""
    sql = graph.build_proximal_edges_query(edges_table)
    assert 't."edge_id", t."start_node", t."end_node"' in sql
    assert 'TRUNC(ST_Length(t."geom"))' in sql
    assert "AS weight" in sql
    assert (
        "ST_DWithin(t.\"geom\", ST_Transform(ST_SetSRID("
        "ST_MakePoint(%(x)s, %(y)s), 3857), 26918), %(distance)s)"
    ) in sql
    assert "geography" not in sql
    assert 'FROM "topo"."edges" t' in sql


def test_geography_query(geog_table: db_models.Table) -> None:
    """Test that geography tables cast both sides before comparing."""
    sql = graph.build_proximal_edges_query(geog_table)
    assert 't."gid", t."segment", t."source", t."target", t."name"' in sql
    assert 'TRUNC(ST_Length(t."the_geom"::geography))' in sql
    assert 'ST_DWithin(t."the_geom"::geography' in sql
    assert "3857), 4326)::geography, %(distance)s)" in sql


@pytest.mark.parametrize(
    "changes", [{"geom_column": None}, {"srid": None}]
)
def test_query_requires_geometry_and_srid(
    edges_table: db_models.Table, changes: dict[str, None]
) -> None:
    """Test that tables without geometry data are rejected."""
    table = dataclasses.replace(edges_table, **changes)
    with pytest.raises(
        errors.MissingGeometryError, match="valid geometry data"
    ):
        graph.build_proximal_edges_query(table)


def test_query_requires_two_node_columns(edges_table: db_models.Table) -> None:
    """Test that a single attribute column cannot describe an edge."""
    table = dataclasses.replace(edges_table, attr_columns=("name",))
    with pytest.raises(errors.MissingTopologyError):
        graph.build_proximal_edges_query(table)


def test_fetch_proximal_edges(
    fake_source: type[FakeConnectionSource], edges_table: db_models.Table
) -> None:
    """Test that rows become edges in database order."""
    source = fake_source([[(3, 4, 5, 7.0), (1, 2, 3, 5.0)]])
    edges = graph.fetch_proximal_edges(source, edges_table, START, 804.672)
    assert edges == [
        db_models.TopoEdge(edge_id=3, start_node=4, end_node=5, weight=7.0),
        db_models.TopoEdge(edge_id=1, start_node=2, end_node=3, weight=5.0),
    ]
    _, params = source.executed[0]
    assert params == {"x": -8236000.0, "y": 4975000.0, "distance": 804.672}


def test_fetch_proximal_edges_composite_key(
    fake_source: type[FakeConnectionSource], geog_table: db_models.Table
) -> None:
    """Test that node columns follow the full primary key."""
    source = fake_source([[(10, 1, 100, 200, "Ridge", 321.0)]])
    (edge,) = graph.fetch_proximal_edges(source, geog_table, START, 100.0)
    assert edge == db_models.TopoEdge(10, 100, 200, 321.0)


@pytest.mark.parametrize(
    "row",
    [(1, None, 3, 5.0), (1, 2, None, 5.0), (1, 2, 3, None), (1, "a", 3, 5.0)],
)
def test_fetch_proximal_edges_unbuilt_topology(
    fake_source: type[FakeConnectionSource],
    edges_table: db_models.Table,
    row: tuple[object, ...],
) -> None:
    """Test that NULL node or length values surface as QueryError."""
    with pytest.raises(errors.QueryError, match="topology values"):
        graph.fetch_proximal_edges(
            fake_source([[row]]), edges_table, START, 10.0
        )


def test_fetch_proximal_edges_empty(
    fake_source: type[FakeConnectionSource], edges_table: db_models.Table
) -> None:
    """Test that no nearby edges is a valid empty result."""
    assert graph.fetch_proximal_edges(
        fake_source([[]]), edges_table, START, 10.0
    ) == []


def test_fetch_proximal_edges_failure(
    fake_source: type[FakeConnectionSource],
    edges_table: db_models.Table,
    database_error: psycopg2.Error,
) -> None:
    """Test that database failures propagate as QueryError."""
    with pytest.raises(errors.QueryError):
        graph.fetch_proximal_edges(
            fake_source(error=database_error), edges_table, START, 10.0
        )


def test_index_symmetry() -> None:
    """Test that both orientations of a pair resolve to the edge."""
    edges = [
        db_models.TopoEdge(1, 2, 3, 5.0),
        db_models.TopoEdge(2, 3, 4, 5.0),
        db_models.TopoEdge(3, 4, 5, 5.0),
    ]
    index = graph.EdgeVertexIndex.from_edges(edges)
    for edge in edges:
        assert index.get(edge.start_node, edge.end_node) == edge.edge_id
        assert index.get(edge.end_node, edge.start_node) == edge.edge_id
    assert len(index) == 6
    assert (4, 3) in index


def test_index_first_write_wins() -> None:
    """Test that parallel edges collapse onto the first one seen."""
    index = graph.EdgeVertexIndex.from_edges(
        [db_models.TopoEdge(1, 7, 8, 1.0), db_models.TopoEdge(2, 7, 8, 0.5)]
    )
    assert index.get(7, 8) == 1
    assert index.get(8, 7) == 1

    reverse = graph.EdgeVertexIndex.from_edges(
        [db_models.TopoEdge(1, 7, 8, 1.0), db_models.TopoEdge(2, 8, 7, 0.5)]
    )
    assert reverse.get(8, 7) == 1


def test_index_missing_pair() -> None:
    """Test that unknown pairs are absent."""
    index = graph.EdgeVertexIndex.from_edges([])
    assert index.get(1, 2) is None
    assert len(index) == 0


def test_process_routing_result_with_mapping() -> None:
    """Test reconstruction against a plain pair mapping."""
    assert graph.process_routing_result_as_edge_list(
        [1, 2, 3, 4], {(1, 2): 10, (2, 3): 20, (3, 4): 30}
    ) == [10, 20, 30]
    assert graph.process_routing_result_as_edge_list([1, 5], {}) == [None]


def test_process_routing_result_with_index() -> None:
    """Test reconstruction with gaps against an index."""
    index = graph.EdgeVertexIndex.from_edges(
        [db_models.TopoEdge(1, 2, 3, 5.0), db_models.TopoEdge(3, 4, 5, 5.0)]
    )
    assert graph.process_routing_result_as_edge_list(
        [2, 3, 4, 5, 4], index
    ) == [1, None, 3, 3]


@pytest.mark.parametrize("nodes", [[], [9]])
def test_process_routing_result_trivial(nodes: list[int]) -> None:
    """Test that fewer than two nodes walk no edges."""
    assert graph.process_routing_result_as_edge_list(nodes, {}) == []
