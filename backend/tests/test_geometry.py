"""Unit tests for resolving edge-id paths into GeoJSON geometry.

See Also:
    - backend/trailmap/services/geometry.py for the implementation.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from trailmap.core import errors
from trailmap.db import models as db_models
from trailmap.services import geometry

if TYPE_CHECKING:
    import psycopg2
    from conftest import FakeConnectionSource

COLLECTION = {
    "type": "GeometryCollection",
    "geometries": [
        {"type": "LineString", "coordinates": [[0, 0], [1, 1]]},
        {"type": "LineString", "coordinates": [[1, 1], [2, 0]]},
    ],
}


def test_query_filters_on_first_key_column(
    geog_table: db_models.Table,
) -> None:
    """Test that composite keys are filtered by their first column only."""
    sql = geometry.build_path_geometry_query(geog_table)
    assert 'WHERE t."gid" = ANY(%(edge_ids)s)' in sql
    assert '"segment"' not in sql
    assert 'ST_Transform(t."the_geom", 3857)' in sql
    assert "ST_ForceCollection(ST_Collect(" in sql
    assert "ST_AsGeoJSON(" in sql
    assert "GEOMETRYCOLLECTION EMPTY" in sql
    assert "GROUP BY" not in sql


def test_query_requires_geometry() -> None:
    """Test that tables without geometry fail immediately."""
    table = db_models.Table(
        schema_name="public", name="users", primary_key_columns=("id",)
    )
    with pytest.raises(errors.MissingGeometryError):
        geometry.build_path_geometry_query(table)


def test_fetch_path_geometry(
    fake_source: type[FakeConnectionSource], edges_table: db_models.Table
) -> None:
    """Test that the GeoJSON text is parsed and ids are bound as a list."""
    source = fake_source([[(json.dumps(COLLECTION),)]])
    result = geometry.fetch_path_geometry(source, edges_table, (2, 3))
    assert result == COLLECTION
    assert source.executed[0][1] == {"edge_ids": [2, 3]}


def test_fetch_path_geometry_empty_ids(
    fake_source: type[FakeConnectionSource], edges_table: db_models.Table
) -> None:
    """Test that an empty id list still issues the single-row query."""
    empty = {"type": "GeometryCollection", "geometries": []}
    source = fake_source([[(json.dumps(empty),)]])
    assert geometry.fetch_path_geometry(source, edges_table, []) == empty
    assert source.executed[0][1] == {"edge_ids": []}


def test_fetch_path_geometry_no_row(
    fake_source: type[FakeConnectionSource], edges_table: db_models.Table
) -> None:
    """Test that a missing document is an upstream failure."""
    with pytest.raises(errors.QueryError):
        geometry.fetch_path_geometry(fake_source([[]]), edges_table, [1])


def test_fetch_path_geometry_invalid_json(
    fake_source: type[FakeConnectionSource], edges_table: db_models.Table
) -> None:
    """Test that unparsable GeoJSON is an upstream failure."""
    with pytest.raises(errors.QueryError, match="GeoJSON"):
        geometry.fetch_path_geometry(
            fake_source([[("{not json",)]]), edges_table, [1]
        )


def test_fetch_path_geometry_failure(
    fake_source: type[FakeConnectionSource],
    edges_table: db_models.Table,
    database_error: psycopg2.Error,
) -> None:
    """Test that database failures propagate as QueryError."""
    with pytest.raises(errors.QueryError):
        geometry.fetch_path_geometry(
            fake_source(error=database_error), edges_table, [1]
        )
