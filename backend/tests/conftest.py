"""Shared fakes and fixtures for the trailmap test-suite.

FakeConnectionSource stands in for the psycopg2 connection pool. Each
executed statement consumes the next queued result set, and every call is
recorded so tests can assert on the SQL and parameters, or on the fact
that no query ran at all.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

import psycopg2
import pytest

from trailmap.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Iterator


class FakeCursor:
    """Mock cursor returning queued result sets."""

    def __init__(self, source: FakeConnectionSource) -> None:
        self.source = source
        self.rows: list[tuple[Any, ...]] = []

    def __enter__(self) -> FakeCursor:
        return self

    def __exit__(self, *args: Any) -> None:
        pass

    def execute(self, sql: str, params: Any = None) -> None:
        """Mock execute to capture SQL and params."""
        self.source.executed.append((sql, params))
        if self.source.error is not None:
            raise self.source.error
        self.rows = self.source.results.pop(0) if self.source.results else []

    def fetchone(self) -> tuple[Any, ...] | None:
        return self.rows[0] if self.rows else None

    def fetchall(self) -> list[tuple[Any, ...]]:
        return list(self.rows)


class FakeConnection:
    """Mock connection handing out FakeCursor instances."""

    def __init__(self, source: FakeConnectionSource) -> None:
        self.source = source

    def cursor(self) -> FakeCursor:
        return FakeCursor(self.source)


class FakeConnectionSource:
    """In-memory replacement for the shared connection pool."""

    def __init__(
        self,
        results: list[list[tuple[Any, ...]]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.results = list(results or [])
        self.error = error
        self.executed: list[tuple[str, Any]] = []

    @contextlib.contextmanager
    def connection(self) -> Iterator[FakeConnection]:
        yield FakeConnection(self)


@pytest.fixture
def fake_source() -> type[FakeConnectionSource]:
    """Return the FakeConnectionSource class for per-test construction."""
    return FakeConnectionSource


@pytest.fixture
def database_error() -> psycopg2.Error:
    return psycopg2.OperationalError("connection refused")


@pytest.fixture
def edges_table() -> db_models.Table:
    """Metric topology table using the fallback node columns."""
    return db_models.Table(
        schema_name="topo",
        name="edges",
        primary_key_columns=("edge_id",),
        geom_column="geom",
        geom_type="LINESTRING",
        srid=26918,
        dist_unit="m",
        use_geog=False,
    )


@pytest.fixture
def geog_table() -> db_models.Table:
    """WGS84 topology table compared as geography."""
    return db_models.Table(
        schema_name="public",
        name="trails",
        primary_key_columns=("gid", "segment"),
        geom_column="the_geom",
        geom_type="LINESTRING",
        srid=4326,
        attr_columns=("source", "target", "name"),
        dist_unit="deg",
        use_geog=True,
    )


@pytest.fixture
def registry(
    edges_table: db_models.Table, geog_table: db_models.Table
) -> db_models.TableRegistry:
    return db_models.TableRegistry.from_tables(
        "gis", [edges_table, geog_table]
    )
