"""Database helpers: the shared connection pool and query execution."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any, Protocol

import psycopg2
import psycopg2.extensions
import psycopg2.pool

from trailmap.core import errors

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from trailmap.core import config

logger = logging.getLogger(__name__)


class ConnectionSource(Protocol):
    """Anything that can lend out a DB-API connection for one unit of work.

    Implementations are safe for concurrent checkout and release, so
    services never need their own locking around database access.
    """

    def connection(
        self,
    ) -> contextlib.AbstractContextManager[psycopg2.extensions.connection]: ...


class ConnectionPool(ConnectionSource):
    """Thread-safe psycopg2 connection pool shared by all requests.

    Connections are returned to the pool after every unit of work. Each
    query is an independent read: the transaction psycopg2 opens
    implicitly is rolled back before the connection goes back.
    """

    def __init__(self, settings: config.Settings) -> None:
        """Open the pool.

        Args:
            settings: Application settings with the database URL and the
                minimum/maximum number of pooled connections.
        """
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            settings.db_min_connections,
            settings.db_max_connections,
            dsn=settings.database_url,
        )

    @contextlib.contextmanager
    def connection(self) -> Iterator[psycopg2.extensions.connection]:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            try:
                conn.rollback()
            finally:
                self._pool.putconn(conn)

    def close(self) -> None:
        self._pool.closeall()


def get_connection_pool(settings: config.Settings) -> ConnectionPool:
    """Factory function to create the shared connection pool.

    Args:
        settings: Application settings for database connection.

    Returns:
        ConnectionPool connected to ``settings.database_url``.
    """
    return ConnectionPool(settings)


def fetch_one(
    source: ConnectionSource,
    sql: str,
    params: Mapping[str, Any] | None = None,
) -> tuple[Any, ...] | None:
    """Run a query and return its first row.

    Raises:
        QueryError: If psycopg2 reports any database failure.
    """
    logger.debug("Executing query: %s", sql)
    try:
        with source.connection() as conn, conn.cursor() as cur:
            cur.execute(sql, params)
            return cur.fetchone()
    except psycopg2.Error as exc:
        logger.error("Query failed: %s", exc)
        raise errors.QueryError(f"Database query failed: {exc}") from exc


def fetch_all(
    source: ConnectionSource,
    sql: str,
    params: Mapping[str, Any] | None = None,
) -> list[tuple[Any, ...]]:
    """Run a query and return all rows in the order the database sent them.

    Raises:
        QueryError: If psycopg2 reports any database failure.
    """
    logger.debug("Executing query: %s", sql)
    try:
        with source.connection() as conn, conn.cursor() as cur:
            cur.execute(sql, params)
            return list(cur.fetchall())
    except psycopg2.Error as exc:
        logger.error("Query failed: %s", exc)
        raise errors.QueryError(f"Database query failed: {exc}") from exc
