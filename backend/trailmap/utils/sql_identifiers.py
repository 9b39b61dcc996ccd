"""Whitelisting and quoting of SQL identifiers taken from the registry.

Table, schema and column names cannot be passed as query parameters, so
the query builders interpolate them into the statement text. Every name is
checked against the table's registered metadata first; anything else is a
programming error and raises UnsafeIdentifierError.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from trailmap.core import errors

if TYPE_CHECKING:
    from collections.abc import Iterable

    from trailmap.db import models as db_models

_SAFE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]{0,62}$")


def quote_ident(name: str) -> str:
    """Double-quote a validated identifier.

    Raises:
        UnsafeIdentifierError: If the name is not a plain identifier.
    """
    if not _SAFE_NAME.match(name):
        raise errors.UnsafeIdentifierError(f"Unsafe SQL identifier: {name!r}")
    return f'"{name}"'


def table_ref(table: db_models.Table) -> str:
    """Return the quoted ``"schema"."table"`` reference for a table."""
    return f"{quote_ident(table.schema_name)}.{quote_ident(table.name)}"


def column_ref(
    table: db_models.Table,
    column: str,
    alias: str = "t",
    extra_allowed: Iterable[str] = (),
) -> str:
    """Return ``alias."column"`` after checking the column is registered.

    Args:
        table: Table the column must belong to.
        column: Column name to reference.
        alias: Table alias used in the statement.
        extra_allowed: Additional names accepted for this statement, such
            as conventional topology columns.

    Raises:
        UnsafeIdentifierError: If the column is neither declared on the
            table nor explicitly allowed.
    """
    if column not in table.known_columns() and column not in extra_allowed:
        raise errors.UnsafeIdentifierError(
            f"Column {column!r} is not registered for {table.qualified_name}"
        )
    return f"{alias}.{quote_ident(column)}"
