"""Table registry query API endpoints.

This module provides REST API endpoints for discovering the tables the
service can serve: the whole registry grouped by schema, or one table's
metadata (primary key, geometry column, SRID, distance unit).

Example:
    List the registry:
        >>> response = client.get("/api/layers")
        >>> registry = response.json()
        >>> # Returns: {"name": "gis", "schemas": {"topo": {"name": "topo",
        >>> #           "tables": {"edges": {...}}}}}

    Get one table:
        >>> response = client.get("/api/layers/topo/edges")
        >>> # Returns: {"schema_name": "topo", "name": "edges",
        >>> #           "primary_key_columns": ["edge_id"], "srid": 4326, ...}
"""

from typing import Any

import fastapi

from trailmap.api import dependencies
from trailmap.db import models as db_models

router = fastapi.APIRouter(prefix="/api/layers", tags=["layers"])


@router.get("")
async def list_layers(
    registry: db_models.TableRegistry = fastapi.Depends(  # noqa: B008
        dependencies.get_registry
    ),
) -> dict[str, Any]:
    """List every registered table, grouped by schema.

    Args:
        registry: Table registry (injected via FastAPI Depends).

    Returns:
        Dictionary with the registry name and its schemas, each mapping
        table names to table metadata.
    """
    return registry.to_dict()


@router.get("/{schema}/{table}")
async def get_layer(
    schema: str,
    table: str,
    registry: db_models.TableRegistry = fastapi.Depends(  # noqa: B008
        dependencies.get_registry
    ),
) -> dict[str, Any]:
    """Get the metadata of one registered table.

    Args:
        schema: Schema of the table.
        table: Table name within the schema.
        registry: Table registry (injected via FastAPI Depends).

    Returns:
        Table metadata dictionary.

    Raises:
        RegistryLookupError: If the schema or table is unknown (404).
    """
    return registry.get(schema, table).to_dict()
