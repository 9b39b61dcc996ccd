"""Loop route (circuit) API endpoint.

This module exposes the circuit search: given a starting point, the graph
node it sits on and a distance budget, it returns up to two GeoJSON
geometries describing a loop through a registered topology table.

Example:
    Request a three-mile loop:
        >>> response = client.post(
        ...     "/routing/topo/edges/circuit",
        ...     params={"distance": 3, "units": "miles"},
        ...     json={
        ...         "geometry": {
        ...             "type": "Point",
        ...             "coordinates": [-8236000.0, 4975000.0],
        ...         },
        ...         "node_id": 42,
        ...     },
        ... )
        >>> geometries = response.json()
        >>> # Returns: [{"type": "GeometryCollection", "geometries": [...]}]
"""

from __future__ import annotations

from typing import Any, Literal

import fastapi
import pydantic

from trailmap.api import dependencies
from trailmap.core import errors
from trailmap.db import database
from trailmap.db import models as db_models
from trailmap.services import routing, solver

router = fastapi.APIRouter(prefix="/routing", tags=["routing"])


class PointGeometry(pydantic.BaseModel):
    """GeoJSON Point in EPSG:3857."""

    type: Literal["Point"]
    coordinates: list[float] = pydantic.Field(min_length=2, max_length=3)


class StartingGeometryPayload(pydantic.BaseModel):
    """Starting point of a circuit request.

    The anchor node id is read from ``node_id``; a GeoJSON Feature that
    carries it in ``properties.node_id`` is accepted as well.
    """

    type: Literal["Feature"] | None = None
    geometry: PointGeometry
    node_id: int | None = pydantic.Field(default=None, ge=0)
    properties: dict[str, Any] | None = None

    def to_starting_geometry(self) -> db_models.StartingGeometry:
        """Convert the payload into a StartingGeometry.

        Raises:
            StartingGeometryError: If no non-negative integer anchor node
                id is present.
        """
        node_id: Any = self.node_id
        if node_id is None and self.properties is not None:
            node_id = self.properties.get("node_id")
        if isinstance(node_id, bool) or not isinstance(node_id, int):
            raise errors.StartingGeometryError(
                "Starting geometry must carry an integer node_id"
            )
        if node_id < 0:
            raise errors.StartingGeometryError("node_id must not be negative")

        x, y = self.geometry.coordinates[:2]
        return db_models.StartingGeometry(x=x, y=y, anchor_node_id=node_id)


@router.post("/{schema}/{table}/circuit")
async def get_circuit(
    schema: str,
    table: str,
    starting_geometry: StartingGeometryPayload,
    distance: float,
    units: str,
    registry: db_models.TableRegistry = fastapi.Depends(  # noqa: B008
        dependencies.get_registry
    ),
    source: database.ConnectionSource = fastapi.Depends(  # noqa: B008
        dependencies.get_connection_source
    ),
    circuit_solver: solver.CircuitSolver = fastapi.Depends(  # noqa: B008
        dependencies.get_solver
    ),
) -> list[dict[str, Any]]:
    """Find a loop route starting and ending at the given node.

    Args:
        schema: Schema of the topology table.
        table: Topology table name.
        starting_geometry: Start point and anchor node (request body).
        distance: Distance budget, greater than zero.
        units: "miles" or "mins".
        registry: Table registry (injected via FastAPI Depends).
        source: Connection pool (injected via FastAPI Depends).
        circuit_solver: External solver (injected via FastAPI Depends).

    Returns:
        JSON array of zero to two GeoJSON geometries, upper path first.

    Raises:
        RoutingValidationError: If distance or units are invalid (400).
        StartingGeometryError: If the body lacks a node id (400).
        RegistryLookupError: If the schema or table is unknown (404).
        MetadataError: If the table lacks geometry or distance data (422).
        UpstreamError: If the database or solver fails (500).
    """
    options = routing.RoutingOptions(distance=distance, units=units)
    routing.validate_options(options)
    start = starting_geometry.to_starting_geometry()
    table_spec = registry.get(schema, table)

    return await routing.find_circuit(
        table_spec,
        start,
        options,
        source=source,
        solver=circuit_solver,
    )
