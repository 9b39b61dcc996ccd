"""Loop route search and reconstruction.

find_circuit is the routing pipeline. For one request it:

1. validates the distance budget and its units,
2. converts the budget into the table's native distance unit,
3. extracts the proximity graph around the starting point,
4. hands the serialized edges to the external circuit solver,
5. maps the solver's ``upper`` and ``lower`` node sequences back onto edge
   ids through an EdgeVertexIndex, and
6. resolves each edge-id path into a merged GeoJSON geometry.

Blocking psycopg2 work runs in the threadpool; the solver runs as its own
task so the event loop keeps serving other requests while it computes.
Cancelling the request cancels the solver task as well.

Example:
    >>> options = RoutingOptions(distance=3.0, units="miles")
    >>> start = StartingGeometry(x=-8236000.0, y=4975000.0, anchor_node_id=42)
    >>> geometries = await find_circuit(
    ...     table, start, options, source=pool, solver=solver
    ... )
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
from typing import TYPE_CHECKING, Any

from fastapi import concurrency

from trailmap.core import errors
from trailmap.services import geometry, graph, solver as solver_service, units

if TYPE_CHECKING:
    from trailmap.db import database
    from trailmap.db import models as db_models

logger = logging.getLogger(__name__)

VALID_UNITS = ("miles", "mins")


class RouteState(enum.Enum):
    VALIDATING = "validating"
    EXTRACTING_GRAPH = "extracting_graph"
    AWAITING_SOLVER = "awaiting_solver"
    RECONSTRUCTING_EDGES = "reconstructing_edges"
    FETCHING_GEOMETRY = "fetching_geometry"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclasses.dataclass(frozen=True)
class RoutingOptions:
    """Distance budget of a loop request, in miles or minutes."""

    distance: float
    units: str


@dataclasses.dataclass
class ReconstructedPath:
    """One side of the loop, as edge ids with None gaps.

    ``geometry`` is filled in once the path has been resolved.
    """

    name: str
    edge_ids: list[int | None]
    geometry: dict[str, Any] | None = None

    @property
    def resolvable_ids(self) -> list[int]:
        return [edge_id for edge_id in self.edge_ids if edge_id is not None]


def validate_options(options: RoutingOptions) -> None:
    """Reject unknown units and non-positive distances.

    Raises:
        RoutingValidationError: If the options are invalid.
    """
    if options.units not in VALID_UNITS:
        raise errors.RoutingValidationError(
            f"Missing or invalid distance units: {options.units!r}"
        )
    if not options.distance > 0:
        raise errors.RoutingValidationError(
            f"Distance must be greater than zero, got {options.distance}"
        )


def resolve_distance(table: db_models.Table, options: RoutingOptions) -> float:
    """Express the request budget in the table's distance unit.

    Raises:
        MissingDistanceUnitError: If the table's SRID has no known unit.
    """
    if table.dist_unit is None:
        raise errors.MissingDistanceUnitError(
            f"Specified table {table.qualified_name} does not contain "
            "valid distance data"
        )
    distance = units.convert_distance(options.distance, table.dist_unit)
    return units.apply_time_units(distance, options.units)


def reconstruct_paths(
    result: solver_service.SolverResult,
    index: graph.EdgeVertexIndex,
) -> list[ReconstructedPath]:
    """Turn the solver's node sequences into edge-id paths, upper first."""
    return [
        ReconstructedPath(
            name=name,
            edge_ids=graph.process_routing_result_as_edge_list(nodes, index),
        )
        for name, nodes in (("upper", result.upper), ("lower", result.lower))
    ]


class _Run:
    """Tracks the state of one find_circuit call for logging."""

    def __init__(self, table: db_models.Table) -> None:
        self.table = table
        self.state = RouteState.VALIDATING

    def enter(self, state: RouteState) -> None:
        logger.debug(
            "Circuit on %s: %s -> %s",
            self.table.qualified_name,
            self.state.value,
            state.value,
        )
        self.state = state


async def _solve(
    circuit_solver: solver_service.CircuitSolver,
    edges: list[dict[str, Any]],
    start_node: int,
    budget: float,
) -> solver_service.SolverResult:
    task = asyncio.ensure_future(circuit_solver.solve(edges, start_node, budget))
    try:
        return await task
    except asyncio.CancelledError:
        task.cancel()
        raise
    except errors.SolverError:
        raise
    except Exception as exc:
        raise errors.SolverError(f"Circuit solver failed: {exc}") from exc


async def _resolve_paths(
    source: database.ConnectionSource,
    table: db_models.Table,
    paths: list[ReconstructedPath],
) -> list[dict[str, Any]]:
    geometries: list[dict[str, Any]] = []
    failures: list[errors.UpstreamError] = []
    attempted = 0
    for path in paths:
        edge_ids = path.resolvable_ids
        if not edge_ids:
            logger.debug("Skipping %s path: no known edges", path.name)
            continue
        if len(edge_ids) < len(path.edge_ids):
            logger.warning(
                "%s path has %d node pairs without an edge",
                path.name,
                len(path.edge_ids) - len(edge_ids),
            )
        attempted += 1
        try:
            path.geometry = await concurrency.run_in_threadpool(
                geometry.fetch_path_geometry, source, table, edge_ids
            )
        except errors.UpstreamError as exc:
            logger.warning("Dropping %s path: %s", path.name, exc)
            failures.append(exc)
            continue
        geometries.append(path.geometry)

    # A lone failing path is absorbed; both failing is a request failure.
    if attempted == 2 and len(failures) == 2:
        raise errors.PathResolutionError(
            "Failed to resolve any path geometry: "
            + "; ".join(str(failure) for failure in failures)
        )
    return geometries


async def find_circuit(
    table: db_models.Table,
    starting_geometry: db_models.StartingGeometry,
    options: RoutingOptions,
    *,
    source: database.ConnectionSource,
    solver: solver_service.CircuitSolver,
) -> list[dict[str, Any]]:
    """Find a loop from the starting point and return its geometries.

    Args:
        table: Topology edge table to route over.
        starting_geometry: Start point and anchor node.
        options: Distance budget and units.
        source: Connection pool for the graph and geometry queries.
        solver: External circuit solver.

    Returns:
        Zero, one or two GeoJSON geometries, upper path first.

    Raises:
        RoutingValidationError: If the options are invalid. Raised before
            any database access.
        MissingDistanceUnitError: If the table has no distance unit.
        MissingGeometryError: If the table lacks geometry or SRID.
        QueryError: If graph extraction fails.
        SolverError: If the solver computation fails.
        PathResolutionError: If both paths were attempted and both
            geometry lookups failed.
    """
    run = _Run(table)
    try:
        validate_options(options)
        distance = resolve_distance(table, options)

        run.enter(RouteState.EXTRACTING_GRAPH)
        edges = await concurrency.run_in_threadpool(
            graph.fetch_proximal_edges,
            source,
            table,
            starting_geometry,
            distance,
        )
        index = graph.EdgeVertexIndex.from_edges(edges)

        run.enter(RouteState.AWAITING_SOLVER)
        result = await _solve(
            solver,
            solver_service.serialize_edges(edges),
            starting_geometry.anchor_node_id,
            distance,
        )
    except errors.TrailmapError as exc:
        logger.info("Circuit on %s failed: %s", table.qualified_name, exc)
        run.enter(RouteState.FAILED)
        raise

    run.enter(RouteState.RECONSTRUCTING_EDGES)
    paths = reconstruct_paths(result, index)

    run.enter(RouteState.FETCHING_GEOMETRY)
    geometries = await _resolve_paths(source, table, paths)

    run.enter(RouteState.COMPLETED)
    logger.info(
        "Circuit on %s: %d edges extracted, %d paths returned",
        table.qualified_name,
        len(edges),
        len(geometries),
    )
    return geometries
