"""Contract and process adapter for the external circuit solver.

The loop-finding algorithm is not part of this service. A solver receives
the extracted edge set, the anchor node and the distance budget, and
answers with two node sequences, ``upper`` and ``lower``, describing the
two halves of the loop it found. Empty sequences mean "no circuit"; only
a failing computation is an error.

SubprocessCircuitSolver talks to a solver program over stdin/stdout using
JSON:

    stdin:  {"edges": [{"edge_id": 1, "start_node": 2, "end_node": 3,
                        "weight": 5.0}, ...],
             "start_node": 2, "budget": 8046.72}
    stdout: {"upper": [2, 3, 4], "lower": [4, 5, 2]}
"""

from __future__ import annotations

import dataclasses
import json
import logging
from typing import TYPE_CHECKING, Any, Protocol

from trailmap.core import errors
from trailmap.utils import process

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from trailmap.core import config
    from trailmap.db import models as db_models

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class SolverResult:
    """Two possibly empty node-id sequences around the discovered loop."""

    upper: tuple[int, ...] = ()
    lower: tuple[int, ...] = ()


class CircuitSolver(Protocol):
    """Opaque loop-finding capability consumed by the route pipeline."""

    async def solve(
        self,
        edges: Sequence[dict[str, Any]],
        start_node: int,
        budget: float,
    ) -> SolverResult: ...


def serialize_edges(
    edges: Iterable[db_models.TopoEdge],
) -> list[dict[str, Any]]:
    """Convert edges to the solver exchange format."""
    return [edge.to_dict() for edge in edges]


def _node_sequence(payload: dict[str, Any], key: str) -> tuple[int, ...]:
    value = payload.get(key) or []
    if not isinstance(value, list):
        raise errors.SolverError(f"Solver field {key!r} is not a list")
    # bool is an int subclass; floats would be truncated by int().
    if any(
        isinstance(node, bool) or not isinstance(node, int) for node in value
    ):
        raise errors.SolverError(
            f"Solver field {key!r} contains a non-integer node id"
        )
    return tuple(value)


def parse_solver_output(raw: bytes) -> SolverResult:
    """Parse the solver's JSON answer.

    Raises:
        SolverError: If the output is not a JSON object with integer
            ``upper``/``lower`` lists.
    """
    try:
        payload = json.loads(raw or b"{}")
    except json.JSONDecodeError as exc:
        raise errors.SolverError(f"Solver output is not JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise errors.SolverError("Solver output must be a JSON object")
    return SolverResult(
        upper=_node_sequence(payload, "upper"),
        lower=_node_sequence(payload, "lower"),
    )


class SubprocessCircuitSolver(CircuitSolver):
    """Runs a solver program per request.

    The program is killed if the request awaiting it is cancelled, so no
    solver outlives the request that started it.
    """

    def __init__(
        self, command: Sequence[str], timeout: float | None = None
    ) -> None:
        self.command = list(command)
        self.timeout = timeout

    async def solve(
        self,
        edges: Sequence[dict[str, Any]],
        start_node: int,
        budget: float,
    ) -> SolverResult:
        if not self.command:
            raise errors.SolverError("No circuit solver is configured")

        request = json.dumps(
            {"edges": list(edges), "start_node": start_node, "budget": budget}
        ).encode()
        try:
            output = await process.run_command(
                self.command, stdin=request, timeout=self.timeout
            )
        except process.CommandError as exc:
            raise errors.SolverError(f"Circuit solver failed: {exc}") from exc
        return parse_solver_output(output)


def get_circuit_solver(settings: config.Settings) -> CircuitSolver:
    """Factory function to create the configured circuit solver."""
    return SubprocessCircuitSolver(
        settings.solver_command, timeout=settings.solver_timeout_seconds
    )
