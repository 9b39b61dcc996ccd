"""Exception hierarchy shared by the tile and routing services.

Errors fall into four families, each mapped to one HTTP status by the
handlers registered in :mod:`trailmap.main`:

- ValidationError: bad request parameters, detected before any query runs.
- RegistryLookupError: unknown schema or table name.
- MetadataError: the table lacks the metadata an operation needs.
- UpstreamError: the database or the external solver failed. Every kind of
  upstream failure collapses into the same generic response.

UnsafeIdentifierError sits outside the hierarchy. It signals a
programming error (an identifier that did not come from the registry) and
is never translated into a client response.
"""


class TrailmapError(Exception):
    """Base class for all errors raised by trailmap services."""


class ValidationError(TrailmapError):
    """Request parameters are invalid."""


class InvalidTileError(ValidationError):
    """Tile coordinates fall outside the tile pyramid for their zoom."""

    def __init__(self, z: int, x: int, y: int) -> None:
        super().__init__(f"Invalid tile coordinates: z={z}, x={x}, y={y}")
        self.z = z
        self.x = x
        self.y = y


class UnsupportedFormatError(ValidationError):
    """Requested tile format is not served."""


class RoutingValidationError(ValidationError):
    """Distance or units of a routing request are invalid."""


class StartingGeometryError(ValidationError):
    """Starting geometry payload is malformed."""


class RegistryLookupError(TrailmapError, LookupError):
    """Schema or table is not present in the table registry."""


class UnknownSchemaError(RegistryLookupError):
    def __init__(self, schema: str) -> None:
        super().__init__(f"Failed to locate specified schema: {schema}")
        self.schema = schema


class UnknownTableError(RegistryLookupError):
    def __init__(self, schema: str, table: str) -> None:
        super().__init__(
            f"Failed to locate specified table: {schema}.{table}"
        )
        self.schema = schema
        self.table = table


class MetadataError(TrailmapError):
    """Table metadata is insufficient for the requested operation."""


class MissingGeometryError(MetadataError):
    """Table has no geometry column (or no SRID where one is required)."""


class MissingDistanceUnitError(MetadataError):
    """Table SRID has no known distance unit."""


class MissingTopologyError(MetadataError):
    """Table cannot supply start/end node columns for its edges."""


class UpstreamError(TrailmapError):
    """A collaborator (database, solver) failed."""


class QueryError(UpstreamError):
    """A database query failed."""


class SolverError(UpstreamError):
    """The external circuit solver failed or returned unusable output."""


class PathResolutionError(UpstreamError):
    """Every reconstructed path failed to resolve into geometry."""


class UnsafeIdentifierError(ValueError):
    """An SQL identifier failed the registry whitelist."""
