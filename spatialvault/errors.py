"""Error taxonomy shared by every pipeline stage.

Each stage raises one of these with the underlying exception chained; the
command-line layer decides what to do with them (log and exit 1).
"""


class SpatialVaultError(Exception):
    """Base class for all pipeline failures."""


class ConfigError(SpatialVaultError):
    """Configuration file missing, unreadable or incomplete."""


class TransportError(SpatialVaultError):
    """DNS, connect, timeout or non-success HTTP status."""


class DecodeError(SpatialVaultError):
    """Malformed JSON, CSV or gzip payload."""


class SchemaError(SpatialVaultError):
    """A record is missing a field, has the wrong type or bad geometry."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class DatabaseError(SpatialVaultError):
    """Connection failure, constraint violation or malformed SQL."""
