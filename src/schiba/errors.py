"""Exception hierarchy for schiba.

Every error raised on purpose by the library derives from SchibaError, so the
CLI can render it as a single message instead of a traceback.
"""

from __future__ import annotations

from typing import Any


class SchibaError(Exception):
    """Base error carrying a stable machine-readable code."""

    code = "SCHIBA_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(SchibaError):
    """Malformed input: URL, SSL mode, tag or update property."""

    code = "VALIDATION_ERROR"


class ConfigError(SchibaError):
    """Config file could not be read, written, or holds invalid data."""

    code = "CONFIG_ERROR"


class NoConnectionError(ConfigError):
    """The registry holds no connections at all."""

    def __init__(
        self,
        message: str = (
            'No connections configured. Use "schiba add <tag> <connection-string>" '
            "to add a connection."
        ),
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)


class NoDefaultConnectionError(NoConnectionError):
    """No tag was given and no default connection is set."""

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            "No default connection set. Either:\n"
            "  - Specify a connection: schiba fetch production\n"
            "  - Set a default: schiba default local\n"
            "  - List available connections: schiba list",
            details,
        )


class ConnectionNotFoundError(ConfigError):
    """The requested tag is not in the registry."""

    def __init__(self, tag: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(f"Connection '{tag}' not found", details)
        self.tag = tag


class DatabaseConnectionError(SchibaError):
    """Transport or authentication failure while talking to a database."""

    code = "CONNECTION_ERROR"


class SchemaExtractionError(SchibaError):
    """The database answered, but not with something we can assemble."""

    code = "SCHEMA_EXTRACTION_ERROR"


class UnsupportedDatabaseError(SchibaError):
    """No analyzer handles the connection string's scheme."""

    code = "UNSUPPORTED_DATABASE"
