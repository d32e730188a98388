"""Update operations for stored connections.

Each editable property is its own small type. ``parse_update`` is the only
place a property *name* is looked at; everything downstream dispatches on the
operation type.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from schiba import urls
from schiba.errors import ValidationError
from schiba.models import ConnectionConfig
from schiba.ssl_policy import SSLMode, coerce_ssl_mode


@dataclass(frozen=True)
class RenameTag:
    new_tag: str


@dataclass(frozen=True)
class SetSslMode:
    mode: SSLMode


@dataclass(frozen=True)
class SetUsername:
    username: str


@dataclass(frozen=True)
class SetPassword:
    password: str


@dataclass(frozen=True)
class SetHost:
    host: str


@dataclass(frozen=True)
class SetPort:
    port: str


@dataclass(frozen=True)
class SetDatabase:
    database: str


@dataclass(frozen=True)
class SetSchemas:
    schemas: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.schemas:
            raise ValidationError("At least one schema is required")


UpdateOperation = (
    RenameTag
    | SetSslMode
    | SetUsername
    | SetPassword
    | SetHost
    | SetPort
    | SetDatabase
    | SetSchemas
)


def split_schemas(value: str) -> tuple[str, ...]:
    """``"public, billing"`` -> ``("public", "billing")``."""
    return tuple(part.strip() for part in value.split(",") if part.strip())


# Property name (as typed on the command line) -> operation builder
_PARSERS: dict[str, Callable[[str], UpdateOperation]] = {
    "tag": lambda value: RenameTag(value),
    "ssl-mode": lambda value: SetSslMode(coerce_ssl_mode(value)),
    "username": lambda value: SetUsername(value),
    "password": lambda value: SetPassword(value),
    "host": lambda value: SetHost(value),
    "port": lambda value: SetPort(value),
    "database": lambda value: SetDatabase(value),
    "schema": lambda value: SetSchemas(split_schemas(value)),
}

UPDATE_PROPERTIES = list(_PARSERS)


def parse_update(prop: str, value: str) -> UpdateOperation:
    """Build an operation from a property name and its raw value."""
    parser = _PARSERS.get(prop)
    if parser is None:
        raise ValidationError(
            f"Unknown property: {prop}. Use one of: {', '.join(UPDATE_PROPERTIES)}"
        )
    return parser(value)


def _set_ssl_mode(conn: ConnectionConfig, op: SetSslMode) -> None:
    conn.ssl_mode = op.mode


def _set_username(conn: ConnectionConfig, op: SetUsername) -> None:
    conn.url = urls.set_username(conn.url, op.username)


def _set_password(conn: ConnectionConfig, op: SetPassword) -> None:
    conn.url = urls.set_password(conn.url, op.password)


def _set_host(conn: ConnectionConfig, op: SetHost) -> None:
    conn.url = urls.set_host(conn.url, op.host)


def _set_port(conn: ConnectionConfig, op: SetPort) -> None:
    conn.url = urls.set_port(conn.url, op.port)


def _set_database(conn: ConnectionConfig, op: SetDatabase) -> None:
    conn.url = urls.set_database(conn.url, op.database)


def _set_schemas(conn: ConnectionConfig, op: SetSchemas) -> None:
    # The structured list and the URL parameter move together
    conn.schemas = list(op.schemas)
    conn.url = urls.set_query_param(conn.url, "schema", ",".join(op.schemas))


_APPLIERS: dict[type, Callable[[ConnectionConfig, object], None]] = {
    SetSslMode: _set_ssl_mode,
    SetUsername: _set_username,
    SetPassword: _set_password,
    SetHost: _set_host,
    SetPort: _set_port,
    SetDatabase: _set_database,
    SetSchemas: _set_schemas,
}


def apply_update(conn: ConnectionConfig, op: UpdateOperation) -> None:
    """Apply a non-rename operation to ``conn`` in place.

    Renames change the registry key, so the store handles them itself.
    """
    applier = _APPLIERS.get(type(op))
    if applier is None:
        raise ValidationError(f"Operation {type(op).__name__} cannot be applied to a connection")
    applier(conn, op)
