"""Data models for the connection registry and introspection results."""

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from schiba.config import CONFIG_VERSION, DEFAULT_TIMEOUT_MS
from schiba.ssl_policy import SSLMode, apply_ssl_mode


def utcnow() -> datetime:
    return datetime.now(UTC)


class DatabaseType(str, Enum):
    """Engines with an analyzer."""

    POSTGRES = "postgres"
    MONGODB = "mongodb"


# =============================================================================
# Registry (stored in config.json)
# =============================================================================


class ConnectionConfig(BaseModel):
    """One registered connection.

    ``tag`` is the registry key. It is filled in when a record is handed out
    and left out when the record is written back to disk.
    """

    model_config = ConfigDict(populate_by_name=True)

    tag: str = Field(default="", exclude=True, description="Registry key")
    url: str = Field(..., description="Connection string, may contain ${VAR} placeholders")
    ssl_mode: SSLMode = Field(default=SSLMode.PREFER, alias="sslMode")
    schemas: list[str] | None = Field(
        default=None, description="SQL schemas to introspect (None means public)"
    )
    description: str | None = Field(default=None)
    created: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    last_used: datetime | None = Field(default=None, alias="lastUsed")

    @property
    def effective_schemas(self) -> list[str]:
        return self.schemas or ["public"]

    @property
    def connection_url(self) -> str:
        """URL with the SSL mode applied as a ``sslmode`` query parameter."""
        return apply_ssl_mode(self.url, self.ssl_mode)


class Preferences(BaseModel):
    """User preferences shared by every command."""

    format: Literal["raw", "markdown"] = "raw"
    timeout: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0, description="Milliseconds")
    copy_output: bool = Field(default=True, alias="copy")

    model_config = ConfigDict(populate_by_name=True)


class ConfigFile(BaseModel):
    """The whole registry as persisted on disk."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = Field(default=CONFIG_VERSION)
    default_tag: str | None = Field(default=None, alias="default")
    connections: dict[str, ConnectionConfig] = Field(default_factory=dict)
    preferences: Preferences = Field(default_factory=Preferences)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


class TagGenerationResult(BaseModel):
    """Outcome of picking a tag for an add or a rename."""

    final_tag: str
    original_tag: str | None = None
    was_conflict_resolved: bool = False


class ConnectionListItem(BaseModel):
    """One row of ``ConnectionStore.list()``."""

    tag: str
    connection: ConnectionConfig
    is_default: bool = False


# =============================================================================
# Introspection results
# =============================================================================


class ColumnInfo(BaseModel):
    name: str
    type: str
    nullable: bool = True
    default: str | None = None
    constraints: list[str] = Field(default_factory=list)


class IndexInfo(BaseModel):
    name: str
    definition: str


class TableInfo(BaseModel):
    columns: list[ColumnInfo] = Field(default_factory=list)
    indexes: list[IndexInfo] = Field(default_factory=list)
    description: str | None = None


class SchemaNamespace(BaseModel):
    """Tables and enums of one PostgreSQL schema."""

    tables: dict[str, TableInfo] = Field(default_factory=dict)
    enums: dict[str, list[str]] = Field(default_factory=dict)


class CollectionIndex(BaseModel):
    name: str
    key: dict[str, Any] = Field(default_factory=dict)
    unique: bool = False


class CollectionInfo(BaseModel):
    """Sampled shape of one MongoDB collection."""

    collection: str
    fields: list[str] = Field(default_factory=list)
    types: dict[str, list[str]] = Field(default_factory=dict)
    indexes: list[CollectionIndex] = Field(default_factory=list)
    sample_data: dict[str, Any] | None = Field(default=None, serialization_alias="sampleData")


class Schema(BaseModel):
    """Engine-agnostic introspection document.

    SQL engines fill ``schemas`` (keyed by schema name); document engines fill
    ``collections``.
    """

    engine: DatabaseType
    schemas: dict[str, SchemaNamespace] = Field(default_factory=dict)
    collections: list[CollectionInfo] = Field(default_factory=list)

    def to_data(self) -> Any:
        if self.engine == DatabaseType.MONGODB:
            return [c.model_dump(by_alias=True, exclude_none=True) for c in self.collections]
        return {
            name: namespace.model_dump() for name, namespace in self.schemas.items()
        }

    def to_json(self) -> str:
        """Compact JSON form handed to formatters."""
        return json.dumps(self.to_data(), separators=(",", ":"), default=str)


class SchemaListItem(BaseModel):
    """A PostgreSQL schema as offered for selection."""

    name: str
    selected: bool = False
    has_permission: bool = True


class SchemaStats(BaseModel):
    """Size and object counts derived from a Schema, never persisted."""

    total_size: int
    object_count: int
    details: dict[str, int] = Field(default_factory=dict)


@dataclass
class AnalysisResult:
    """What an analyzer hands back."""

    schema: Schema
    stats: SchemaStats
