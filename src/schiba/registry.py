"""Connection registry.

Stores named connections in a single JSON file and resolves a tag (or the
default) into a ready-to-use ConnectionConfig.
"""

from __future__ import annotations

import logging
from pathlib import Path

from schiba.config import Settings, get_settings
from schiba.env import EnvInterpolator
from schiba.errors import (
    ConnectionNotFoundError,
    NoConnectionError,
    NoDefaultConnectionError,
    ValidationError,
)
from schiba.models import (
    ConfigFile,
    ConnectionConfig,
    ConnectionListItem,
    Preferences,
    TagGenerationResult,
    utcnow,
)
from schiba.ssl_policy import SSLMode, coerce_ssl_mode
from schiba.storage import ConfigStorage
from schiba.tags import TagGenerator, validate_tag
from schiba.updates import RenameTag, UpdateOperation, apply_update, split_schemas
from schiba.urls import ensure_valid_url, get_query_param, mask_url

logger = logging.getLogger(__name__)


def validate_connection_config(conn: ConnectionConfig) -> None:
    ensure_valid_url(conn.url)
    coerce_ssl_mode(conn.ssl_mode)
    if conn.schemas is not None and not all(s.strip() for s in conn.schemas):
        raise ValidationError("Schema names cannot be empty")


def validate_config_file(config: ConfigFile) -> None:
    """Check every connection and the default pointer, not just the one touched."""
    if not config.version:
        raise ValidationError("Config version is required")

    for tag, conn in config.connections.items():
        if not tag or any(ch.isspace() for ch in tag):
            raise ValidationError(f"Invalid tag '{tag}' in config file")
        try:
            validate_connection_config(conn)
        except ValidationError as e:
            raise ValidationError(f"Connection '{tag}': {e.message}") from e

    if config.default_tag and config.default_tag not in config.connections:
        raise ValidationError(f"Default connection '{config.default_tag}' does not exist")


class ConnectionStore:
    """CRUD over the connection registry.

    Built once per process and handed to whatever needs it. Every operation
    re-reads the file first, and every mutation validates the whole registry
    before writing it back.
    """

    def __init__(
        self,
        storage: ConfigStorage,
        interpolator: EnvInterpolator | None = None,
    ) -> None:
        self._storage = storage
        self._interpolator = interpolator or EnvInterpolator()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ConnectionStore:
        settings = settings or get_settings()
        return cls(
            ConfigStorage(settings.get_config_path()),
            EnvInterpolator(settings.get_env_path()),
        )

    @property
    def config_path(self) -> Path:
        return self._storage.config_path

    def exists(self) -> bool:
        return self._storage.exists()

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _load(self) -> ConfigFile | None:
        return self._storage.read()

    def _load_or_create(self) -> ConfigFile:
        return self._load() or ConfigFile()

    def _save(self, config: ConfigFile) -> None:
        validate_config_file(config)
        self._storage.write(config)

    @staticmethod
    def _get_connection(config: ConfigFile, tag: str) -> ConnectionConfig:
        conn = config.connections.get(tag)
        if conn is None:
            raise ConnectionNotFoundError(tag)
        return conn

    # =========================================================================
    # Public operations
    # =========================================================================

    def add(
        self,
        url: str,
        tag: str | None = None,
        *,
        ssl_disabled: bool = False,
        is_default: bool = False,
        description: str | None = None,
    ) -> TagGenerationResult:
        """Register a connection and return the tag it was stored under."""
        if tag is not None:
            validate_tag(tag)
        ensure_valid_url(url)

        config = self._load_or_create()
        result = TagGenerator(config.connections).get_unique_tag(tag)
        final_tag = result.final_tag

        conn = ConnectionConfig(
            tag=final_tag,
            url=url,
            ssl_mode=SSLMode.DISABLE if ssl_disabled else SSLMode.PREFER,
            description=description,
        )
        validate_connection_config(conn)

        is_first = not config.connections
        config.connections[final_tag] = conn
        if is_first or is_default:
            config.default_tag = final_tag

        self._save(config)
        logger.info(
            "Added connection '%s' (%s)%s",
            final_tag,
            mask_url(url),
            " as default" if config.default_tag == final_tag else "",
        )
        return result

    def update(self, tag: str, operation: UpdateOperation) -> TagGenerationResult | None:
        """Apply one update. Returns the tag result for renames, else None."""
        config = self._load_or_create()
        conn = self._get_connection(config, tag)

        result = None
        if isinstance(operation, RenameTag):
            result = self._rename(config, tag, operation.new_tag)
        else:
            apply_update(conn, operation)

        conn.updated_at = utcnow()
        validate_connection_config(conn)
        self._save(config)
        logger.info("Updated connection '%s': %s", tag, type(operation).__name__)
        return result

    def _rename(self, config: ConfigFile, tag: str, new_tag: str) -> TagGenerationResult:
        if new_tag == tag:
            validate_tag(new_tag)
            return TagGenerationResult(final_tag=tag)

        others = [t for t in config.connections if t != tag]
        result = TagGenerator(others).get_unique_tag(new_tag)

        # Rebuild the mapping so the renamed entry keeps its position
        config.connections = {
            (result.final_tag if t == tag else t): c for t, c in config.connections.items()
        }
        config.connections[result.final_tag].tag = result.final_tag
        if config.default_tag == tag:
            config.default_tag = result.final_tag
        return result

    def remove(self, tag: str) -> None:
        config = self._load_or_create()
        self._get_connection(config, tag)
        del config.connections[tag]

        if config.default_tag == tag:
            config.default_tag = next(iter(config.connections), None)
            if config.default_tag:
                logger.info("Default connection changed to '%s'", config.default_tag)

        self._save(config)
        logger.info("Removed connection '%s'", tag)

    def get(self, tag: str | None = None) -> ConnectionConfig:
        """Resolve ``tag`` (or the default) into an interpolated config.

        Stamps ``last_used`` on the stored record.
        """
        config = self._load_or_create()

        if tag is None:
            if not config.connections:
                raise NoConnectionError()
            if not config.default_tag:
                raise NoDefaultConnectionError()
        target = tag or config.default_tag
        conn = self._get_connection(config, target)

        conn.last_used = utcnow()
        self._save(config)

        resolved = conn.model_copy(deep=True)
        resolved.tag = target
        resolved.url = self._interpolator.resolve(conn.url)

        unresolved = self._interpolator.find_unresolved(resolved.url)
        if unresolved:
            logger.warning(
                "Connection '%s' references unset variables: %s", target, ", ".join(unresolved)
            )

        if not resolved.schemas:
            from_url = get_query_param(resolved.url, "schema")
            if from_url:
                resolved.schemas = list(split_schemas(from_url)) or None

        logger.debug("Resolved connection '%s' -> %s", target, mask_url(resolved.url))
        return resolved

    def list(self) -> list[ConnectionListItem]:
        """All connections, as stored. No interpolation and no writes."""
        config = self._load()
        if config is None:
            return []
        return [
            ConnectionListItem(tag=tag, connection=conn, is_default=tag == config.default_tag)
            for tag, conn in config.connections.items()
        ]

    def set_default(self, tag: str) -> None:
        config = self._load_or_create()
        self._get_connection(config, tag)
        config.default_tag = tag
        self._save(config)
        logger.info("Set '%s' as default connection", tag)

    def update_schemas(self, tag: str, schemas: list[str]) -> None:
        """Replace the schema selection of a connection."""
        cleaned = [s.strip() for s in schemas if s.strip()]
        if not cleaned:
            raise ValidationError("At least one schema is required")

        config = self._load_or_create()
        conn = self._get_connection(config, tag)
        conn.schemas = cleaned
        conn.updated_at = utcnow()
        self._save(config)
        logger.info("Updated schemas for '%s': %s", tag, ", ".join(cleaned))

    def get_default_tag(self) -> str | None:
        config = self._load()
        return config.default_tag if config else None

    def get_preferences(self) -> Preferences:
        config = self._load()
        return config.preferences if config else Preferences()
