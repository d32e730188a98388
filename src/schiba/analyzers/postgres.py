"""PostgreSQL introspection.

The whole schema set is fetched with a single aggregate query that returns
one JSON document keyed by schema name.
"""

import logging
from typing import Any

from sqlalchemy import text

from schiba.config import DEFAULT_TIMEOUT_MS
from schiba.db.connection import postgres_connection
from schiba.errors import SchemaExtractionError
from schiba.models import (
    AnalysisResult,
    ColumnInfo,
    ConnectionConfig,
    DatabaseType,
    IndexInfo,
    Schema,
    SchemaListItem,
    SchemaNamespace,
    SchemaStats,
    TableInfo,
)

logger = logging.getLogger(__name__)

SCHEMA_QUERY = """
WITH target_schemas AS (
    SELECT unnest(CAST(:schemas AS text[])) AS schema_name
),
table_info AS (
    SELECT
        c.table_schema AS schema_name,
        c.table_name,
        json_agg(
            json_build_object(
                'name', c.column_name,
                'type', c.data_type,
                'nullable', c.is_nullable,
                'default', c.column_default,
                'constraints', (
                    SELECT json_agg(DISTINCT tc.constraint_type)
                    FROM information_schema.table_constraints tc
                    JOIN information_schema.constraint_column_usage ccu
                        ON tc.constraint_name = ccu.constraint_name
                        AND tc.constraint_schema = ccu.constraint_schema
                    WHERE ccu.table_schema = c.table_schema
                        AND ccu.table_name = c.table_name
                        AND ccu.column_name = c.column_name
                )
            ) ORDER BY c.ordinal_position
        ) AS columns,
        obj_description(pgc.oid, 'pg_class') AS description
    FROM information_schema.columns c
    JOIN pg_namespace pgn ON pgn.nspname = c.table_schema
    JOIN pg_class pgc ON pgc.relname = c.table_name AND pgc.relnamespace = pgn.oid
    WHERE c.table_schema IN (SELECT schema_name FROM target_schemas)
    GROUP BY c.table_schema, c.table_name, pgc.oid
),
index_info AS (
    SELECT
        schemaname AS schema_name,
        tablename AS table_name,
        json_agg(
            json_build_object('name', indexname, 'definition', indexdef)
            ORDER BY indexname
        ) AS indexes
    FROM pg_indexes
    WHERE schemaname IN (SELECT schema_name FROM target_schemas)
    GROUP BY schemaname, tablename
),
enum_info AS (
    SELECT
        n.nspname AS schema_name,
        t.typname AS enum_name,
        json_agg(e.enumlabel ORDER BY e.enumsortorder) AS labels
    FROM pg_type t
    JOIN pg_enum e ON t.oid = e.enumtypid
    JOIN pg_namespace n ON n.oid = t.typnamespace
    WHERE n.nspname IN (SELECT schema_name FROM target_schemas)
    GROUP BY n.nspname, t.typname
)
SELECT json_object_agg(
    s.schema_name,
    json_build_object(
        'tables', COALESCE((
            SELECT json_object_agg(
                t.table_name,
                json_build_object(
                    'columns', t.columns,
                    'description', t.description,
                    'indexes', COALESCE(i.indexes, '[]'::json)
                )
                ORDER BY t.table_name
            )
            FROM table_info t
            LEFT JOIN index_info i
                ON i.schema_name = t.schema_name AND i.table_name = t.table_name
            WHERE t.schema_name = s.schema_name
        ), '{}'::json),
        'enums', COALESCE((
            SELECT json_object_agg(en.enum_name, en.labels ORDER BY en.enum_name)
            FROM enum_info en
            WHERE en.schema_name = s.schema_name
        ), '{}'::json)
    )
) AS schema
FROM target_schemas s
"""

LIST_SCHEMAS_QUERY = """
SELECT
    schema_name,
    has_schema_privilege(schema_name, 'USAGE') AS has_permission
FROM information_schema.schemata
WHERE schema_name NOT IN ('information_schema', 'pg_catalog', 'pg_toast')
    AND schema_name NOT LIKE 'pg_temp_%'
    AND schema_name NOT LIKE 'pg_toast_temp_%'
ORDER BY schema_name
"""


def dedupe(values: list[str]) -> list[str]:
    """Drop repeats, keeping the first occurrence of each value."""
    return list(dict.fromkeys(values))


def _parse_column(raw: dict[str, Any]) -> ColumnInfo:
    return ColumnInfo(
        name=raw["name"],
        type=raw["type"],
        nullable=raw.get("nullable") == "YES",
        default=raw.get("default"),
        constraints=dedupe(raw.get("constraints") or []),
    )


def _parse_table(raw: dict[str, Any]) -> TableInfo:
    return TableInfo(
        columns=[_parse_column(c) for c in raw.get("columns") or []],
        indexes=[IndexInfo(**i) for i in raw.get("indexes") or []],
        description=raw.get("description"),
    )


def build_schema(document: Any, schemas: list[str]) -> Schema:
    """Turn the aggregate query's JSON document into a Schema.

    Every requested schema appears in the result, in request order, even
    when the database returned nothing for it.
    """
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise SchemaExtractionError(
            f"Unexpected schema document type: {type(document).__name__}"
        )

    namespaces: dict[str, SchemaNamespace] = {}
    try:
        for name in schemas:
            raw = document.get(name) or {}
            namespaces[name] = SchemaNamespace(
                tables={t: _parse_table(body) for t, body in (raw.get("tables") or {}).items()},
                enums={e: list(labels) for e, labels in (raw.get("enums") or {}).items()},
            )
    except (KeyError, TypeError, AttributeError) as e:
        raise SchemaExtractionError(f"Malformed schema document: {e}") from e

    return Schema(engine=DatabaseType.POSTGRES, schemas=namespaces)


def calculate_stats(schema: Schema) -> SchemaStats:
    tables = columns = indexes = enums = 0
    for namespace in schema.schemas.values():
        tables += len(namespace.tables)
        enums += len(namespace.enums)
        for table in namespace.tables.values():
            columns += len(table.columns)
            indexes += len(table.indexes)

    return SchemaStats(
        total_size=len(schema.to_json().encode("utf-8")),
        object_count=tables,
        details={"tables": tables, "columns": columns, "indexes": indexes, "enums": enums},
    )


class PostgresAnalyzer:
    """Introspects the selected schemas of a PostgreSQL database."""

    def __init__(self, config: ConnectionConfig, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        self.config = config
        self.timeout_ms = timeout_ms

    def analyze(self) -> AnalysisResult:
        schemas = dedupe(self.config.effective_schemas)
        logger.debug("Analyzing '%s' schemas: %s", self.config.tag, ", ".join(schemas))

        with postgres_connection(self.config, self.timeout_ms) as conn:
            document = conn.execute(text(SCHEMA_QUERY), {"schemas": schemas}).scalar()

        schema = build_schema(document, schemas)
        stats = calculate_stats(schema)
        logger.debug("Analyzed '%s': %s", self.config.tag, stats.details)
        return AnalysisResult(schema=schema, stats=stats)

    def list_available_schemas(self) -> list[SchemaListItem]:
        """Non-system schemas, flagged with USAGE privilege and current selection."""
        current = set(self.config.effective_schemas)
        with postgres_connection(self.config, self.timeout_ms) as conn:
            rows = conn.execute(text(LIST_SCHEMAS_QUERY)).all()

        return [
            SchemaListItem(
                name=row.schema_name,
                selected=row.schema_name in current,
                has_permission=bool(row.has_permission),
            )
            for row in rows
        ]
