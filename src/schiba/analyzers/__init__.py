"""Schema analyzers.

Defines the Analyzer protocol and a factory that picks the analyzer for a
connection's engine.
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from schiba.analyzers.mongodb import MongoAnalyzer
from schiba.analyzers.postgres import PostgresAnalyzer
from schiba.config import DEFAULT_TIMEOUT_MS
from schiba.db.connection import require_database_type
from schiba.models import AnalysisResult, ConnectionConfig, DatabaseType


@runtime_checkable
class Analyzer(Protocol):
    """Anything that can introspect one connection."""

    def analyze(self) -> AnalysisResult:
        """Connect, introspect and return the schema with its stats."""
        ...


_ANALYZER_FACTORIES: dict[DatabaseType, Callable[[ConnectionConfig, int], Analyzer]] = {
    DatabaseType.POSTGRES: PostgresAnalyzer,
    DatabaseType.MONGODB: MongoAnalyzer,
}


def create_analyzer(config: ConnectionConfig, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> Analyzer:
    """Factory: build the analyzer for ``config``'s engine.

    Raises:
        UnsupportedDatabaseError: if the URL scheme has no analyzer.
    """
    db_type = require_database_type(config)
    return _ANALYZER_FACTORIES[db_type](config, timeout_ms)


__all__ = [
    "Analyzer",
    "MongoAnalyzer",
    "PostgresAnalyzer",
    "create_analyzer",
]
