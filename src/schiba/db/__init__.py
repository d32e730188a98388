"""Database connectivity."""

from schiba.db.connection import (
    create_mongo_client,
    create_postgres_engine,
    detect_database_type,
    mongo_client,
    postgres_connection,
    require_database_type,
    test_connection,
)

__all__ = [
    "create_mongo_client",
    "create_postgres_engine",
    "detect_database_type",
    "mongo_client",
    "postgres_connection",
    "require_database_type",
    "test_connection",
]
