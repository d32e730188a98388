"""Database connection management."""

import logging
import math
import ssl
from collections.abc import Iterator
from contextlib import contextmanager
from urllib.parse import urlsplit

from pymongo import MongoClient
from sqlalchemy import Connection, Engine, create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.pool import NullPool

from schiba.diagnostics import raise_classified
from schiba.errors import UnsupportedDatabaseError
from schiba.models import ConnectionConfig, DatabaseType
from schiba.ssl_policy import SSLMode, build_ssl_options
from schiba.urls import mask_url

logger = logging.getLogger(__name__)

SUPPORTED_DATABASES: dict[DatabaseType, tuple[str, ...]] = {
    DatabaseType.POSTGRES: ("postgresql", "postgres"),
    DatabaseType.MONGODB: ("mongodb", "mongodb+srv"),
}

# Query parameters schiba keeps in the URL that libpq would reject
_NON_LIBPQ_PARAMS = ("schema",)


def detect_database_type(url: str) -> DatabaseType | None:
    """Detect the engine from a connection string's scheme.

    ``postgresql+psycopg2://`` style driver suffixes are accepted.
    """
    if not url:
        return None
    scheme = urlsplit(url).scheme.lower()
    base = scheme.split("+")[0]
    for db_type, schemes in SUPPORTED_DATABASES.items():
        if scheme in schemes or base in schemes:
            return db_type
    return None


def require_database_type(config: ConnectionConfig) -> DatabaseType:
    db_type = detect_database_type(config.url)
    if db_type is None:
        raise UnsupportedDatabaseError(
            f"Unsupported database type for connection '{config.tag}' "
            f"({urlsplit(config.url).scheme or 'no scheme'}). "
            "Supported: postgresql://, postgres://, mongodb://, mongodb+srv://"
        )
    return db_type


def normalize_database_url(database_url: str) -> str:
    """Normalize database URL for SQLAlchemy compatibility."""
    if not database_url:
        return database_url

    # Replace 'postgres://' with 'postgresql://' for SQLAlchemy
    if database_url.startswith("postgres://"):
        database_url = "postgresql://" + database_url[11:]

    return database_url


def timeout_seconds(timeout_ms: int) -> int:
    """libpq's connect_timeout is whole seconds."""
    return max(1, math.ceil(timeout_ms / 1000))


def system_root_cert(ssl_mode: SSLMode) -> str | None:
    """CA bundle libpq should trust for the verifying modes.

    libpq looks for ``~/.postgresql/root.crt`` unless told otherwise. The
    platform's OpenSSL bundle is used when it exists; ``system`` needs
    libpq 16+ and is only accepted together with ``verify-full``.
    """
    if ssl_mode not in (SSLMode.VERIFY_CA, SSLMode.VERIFY_FULL):
        return None
    cafile = ssl.get_default_verify_paths().cafile
    if cafile:
        return cafile
    if ssl_mode == SSLMode.VERIFY_FULL:
        return "system"
    return None


def create_postgres_engine(config: ConnectionConfig, timeout_ms: int) -> Engine:
    """Build a single-use engine for ``config``.

    The URL carries ``sslmode`` (libpq implements the same verification rules
    as ``schiba.ssl_policy``). ``NullPool`` means disposing the engine closes
    the socket.
    """
    url = make_url(normalize_database_url(config.connection_url))
    url = url.difference_update_query(_NON_LIBPQ_PARAMS)
    root_cert = system_root_cert(config.ssl_mode)
    if root_cert and "sslrootcert" not in url.query:
        url = url.update_query_dict({"sslrootcert": root_cert})
    return create_engine(
        url,
        poolclass=NullPool,
        connect_args={"connect_timeout": timeout_seconds(timeout_ms)},
    )


@contextmanager
def postgres_connection(config: ConnectionConfig, timeout_ms: int) -> Iterator[Connection]:
    """Connect, yield, and always release the engine.

    Errors from connecting and from anything run inside the block go
    through the error classifier.
    """
    engine = create_postgres_engine(config, timeout_ms)
    logger.debug("Connecting to %s", mask_url(config.url))
    try:
        with engine.connect() as conn:
            yield conn
    except Exception as e:
        raise_classified(e, config)
    finally:
        engine.dispose()


def create_mongo_client(config: ConnectionConfig, timeout_ms: int) -> MongoClient:
    options = build_ssl_options(config.ssl_mode).pymongo_options(config.url)
    return MongoClient(
        config.url,
        serverSelectionTimeoutMS=timeout_ms,
        connectTimeoutMS=timeout_ms,
        **options,
    )


@contextmanager
def mongo_client(config: ConnectionConfig, timeout_ms: int) -> Iterator[MongoClient]:
    """Yield a client and always close it.

    ``mongodb+srv`` URLs resolve DNS while the client is built, so
    construction happens inside the classified block too.
    """
    client: MongoClient | None = None
    logger.debug("Connecting to %s", mask_url(config.url))
    try:
        client = create_mongo_client(config, timeout_ms)
        yield client
    except Exception as e:
        raise_classified(e, config)
    finally:
        if client is not None:
            client.close()


def test_connection(config: ConnectionConfig, timeout_ms: int) -> bool:
    """Open a connection and run a trivial round trip.

    Returns True on success. Failures raise the classified error.
    """
    db_type = require_database_type(config)

    if db_type == DatabaseType.POSTGRES:
        with postgres_connection(config, timeout_ms) as conn:
            conn.execute(text("SELECT 1")).scalar()
        return True

    with mongo_client(config, timeout_ms) as client:
        client.admin.command("ping")
    return True

