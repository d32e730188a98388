"""Tests for database connection helpers (drivers are mocked)."""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.pool import NullPool

from schiba.db import connection as db_connection
from schiba.diagnostics import ConnectionDiagnosticError, ErrorCategory
from schiba.errors import UnsupportedDatabaseError
from schiba.models import ConnectionConfig, DatabaseType
from schiba.ssl_policy import SSLMode


def pg_config(**kwargs) -> ConnectionConfig:
    kwargs.setdefault("url", "postgresql://app:pw@db:5432/main")
    return ConnectionConfig(tag="prod", **kwargs)


def mongo_config(**kwargs) -> ConnectionConfig:
    kwargs.setdefault("url", "mongodb://db:27017/app")
    return ConnectionConfig(tag="docs", **kwargs)


class TestDetectDatabaseType:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgresql://h/db", DatabaseType.POSTGRES),
            ("postgres://h/db", DatabaseType.POSTGRES),
            ("postgresql+psycopg2://h/db", DatabaseType.POSTGRES),
            ("mongodb://h/db", DatabaseType.MONGODB),
            ("mongodb+srv://cluster.example.net/db", DatabaseType.MONGODB),
            ("MONGODB://h/db", DatabaseType.MONGODB),
            ("mysql://h/db", None),
            ("", None),
        ],
    )
    def test_schemes(self, url, expected):
        assert db_connection.detect_database_type(url) == expected

    def test_require_raises_for_unknown(self):
        with pytest.raises(UnsupportedDatabaseError, match="mysql"):
            db_connection.require_database_type(pg_config(url="mysql://h/db"))


class TestHelpers:
    def test_normalize_postgres_scheme(self):
        assert db_connection.normalize_database_url("postgres://h/db") == "postgresql://h/db"
        assert db_connection.normalize_database_url("postgresql://h/db") == "postgresql://h/db"

    @pytest.mark.parametrize("ms,seconds", [(10_000, 10), (1_500, 2), (1, 1)])
    def test_timeout_seconds(self, ms, seconds):
        assert db_connection.timeout_seconds(ms) == seconds


class TestPostgres:
    def test_engine_arguments(self):
        config = pg_config(
            url="postgres://app:pw@db:5432/main?schema=billing", ssl_mode=SSLMode.REQUIRE
        )
        with patch("schiba.db.connection.create_engine") as mock_create:
            db_connection.create_postgres_engine(config, 5_000)

        url = mock_create.call_args.args[0]
        assert url.drivername == "postgresql"
        assert dict(url.query) == {"sslmode": "require"}
        assert mock_create.call_args.kwargs["poolclass"] is NullPool
        assert mock_create.call_args.kwargs["connect_args"] == {"connect_timeout": 5}

    @pytest.mark.parametrize("mode", [SSLMode.VERIFY_CA, SSLMode.VERIFY_FULL])
    def test_verifying_modes_trust_platform_bundle(self, mode):
        paths = MagicMock(cafile="/etc/ssl/cert.pem")
        with patch("schiba.db.connection.ssl.get_default_verify_paths", return_value=paths):
            with patch("schiba.db.connection.create_engine") as mock_create:
                db_connection.create_postgres_engine(pg_config(ssl_mode=mode), 5_000)

        url = mock_create.call_args.args[0]
        assert url.query["sslmode"] == mode.value
        assert url.query["sslrootcert"] == "/etc/ssl/cert.pem"

    def test_system_store_when_no_bundle_file(self):
        paths = MagicMock(cafile=None)
        with patch("schiba.db.connection.ssl.get_default_verify_paths", return_value=paths):
            assert db_connection.system_root_cert(SSLMode.VERIFY_FULL) == "system"
            assert db_connection.system_root_cert(SSLMode.VERIFY_CA) is None

    def test_explicit_root_cert_is_kept(self):
        config = pg_config(
            url="postgresql://app:pw@db:5432/main?sslrootcert=/tmp/ca.pem",
            ssl_mode=SSLMode.VERIFY_FULL,
        )
        with patch("schiba.db.connection.create_engine") as mock_create:
            db_connection.create_postgres_engine(config, 5_000)
        assert mock_create.call_args.args[0].query["sslrootcert"] == "/tmp/ca.pem"

    @pytest.mark.parametrize("mode", [SSLMode.DISABLE, SSLMode.PREFER, SSLMode.REQUIRE])
    def test_unverified_modes_have_no_root_cert(self, mode):
        assert db_connection.system_root_cert(mode) is None

    def test_connection_is_released(self):
        engine = MagicMock()
        with patch("schiba.db.connection.create_postgres_engine", return_value=engine):
            assert db_connection.test_connection(pg_config(), 1_000) is True
        engine.connect.assert_called_once()
        engine.dispose.assert_called_once()

    def test_failure_is_classified_and_engine_disposed(self):
        engine = MagicMock()
        engine.connect.side_effect = Exception(
            'could not translate host name "db" to address: Name or service not known'
        )
        with patch("schiba.db.connection.create_postgres_engine", return_value=engine):
            with pytest.raises(ConnectionDiagnosticError) as exc_info:
                db_connection.test_connection(pg_config(), 1_000)

        assert exc_info.value.category == ErrorCategory.DNS_FAILURE
        assert exc_info.value.tag == "prod"
        engine.dispose.assert_called_once()

    def test_unclassified_failure_propagates(self):
        engine = MagicMock()
        engine.connect.side_effect = RuntimeError("weird")
        with patch("schiba.db.connection.create_postgres_engine", return_value=engine):
            with pytest.raises(RuntimeError, match="weird"):
                db_connection.test_connection(pg_config(), 1_000)


class TestMongo:
    def test_client_arguments(self):
        config = mongo_config(ssl_mode=SSLMode.DISABLE)
        with patch("schiba.db.connection.MongoClient") as mock_client:
            db_connection.create_mongo_client(config, 2_500)

        mock_client.assert_called_once_with(
            "mongodb://db:27017/app",
            serverSelectionTimeoutMS=2_500,
            connectTimeoutMS=2_500,
            tls=False,
        )

    def test_ping_and_close(self):
        with patch("schiba.db.connection.MongoClient") as mock_client:
            assert db_connection.test_connection(mongo_config(), 1_000) is True

        client = mock_client.return_value
        client.admin.command.assert_called_once_with("ping")
        client.close.assert_called_once()

    def test_construction_failure_is_classified(self):
        with patch(
            "schiba.db.connection.MongoClient",
            side_effect=Exception("The DNS query name does not exist: _mongodb._tcp.x"),
        ):
            with pytest.raises(ConnectionDiagnosticError) as exc_info:
                db_connection.test_connection(mongo_config(), 1_000)
        assert exc_info.value.category == ErrorCategory.DNS_FAILURE

    def test_ping_failure_closes_client(self):
        with patch("schiba.db.connection.MongoClient") as mock_client:
            client = mock_client.return_value
            client.admin.command.side_effect = Exception("Authentication failed.")
            with pytest.raises(ConnectionDiagnosticError):
                db_connection.test_connection(mongo_config(), 1_000)
        client.close.assert_called_once()
