"""Tests for update operations."""

import pytest

from schiba.errors import ValidationError
from schiba.models import ConnectionConfig
from schiba.ssl_policy import SSLMode
from schiba.updates import (
    UPDATE_PROPERTIES,
    RenameTag,
    SetDatabase,
    SetHost,
    SetPassword,
    SetPort,
    SetSchemas,
    SetSslMode,
    SetUsername,
    apply_update,
    parse_update,
)


class TestParseUpdate:
    @pytest.mark.parametrize(
        "prop,value,expected",
        [
            ("tag", "prod", RenameTag("prod")),
            ("ssl-mode", "verify-ca", SetSslMode(SSLMode.VERIFY_CA)),
            ("username", "app", SetUsername("app")),
            ("password", "pw", SetPassword("pw")),
            ("host", "db.internal", SetHost("db.internal")),
            ("port", "5433", SetPort("5433")),
            ("database", "analytics", SetDatabase("analytics")),
            ("schema", "public, billing", SetSchemas(("public", "billing"))),
        ],
    )
    def test_known_properties(self, prop, value, expected):
        assert parse_update(prop, value) == expected

    def test_property_list(self):
        assert UPDATE_PROPERTIES == [
            "tag",
            "ssl-mode",
            "username",
            "password",
            "host",
            "port",
            "database",
            "schema",
        ]

    def test_unknown_property(self):
        with pytest.raises(ValidationError, match="Unknown property: colour"):
            parse_update("colour", "blue")

    def test_invalid_ssl_mode(self):
        with pytest.raises(ValidationError):
            parse_update("ssl-mode", "maybe")

    def test_empty_schema_list(self):
        with pytest.raises(ValidationError, match="At least one schema"):
            parse_update("schema", " , ")


class TestApplyUpdate:
    @pytest.fixture
    def conn(self) -> ConnectionConfig:
        return ConnectionConfig(tag="prod", url="postgresql://app:pw@db:5432/main")

    def test_ssl_mode(self, conn):
        apply_update(conn, SetSslMode(SSLMode.REQUIRE))
        assert conn.ssl_mode == SSLMode.REQUIRE
        assert conn.url == "postgresql://app:pw@db:5432/main"

    def test_url_components(self, conn):
        apply_update(conn, SetHost("replica"))
        apply_update(conn, SetPort("6432"))
        apply_update(conn, SetDatabase("reports"))
        apply_update(conn, SetUsername("reader"))
        assert conn.url == "postgresql://reader:pw@replica:6432/reports"

    def test_schemas_update_list_and_url_together(self, conn):
        apply_update(conn, SetSchemas(("public", "billing")))
        assert conn.schemas == ["public", "billing"]
        assert conn.url == "postgresql://app:pw@db:5432/main?schema=public,billing"

    def test_rename_is_not_applied_to_a_record(self, conn):
        with pytest.raises(ValidationError):
            apply_update(conn, RenameTag("other"))
