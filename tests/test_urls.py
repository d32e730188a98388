"""Tests for connection string helpers."""

import pytest

from schiba.errors import ValidationError
from schiba.urls import (
    ensure_valid_url,
    get_query_param,
    mask_url,
    remove_query_params,
    set_database,
    set_host,
    set_password,
    set_port,
    set_query_param,
    set_username,
    validate_connection_string,
)


class TestValidation:
    @pytest.mark.parametrize(
        "url",
        [
            "postgresql://localhost/db",
            "postgres://u:p@h:5432/db?sslmode=require",
            "mongodb+srv://cluster0.example.net/app",
            "postgresql://${PGHOST}/db",
        ],
    )
    def test_valid(self, url):
        assert validate_connection_string(url) is True

    @pytest.mark.parametrize("url", ["", "localhost:5432", "postgresql://", "postgresql://u:p@"])
    def test_invalid(self, url):
        assert validate_connection_string(url) is False

    def test_ensure_raises_validation_error(self):
        with pytest.raises(ValidationError, match="Invalid connection string"):
            ensure_valid_url("not a url")


class TestMask:
    def test_hides_password(self):
        assert mask_url("postgresql://app:secret@h/db") == "postgresql://app:***@h/db"

    def test_user_without_password(self):
        assert mask_url("postgresql://app@h/db") == "postgresql://app@h/db"

    def test_no_credentials(self):
        assert mask_url("mongodb://h:27017") == "mongodb://h:27017"


class TestComponentEdits:
    def test_set_password_keeps_placeholder(self):
        url = set_password("postgresql://app:old@h/db", "${PGPASSWORD}")
        assert url == "postgresql://app:${PGPASSWORD}@h/db"

    def test_set_password_escapes_reserved_characters(self):
        url = set_password("postgresql://app:old@h/db", "p@ss/word")
        assert url == "postgresql://app:p%40ss%2Fword@h/db"

    def test_set_username_keeps_password(self):
        assert set_username("postgresql://a:pw@h/db", "b") == "postgresql://b:pw@h/db"

    def test_set_username_on_url_without_credentials(self):
        assert set_username("postgresql://h/db", "app") == "postgresql://app@h/db"

    def test_set_host_keeps_port_and_credentials(self):
        url = set_host("postgresql://u:p@old.internal:5433/db", "new.internal")
        assert url == "postgresql://u:p@new.internal:5433/db"

    def test_set_host_rejects_garbage(self):
        with pytest.raises(ValidationError):
            set_host("postgresql://h/db", "bad host")

    def test_set_port(self):
        assert set_port("postgresql://h:5432/db", "6543") == "postgresql://h:6543/db"

    def test_set_port_adds_missing_port(self):
        assert set_port("postgresql://h/db", "5433") == "postgresql://h:5433/db"

    @pytest.mark.parametrize("placeholder", ["${DB_PORT}", "$DB_PORT"])
    def test_set_port_replaces_placeholder_port(self, placeholder):
        url = f"postgresql://u:p@${{DB_HOST}}:{placeholder}/main"
        assert set_port(url, "6543") == "postgresql://u:p@${DB_HOST}:6543/main"

    def test_set_host_keeps_placeholder_port(self):
        url = set_host("postgresql://u:p@old.internal:${DB_PORT}/main", "new.internal")
        assert url == "postgresql://u:p@new.internal:${DB_PORT}/main"

    @pytest.mark.parametrize("port", ["0", "65536", "abc", "-1"])
    def test_set_port_rejects(self, port):
        with pytest.raises(ValidationError):
            set_port("postgresql://h/db", port)

    def test_multi_host_host_edit_is_rejected(self):
        with pytest.raises(ValidationError, match="multi-host"):
            set_host("mongodb://a:27017,b:27017/app", "c")

    def test_set_database_keeps_query(self):
        url = set_database("postgresql://h:5432/old?application_name=x", "new")
        assert url == "postgresql://h:5432/new?application_name=x"

    def test_set_database_on_url_without_path(self):
        assert set_database("mongodb://h:27017", "app") == "mongodb://h:27017/app"


class TestQueryParams:
    def test_set_and_get(self):
        url = set_query_param("postgresql://h/db?x=1", "schema", "public,billing")
        assert "schema=public,billing" in url
        assert get_query_param(url, "schema") == "public,billing"
        assert get_query_param(url, "x") == "1"

    def test_set_replaces_existing(self):
        url = set_query_param("postgresql://h/db?schema=a", "schema", "b")
        assert url == "postgresql://h/db?schema=b"

    def test_remove(self):
        assert remove_query_params("postgresql://h/db?a=1&b=2", "a") == "postgresql://h/db?b=2"
