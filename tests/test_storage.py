"""Tests for config file persistence."""

import json
from pathlib import Path

import pytest

from schiba.errors import ConfigError
from schiba.models import ConfigFile, ConnectionConfig
from schiba.ssl_policy import SSLMode
from schiba.storage import ConfigStorage


@pytest.fixture
def storage(tmp_path: Path) -> ConfigStorage:
    return ConfigStorage(tmp_path / "nested" / "config.json")


class TestConfigStorage:
    def test_read_missing_file(self, storage: ConfigStorage):
        assert storage.exists() is False
        assert storage.read() is None

    def test_write_creates_directory_and_reads_back(self, storage: ConfigStorage):
        config = ConfigFile(
            default_tag="prod",
            connections={
                "prod": ConnectionConfig(url="postgresql://h/db", ssl_mode=SSLMode.REQUIRE)
            },
        )
        storage.write(config)

        loaded = storage.read()
        assert loaded is not None
        assert loaded.default_tag == "prod"
        assert loaded.connections["prod"].tag == "prod"
        assert loaded.connections["prod"].ssl_mode == SSLMode.REQUIRE

    def test_write_leaves_no_temp_files(self, storage: ConfigStorage):
        storage.write(ConfigFile())
        storage.write(ConfigFile())
        assert [p.name for p in storage.config_path.parent.iterdir()] == ["config.json"]

    def test_write_is_pretty_json_with_aliases(self, storage: ConfigStorage):
        storage.write(
            ConfigFile(connections={"a": ConnectionConfig(url="mongodb://h/db")})
        )
        text = storage.config_path.read_text()
        assert text.endswith("\n")
        assert '\n  "connections"' in text
        assert json.loads(text)["connections"]["a"]["sslMode"] == "prefer"

    def test_corrupt_json(self, storage: ConfigStorage):
        storage.ensure_directory()
        storage.config_path.write_text("{")
        with pytest.raises(ConfigError, match="Failed to read"):
            storage.read()

    def test_wrong_shape(self, storage: ConfigStorage):
        storage.ensure_directory()
        storage.config_path.write_text(json.dumps({"connections": {"a": {"nope": 1}}}))
        with pytest.raises(ConfigError, match="invalid"):
            storage.read()

    def test_unwritable_location(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        storage = ConfigStorage(blocker / "config.json")
        with pytest.raises(ConfigError, match="Failed to write"):
            storage.write(ConfigFile())
