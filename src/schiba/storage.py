"""Reading and writing the config file."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from schiba.errors import ConfigError
from schiba.models import ConfigFile

logger = logging.getLogger(__name__)


class ConfigStorage:
    """JSON persistence for a ConfigFile.

    Writes go to a temp file in the same directory and are moved into place,
    so a crash never leaves a half-written config behind. There is no
    cross-process lock: concurrent writers race and the last one wins.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path

    def exists(self) -> bool:
        return self.config_path.exists()

    def read(self) -> ConfigFile | None:
        """Load the file, or None when it does not exist yet."""
        if not self.exists():
            return None
        try:
            with open(self.config_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to read config file {self.config_path}: {e}") from e

        try:
            config = ConfigFile.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigError(f"Config file {self.config_path} is invalid: {e}") from e

        for tag, conn in config.connections.items():
            conn.tag = tag
        return config

    def write(self, config: ConfigFile) -> None:
        payload = config.to_json() + "\n"
        try:
            self.ensure_directory()
            fd, tmp_name = tempfile.mkstemp(
                dir=self.config_path.parent, prefix=".config-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, self.config_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ConfigError(f"Failed to write config file {self.config_path}: {e}") from e
        logger.debug("Wrote %s", self.config_path)

    def ensure_directory(self) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
