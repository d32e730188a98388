"""Configuration for schiba."""

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Version written into new config files
CONFIG_VERSION = "1.0.0"

# Milliseconds allowed for establishing a database connection
DEFAULT_TIMEOUT_MS = 10_000

# Documents drawn per collection when inferring a MongoDB shape
MONGO_SAMPLE_SIZE = 5

CONFIG_FILE_NAME = "config.json"
ENV_FILE_NAME = ".env"


class Settings(BaseSettings):
    """Process settings loaded from SCHIBA_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="SCHIBA_", extra="ignore")

    config_path: str = Field(
        default="",
        description="Explicit path to config.json (overrides the platform default)",
    )
    timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS,
        description="Connection timeout in milliseconds when no preference is stored",
    )
    log_level: str = Field(
        default="WARNING",
        description="Root log level for the CLI",
    )

    def get_config_path(self) -> Path:
        """Resolve the config file location.

        Priority:
        1. config_path (SCHIBA_CONFIG_PATH)
        2. Windows: %APPDATA%\\schiba\\config.json
        3. Others: $XDG_CONFIG_HOME/schiba/config.json (default ~/.config)
        """
        if self.config_path:
            return Path(self.config_path).expanduser()

        home = Path.home()
        if sys.platform == "win32":
            app_data = os.environ.get("APPDATA") or str(home / "AppData" / "Roaming")
            return Path(app_data) / "schiba" / CONFIG_FILE_NAME

        config_home = os.environ.get("XDG_CONFIG_HOME") or str(home / ".config")
        return Path(config_home) / "schiba" / CONFIG_FILE_NAME

    def get_env_path(self) -> Path:
        """The .env sidecar lives next to the config file."""
        return self.get_config_path().parent / ENV_FILE_NAME


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    global _settings
    _settings = None
