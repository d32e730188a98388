"""Shared fixtures: a ConnectionStore rooted in a temp directory."""

from pathlib import Path

import pytest

from schiba.config import reset_settings
from schiba.env import EnvInterpolator
from schiba.registry import ConnectionStore
from schiba.storage import ConfigStorage


@pytest.fixture(autouse=True)
def _reset_settings():
    """Settings are cached per process; start every test from scratch."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "schiba" / "config.json"


@pytest.fixture
def environ() -> dict[str, str]:
    """Isolated environment mapping so tests never touch os.environ."""
    return {}


@pytest.fixture
def store(config_path: Path, environ: dict[str, str]) -> ConnectionStore:
    interpolator = EnvInterpolator(config_path.parent / ".env", environ)
    return ConnectionStore(ConfigStorage(config_path), interpolator)
