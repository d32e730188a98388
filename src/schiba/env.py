"""Environment variable interpolation for stored connection strings.

Connection strings may reference ``${NAME}`` or ``$NAME``. Values come from the
process environment, after loading the ``.env`` file that sits next to the
config file. Placeholders without a value are left untouched so read-only
commands keep working.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import MutableMapping
from pathlib import Path

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}|\$([A-Z_][A-Z0-9_]*)")


def load_env_file(env_path: Path) -> dict[str, str]:
    """Parse a ``KEY=value`` file. Keys declared without a value are skipped."""
    if not env_path.exists():
        return {}
    return {k: v for k, v in dotenv_values(env_path).items() if v is not None}


class EnvInterpolator:
    """Resolve placeholders against an environment mapping."""

    def __init__(
        self,
        env_path: Path | None = None,
        environ: MutableMapping[str, str] | None = None,
    ) -> None:
        self.env_path = env_path
        self.environ = os.environ if environ is None else environ

    def load(self) -> None:
        """Copy the .env sidecar into the environment mapping."""
        if self.env_path is None:
            return
        try:
            values = load_env_file(self.env_path)
        except OSError as e:
            logger.warning("Could not read %s: %s", self.env_path, e)
            return
        if values:
            logger.debug("Loaded %d variables from %s", len(values), self.env_path)
        self.environ.update(values)

    def resolve(self, raw: str) -> str:
        self.load()

        def _replace(match: re.Match[str]) -> str:
            name = match.group(1) or match.group(2)
            value = self.environ.get(name)
            return value if value else match.group(0)

        return PLACEHOLDER_RE.sub(_replace, raw)

    def find_unresolved(self, raw: str) -> list[str]:
        """Names of placeholders in ``raw`` that have no value."""
        names = []
        for match in PLACEHOLDER_RE.finditer(raw):
            name = match.group(1) or match.group(2)
            if not self.environ.get(name) and name not in names:
                names.append(name)
        return names
