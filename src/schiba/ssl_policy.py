"""SSL mode policy.

Translates one of the six libpq-style SSL modes into the ``sslmode`` query
parameter appended to a connection string and into transport options for
drivers that take TLS settings as keyword arguments (pymongo).

``verify-ca`` verifies the certificate chain but never the hostname. The
update remediation text relies on that, so it must stay that way.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from schiba.errors import ValidationError


class SSLMode(str, Enum):
    """Transport security policy for a stored connection (libpq naming)."""

    DISABLE = "disable"
    ALLOW = "allow"
    PREFER = "prefer"
    REQUIRE = "require"
    VERIFY_CA = "verify-ca"
    VERIFY_FULL = "verify-full"


VALID_SSL_MODES = [mode.value for mode in SSLMode]

_SSL_PARAM_KEYS = ("ssl", "sslmode")


@dataclass(frozen=True)
class SSLOptions:
    """Transport-layer view of an SSL mode."""

    enabled: bool
    verify_chain: bool = False
    check_hostname: bool = False
    allow_plaintext: bool = False

    def pymongo_options(self, url: str) -> dict[str, Any]:
        """Keyword arguments for ``pymongo.MongoClient``.

        When plaintext is acceptable, TLS is only configured if the URL itself
        asks for it (``mongodb+srv`` or a ``tls``/``ssl`` query flag).
        """
        if not self.enabled:
            return {"tls": False}
        if self.allow_plaintext and not _url_requests_tls(url):
            return {}

        options: dict[str, Any] = {"tls": True}
        if not self.verify_chain:
            options["tlsAllowInvalidCertificates"] = True
        elif not self.check_hostname:
            options["tlsAllowInvalidHostnames"] = True
        return options


_POLICY: dict[SSLMode, SSLOptions] = {
    SSLMode.DISABLE: SSLOptions(enabled=False),
    SSLMode.ALLOW: SSLOptions(enabled=True, allow_plaintext=True),
    SSLMode.PREFER: SSLOptions(enabled=True, allow_plaintext=True),
    SSLMode.REQUIRE: SSLOptions(enabled=True),
    SSLMode.VERIFY_CA: SSLOptions(enabled=True, verify_chain=True, check_hostname=False),
    SSLMode.VERIFY_FULL: SSLOptions(enabled=True, verify_chain=True, check_hostname=True),
}


def coerce_ssl_mode(mode: SSLMode | str) -> SSLMode:
    """Parse a mode name, raising ValidationError for anything unknown."""
    if isinstance(mode, SSLMode):
        return mode
    try:
        return SSLMode(str(mode).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid SSL mode '{mode}'. Use one of: {', '.join(VALID_SSL_MODES)}"
        ) from None


def build_ssl_options(mode: SSLMode | str) -> SSLOptions:
    return _POLICY[coerce_ssl_mode(mode)]


def translate(mode: SSLMode | str) -> tuple[str, SSLOptions]:
    """Return the connection-string parameter and transport options for a mode."""
    ssl_mode = coerce_ssl_mode(mode)
    return f"sslmode={ssl_mode.value}", _POLICY[ssl_mode]


def _split_query(url: str) -> tuple[str, str, str]:
    """Split ``url`` into (before query, query, "#fragment") at the same
    boundaries as ``urlsplit``. Userinfo may hold a literal ``&``; it can
    never hold an unescaped ``?`` or ``#``.
    """
    base, hash_sign, fragment = url.partition("#")
    head, _, query = base.partition("?")
    return head, query, hash_sign + fragment


def strip_ssl_params(url: str) -> str:
    """Remove every ``ssl``/``sslmode`` query parameter from a URL."""
    head, query, fragment = _split_query(url)
    # Other parameters are kept byte for byte, placeholders included
    kept = [
        pair
        for pair in query.split("&")
        if pair and pair.partition("=")[0].lower() not in _SSL_PARAM_KEYS
    ]
    return head + ("?" + "&".join(kept) if kept else "") + fragment


def apply_ssl_mode(url: str, mode: SSLMode | str) -> str:
    """Replace any SSL query parameter in ``url`` with ``sslmode=<mode>``."""
    param, _ = translate(mode)
    head, query, fragment = _split_query(strip_ssl_params(url))
    query = f"{query}&{param}" if query else param
    return f"{head}?{query}{fragment}"


def parse_ssl_mode(url: str) -> SSLMode | None:
    """Read the ``sslmode`` parameter back out of a URL, if present."""
    for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        if key.lower() == "sslmode":
            return coerce_ssl_mode(value)
    return None


def _url_requests_tls(url: str) -> bool:
    parts = urlsplit(url)
    if parts.scheme.lower() == "mongodb+srv":
        return True
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key.lower() in ("tls", "ssl") and value.lower() == "true":
            return True
    return False
