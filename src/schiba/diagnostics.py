"""Turn low-level connection failures into actionable messages.

Matching and formatting are kept apart: ``RULES`` is a ranked list of
``(predicate, category)`` pairs evaluated in order, and ``format_diagnostic``
renders a category for a given connection. Errors that match no rule are
passed through untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import NoReturn

from schiba.errors import DatabaseConnectionError, SchibaError
from schiba.models import ConnectionConfig

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    CONNECTION_REFUSED = "connection_refused"
    HOST_UNREACHABLE = "host_unreachable"
    DNS_FAILURE = "dns_failure"
    TIMEOUT = "timeout"
    TLS_REQUIRED = "tls_required"
    TLS_HOSTNAME_MISMATCH = "tls_hostname_mismatch"
    SSL_UNSUPPORTED = "ssl_unsupported"
    AUTH_FAILED = "auth_failed"


Predicate = Callable[[BaseException, str], bool]


def error_text(exc: BaseException) -> str:
    """Lowercased message of ``exc`` and every exception chained under it.

    SQLAlchemy keeps the driver exception on ``.orig``; pymongo folds the
    underlying socket error into its own message.
    """
    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        parts.append(str(current))
        orig = getattr(current, "orig", None)
        if isinstance(orig, BaseException) and id(orig) not in seen:
            parts.append(str(orig))
            seen.add(id(orig))
        current = current.__cause__ or current.__context__
    return "\n".join(parts).lower()


def _contains(*needles: str) -> Predicate:
    return lambda exc, text: any(needle in text for needle in needles)


def _instance_of(*types: type[BaseException]) -> Predicate:
    def check(exc: BaseException, text: str) -> bool:
        current: BaseException | None = exc
        while current is not None:
            if isinstance(current, types) or isinstance(getattr(current, "orig", None), types):
                return True
            current = current.__cause__
        return False

    return check


def _class_name_contains(fragment: str) -> Predicate:
    return lambda exc, text: fragment in type(exc).__name__


def _any(*predicates: Predicate) -> Predicate:
    return lambda exc, text: any(p(exc, text) for p in predicates)


# Order matters: the more specific TLS and DNS messages often also mention
# a timeout (pymongo appends "Timeout: 30s" to every selection failure).
RULES: list[tuple[Predicate, ErrorCategory]] = [
    (
        _contains(
            "hostname mismatch",
            "does not match host name",
            "doesn't match",
            "ip address mismatch",
            "certificate is not valid for",
        ),
        ErrorCategory.TLS_HOSTNAME_MISMATCH,
    ),
    (_contains("server does not support ssl"), ErrorCategory.SSL_UNSUPPORTED),
    (
        _contains(
            "ssl connection is required",
            "ssl/tls required",
            "ssl required",
            "requires ssl",
            "no encryption",
        ),
        ErrorCategory.TLS_REQUIRED,
    ),
    (
        _contains(
            "password authentication failed",
            "authentication failed",
            "no password supplied",
            "sasl authentication",
        ),
        ErrorCategory.AUTH_FAILED,
    ),
    (
        _contains(
            "could not translate host name",
            "name or service not known",
            "nodename nor servname",
            "temporary failure in name resolution",
            "getaddrinfo",
            "enotfound",
            "dns query",
            "dns operation",
        ),
        ErrorCategory.DNS_FAILURE,
    ),
    (
        _any(_instance_of(ConnectionRefusedError), _contains("connection refused", "econnrefused")),
        ErrorCategory.CONNECTION_REFUSED,
    ),
    (
        _contains(
            "no route to host",
            "network is unreachable",
            "host is unreachable",
            "ehostunreach",
            "enetunreach",
        ),
        ErrorCategory.HOST_UNREACHABLE,
    ),
    (
        _any(
            _instance_of(TimeoutError),
            _class_name_contains("Timeout"),
            _contains("timeout expired", "timed out", "etimedout"),
        ),
        ErrorCategory.TIMEOUT,
    ),
]


def match_category(exc: BaseException) -> ErrorCategory | None:
    """First category whose predicate accepts ``exc``."""
    text = error_text(exc)
    for predicate, category in RULES:
        if predicate(exc, text):
            return category
    return None


@dataclass(frozen=True)
class Remediation:
    title: str
    steps: tuple[str, ...]
    command: str | None = None


def remediation_for(category: ErrorCategory, tag: str) -> Remediation:
    tag = tag or "<tag>"
    remediations = {
        ErrorCategory.CONNECTION_REFUSED: Remediation(
            "Connection refused",
            (
                "Check that the database server is running",
                "Check the host and port of the connection",
                "Check that no firewall blocks the port",
            ),
            f"schiba update {tag} port <port>",
        ),
        ErrorCategory.HOST_UNREACHABLE: Remediation(
            "Host unreachable",
            (
                "Check your network connection (VPN, proxy)",
                "Check that the host address is correct",
            ),
            f"schiba update {tag} host <host>",
        ),
        ErrorCategory.DNS_FAILURE: Remediation(
            "Host name could not be resolved",
            (
                "Check the host name for typos",
                "Check your DNS settings or VPN connection",
            ),
            f"schiba update {tag} host <host>",
        ),
        ErrorCategory.TIMEOUT: Remediation(
            "Connection timed out",
            (
                "Check that the server is reachable from this machine",
                "Check firewall rules and IP allow-lists",
                "Retry with a longer timeout",
            ),
            f"schiba fetch {tag} --timeout 30000",
        ),
        ErrorCategory.TLS_REQUIRED: Remediation(
            "The server (or a proxy in front of it) requires SSL",
            ("Enable SSL for this connection",),
            f"schiba update {tag} ssl-mode require",
        ),
        ErrorCategory.TLS_HOSTNAME_MISMATCH: Remediation(
            "SSL certificate does not match the host name",
            (
                "Connect using the host name the certificate was issued for",
                "Or keep verifying the certificate chain but skip the host name check",
            ),
            f"schiba update {tag} ssl-mode verify-ca",
        ),
        ErrorCategory.SSL_UNSUPPORTED: Remediation(
            "The server does not support SSL connections",
            ("Disable SSL for this connection",),
            f"schiba update {tag} ssl-mode disable",
        ),
        ErrorCategory.AUTH_FAILED: Remediation(
            "Authentication failed: invalid username or password",
            (
                "Check the username and password",
                "Check that the user may connect to this database",
            ),
            f"schiba update {tag} password <password>",
        ),
    }
    return remediations[category]


def format_diagnostic(category: ErrorCategory, tag: str) -> str:
    remediation = remediation_for(category, tag)
    lines = [f"{remediation.title}.", "", "To fix this:"]
    lines.extend(f"  - {step}" for step in remediation.steps)
    if remediation.command:
        lines.extend(["", "Suggested command:", f"  {remediation.command}"])
    if tag:
        lines.extend(["", "Then test your connection:", f"  schiba test {tag}"])
    return "\n".join(lines)


class ConnectionDiagnosticError(DatabaseConnectionError):
    """A classified connection failure with remediation steps."""

    def __init__(self, category: ErrorCategory, tag: str, original: BaseException) -> None:
        remediation = remediation_for(category, tag)
        super().__init__(
            format_diagnostic(category, tag),
            details={"category": category.value, "original": str(original)},
        )
        self.category = category
        self.tag = tag
        self.steps = remediation.steps
        self.command = remediation.command


def classify_error(exc: BaseException, config: ConnectionConfig) -> BaseException:
    """Return a ConnectionDiagnosticError for known failures, else ``exc`` itself."""
    if isinstance(exc, SchibaError):
        return exc
    category = match_category(exc)
    if category is None:
        return exc
    logger.debug("Classified %s as %s", type(exc).__name__, category.value)
    return ConnectionDiagnosticError(category, config.tag, exc)


def raise_classified(exc: BaseException, config: ConnectionConfig) -> NoReturn:
    """Re-raise ``exc``, replaced by its diagnostic when one applies."""
    classified = classify_error(exc, config)
    if classified is exc:
        raise exc
    raise classified from exc
