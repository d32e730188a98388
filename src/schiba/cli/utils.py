"""Shared helpers for the schiba CLI: console, logging setup, error handling."""

import functools
import logging
import signal
import sys
from importlib.metadata import PackageNotFoundError, version

import click
from rich.console import Console
from rich.markup import escape

from schiba.config import Settings, get_settings
from schiba.errors import SchibaError
from schiba.registry import ConnectionStore

console = Console()
err_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def _get_cli_version() -> str:
    """Get installed package version.

    Falls back to "unknown" when package metadata isn't available
    (e.g. running from a source checkout without installation).
    """
    try:
        return version("schiba")
    except PackageNotFoundError:
        return "unknown"


def _handle_sigint(signum, frame):
    """Handle Ctrl-C gracefully."""
    console.print("\n[dim]Cancelled.[/dim]")
    sys.exit(130)


def install_sigint_handler() -> None:
    signal.signal(signal.SIGINT, _handle_sigint)


def setup_logging(verbose: bool, settings: Settings | None = None) -> None:
    """Configure root logging once, on stderr."""
    settings = settings or get_settings()
    level = logging.DEBUG if verbose else settings.log_level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


def get_store() -> ConnectionStore:
    """The store built for this invocation by the group callback."""
    ctx = click.get_current_context()
    return ctx.find_object(ConnectionStore) or ConnectionStore.from_settings()


def resolve_timeout(store: ConnectionStore, override: int | None) -> int:
    """Command-line value, then stored preference, then SCHIBA_TIMEOUT_MS."""
    if override is not None:
        return override
    if store.exists():
        return store.get_preferences().timeout
    return get_settings().timeout_ms


def _verbose() -> bool:
    ctx = click.get_current_context(silent=True)
    return bool(ctx and ctx.meta.get("schiba.verbose"))


def handle_errors(func):
    """Print errors and exit 1. Tracebacks only with --verbose.

    SchibaError messages already carry their own guidance. Anything else
    (an unclassified driver error) gets a generic hint.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (click.ClickException, click.Abort):
            raise
        except SchibaError as e:
            if _verbose():
                err_console.print_exception()
            first, _, rest = e.message.partition("\n")
            err_console.print(f"[red]Error: {escape(first)}[/red]")
            if rest:
                err_console.print(rest, highlight=False)
            sys.exit(1)
        except Exception as e:
            if _verbose():
                err_console.print_exception()
            logger.debug("Unhandled %s in %s", type(e).__name__, func.__name__)
            tag = kwargs.get("tag") or "<tag>"
            err_console.print(f"[red]Error: {escape(str(e))}[/red]", highlight=False)
            err_console.print(
                "Check the connection settings with 'schiba list', then adjust them with:\n"
                f"  schiba update {tag} <property> <value>",
                highlight=False,
            )
            sys.exit(1)

    return wrapper
