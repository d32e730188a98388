"""schiba CLI package.

Re-exports `main` (the click group) and the shared console helpers:

    from schiba.cli import main
"""

from schiba.cli.main import main
from schiba.cli.utils import console, err_console, get_store, handle_errors, setup_logging

__all__ = [
    "main",
    "console",
    "err_console",
    "get_store",
    "handle_errors",
    "setup_logging",
]
