"""schiba - a named database connection registry with schema introspection."""

__version__ = "0.4.0"
