"""Command-line and client tooling for SQLite-compatible HTTP services."""

__version__ = "1.0.0"
