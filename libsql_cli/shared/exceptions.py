"""Project-wide custom exceptions."""

from __future__ import annotations


class LibSqlError(Exception):
    """Base exception for the libsql CLI suite."""


class ConfigurationError(LibSqlError):
    """Raised when configuration loading or validation fails."""


class ValidationError(LibSqlError):
    """Raised when caller input is rejected before any network call."""


class TransportError(LibSqlError):
    """Raised when the HTTP exchange with the server fails."""


class AuthenticationRequiredError(TransportError):
    """Raised when the server answers HTTP 401."""


class AccessDeniedError(TransportError):
    """Raised when the server answers HTTP 403."""


class ProtocolError(LibSqlError):
    """Raised when the server response does not follow the wire protocol."""


class StatementError(ProtocolError):
    """Raised when a statement in a batch reports a server-side error."""

    def __init__(self, message: str, *, index: int, sql: str) -> None:
        super().__init__(f"Statement {index + 1} failed: {message}")
        self.message = message
        self.index = index
        self.sql = sql


class ColumnNotFoundError(LibSqlError):
    """Raised when a result set lookup names a column it does not have."""


class MetadataError(LibSqlError):
    """Raised when catalog metadata cannot be derived from the schema."""


class TableNotFoundError(MetadataError):
    """Raised when the schema catalog has no entry for a table."""
