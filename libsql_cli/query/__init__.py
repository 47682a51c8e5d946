"""libsql-query CLI package."""
