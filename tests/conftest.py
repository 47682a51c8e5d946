"""Shared pytest fixtures for libsql-cli tests.

Metadata and catalog tests need a server that really executes SQL. The
`make_client` fixture wraps an in-memory SQLite database in the same
`execute` / `execute_batch` / `server_version` surface the HTTP client
exposes, translating SQLite errors into the statement errors a server would
report.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any

import pytest

from libsql_cli.client.params import is_indexed
from libsql_cli.client.types import ExecutionResult, Statement
from libsql_cli.shared.exceptions import StatementError


class SqliteClient:
    """Executes statements locally and returns wire-shaped results."""

    def __init__(self, connection: sqlite3.Connection, version: str = "libsql 0.24.32 (sqld)") -> None:
        self.connection = connection
        self.version = version
        self.statements: list[str] = []
        self.batches = 0
        self.version_requests = 0

    def execute(self, sql: str, params: Mapping[Any, Any] | Sequence[Any] | None = None) -> ExecutionResult:
        if params is None:
            statement = Statement(sql)
        elif isinstance(params, Mapping):
            statement = Statement(sql, dict(params))
        else:
            statement = Statement.positional(sql, *params)
        return self.execute_batch([statement])[0]

    def execute_batch(self, statements: Sequence[Statement | str]) -> list[ExecutionResult]:
        self.batches += 1
        results: list[ExecutionResult] = []
        for index, item in enumerate(statements):
            statement = item if isinstance(item, Statement) else Statement(item)
            self.statements.append(statement.sql)
            try:
                cursor = self.connection.execute(statement.sql, _bindings(statement))
                description = cursor.description or ()
                rows = tuple(tuple(row) for row in cursor.fetchall())
            except sqlite3.Error as exc:
                raise StatementError(str(exc), index=index, sql=statement.sql) from exc
            results.append(
                ExecutionResult(
                    columns=tuple(column[0] for column in description),
                    rows=rows,
                    rows_written=0 if description else max(cursor.rowcount, 0),
                )
            )
        return results

    def server_version(self) -> str:
        self.version_requests += 1
        return self.version

    def close(self) -> None:
        pass

    def __enter__(self) -> SqliteClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _bindings(statement: Statement) -> Sequence[Any] | dict[str, Any]:
    if not statement.params:
        return ()
    if is_indexed(statement.params):
        return [statement.params[key] for key in sorted(statement.params)]
    return {str(key).lstrip(":@$"): value for key, value in statement.params.items()}


@pytest.fixture()
def make_client() -> Iterator[Callable[..., SqliteClient]]:
    """Factory returning a client over a fresh in-memory database seeded by `script`."""

    connections: list[sqlite3.Connection] = []

    def factory(script: str = "", **kwargs: Any) -> SqliteClient:
        connection = sqlite3.connect(":memory:")
        connection.executescript(script)
        connections.append(connection)
        return SqliteClient(connection, **kwargs)

    yield factory
    for connection in connections:
        connection.close()


@pytest.fixture()
def shop_schema() -> str:
    """Three related tables with named, unnamed, and composite keys."""

    return """
        CREATE TABLE customers (
            id INTEGER PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            name TEXT DEFAULT 'anonymous'
        );
        CREATE TABLE orders (
            order_id INTEGER,
            customer_id INTEGER NOT NULL,
            placed_at TEXT,
            CONSTRAINT pk_orders PRIMARY KEY (order_id),
            CONSTRAINT fk_orders_customer FOREIGN KEY (customer_id)
                REFERENCES customers (id) ON DELETE CASCADE
        );
        CREATE TABLE order_lines (
            order_id INTEGER NOT NULL,
            line_no INTEGER NOT NULL,
            customer_id INTEGER,
            sku TEXT,
            PRIMARY KEY (order_id, line_no),
            CONSTRAINT fk_lines_order FOREIGN KEY (order_id) REFERENCES orders (order_id)
                ON UPDATE SET NULL,
            CONSTRAINT fk_lines_customer FOREIGN KEY (customer_id) REFERENCES customers
        );
        CREATE INDEX idx_orders_placed ON orders (placed_at, customer_id);
        CREATE VIEW recent_orders AS SELECT * FROM orders WHERE placed_at > '2024-01-01';
    """
