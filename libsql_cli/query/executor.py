"""Query execution helpers for libsql-query."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from libsql_cli.client.types import ExecutionResult, Statement
from libsql_cli.metadata.types import SqlExecutor
from libsql_cli.shared.exceptions import ValidationError

from .types import QueryResult

DEFAULT_ROW_LIMIT = 200


def execute_sql(
    client: SqlExecutor,
    *,
    query: str,
    params: Mapping[str, object] | Sequence[object] | None = None,
    limit: int | None = None,
    default_limit: int = DEFAULT_ROW_LIMIT,
) -> QueryResult:
    """Execute ad-hoc SQL and return a structured result set."""
    if not query.strip():
        raise ValidationError("Query text must not be empty.")
    result = client.execute(query, params or None)
    return to_query_result(result, limit=normalise_limit(limit, default_limit))


def execute_batch(
    client: SqlExecutor,
    *,
    statements: Sequence[str],
    limit: int | None = None,
    default_limit: int = DEFAULT_ROW_LIMIT,
) -> list[QueryResult]:
    """Send every statement in one request; one result set per statement."""
    batch = [Statement(text) for text in statements if text.strip()]
    if not batch:
        raise ValidationError("At least one statement is required.")
    effective_limit = normalise_limit(limit, default_limit)
    return [
        to_query_result(result, limit=effective_limit, description=statement.sql)
        for statement, result in zip(batch, client.execute_batch(batch))
    ]


def to_query_result(
    result: ExecutionResult,
    *,
    limit: int | None,
    description: str | None = None,
) -> QueryResult:
    rows: list[tuple[Any, ...]] = list(result.rows)
    truncated = limit is not None and len(rows) > limit
    if truncated:
        rows = rows[:limit]
    return QueryResult(
        columns=result.columns,
        rows=rows,
        limit_applied=limit is not None,
        limit_value=limit,
        description=description,
        truncated=truncated,
        update_count=result.update_count,
    )


def normalise_limit(limit: int | None, default: int = DEFAULT_ROW_LIMIT) -> int | None:
    if limit is None:
        limit = default
    if limit <= 0:
        return None
    return limit
