"""Data structures shared across libsql-query modules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Result set prepared for rendering, after the row limit is applied."""

    columns: tuple[str, ...]
    rows: Sequence[tuple[Any, ...]]
    limit_applied: bool = False
    limit_value: int | None = None
    description: str | None = None
    truncated: bool = False
    update_count: int = 0
