"""Escaping and identifier helpers for generated SQL text.

Every piece of table, column, or index text interpolated into generated SQL
passes through :func:`escape` exactly once. Escaping twice doubles the
apostrophes again, so callers must not pre-escape.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

_QUOTE_PAIRS = (("`", "`"), ('"', '"'), ("[", "]"))

IDENTIFIER_PATTERN = r'"[^"]*"|`[^`]*`|\[[^\]]*\]|[^\s(),]+'
_LEADING_IDENTIFIER = re.compile(IDENTIFIER_PATTERN)


def escape(value: str) -> str:
    """Double every apostrophe."""
    return value.replace("'", "''")


def quote_literal(value: str | None) -> str:
    """Render text as a single-quoted SQL literal, or NULL."""
    if value is None:
        return "NULL"
    return f"'{escape(value)}'"


def unquote_identifier(name: str | None) -> str | None:
    """Strip one pair of backtick, double-quote, or bracket quotes."""
    if name is None:
        return None
    name = name.strip()
    if len(name) > 2:
        for opening, closing in _QUOTE_PAIRS:
            if name.startswith(opening) and name.endswith(closing):
                return name[1:-1]
    return name


def split_column_list(text: str) -> list[str]:
    """Column names from a `(a, "b" DESC, c COLLATE nocase)` list body."""
    columns: list[str] = []
    for fragment in text.split(","):
        fragment = fragment.strip()
        if not fragment:
            continue
        match = _LEADING_IDENTIFIER.match(fragment)
        token = match.group(0) if match else fragment
        columns.append(unquote_identifier(token) or token)
    return columns


def union_all(selects: Iterable[str]) -> str:
    return " UNION ALL ".join(selects)
