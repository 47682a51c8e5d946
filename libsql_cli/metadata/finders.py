"""Primary and foreign key discovery from stored DDL and pragma output.

The remote service has no structured catalog API. Keys are recovered by
matching the `CREATE TABLE` text kept in `sqlite_schema` and, where the text
does not say enough, by reading `PRAGMA table_info` / `PRAGMA
foreign_key_list`. Callers should go through :func:`describe_table` (or the
two finders) so the regex strategy can be swapped for a proper DDL reader
without touching them.
"""

from __future__ import annotations

import re
from typing import Any

from libsql_cli.client.types import coerce_int, coerce_text
from libsql_cli.shared.exceptions import TableNotFoundError, ValidationError
from libsql_cli.shared.logging import Logger

from .sqltext import IDENTIFIER_PATTERN, escape, split_column_list, unquote_identifier
from .types import ForeignKey, ForeignKeyRule, PrimaryKey, SqlExecutor, TableKeys

SYSTEM_TABLES = frozenset({"sqlite_schema", "sqlite_master"})

PK_NAMED_PATTERN = re.compile(
    rf"\bCONSTRAINT\s*(?P<name>{IDENTIFIER_PATTERN})\s*PRIMARY\s+KEY\s*\((?P<columns>.*?)\)",
    re.IGNORECASE | re.DOTALL,
)
PK_UNNAMED_PATTERN = re.compile(
    r"\bPRIMARY\s+KEY\s*\((?P<columns>.*?)\)",
    re.IGNORECASE | re.DOTALL,
)
FK_NAMED_PATTERN = re.compile(
    rf"\bCONSTRAINT\s*(?P<name>{IDENTIFIER_PATTERN})?\s*FOREIGN\s+KEY\s*\((?P<columns>.*?)\)",
    re.IGNORECASE | re.DOTALL,
)

_TABLE_DDL_SQL = (
    "SELECT sql FROM sqlite_schema WHERE lower(name) = lower(?) AND type IN ('table', 'view')"
)


def require_table_name(table: str | None) -> str:
    if table is None or not table.strip():
        raise ValidationError(f"Invalid table name: '{table}'")
    return table


def find_primary_key(
    client: SqlExecutor, table: str, *, logger: Logger | None = None
) -> PrimaryKey | None:
    """Return the table's primary key, or None when it has none."""
    table = require_table_name(table)
    if table.lower() in SYSTEM_TABLES:
        return None

    ddl = fetch_table_ddl(client, table)
    name: str | None = None
    columns: list[str] = []

    match = PK_NAMED_PATTERN.search(ddl)
    if match:
        name = unquote_identifier(match.group("name"))
        columns = split_column_list(match.group("columns"))
    else:
        match = PK_UNNAMED_PATTERN.search(ddl)
        if match:
            columns = split_column_list(match.group("columns"))

    if not columns:
        if logger:
            logger.debug(f"No PRIMARY KEY clause in DDL for '{table}'; reading table_info")
        columns = _pragma_primary_key_columns(client, table)

    if not columns:
        return None
    return PrimaryKey(table=table, name=name, columns=tuple(columns))


def find_foreign_keys(client: SqlExecutor, table: str) -> list[ForeignKey]:
    """Return the table's foreign keys in `PRAGMA foreign_key_list` order."""
    table = require_table_name(table)
    names = _foreign_key_names(client, table)
    result = client.execute(f"PRAGMA foreign_key_list('{escape(table)}')")

    groups: list[dict[str, Any]] = []
    previous_id: int | None = None
    for row in range(len(result)):
        key_id = coerce_int(result.value(row, "id"))
        if key_id != previous_id:
            position = len(groups)
            groups.append(
                {
                    "name": names[position] if position < len(names) else None,
                    "parent_table": coerce_text(result.value(row, "table")) or "",
                    "on_update": ForeignKeyRule.from_pragma(coerce_text(result.value(row, "on_update"))),
                    "on_delete": ForeignKeyRule.from_pragma(coerce_text(result.value(row, "on_delete"))),
                    "match": coerce_text(result.value(row, "match")),
                    "columns": [],
                }
            )
            previous_id = key_id
        groups[-1]["columns"].append(
            (coerce_text(result.value(row, "from")) or "", coerce_text(result.value(row, "to")))
        )

    return [
        ForeignKey(
            name=group["name"],
            parent_table=group["parent_table"],
            child_table=table,
            columns=tuple(group["columns"]),
            on_update=group["on_update"],
            on_delete=group["on_delete"],
            match=group["match"],
        )
        for group in groups
    ]


def describe_table(client: SqlExecutor, table: str, *, logger: Logger | None = None) -> TableKeys:
    """Primary key and foreign keys of one table."""
    primary_key = find_primary_key(client, table, logger=logger)
    foreign_keys = find_foreign_keys(client, table)
    return TableKeys(table=table, primary_key=primary_key, foreign_keys=tuple(foreign_keys))


def fetch_table_ddl(client: SqlExecutor, table: str) -> str:
    """Stored `CREATE` text of a table or view; missing entries raise."""
    result = client.execute(_TABLE_DDL_SQL, [table])
    if not len(result):
        raise TableNotFoundError(f"Table not found: '{table}'")
    return coerce_text(result.value(0, "sql")) or ""


def _pragma_primary_key_columns(client: SqlExecutor, table: str) -> list[str]:
    result = client.execute(f"PRAGMA table_info('{escape(table)}')")
    flagged: list[tuple[int, str]] = []
    for row in range(len(result)):
        position = coerce_int(result.value(row, "pk"))
        if position > 0:
            flagged.append((position, coerce_text(result.value(row, "name")) or ""))
    flagged.sort()
    return [unquote_identifier(column) or column for _, column in flagged]


def _foreign_key_names(client: SqlExecutor, table: str) -> list[str | None]:
    """Constraint names in declaration order, reversed to line up with the pragma."""
    result = client.execute(
        "SELECT sql FROM sqlite_schema WHERE lower(name) = lower(?) AND type = 'table'",
        [table],
    )
    if not len(result):
        return []
    ddl = coerce_text(result.value(0, "sql")) or ""
    names = [unquote_identifier(match.group("name")) for match in FK_NAMED_PATTERN.finditer(ddl)]
    names.reverse()
    return names
