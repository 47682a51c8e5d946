"""Catalog row sets assembled from key finders and pragma calls.

The service only executes SQL, so each catalog listing is produced by
rendering the derived metadata as ``SELECT <literals> UNION ALL SELECT ...``
and running that text through the client. An empty listing is rendered as the
same projection over a single placeholder row with ``LIMIT 0`` so the column
shape survives.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from libsql_cli.client.types import ExecutionResult, coerce_int, coerce_text
from libsql_cli.shared.exceptions import MetadataError, StatementError, ValidationError
from libsql_cli.shared.logging import Logger, get_logger

from .finders import find_foreign_keys, find_primary_key, require_table_name
from .sqltext import escape, quote_literal, union_all
from .types import ForeignKey, ForeignKeyRule, IndexInfo, SqlExecutor

VARCHAR_TYPE_CODE = 12
INDEX_TYPE_OTHER = 3
DEFERRABILITY_INITIALLY_DEFERRED = 5
VERSION_PATTERN = re.compile(r"(\w+)\s+([0-9.]+)\s+(.+)")

_KEY_PROJECTION = (
    "SELECT NULL AS PKTABLE_CAT, NULL AS PKTABLE_SCHEM, ptn AS PKTABLE_NAME, pcn AS PKCOLUMN_NAME, "
    "NULL AS FKTABLE_CAT, NULL AS FKTABLE_SCHEM, ftn AS FKTABLE_NAME, fcn AS FKCOLUMN_NAME, "
    "ks AS KEY_SEQ, ur AS UPDATE_RULE, dr AS DELETE_RULE, fkn AS FK_NAME, pkn AS PK_NAME, "
    f"{DEFERRABILITY_INITIALLY_DEFERRED} AS DEFERRABILITY FROM ("
)
_EMPTY_KEY_ROW = (
    "SELECT '' AS ptn, '' AS pcn, '' AS ftn, '' AS fcn, -1 AS ks, "
    f"{int(ForeignKeyRule.NO_ACTION)} AS ur, {int(ForeignKeyRule.NO_ACTION)} AS dr, "
    "'' AS fkn, '' AS pkn"
)


@dataclass(frozen=True, slots=True)
class _KeyRow:
    parent_table: str
    parent_column: str | None
    child_table: str
    child_column: str
    key_seq: int
    on_update: ForeignKeyRule
    on_delete: ForeignKeyRule
    fk_name: str | None
    pk_name: str | None

    def render(self) -> str:
        return (
            f"SELECT {quote_literal(self.parent_table)} AS ptn, "
            f"{quote_literal(self.parent_column)} AS pcn, "
            f"{quote_literal(self.child_table)} AS ftn, "
            f"{quote_literal(self.child_column)} AS fcn, "
            f"{self.key_seq} AS ks, "
            f"{int(self.on_update)} AS ur, {int(self.on_delete)} AS dr, "
            f"{quote_literal(self.fk_name or '')} AS fkn, "
            f"{quote_literal(self.pk_name or '')} AS pkn"
        )


class CatalogBuilder:
    """Produces table, column, key, and index listings for one client."""

    def __init__(self, client: SqlExecutor, *, logger: Logger | None = None) -> None:
        self._client = client
        self._logger = logger or get_logger()

    # ------------------------------------------------------------------
    # Server identity

    def product_name(self) -> str:
        return self._client.server_version()

    def product_version(self) -> str:
        return parse_product_version(self._client.server_version())

    def product(self) -> tuple[str, str]:
        """Return the product name and version from a single `/version` request."""
        line = self._client.server_version()
        return line, parse_product_version(line)

    # ------------------------------------------------------------------
    # Tables and columns

    def tables(
        self,
        table_pattern: str | None = None,
        types: Sequence[str] = ("table", "view"),
        *,
        include_system: bool = False,
    ) -> ExecutionResult:
        if not types:
            raise ValidationError("At least one table type is required.")
        conditions = [
            "type IN (" + ", ".join(quote_literal(kind.lower()) for kind in types) + ")"
        ]
        if table_pattern:
            conditions.append(f"name LIKE {quote_literal(table_pattern)}")
        if not include_system:
            conditions.append("name NOT LIKE 'sqlite\\_%' ESCAPE '\\'")
        sql = (
            "SELECT NULL AS TABLE_CAT, NULL AS TABLE_SCHEM, name AS TABLE_NAME, "
            "upper(type) AS TABLE_TYPE, NULL AS REMARKS, NULL AS TYPE_CAT, NULL AS TYPE_SCHEM, "
            "NULL AS TYPE_NAME FROM sqlite_schema WHERE "
            + " AND ".join(conditions)
            + " ORDER BY TABLE_TYPE, TABLE_NAME"
        )
        return self._run(sql)

    def columns(self, table: str, column_pattern: str | None = None) -> ExecutionResult:
        table = require_table_name(table)
        literal = quote_literal(table)
        sql = (
            f"SELECT NULL AS TABLE_CAT, NULL AS TABLE_SCHEM, {literal} AS TABLE_NAME, "
            f"name AS COLUMN_NAME, {VARCHAR_TYPE_CODE} AS DATA_TYPE, type AS TYPE_NAME, "
            '0 AS COLUMN_SIZE, CASE WHEN "notnull" THEN 0 ELSE 1 END AS NULLABLE, '
            "NULL AS REMARKS, dflt_value AS COLUMN_DEF, cid + 1 AS ORDINAL_POSITION, "
            """CASE WHEN "notnull" THEN 'NO' ELSE 'YES' END AS IS_NULLABLE """
            f"FROM pragma_table_info({literal})"
        )
        if column_pattern:
            sql += f" WHERE name LIKE {quote_literal(column_pattern)}"
        sql += " ORDER BY cid"
        return self._run(sql)

    # ------------------------------------------------------------------
    # Keys

    def primary_keys(self, table: str) -> ExecutionResult:
        table = require_table_name(table)
        primary_key = find_primary_key(self._client, table, logger=self._logger)
        head = (
            f"SELECT NULL AS TABLE_CAT, NULL AS TABLE_SCHEM, {quote_literal(table)} AS TABLE_NAME, "
            "cn AS COLUMN_NAME, ks AS KEY_SEQ, pk AS PK_NAME FROM ("
        )
        if primary_key is None:
            return self._run(head + "SELECT NULL AS pk, NULL AS cn, 0 AS ks) LIMIT 0")

        selects = [
            f"SELECT {quote_literal(primary_key.name)} AS pk, {quote_literal(column)} AS cn, {seq} AS ks"
            for seq, column in enumerate(primary_key.columns, start=1)
        ]
        return self._run(head + union_all(selects) + ") ORDER BY cn")

    def imported_keys(self, table: str) -> ExecutionResult:
        """Foreign keys owned by `table`, one row per column pair."""
        table = require_table_name(table)
        rows = self._foreign_key_rows(table)
        return self._run_key_rows(rows, order_by="PKTABLE_NAME, KEY_SEQ")

    def exported_keys(self, table: str) -> ExecutionResult:
        """Foreign keys in any table that reference `table`."""
        table = require_table_name(table)
        target = table.lower()
        pk_lookup: tuple[str | None, tuple[str, ...]] | None = None
        rows: list[_KeyRow] = []
        for candidate in self._table_names():
            for foreign_key in find_foreign_keys(self._client, candidate):
                if foreign_key.parent_table.lower() != target:
                    continue
                if pk_lookup is None:
                    pk_lookup = self._parent_key(table)
                rows.extend(_expand_key_rows(foreign_key, *pk_lookup))
        return self._run_key_rows(rows, order_by="FKTABLE_NAME, KEY_SEQ")

    def cross_reference(self, parent_table: str | None, foreign_table: str | None) -> ExecutionResult:
        """Foreign keys in `foreign_table` that reference `parent_table`."""
        if parent_table is None and foreign_table is None:
            raise ValidationError("A parent table or a foreign table is required.")
        if parent_table is None:
            return self.imported_keys(foreign_table or "")
        if foreign_table is None:
            return self.exported_keys(parent_table)
        parent_table = require_table_name(parent_table)
        foreign_table = require_table_name(foreign_table)
        rows = self._foreign_key_rows(foreign_table, parent_filter=parent_table)
        return self._run_key_rows(rows, order_by="FKTABLE_NAME, KEY_SEQ")

    # ------------------------------------------------------------------
    # Indexes

    def indexes(self, table: str) -> list[IndexInfo]:
        """Index descriptors for `table`, columns ordered by position."""
        table = require_table_name(table)
        listing = self._client.execute(f"PRAGMA index_list('{escape(table)}')")
        entries = [
            (
                coerce_text(listing.value(row, "name")) or "",
                coerce_int(listing.value(row, "unique")) == 1,
            )
            for row in range(len(listing))
        ]
        if not entries:
            return []

        details = self._client.execute_batch(
            [f"PRAGMA index_info('{escape(name)}')" for name, _ in entries]
        )
        indexes: list[IndexInfo] = []
        for (name, unique), info in zip(entries, details):
            columns = sorted(
                (
                    coerce_int(info.value(row, "seqno")) + 1,
                    coerce_text(info.value(row, "name")),
                )
                for row in range(len(info))
            )
            indexes.append(IndexInfo(name=name, unique=unique, columns=tuple(columns)))
        return indexes

    def index_info(self, table: str, unique_only: bool = False) -> ExecutionResult:
        """One row per indexed column, built as a single compound SELECT."""
        table = require_table_name(table)
        head = (
            f"SELECT NULL AS TABLE_CAT, NULL AS TABLE_SCHEM, {quote_literal(table)} AS TABLE_NAME, "
            "un AS NON_UNIQUE, NULL AS INDEX_QUALIFIER, n AS INDEX_NAME, "
            f"{INDEX_TYPE_OTHER} AS TYPE, op AS ORDINAL_POSITION, cn AS COLUMN_NAME, "
            "NULL AS ASC_OR_DESC, 0 AS CARDINALITY, 0 AS PAGES, NULL AS FILTER_CONDITION FROM ("
        )
        selects = [
            f"SELECT {0 if index.unique else 1} AS un, {quote_literal(index.name)} AS n, "
            f"{position} AS op, {quote_literal(column)} AS cn"
            for index in self.indexes(table)
            if index.unique or not unique_only
            for position, column in index.columns
        ]
        if not selects:
            return self._run(head + "SELECT NULL AS un, NULL AS n, NULL AS op, NULL AS cn) LIMIT 0")
        return self._run(
            head + union_all(selects) + ") ORDER BY NON_UNIQUE, INDEX_NAME, ORDINAL_POSITION"
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _run(self, sql: str) -> ExecutionResult:
        self._logger.sql("catalog", sql)
        return self._client.execute(sql)

    def _run_key_rows(self, rows: Sequence[_KeyRow], *, order_by: str) -> ExecutionResult:
        """Run one `UNION ALL` term per row.

        Listings past the server's compound SELECT limit (500 terms by default)
        fail with `StatementError`.
        """
        if not rows:
            return self._run(_KEY_PROJECTION + _EMPTY_KEY_ROW + ") LIMIT 0")
        body = union_all(row.render() for row in rows)
        return self._run(_KEY_PROJECTION + body + f") ORDER BY {order_by}")

    def _foreign_key_rows(self, table: str, parent_filter: str | None = None) -> list[_KeyRow]:
        rows: list[_KeyRow] = []
        parents: dict[str, tuple[str | None, tuple[str, ...]]] = {}
        for foreign_key in find_foreign_keys(self._client, table):
            if parent_filter is not None and foreign_key.parent_table.lower() != parent_filter.lower():
                continue
            parent_key = foreign_key.parent_table.lower()
            if parent_key not in parents:
                parents[parent_key] = self._parent_key(foreign_key.parent_table)
            rows.extend(_expand_key_rows(foreign_key, *parents[parent_key]))
        return rows

    def _parent_key(self, parent_table: str) -> tuple[str | None, tuple[str, ...]]:
        """Primary key name and columns of a referenced table; failures give empties."""
        try:
            primary_key = find_primary_key(self._client, parent_table, logger=self._logger)
        except (MetadataError, StatementError, ValidationError) as exc:
            self._logger.debug(f"Primary key of '{parent_table}' unavailable: {exc}")
            return None, ()
        if primary_key is None:
            return None, ()
        return primary_key.name, primary_key.columns

    def _table_names(self) -> list[str]:
        result = self._client.execute(
            "SELECT name FROM sqlite_schema WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\' ORDER BY name"
        )
        return [coerce_text(value) or "" for value in result.column_values("name")]


def parse_product_version(line: str) -> str:
    match = VERSION_PATTERN.fullmatch(line)
    return match.group(2) if match else line


def _expand_key_rows(
    foreign_key: ForeignKey, pk_name: str | None, pk_columns: tuple[str, ...]
) -> list[_KeyRow]:
    rows: list[_KeyRow] = []
    for seq, (child_column, parent_column) in enumerate(foreign_key.columns, start=1):
        if parent_column is None and seq <= len(pk_columns):
            parent_column = pk_columns[seq - 1]
        rows.append(
            _KeyRow(
                parent_table=foreign_key.parent_table,
                parent_column=parent_column,
                child_table=foreign_key.child_table,
                child_column=child_column,
                key_seq=seq,
                on_update=foreign_key.on_update,
                on_delete=foreign_key.on_delete,
                fk_name=foreign_key.name,
                pk_name=pk_name,
            )
        )
    return rows
