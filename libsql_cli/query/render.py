"""Output rendering helpers for libsql-query."""

from __future__ import annotations

import base64
import csv
import json
import sys
from typing import IO, Any, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from libsql_cli.metadata.types import TableKeys
from libsql_cli.shared.logging import Logger

from .types import QueryResult


def render_query_result(
    result: QueryResult,
    *,
    output_format: str,
    logger: Logger,
    stream=None,
) -> None:
    """Render a query result set to the desired format."""
    output_stream = stream or sys.stdout
    fmt = (output_format or "table").lower()

    if fmt == "table":
        _render_table(result, logger=logger, stream=output_stream)
    elif fmt == "csv":
        _render_delimited(result, stream=output_stream, delimiter=",")
    elif fmt == "tsv":
        _render_delimited(result, stream=output_stream, delimiter="\t")
    elif fmt == "json":
        _render_json(result, stream=output_stream)
    else:  # pragma: no cover - Click validation should prevent this
        raise ValueError(f"Unsupported output format '{output_format}'.")

    output_stream.flush()
    if result.truncated:
        logger.warning(
            f"Result truncated to {result.limit_value} rows. Re-run with --limit 0 for full output."
        )


def render_batch_results(
    results: Sequence[QueryResult],
    *,
    output_format: str,
    logger: Logger,
    stream=None,
) -> None:
    """Render each statement's result; JSON output is one array of arrays."""
    output_stream = stream or sys.stdout
    if (output_format or "table").lower() == "json":
        payload = [_json_records(result) for result in results]
        json.dump(payload, output_stream, indent=2)
        output_stream.write("\n")
        output_stream.flush()
        for result in results:
            if result.truncated:
                logger.warning(f"Result of '{result.description}' truncated to {result.limit_value} rows.")
        return

    for result in results:
        render_query_result(result, output_format=output_format, logger=logger, stream=output_stream)


def render_table_keys(
    keys: TableKeys,
    *,
    output_format: str,
    logger: Logger,
    stream=None,
) -> None:
    """Render a table's primary key and foreign keys."""
    output_stream = stream or sys.stdout
    primary_key = keys.primary_key

    if (output_format or "table").lower() == "json":
        payload = {
            "table": keys.table,
            "primary_key": None
            if primary_key is None
            else {"name": primary_key.name, "columns": list(primary_key.columns)},
            "foreign_keys": [
                {
                    "name": foreign_key.name,
                    "references": foreign_key.parent_table,
                    "columns": [
                        {"from": child, "to": parent} for child, parent in foreign_key.columns
                    ],
                    "on_update": foreign_key.on_update.sql_text,
                    "on_delete": foreign_key.on_delete.sql_text,
                }
                for foreign_key in keys.foreign_keys
            ],
        }
        json.dump(payload, output_stream, indent=2)
        output_stream.write("\n")
        return

    console = Console(file=output_stream, highlight=False, force_terminal=False)
    console.print(keys.table, style="bold", markup=False)
    if primary_key is None:
        logger.info(f"Table '{keys.table}' has no primary key.")
    else:
        label = f" ({primary_key.name})" if primary_key.name else ""
        console.print(f"Primary key{label}: {', '.join(primary_key.columns)}", markup=False)

    if not keys.foreign_keys:
        return
    fk_table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    fk_table.add_column("Name")
    fk_table.add_column("From")
    fk_table.add_column("References")
    fk_table.add_column("On Update")
    fk_table.add_column("On Delete")
    for foreign_key in keys.foreign_keys:
        for child, parent in foreign_key.columns:
            fk_table.add_row(
                escape(foreign_key.name or ""),
                escape(child),
                escape(f"{foreign_key.parent_table}.{parent or '?'}"),
                foreign_key.on_update.sql_text,
                foreign_key.on_delete.sql_text,
            )
    console.print(fk_table)


def _render_table(result: QueryResult, *, logger: Logger, stream: IO[str]) -> None:
    console = Console(file=stream, highlight=False, force_terminal=False)
    if result.description:
        console.print(result.description, style="bold", markup=False)

    if not result.columns:
        logger.info(f"Statement completed; {result.update_count} row(s) written.")
        return

    table = Table(box=box.SIMPLE_HEAVY, show_header=True, header_style="bold")
    for column in result.columns:
        table.add_column(escape(column or ""))

    if result.rows:
        for row in result.rows:
            table.add_row(*[escape(_stringify(cell)) for cell in row])
    else:
        logger.info("Query returned zero rows.")

    console.print(table)


def _render_delimited(result: QueryResult, *, stream: IO[str], delimiter: str) -> None:
    writer = csv.writer(stream, delimiter=delimiter)
    if result.columns:
        writer.writerow(result.columns)
    for row in result.rows:
        writer.writerow(_stringify(cell) for cell in row)


def _render_json(result: QueryResult, *, stream: IO[str]) -> None:
    json.dump(_json_records(result), stream, indent=2)
    stream.write("\n")


def _json_records(result: QueryResult) -> list[dict[str, Any]]:
    if not result.columns:
        return []
    return [
        {column: _convert_json_value(value) for column, value in zip(result.columns, row)}
        for row in result.rows
    ]


def _stringify(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return str(value)


def _convert_json_value(value: object) -> object:
    if isinstance(value, bytes):
        return {"base64": base64.b64encode(value).decode("ascii")}
    return value
