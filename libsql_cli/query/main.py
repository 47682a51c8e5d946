"""libsql-query CLI entrypoint."""

from __future__ import annotations

from collections.abc import Iterable

import click

from libsql_cli.client.transport import LibSqlClient
from libsql_cli.metadata.catalog import CatalogBuilder
from libsql_cli.metadata.finders import describe_table
from libsql_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context
from libsql_cli.shared.config import OUTPUT_FORMATS

from . import executor, render
from .types import QueryResult

TABLE_TYPE_CHOICES = ("table", "view")


def _format_option(func):
    return click.option(
        "--format",
        "output_format",
        type=click.Choice(OUTPUT_FORMATS),
        help="Output format (defaults to output.default_format from config).",
    )(func)


@click.group(help="Query a libsql / sqld server over HTTP.")
@common_cli_options
@handle_cli_errors
def cli(cli_ctx: CLIContext) -> None:
    """Primary Click group for libsql-query commands."""
    cli_ctx.logger.debug("libsql-query group initialised.")


@cli.command("sql")
@click.argument("query", type=str)
@click.option(
    "-p",
    "--param",
    "params",
    multiple=True,
    metavar="KEY=VALUE",
    help="Bind a named parameter for the SQL query.",
)
@click.option(
    "-a",
    "--arg",
    "arg_values",
    multiple=True,
    metavar="VALUE",
    help="Bind the next positional (?) parameter.",
)
@click.option("--limit", type=int, help="Override the default row limit (0 disables it).")
@_format_option
@pass_cli_context
@handle_cli_errors
def run_sql(
    cli_ctx: CLIContext,
    query: str,
    params: Iterable[str],
    arg_values: Iterable[str],
    limit: int | None,
    output_format: str | None,
) -> None:
    """Execute ad-hoc SQL against the server."""
    _log_subcommand_entry(cli_ctx, "sql")
    if not query.strip():
        raise click.ClickException("Query text must not be empty.")

    positional = list(arg_values)
    try:
        named = _parse_params(params)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    if named and positional:
        raise click.ClickException("Use either --param or --arg, not both.")

    with _open_client(cli_ctx) as client:
        result = executor.execute_sql(
            client,
            query=query,
            params=named or positional,
            limit=limit,
            default_limit=cli_ctx.config.output.row_limit,
        )
    _render_query_output(cli_ctx, result, output_format)


@cli.command("batch")
@click.option(
    "-e",
    "--execute",
    "statements",
    multiple=True,
    required=True,
    metavar="SQL",
    help="Statement to include in the batch (repeatable).",
)
@click.option("--limit", type=int, help="Override the default row limit (0 disables it).")
@_format_option
@pass_cli_context
@handle_cli_errors
def run_batch(
    cli_ctx: CLIContext,
    statements: Iterable[str],
    limit: int | None,
    output_format: str | None,
) -> None:
    """Execute several statements in a single request."""
    _log_subcommand_entry(cli_ctx, "batch")
    with _open_client(cli_ctx) as client:
        results = executor.execute_batch(
            client,
            statements=list(statements),
            limit=limit,
            default_limit=cli_ctx.config.output.row_limit,
        )
    render.render_batch_results(
        results,
        output_format=_effective_format(cli_ctx, output_format),
        logger=cli_ctx.logger,
    )


@cli.command("tables")
@click.option("--pattern", type=str, help="LIKE pattern applied to table names.")
@click.option(
    "--type",
    "table_types",
    multiple=True,
    type=click.Choice(TABLE_TYPE_CHOICES),
    help="Restrict to tables or views (repeatable).",
)
@click.option("--system", "include_system", is_flag=True, help="Include sqlite_* internal tables.")
@_format_option
@pass_cli_context
@handle_cli_errors
def list_tables(
    cli_ctx: CLIContext,
    pattern: str | None,
    table_types: tuple[str, ...],
    include_system: bool,
    output_format: str | None,
) -> None:
    """List tables and views."""
    _log_subcommand_entry(cli_ctx, "tables")
    with _open_client(cli_ctx) as client:
        catalog = CatalogBuilder(client, logger=cli_ctx.logger)
        result = catalog.tables(
            pattern,
            table_types or TABLE_TYPE_CHOICES,
            include_system=include_system,
        )
    _render_query_output(cli_ctx, executor.to_query_result(result, limit=None), output_format)


@cli.command("columns")
@click.argument("table", type=str)
@click.option("--pattern", type=str, help="LIKE pattern applied to column names.")
@_format_option
@pass_cli_context
@handle_cli_errors
def list_columns(cli_ctx: CLIContext, table: str, pattern: str | None, output_format: str | None) -> None:
    """List the columns of a table."""
    _log_subcommand_entry(cli_ctx, "columns")
    with _open_client(cli_ctx) as client:
        result = CatalogBuilder(client, logger=cli_ctx.logger).columns(table, pattern)
    _render_query_output(cli_ctx, executor.to_query_result(result, limit=None), output_format)


@cli.command("primary-keys")
@click.argument("table", type=str)
@_format_option
@pass_cli_context
@handle_cli_errors
def list_primary_keys(cli_ctx: CLIContext, table: str, output_format: str | None) -> None:
    """Show the primary key columns of a table."""
    _log_subcommand_entry(cli_ctx, "primary-keys")
    with _open_client(cli_ctx) as client:
        result = CatalogBuilder(client, logger=cli_ctx.logger).primary_keys(table)
    _render_query_output(cli_ctx, executor.to_query_result(result, limit=None), output_format)


@cli.command("indexes")
@click.argument("table", type=str)
@click.option("--unique", "unique_only", is_flag=True, help="Only list unique indexes.")
@_format_option
@pass_cli_context
@handle_cli_errors
def list_indexes(cli_ctx: CLIContext, table: str, unique_only: bool, output_format: str | None) -> None:
    """List the indexes of a table, one row per indexed column."""
    _log_subcommand_entry(cli_ctx, "indexes")
    with _open_client(cli_ctx) as client:
        result = CatalogBuilder(client, logger=cli_ctx.logger).index_info(table, unique_only)
    _render_query_output(cli_ctx, executor.to_query_result(result, limit=None), output_format)


@cli.command("imported-keys")
@click.argument("table", type=str)
@_format_option
@pass_cli_context
@handle_cli_errors
def list_imported_keys(cli_ctx: CLIContext, table: str, output_format: str | None) -> None:
    """Foreign keys declared by TABLE."""
    _log_subcommand_entry(cli_ctx, "imported-keys")
    with _open_client(cli_ctx) as client:
        result = CatalogBuilder(client, logger=cli_ctx.logger).imported_keys(table)
    _render_query_output(cli_ctx, executor.to_query_result(result, limit=None), output_format)


@cli.command("exported-keys")
@click.argument("table", type=str)
@_format_option
@pass_cli_context
@handle_cli_errors
def list_exported_keys(cli_ctx: CLIContext, table: str, output_format: str | None) -> None:
    """Foreign keys in other tables that reference TABLE."""
    _log_subcommand_entry(cli_ctx, "exported-keys")
    with _open_client(cli_ctx) as client:
        result = CatalogBuilder(client, logger=cli_ctx.logger).exported_keys(table)
    _render_query_output(cli_ctx, executor.to_query_result(result, limit=None), output_format)


@cli.command("cross-reference")
@click.argument("parent_table", type=str)
@click.argument("foreign_table", type=str)
@_format_option
@pass_cli_context
@handle_cli_errors
def list_cross_reference(
    cli_ctx: CLIContext, parent_table: str, foreign_table: str, output_format: str | None
) -> None:
    """Foreign keys in FOREIGN_TABLE that reference PARENT_TABLE."""
    _log_subcommand_entry(cli_ctx, "cross-reference")
    with _open_client(cli_ctx) as client:
        result = CatalogBuilder(client, logger=cli_ctx.logger).cross_reference(parent_table, foreign_table)
    _render_query_output(cli_ctx, executor.to_query_result(result, limit=None), output_format)


@cli.command("describe")
@click.argument("table", type=str)
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(("table", "json")),
)
@pass_cli_context
@handle_cli_errors
def describe(cli_ctx: CLIContext, table: str, output_format: str) -> None:
    """Show the primary key and foreign keys of a table."""
    _log_subcommand_entry(cli_ctx, "describe")
    with _open_client(cli_ctx) as client:
        keys = describe_table(client, table, logger=cli_ctx.logger)
    render.render_table_keys(keys, output_format=output_format, logger=cli_ctx.logger)


@cli.command("version")
@pass_cli_context
@handle_cli_errors
def show_version(cli_ctx: CLIContext) -> None:
    """Print the server product name and version."""
    _log_subcommand_entry(cli_ctx, "version")
    with _open_client(cli_ctx) as client:
        product, version = CatalogBuilder(client, logger=cli_ctx.logger).product()
    if not product:
        cli_ctx.logger.warning("Server returned an empty version string.")
        return
    click.echo(product)
    if version != product:
        click.echo(f"version: {version}")


def _open_client(cli_ctx: CLIContext) -> LibSqlClient:
    return LibSqlClient.from_config(cli_ctx.config, logger=cli_ctx.logger)


def _log_subcommand_entry(cli_ctx: CLIContext, command: str) -> None:
    cli_ctx.logger.debug(f"libsql-query {command} invoked against {cli_ctx.config.server.url}")


def _parse_params(pairs: Iterable[str]) -> dict[str, str]:
    """Convert KEY=VALUE CLI options into a dictionary."""
    parsed: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Parameter '{pair}' must be in KEY=VALUE format.")
        key, value = pair.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Parameter keys cannot be empty.")
        parsed[key] = value
    return parsed


def _effective_format(cli_ctx: CLIContext, output_format: str | None) -> str:
    return output_format or cli_ctx.config.output.default_format


def _render_query_output(cli_ctx: CLIContext, result: QueryResult, output_format: str | None) -> None:
    render.render_query_result(
        result,
        output_format=_effective_format(cli_ctx, output_format),
        logger=cli_ctx.logger,
    )


def main() -> None:
    """Entry point for console_scripts."""
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
