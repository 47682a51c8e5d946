from __future__ import annotations

import io
import json

from libsql_cli.metadata.types import ForeignKey, ForeignKeyRule, PrimaryKey, TableKeys
from libsql_cli.query import render
from libsql_cli.query.types import QueryResult


class StubLogger:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def debug(self, message: str) -> None:
        self.messages.append(("debug", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def sql(self, label: str, text: str) -> None:
        self.messages.append(("sql", f"{label}: {text}"))


def test_render_query_result_csv() -> None:
    buffer = io.StringIO()
    logger = StubLogger()
    result = QueryResult(columns=("email", "credit"), rows=[("ada@example.com", 42.5)], truncated=True, limit_value=1)

    render.render_query_result(result, output_format="csv", logger=logger, stream=buffer)

    output = buffer.getvalue().strip().splitlines()
    assert output[0] == "email,credit"
    assert "ada@example.com" in output[1]
    assert any(level == "warning" for level, _ in logger.messages)


def test_render_query_result_json_encodes_blobs() -> None:
    buffer = io.StringIO()
    logger = StubLogger()
    result = QueryResult(columns=("name", "data"), rows=[("a", b"\x00\xff"), ("b", None)])

    render.render_query_result(result, output_format="json", logger=logger, stream=buffer)

    data = json.loads(buffer.getvalue())
    assert data == [{"name": "a", "data": {"base64": "AP8="}}, {"name": "b", "data": None}]
    assert logger.messages == []


def test_render_table_reports_empty_results() -> None:
    buffer = io.StringIO()
    logger = StubLogger()
    result = QueryResult(columns=("id",), rows=[])

    render.render_query_result(result, output_format="table", logger=logger, stream=buffer)

    assert "id" in buffer.getvalue()
    assert ("info", "Query returned zero rows.") in logger.messages


def test_render_table_keeps_brackets_in_values() -> None:
    buffer = io.StringIO()
    result = QueryResult(columns=("name",), rows=[("[weird]",)])

    render.render_query_result(result, output_format="table", logger=StubLogger(), stream=buffer)

    assert "[weird]" in buffer.getvalue()


def test_render_statement_without_columns() -> None:
    buffer = io.StringIO()
    logger = StubLogger()
    result = QueryResult(columns=(), rows=[], update_count=4)

    render.render_query_result(result, output_format="table", logger=logger, stream=buffer)

    assert ("info", "Statement completed; 4 row(s) written.") in logger.messages


def test_render_batch_results_json() -> None:
    buffer = io.StringIO()
    results = [
        QueryResult(columns=(), rows=[]),
        QueryResult(columns=("n",), rows=[(1,)]),
    ]

    render.render_batch_results(results, output_format="json", logger=StubLogger(), stream=buffer)

    assert json.loads(buffer.getvalue()) == [[], [{"n": 1}]]


def test_render_table_keys_table_format() -> None:
    buffer = io.StringIO()
    logger = StubLogger()
    keys = TableKeys(
        table="orders",
        primary_key=PrimaryKey("orders", "pk_orders", ("order_id",)),
        foreign_keys=(
            ForeignKey(
                name="fk_orders_customer",
                parent_table="customers",
                child_table="orders",
                columns=(("customer_id", "id"),),
                on_update=ForeignKeyRule.NO_ACTION,
                on_delete=ForeignKeyRule.CASCADE,
            ),
        ),
    )

    render.render_table_keys(keys, output_format="table", logger=logger, stream=buffer)

    output = buffer.getvalue()
    assert "Primary key (pk_orders): order_id" in output
    assert "customers.id" in output
    assert "CASCADE" in output


def test_render_table_keys_without_primary_key() -> None:
    buffer = io.StringIO()
    logger = StubLogger()

    render.render_table_keys(
        TableKeys(table="logs", primary_key=None, foreign_keys=()),
        output_format="json",
        logger=logger,
        stream=buffer,
    )

    assert json.loads(buffer.getvalue()) == {"table": "logs", "primary_key": None, "foreign_keys": []}


class RecordingStream(io.StringIO):
    def __init__(self, logger: StubLogger) -> None:
        super().__init__()
        self.logger = logger

    def flush(self) -> None:
        self.logger.messages.append(("flush", self.getvalue()))
        super().flush()


def test_rows_are_flushed_before_truncation_warning() -> None:
    logger = StubLogger()
    stream = RecordingStream(logger)
    result = QueryResult(columns=("id",), rows=[(1,), (2,)], truncated=True, limit_value=2)

    render.render_query_result(result, output_format="csv", logger=logger, stream=stream)

    levels = [level for level, _ in logger.messages]
    assert levels.index("flush") < levels.index("warning")
    assert logger.messages[levels.index("flush")][1].splitlines() == ["id", "1", "2"]


def test_batch_json_is_flushed_before_truncation_warning() -> None:
    logger = StubLogger()
    stream = RecordingStream(logger)
    results = [QueryResult(columns=("n",), rows=[(1,)], truncated=True, limit_value=1, description="SELECT n")]

    render.render_batch_results(results, output_format="json", logger=logger, stream=stream)

    levels = [level for level, _ in logger.messages]
    assert levels == ["flush", "warning"]
    assert json.loads(logger.messages[0][1]) == [[{"n": 1}]]
