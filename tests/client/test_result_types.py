from __future__ import annotations

import pytest

from libsql_cli.client.types import ExecutionResult, Statement, coerce_int, coerce_text
from libsql_cli.shared.exceptions import ColumnNotFoundError, ProtocolError, ValidationError


def test_column_lookup_is_case_insensitive() -> None:
    result = ExecutionResult(columns=("Name", "pk"), rows=(("id", 1),))

    assert result.column_index("NAME") == 0
    assert result.column_index("PK") == 1
    assert result.value(0, "name") == "id"


def test_duplicate_column_names_resolve_to_last_occurrence() -> None:
    result = ExecutionResult(columns=("x", "X"), rows=((1, 2),))

    assert result.column_index("x") == 1
    assert result.value(0, "x") == 2


def test_missing_column_raises() -> None:
    result = ExecutionResult(columns=("a",), rows=())

    with pytest.raises(ColumnNotFoundError, match="Column 'b' is not present in result set"):
        result.column_index("b")


def test_ragged_rows_are_rejected() -> None:
    with pytest.raises(ProtocolError):
        ExecutionResult(columns=("a", "b"), rows=((1,),))


def test_from_payload_handles_missing_results() -> None:
    result = ExecutionResult.from_payload(None)

    assert result.columns == ()
    assert len(result) == 0
    assert result.update_count == 0


def test_from_payload_reads_counters() -> None:
    result = ExecutionResult.from_payload(
        {"columns": ["a"], "rows": [[1], [2]], "rows_written": 0, "rows_read": 2, "query_duration_ms": 1.5}
    )

    assert result.column_values("a") == [1, 2]
    assert result.records() == [{"a": 1}, {"a": 2}]
    assert result.rows_read == 2


def test_from_payload_rejects_unknown_cell_shapes() -> None:
    with pytest.raises(ProtocolError):
        ExecutionResult.from_payload({"columns": ["a"], "rows": [[[1, 2]]]})


def test_statement_rejects_mixed_parameter_keys() -> None:
    with pytest.raises(ValidationError, match="mix"):
        Statement("SELECT ?, :a", {1: "x", "a": "y"})


def test_statement_rejects_zero_position() -> None:
    with pytest.raises(ValidationError):
        Statement("SELECT ?", {0: "x"})


def test_statement_rejects_blank_sql() -> None:
    with pytest.raises(ValidationError):
        Statement("   ")


def test_statement_constructors() -> None:
    assert Statement.positional("SELECT ?, ?", "a", None).params == {1: "a", 2: None}
    assert Statement.named("SELECT :a", a=1).params == {"a": 1}


def test_coercion_helpers() -> None:
    assert coerce_int("3") == 3
    assert coerce_int(None, default=-1) == -1
    assert coerce_int("abc") == 0
    assert coerce_text(b"name") == "name"
    assert coerce_text(None) is None
