"""Wire-level data structures: statements, parameter values, and results."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import IO, Any, Iterator, Mapping, Union

from libsql_cli.shared.exceptions import ColumnNotFoundError, ProtocolError, ValidationError

# Closed set of values a result cell can hold once decoded from the wire.
CellValue = Union[None, int, float, bool, str, bytes]


@dataclass(frozen=True, slots=True)
class StreamParameter:
    """A binary or text stream bound as a parameter.

    The stream is read once, when the statement is serialized, and sent as
    UTF-8 text.
    """

    stream: IO[Any]
    length: int | None = None

    def materialize(self) -> str:
        data = self.stream.read() if self.length is None else self.stream.read(self.length)
        if isinstance(data, (bytes, bytearray)):
            return bytes(data).decode("utf-8", errors="replace")
        return str(data)


ParameterValue = Union[None, int, float, bool, str, bytes, StreamParameter]
ParameterKey = Union[int, str]


@dataclass(frozen=True, slots=True)
class Statement:
    """SQL text plus either positional (1-based) or named parameters."""

    sql: str
    params: Mapping[ParameterKey, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.sql, str) or not self.sql.strip():
            raise ValidationError("Statement SQL must be a non-empty string.")
        keys = list(self.params)
        if not keys:
            return
        indexed = [key for key in keys if isinstance(key, int) and not isinstance(key, bool)]
        named = [key for key in keys if isinstance(key, str)]
        if len(indexed) + len(named) != len(keys):
            raise ValidationError("Parameter keys must be 1-based positions or names.")
        if indexed and named:
            raise ValidationError("A statement cannot mix positional and named parameters.")
        if any(key < 1 for key in indexed):
            raise ValidationError("Positional parameters are numbered from 1.")
        if any(not key for key in named):
            raise ValidationError("Parameter names cannot be empty.")

    @classmethod
    def positional(cls, sql: str, *values: Any) -> Statement:
        return cls(sql, {index: value for index, value in enumerate(values, start=1)})

    @classmethod
    def named(cls, sql: str, **values: Any) -> Statement:
        return cls(sql, dict(values))


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Columns, rows, and counters returned for one executed statement."""

    columns: tuple[str, ...] = ()
    rows: tuple[tuple[CellValue, ...], ...] = ()
    rows_written: int = 0
    rows_read: int = 0
    duration_ms: float = 0.0

    def __post_init__(self) -> None:
        width = len(self.columns)
        for position, row in enumerate(self.rows):
            if len(row) != width:
                raise ProtocolError(
                    f"Row {position} has {len(row)} values but the result has {width} columns."
                )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> ExecutionResult:
        """Build a result from the `results` object of a response entry."""
        if payload is None:
            return cls()
        if not isinstance(payload, Mapping):
            raise ProtocolError(f"Expected a results object, got {type(payload).__name__}.")
        try:
            columns = tuple(str(name) for name in payload.get("columns") or ())
            rows = tuple(
                tuple(_decode_cell(value) for value in row) for row in payload.get("rows") or ()
            )
            return cls(
                columns=columns,
                rows=rows,
                rows_written=int(payload.get("rows_written") or 0),
                rows_read=int(payload.get("rows_read") or 0),
                duration_ms=float(payload.get("query_duration_ms") or 0.0),
            )
        except (TypeError, ValueError) as exc:
            raise ProtocolError(f"Malformed results object: {exc}") from exc

    @property
    def update_count(self) -> int:
        return self.rows_written

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[tuple[CellValue, ...]]:
        return iter(self.rows)

    def column_index(self, name: str) -> int:
        """Return the 0-based position of a column, matched case-insensitively.

        When a name repeats, the last occurrence wins.
        """
        wanted = name.upper()
        found: int | None = None
        for position, column in enumerate(self.columns):
            if column.upper() == wanted:
                found = position
        if found is None:
            raise ColumnNotFoundError(f"Column '{name}' is not present in result set")
        return found

    def value(self, row: int, column: int | str) -> CellValue:
        """Return one cell by row position and column position or name."""
        position = self.column_index(column) if isinstance(column, str) else column
        if not 0 <= position < len(self.columns):
            raise ColumnNotFoundError(f"Column index {column} is out of range")
        return self.rows[row][position]

    def column_values(self, column: int | str) -> list[CellValue]:
        position = self.column_index(column) if isinstance(column, str) else column
        return [row[position] for row in self.rows]

    def records(self) -> list[dict[str, CellValue]]:
        """Rows as dictionaries keyed by column name."""
        return [dict(zip(self.columns, row)) for row in self.rows]


def _decode_cell(value: Any) -> CellValue:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping) and set(value) == {"base64"}:
        try:
            return base64.b64decode(str(value["base64"]), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ProtocolError(f"Invalid base64 blob in result cell: {exc}") from exc
    raise ProtocolError(f"Unsupported value in result cell: {value!r}")


def coerce_int(value: CellValue, default: int = 0) -> int:
    """Integer view of a cell, for pragma columns that carry flags and positions."""
    if value is None:
        return default
    if isinstance(value, (bytes, str)):
        text = value.decode("utf-8", errors="replace") if isinstance(value, bytes) else value
        try:
            return int(float(text.strip()))
        except ValueError:
            return default
    return int(value)


def coerce_text(value: CellValue) -> str | None:
    """Text view of a cell; None stays None."""
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
