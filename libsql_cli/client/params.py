"""Render statements and their bound values into the wire representation."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Union

from .types import ParameterKey, Statement, StreamParameter

JSONScalar = Union[None, bool, int, float, str]
WireStatement = Union[str, dict[str, Any]]


def is_indexed(params: Mapping[ParameterKey, Any]) -> bool:
    """True when the parameter set is keyed by position, judged by its first key."""
    for key in params:
        return isinstance(key, int) and not isinstance(key, bool)
    return False


def render_value(value: Any) -> JSONScalar:
    """Map one bound value to the JSON scalar sent on the wire."""
    if value is None:
        return None
    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, StreamParameter):
        return value.materialize()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def render_params(params: Mapping[ParameterKey, Any]) -> list[JSONScalar] | dict[str, JSONScalar]:
    if is_indexed(params):
        return [render_value(params[key]) for key in sorted(params)]
    return {str(key): render_value(value) for key, value in params.items()}


def render_statement(statement: Statement) -> WireStatement:
    """Bare SQL string when nothing is bound, otherwise a `{q, params}` object."""
    if not statement.params:
        return statement.sql
    return {"q": statement.sql, "params": render_params(statement.params)}


def build_batch_payload(statements: Iterable[Statement]) -> dict[str, list[WireStatement]]:
    return {"statements": [render_statement(statement) for statement in statements]}
