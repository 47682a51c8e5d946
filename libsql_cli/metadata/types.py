"""Key and index descriptors reconstructed from the remote schema."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Mapping, Protocol

from libsql_cli.client.types import ExecutionResult, Statement
from libsql_cli.shared.exceptions import MetadataError


class SqlExecutor(Protocol):
    """The slice of the transport client the metadata layer relies on."""

    def execute(self, sql: str, params: Mapping[Any, Any] | Sequence[Any] | None = None) -> ExecutionResult:
        ...

    def execute_batch(self, statements: Sequence[Statement | str]) -> list[ExecutionResult]:
        ...

    def server_version(self) -> str:
        ...


class ForeignKeyRule(IntEnum):
    """Referential actions, numbered with the conventional catalog codes."""

    CASCADE = 0
    RESTRICT = 1
    SET_NULL = 2
    NO_ACTION = 3
    SET_DEFAULT = 4

    @classmethod
    def from_pragma(cls, text: str | None) -> ForeignKeyRule:
        """Map `on_update`/`on_delete` text from `PRAGMA foreign_key_list`."""
        normalised = " ".join((text or "").upper().split())
        try:
            return _RULES_BY_TEXT[normalised]
        except KeyError:
            raise MetadataError(f"Unrecognised foreign key rule '{text}'") from None

    @property
    def sql_text(self) -> str:
        return self.name.replace("_", " ")


_RULES_BY_TEXT = {rule.sql_text: rule for rule in ForeignKeyRule}


@dataclass(frozen=True, slots=True)
class PrimaryKey:
    table: str
    name: str | None
    columns: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ForeignKey:
    """One (possibly composite) foreign key owned by `child_table`."""

    name: str | None
    parent_table: str
    child_table: str
    columns: tuple[tuple[str, str | None], ...]
    on_update: ForeignKeyRule
    on_delete: ForeignKeyRule
    match: str | None = None

    @property
    def child_columns(self) -> tuple[str, ...]:
        return tuple(child for child, _ in self.columns)

    @property
    def parent_columns(self) -> tuple[str | None, ...]:
        return tuple(parent for _, parent in self.columns)


@dataclass(frozen=True, slots=True)
class IndexInfo:
    """An index and its columns; expression columns have no name."""

    name: str
    unique: bool
    columns: tuple[tuple[int, str | None], ...]


@dataclass(frozen=True, slots=True)
class TableKeys:
    table: str
    primary_key: PrimaryKey | None
    foreign_keys: tuple[ForeignKey, ...]
