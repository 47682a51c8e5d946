from __future__ import annotations

import pytest

from libsql_cli.metadata.finders import (
    describe_table,
    fetch_table_ddl,
    find_foreign_keys,
    find_primary_key,
)
from libsql_cli.metadata.types import ForeignKeyRule, PrimaryKey
from libsql_cli.shared.exceptions import MetadataError, TableNotFoundError, ValidationError


def test_named_primary_key_constraint(make_client, shop_schema: str) -> None:
    client = make_client(shop_schema)

    assert find_primary_key(client, "orders") == PrimaryKey("orders", "pk_orders", ("order_id",))


def test_unnamed_composite_primary_key(make_client, shop_schema: str) -> None:
    client = make_client(shop_schema)

    primary_key = find_primary_key(client, "order_lines")

    assert primary_key == PrimaryKey("order_lines", None, ("order_id", "line_no"))


def test_inline_primary_key_falls_back_to_pragma(make_client) -> None:
    client = make_client("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT);")

    primary_key = find_primary_key(client, "t")

    assert primary_key is not None
    assert primary_key.name is None
    assert primary_key.columns == ("id",)
    assert any(sql.startswith("PRAGMA table_info") for sql in client.statements)


def test_quoted_primary_key_columns_are_unquoted(make_client) -> None:
    client = make_client(
        'CREATE TABLE q ("first part" TEXT, `second` TEXT, '
        'CONSTRAINT "pk q" PRIMARY KEY ("first part" DESC, `second`));'
    )

    primary_key = find_primary_key(client, "q")

    assert primary_key == PrimaryKey("q", "pk q", ("first part", "second"))


def test_table_without_primary_key(make_client) -> None:
    client = make_client("CREATE TABLE logs (message TEXT);")

    assert find_primary_key(client, "logs") is None


def test_system_tables_have_no_primary_key(make_client) -> None:
    client = make_client("")

    assert find_primary_key(client, "sqlite_master") is None
    assert client.statements == []


def test_lookup_is_case_insensitive(make_client, shop_schema: str) -> None:
    client = make_client(shop_schema)

    primary_key = find_primary_key(client, "ORDERS")

    assert primary_key is not None
    assert primary_key.columns == ("order_id",)


def test_missing_table_raises(make_client) -> None:
    client = make_client("")

    with pytest.raises(TableNotFoundError, match="Table not found: 'ghost'"):
        fetch_table_ddl(client, "ghost")
    with pytest.raises(MetadataError):
        find_primary_key(client, "ghost")


@pytest.mark.parametrize("name", ["", "   ", None])
def test_blank_table_names_are_rejected(make_client, name) -> None:
    client = make_client("")

    with pytest.raises(ValidationError, match="Invalid table name"):
        find_primary_key(client, name)


def test_table_names_with_apostrophes(make_client) -> None:
    client = make_client("CREATE TABLE \"it's\" (id INTEGER PRIMARY KEY, body TEXT);")

    primary_key = find_primary_key(client, "it's")

    assert primary_key is not None
    assert primary_key.columns == ("id",)
    assert "PRAGMA table_info('it''s')" in client.statements


def test_foreign_key_names_line_up_with_pragma_order(make_client, shop_schema: str) -> None:
    client = make_client(shop_schema)

    keys = {key.name: key for key in find_foreign_keys(client, "order_lines")}

    assert set(keys) == {"fk_lines_order", "fk_lines_customer"}
    assert keys["fk_lines_order"].parent_table == "orders"
    assert keys["fk_lines_order"].columns == (("order_id", "order_id"),)
    assert keys["fk_lines_order"].on_update is ForeignKeyRule.SET_NULL
    assert keys["fk_lines_order"].on_delete is ForeignKeyRule.NO_ACTION
    assert keys["fk_lines_customer"].parent_table == "customers"
    assert keys["fk_lines_customer"].parent_columns == (None,)


def test_composite_foreign_key_groups_columns(make_client) -> None:
    client = make_client(
        """
        CREATE TABLE parent (a INTEGER, b INTEGER, PRIMARY KEY (a, b));
        CREATE TABLE child (
            x INTEGER,
            y INTEGER,
            FOREIGN KEY (x, y) REFERENCES parent (a, b) ON DELETE RESTRICT
        );
        """
    )

    (foreign_key,) = find_foreign_keys(client, "child")

    assert foreign_key.name is None
    assert foreign_key.child_columns == ("x", "y")
    assert foreign_key.parent_columns == ("a", "b")
    assert foreign_key.on_delete is ForeignKeyRule.RESTRICT


def test_unnamed_key_declared_first_gets_no_name(make_client) -> None:
    client = make_client(
        """
        CREATE TABLE a (id INTEGER PRIMARY KEY);
        CREATE TABLE b (id INTEGER PRIMARY KEY);
        CREATE TABLE c (
            a_id INTEGER,
            b_id INTEGER,
            FOREIGN KEY (a_id) REFERENCES a (id),
            CONSTRAINT fk_c_b FOREIGN KEY (b_id) REFERENCES b (id)
        );
        """
    )

    keys = {key.parent_table: key.name for key in find_foreign_keys(client, "c")}

    assert keys == {"a": None, "b": "fk_c_b"}


def test_describe_table_combines_keys(make_client, shop_schema: str) -> None:
    client = make_client(shop_schema)

    keys = describe_table(client, "orders")

    assert keys.primary_key is not None
    assert keys.primary_key.name == "pk_orders"
    assert [key.name for key in keys.foreign_keys] == ["fk_orders_customer"]
    assert keys.foreign_keys[0].on_delete is ForeignKeyRule.CASCADE


def test_rule_parsing() -> None:
    assert ForeignKeyRule.from_pragma("set  default") is ForeignKeyRule.SET_DEFAULT
    assert ForeignKeyRule.NO_ACTION.sql_text == "NO ACTION"
    assert int(ForeignKeyRule.CASCADE) == 0
    with pytest.raises(MetadataError):
        ForeignKeyRule.from_pragma("EXPLODE")
