"""Schema metadata derived from DDL text and pragma output."""

from .catalog import CatalogBuilder
from .finders import describe_table, find_foreign_keys, find_primary_key

__all__ = ["CatalogBuilder", "describe_table", "find_foreign_keys", "find_primary_key"]
