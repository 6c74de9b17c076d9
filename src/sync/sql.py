"""
Schema-qualified SQL statement builders.

Table, schema and column names are never taken from request input: they come
from the tracked-table registry or from the database catalog, and every one of
them must pass the identifier allow-list before it is quoted into a statement.
Values are always bound as ``$n`` parameters.
"""

import re
from typing import Iterable, List, Sequence

from src.sync.exceptions import UnsafeIdentifierError


_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

TABLE_EXISTS = (
    "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
    "WHERE table_schema = $1 AND table_name = $2)"
)

TABLE_COLUMNS = (
    "SELECT column_name FROM information_schema.columns "
    "WHERE table_schema = $1 AND table_name = $2 ORDER BY ordinal_position"
)

SCHEMA_TABLES = (
    "SELECT table_name FROM information_schema.tables "
    "WHERE table_schema = $1 ORDER BY table_name"
)


def validate_identifier(name: str) -> str:
    """Return ``name`` unchanged if it is a plain SQL identifier."""
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise UnsafeIdentifierError(f"Unsafe SQL identifier: {name!r}", rule="identifier")
    return name


def quote_identifier(name: str) -> str:
    return f'"{validate_identifier(name)}"'


def qualified_table(schema: str, table: str) -> str:
    return f"{quote_identifier(schema)}.{quote_identifier(table)}"


def column_list(columns: Iterable[str]) -> str:
    return ", ".join(quote_identifier(c) for c in columns)


def placeholders(count: int, start: int = 1) -> str:
    return ", ".join(f"${i}" for i in range(start, start + count))


def set_search_path(schema: str) -> str:
    return f"SET search_path TO {quote_identifier(schema)}"


def count_rows(schema: str, table: str) -> str:
    return f"SELECT COUNT(*) AS count FROM {qualified_table(schema, table)}"


def select_all(schema: str, table: str, order_by: str) -> str:
    return f"SELECT * FROM {qualified_table(schema, table)} ORDER BY {quote_identifier(order_by)}"


def select_columns(schema: str, table: str, columns: Sequence[str], order_by: str) -> str:
    return (
        f"SELECT {column_list(columns)} FROM {qualified_table(schema, table)} "
        f"ORDER BY {quote_identifier(order_by)}"
    )


def truncate_table(schema: str, table: str) -> str:
    return f"TRUNCATE {qualified_table(schema, table)} RESTART IDENTITY CASCADE"


def insert_row(schema: str, table: str, columns: Sequence[str]) -> str:
    return (
        f"INSERT INTO {qualified_table(schema, table)} ({column_list(columns)}) "
        f"VALUES ({placeholders(len(columns))})"
    )


def upsert_row(schema: str, table: str, columns: Sequence[str], primary_key: str) -> str:
    """Insert, or overwrite every non-key column when the key already exists."""
    updates: List[str] = [
        f"{quote_identifier(c)} = EXCLUDED.{quote_identifier(c)}"
        for c in columns
        if c != primary_key
    ]
    conflict = f"ON CONFLICT ({quote_identifier(primary_key)})"
    if updates:
        action = "DO UPDATE SET " + ", ".join(updates)
    else:
        action = "DO NOTHING"
    return f"{insert_row(schema, table, columns)} {conflict} {action}"


def is_destructive(statement: str) -> bool:
    """True for statements that remove tables or their contents wholesale."""
    head = statement.lstrip().split(None, 1)
    return bool(head) and head[0].upper() in ("TRUNCATE", "DROP")
