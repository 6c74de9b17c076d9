"""
Unit tests for schema-qualified SQL statement builders.
"""

import pytest

from src.sync import sql
from src.sync.exceptions import ConfigurationError, UnsafeIdentifierError


class TestIdentifiers:
    """Tests for the identifier allow-list."""

    @pytest.mark.parametrize("name", ["customers", "customer_notes", "_private", "vantix_dev", "T1"])
    def test_valid_identifiers(self, name):
        assert sql.validate_identifier(name) == name

    @pytest.mark.parametrize("name", [
        "",
        "1customers",
        "customers; DROP TABLE users",
        'customers"',
        "public.customers",
        "a" * 64,
        None,
    ])
    def test_rejected_identifiers(self, name):
        with pytest.raises(UnsafeIdentifierError) as exc_info:
            sql.validate_identifier(name)

        assert exc_info.value.rule == "identifier"
        assert isinstance(exc_info.value, ConfigurationError)

    def test_qualified_table(self):
        assert sql.qualified_table("vantix_dev", "customers") == '"vantix_dev"."customers"'


class TestStatements:
    """Tests for generated statements."""

    def test_select_all(self):
        assert sql.select_all("public", "customers", "id") == (
            'SELECT * FROM "public"."customers" ORDER BY "id"'
        )

    def test_count_rows(self):
        assert sql.count_rows("public", "users") == 'SELECT COUNT(*) AS count FROM "public"."users"'

    def test_insert_row(self):
        assert sql.insert_row("dev", "customers", ["customer_id", "status"]) == (
            'INSERT INTO "dev"."customers" ("customer_id", "status") VALUES ($1, $2)'
        )

    def test_upsert_row(self):
        statement = sql.upsert_row("public", "customers", ["id", "company_name", "status"], "id")

        assert statement == (
            'INSERT INTO "public"."customers" ("id", "company_name", "status") VALUES ($1, $2, $3) '
            'ON CONFLICT ("id") DO UPDATE SET "company_name" = EXCLUDED."company_name", '
            '"status" = EXCLUDED."status"'
        )

    def test_upsert_key_only(self):
        assert sql.upsert_row("public", "tags", ["id"], "id").endswith('ON CONFLICT ("id") DO NOTHING')

    def test_set_search_path(self):
        assert sql.set_search_path("vantix_dev") == 'SET search_path TO "vantix_dev"'

    def test_placeholders(self):
        assert sql.placeholders(3) == "$1, $2, $3"
        assert sql.placeholders(2, start=4) == "$4, $5"

    def test_unsafe_column_is_rejected(self):
        with pytest.raises(UnsafeIdentifierError):
            sql.insert_row("public", "customers", ["status", "x) VALUES (1); --"])

    @pytest.mark.parametrize("statement,expected", [
        (sql.truncate_table("dev", "customers"), True),
        ("DROP TABLE customers", True),
        ("SELECT * FROM truncate_log", False),
        (sql.upsert_row("public", "customers", ["id", "status"], "id"), False),
        ("", False),
    ])
    def test_is_destructive(self, statement, expected):
        assert sql.is_destructive(statement) is expected
