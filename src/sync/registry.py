"""
Static registry of the tables reconciled between production and development.

Key fields are the columns compared for semantic equality; columns left out
(timestamps written independently by test traffic, JSON blobs) may differ
between environments without being reported.
"""

from typing import Any, Dict, Iterable, List, Optional

from src.sync.models import TrackedTable


_KEY_FIELDS: Dict[str, tuple] = {
    "customers": (
        "customer_id",
        "company_name",
        "status",
        "affiliate_partner",
        "next_step",
        "affiliate_account_executive",
    ),
    "customer_notes": ("customer_id", "content", "created_at", "created_by"),
    "customer_files": ("customer_id", "file_name", "original_name", "file_url"),
    "users": ("email", "name", "role"),
    "affiliates": ("name",),
    "affiliate_aes": ("affiliate_id", "name"),
}

# Registry order is the processing order of every comparison pass
TRACKED_TABLE_NAMES = (
    "customers",
    "customer_notes",
    "customer_files",
    "users",
    "affiliates",
    "affiliate_aes",
)

DEFAULT_CRITICAL_TABLES = ("customers", "customer_notes", "customer_files")

# Tables covered by the one-shot comparison report, in report order
REPORT_TABLE_NAMES = ("customers", "customer_files", "customer_notes", "users")


class TableRegistry:
    """Ordered, read-only set of tracked tables."""

    def __init__(self, tables: Iterable[TrackedTable]):
        self._tables: Dict[str, TrackedTable] = {}
        for table in tables:
            self._tables[table.name] = table

    @classmethod
    def default(cls, critical_tables: Optional[Iterable[str]] = None) -> "TableRegistry":
        critical = set(DEFAULT_CRITICAL_TABLES if critical_tables is None else critical_tables)
        return cls(
            TrackedTable(
                name=name,
                key_fields=_KEY_FIELDS[name],
                critical=name in critical,
            )
            for name in TRACKED_TABLE_NAMES
        )

    def __iter__(self):
        return iter(self._tables.values())

    def __len__(self) -> int:
        return len(self._tables)

    def __contains__(self, name: object) -> bool:
        return name in self._tables

    @property
    def names(self) -> List[str]:
        return list(self._tables)

    def get(self, name: str) -> Optional[TrackedTable]:
        return self._tables.get(name)

    def key_fields(self, name: str) -> tuple:
        table = self._tables.get(name)
        if table is None or not table.key_fields:
            return ("id",)
        return table.key_fields


def record_summary(table_name: str, record: Dict[str, Any]) -> str:
    """Human-readable one-liner for a record proposed for promotion."""
    if table_name == "customers":
        return (
            f"{record.get('company_name') or 'N/A'} "
            f"({record.get('primary_contact_name') or 'N/A'})"
        )
    if table_name == "customer_files":
        return f"{record.get('original_name')} for {record.get('customer_id')}"
    if table_name == "customer_notes":
        content = record.get("content")
        snippet = content[:50] if content else "N/A"
        return f"Note for {record.get('customer_id')}: {snippet}..."
    if table_name == "users":
        return f"{record.get('name')} ({record.get('email')})"
    return f"Record ID: {record.get('id')}"
