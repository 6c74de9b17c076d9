"""
Table comparison between the production and development databases.

Production is the source of truth. For every tracked table the comparator
records row counts on both sides and, for the critical tables, reconciles the
rows key by key on the table's key fields.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

from src.sync import sql
from src.sync.models import RowDifference, TableComparisonResult
from src.sync.registry import TableRegistry

logger = logging.getLogger(__name__)


def normalize_value(value: Any) -> Any:
    """
    Canonical form used for key-field equality.

    None stays None, strings are stripped, dates and datetimes become ISO-8601
    strings (aware datetimes in UTC). Applying it twice changes nothing.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.isoformat(timespec="milliseconds") + "Z"
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.isoformat()
    return value


def index_by_key(rows: List[Dict[str, Any]], primary_key: str) -> Dict[Any, Dict[str, Any]]:
    """Primary key to row lookup, preserving query order."""
    return {row.get(primary_key): row for row in rows}


class TableComparator:
    """
    Computes per-table and per-row differences between two databases.

    Args:
        production: Read handle on the production database
        development: Read handle on the development database
        registry: Tracked tables and their key fields
    """

    def __init__(self, production, development, registry: Optional[TableRegistry] = None):
        self.production = production
        self.development = development
        self.registry = registry or TableRegistry.default()

    def is_critical(self, table_name: str) -> bool:
        table = self.registry.get(table_name)
        return table is not None and table.critical

    async def compare_table(self, table_name: str, primary_key: str = "id") -> TableComparisonResult:
        """
        Compare one table. Never raises: any failure becomes a single
        comparison-error difference so the remaining tables still run.
        """
        result = TableComparisonResult(table=table_name)

        try:
            if table_name not in self.registry:
                raise ValueError(f"Table {table_name!r} is not a tracked table")

            prod_rows = await self.production.fetch(
                sql.select_all(self.production.schema, table_name, primary_key)
            )
            dev_rows = await self.development.fetch(
                sql.select_all(self.development.schema, table_name, primary_key)
            )
        except Exception as e:
            logger.error(f"Error comparing table {table_name}: {e}")
            result.differences.append(RowDifference.comparison_error(table_name, str(e)))
            return result

        result.production_count = len(prod_rows)
        result.development_count = len(dev_rows)
        logger.info(
            f"{table_name}: Production={result.production_count}, "
            f"Development={result.development_count}"
        )

        if result.production_count != result.development_count:
            result.differences.append(
                RowDifference.count_mismatch(
                    table_name, result.production_count, result.development_count
                )
            )

        if self.is_critical(table_name):
            try:
                result.differences.extend(
                    self.compare_rows(table_name, primary_key, prod_rows, dev_rows)
                )
            except Exception as e:
                logger.error(f"Error comparing data for {table_name}: {e}")
                result.differences.append(RowDifference.comparison_error(table_name, str(e)))

        return result

    def compare_rows(
        self,
        table_name: str,
        primary_key: str,
        prod_rows: List[Dict[str, Any]],
        dev_rows: List[Dict[str, Any]],
    ) -> List[RowDifference]:
        """Row-level reconciliation on the table's key fields."""
        differences: List[RowDifference] = []
        prod_by_key = index_by_key(prod_rows, primary_key)
        dev_by_key = index_by_key(dev_rows, primary_key)
        key_fields = self.registry.key_fields(table_name)

        for key, prod_row in prod_by_key.items():
            dev_row = dev_by_key.get(key)
            if dev_row is None:
                differences.append(RowDifference.missing_in_dev(table_name, prod_row, key))
                continue

            for field_name in key_fields:
                prod_value = prod_row.get(field_name)
                dev_value = dev_row.get(field_name)
                if normalize_value(prod_value) != normalize_value(dev_value):
                    differences.append(
                        RowDifference.field_mismatch(
                            table_name, key, field_name, prod_value, dev_value
                        )
                    )

        for key, dev_row in dev_by_key.items():
            if key not in prod_by_key:
                differences.append(RowDifference.missing_in_production(table_name, dev_row, key))

        return differences

    async def compare_all(self) -> List[TableComparisonResult]:
        """Compare every tracked table, strictly one after another in registry order."""
        results = []
        for table in self.registry:
            results.append(await self.compare_table(table.name, table.primary_key))
        return results
