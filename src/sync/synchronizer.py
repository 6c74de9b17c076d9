"""
Corrective synchronization: force development tables to match production.

Each affected development table is truncated and reloaded from production
using the columns both sides share. Production is only ever read here.
"""

from typing import Iterable, List, Optional

from src.sync import sql
from src.sync.exceptions import ProductionWriteError
from src.sync.models import CorrectionResult, TableComparisonResult
from src.sync.registry import TableRegistry
from src.system.logging_config import get_logger, log_audit_event


class CorrectiveSynchronizer:
    """
    Truncate-and-reload of development tables from production.

    Args:
        production: Read handle on the production database
        development: Read/write handle on the development database
        registry: Tracked tables (source of allowed table names and primary keys)
    """

    def __init__(self, production, development, registry: Optional[TableRegistry] = None):
        if production.descriptor.same_target_as(development.descriptor):
            raise ProductionWriteError(
                "Corrective sync refused: development handle points at the production database"
            )
        self.production = production
        self.development = development
        self.registry = registry or TableRegistry.default()
        self.logger = get_logger(
            __name__, database=development.label, target_schema=development.schema
        )

    def _primary_key(self, table_name: str) -> str:
        table = self.registry.get(table_name)
        return table.primary_key if table else "id"

    async def shared_columns(self, table_name: str, primary_key: str) -> List[str]:
        """Columns present on both sides, in production order, minus the primary key."""
        prod_columns = await self.production.table_columns(table_name)
        dev_columns = set(await self.development.table_columns(table_name))
        return [c for c in prod_columns if c != primary_key and c in dev_columns]

    async def correct_table(self, comparison: TableComparisonResult) -> CorrectionResult:
        """
        Replace the development copy of one table with production's rows.

        Never raises; failures are returned in the result.
        """
        table_name = comparison.table
        result = CorrectionResult(table=table_name)
        self.logger.info(f"Correcting {table_name}...")

        try:
            if table_name not in self.registry:
                raise ValueError(f"Table {table_name!r} is not a tracked table")
            primary_key = self._primary_key(table_name)

            if not await self.development.table_exists(table_name):
                self.logger.warning(
                    f"Table {table_name} does not exist in development schema "
                    f"{self.development.schema}, skipping"
                )
                result.skipped = True
                return result

            columns = await self.shared_columns(table_name, primary_key)
            if not columns:
                self.logger.warning(f"No matching columns found for {table_name}, skipping")
                result.skipped = True
                return result

            await self.development.execute(sql.truncate_table(self.development.schema, table_name))
            log_audit_event(
                action="truncate",
                resource_type=table_name,
                resource_id=self.development.schema,
                details="development table cleared for reload from production",
            )

            prod_rows = await self.production.fetch(
                sql.select_columns(self.production.schema, table_name, columns, primary_key)
            )
            insert = sql.insert_row(self.development.schema, table_name, columns)
            for row in prod_rows:
                await self.development.execute(insert, *[row[c] for c in columns])
                result.rows_copied += 1

            result.columns_used = len(columns)
            self.logger.info(
                f"Synchronized {result.rows_copied} records for {table_name} "
                f"({result.columns_used} columns)"
            )

        except Exception as e:
            self.logger.error(f"Failed to correct {table_name}: {e}")
            result.error = str(e)

        return result

    async def correct_all(self, comparisons: Iterable[TableComparisonResult]) -> List[CorrectionResult]:
        """Correct every table that has differences; one failure never stops the pass."""
        self.logger.info("Performing corrective synchronization...")
        results = []
        for comparison in comparisons:
            if comparison.has_differences:
                results.append(await self.correct_table(comparison))
        return results

    async def sync_all_from_production(self) -> List[CorrectionResult]:
        """Reload every tracked development table from production, no comparison first."""
        self.logger.info("Syncing all tracked tables from production to development")
        return [
            await self.correct_table(TableComparisonResult(table=table.name))
            for table in self.registry
        ]
