"""
Manual review and selective promotion of development records.

``DatabaseComparisonTool`` produces a read-only comparison report of the
records each side lacks. ``SelectivePromotionTool`` takes item ids picked from
that report (``<table>-<recordId>``) and upserts the development rows into
production. Production tables are only ever upserted into, never cleared.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from src.sync import sql
from src.sync.comparator import index_by_key
from src.sync.models import (
    DifferenceType,
    PromotionResult,
    RowDifference,
    SyncOperation,
    TableComparisonResult,
)
from src.sync.registry import REPORT_TABLE_NAMES, TableRegistry, record_summary
from src.sync.reporting import SyncReportWriter
from src.system.logging_config import log_audit_event

logger = logging.getLogger(__name__)

RECORD_NOT_FOUND = "Record not found"


def generate_recommendations(
    missing_in_prod: Dict[str, List[Dict[str, Any]]],
    total_missing_in_dev: int,
) -> List[Dict[str, str]]:
    """Threshold checks on the comparison counts."""
    recommendations = []

    missing_customers = len(missing_in_prod.get("customers", []))
    missing_files = len(missing_in_prod.get("customer_files", []))
    missing_notes = len(missing_in_prod.get("customer_notes", []))

    if missing_customers > 0:
        recommendations.append({
            "priority": "HIGH",
            "type": "MISSING_CUSTOMERS",
            "message": (
                f"{missing_customers} customer records exist in Dev but not in Prod. "
                "These should be reviewed for potential sync."
            ),
        })

    if missing_files > 0:
        recommendations.append({
            "priority": "MEDIUM",
            "type": "MISSING_FILES",
            "message": (
                f"{missing_files} file records exist in Dev but not in Prod. "
                "Check if these files were uploaded to the wrong environment."
            ),
        })

    if missing_notes > 0:
        recommendations.append({
            "priority": "MEDIUM",
            "type": "MISSING_NOTES",
            "message": (
                f"{missing_notes} note records exist in Dev but not in Prod. "
                "These might contain important customer interactions."
            ),
        })

    if total_missing_in_dev > 0:
        recommendations.append({
            "priority": "INFO",
            "type": "PROD_NEWER_DATA",
            "message": (
                f"Production has {total_missing_in_dev} records not in Dev. "
                "This is expected since Prod is the source of truth."
            ),
        })

    return recommendations


class DatabaseComparisonTool:
    """
    One-shot, read-only comparison of production and development by primary key.

    The latest results are kept as the snapshot that selective promotion
    resolves item ids against.
    """

    def __init__(
        self,
        production,
        development,
        registry: Optional[TableRegistry] = None,
        tables: Iterable[str] = REPORT_TABLE_NAMES,
    ):
        self.production = production
        self.development = development
        self.registry = registry or TableRegistry.default()
        self.tables = [t for t in tables if t in self.registry]
        self.results: Optional[Dict[str, TableComparisonResult]] = None
        self.report: Optional[Dict[str, Any]] = None

    def primary_key(self, table_name: str) -> str:
        table = self.registry.get(table_name)
        return table.primary_key if table else "id"

    async def compare_table(self, table_name: str) -> TableComparisonResult:
        """Key-only comparison of one table; failures become a comparison error."""
        primary_key = self.primary_key(table_name)
        result = TableComparisonResult(table=table_name)
        logger.info(f"Comparing table: {table_name}")

        try:
            prod_rows = await self.production.fetch(
                sql.select_all(self.production.schema, table_name, primary_key)
            )
            dev_rows = await self.development.fetch(
                sql.select_all(self.development.schema, table_name, primary_key)
            )
        except Exception as e:
            logger.error(f"Error comparing {table_name}: {e}")
            result.differences.append(RowDifference.comparison_error(table_name, str(e)))
            return result

        result.production_count = len(prod_rows)
        result.development_count = len(dev_rows)
        prod_by_key = index_by_key(prod_rows, primary_key)
        dev_by_key = index_by_key(dev_rows, primary_key)

        for key, record in dev_by_key.items():
            if key not in prod_by_key:
                result.differences.append(RowDifference.missing_in_production(table_name, record, key))
        for key, record in prod_by_key.items():
            if key not in dev_by_key:
                result.differences.append(RowDifference.missing_in_dev(table_name, record, key))

        logger.info(
            f"  Production: {result.production_count} records, "
            f"Development: {result.development_count} records"
        )
        return result

    async def generate_report(self) -> Dict[str, Any]:
        """Compare the report tables and build the comparison report."""
        logger.info("Starting comprehensive database comparison...")
        results: Dict[str, TableComparisonResult] = {}
        for table_name in self.tables:
            results[table_name] = await self.compare_table(table_name)
        self.results = results

        missing_in_prod = {
            name: [d.record for d in r.differences_of(DifferenceType.MISSING_IN_PRODUCTION)]
            for name, r in results.items()
        }
        missing_in_dev = {
            name: [d.record for d in r.differences_of(DifferenceType.MISSING_IN_DEV)]
            for name, r in results.items()
        }
        errors = {
            name: d.error
            for name, r in results.items()
            for d in r.differences_of(DifferenceType.COMPARISON_ERROR)
        }

        summary = {
            "total_missing_in_prod": sum(len(v) for v in missing_in_prod.values()),
            "total_missing_in_dev": sum(len(v) for v in missing_in_dev.values()),
        }
        self.report = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "missing_in_prod": missing_in_prod,
            "missing_in_dev": missing_in_dev,
            "summary": summary,
            "recommendations": generate_recommendations(
                missing_in_prod, summary["total_missing_in_dev"]
            ),
            "errors": errors,
        }
        return self.report

    def missing_in_production(self, table_name: str) -> List[Dict[str, Any]]:
        if not self.results or table_name not in self.results:
            return []
        return [
            d.record
            for d in self.results[table_name].differences_of(DifferenceType.MISSING_IN_PRODUCTION)
        ]

    def find_missing_record(self, table_name: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Locate a development-only record in the current snapshot by its id text."""
        primary_key = self.primary_key(table_name)
        for record in self.missing_in_production(table_name):
            if str(record.get(primary_key)) == record_id:
                return record
        return None

    def sync_operations(self) -> List[SyncOperation]:
        """Promotion proposals built from the missing-in-production sets."""
        operations = []
        for table_name in self.tables:
            records = self.missing_in_production(table_name)
            if records:
                primary_key = self.primary_key(table_name)
                operations.append(SyncOperation(
                    table=table_name,
                    records=[
                        {"id": r.get(primary_key), "summary": record_summary(table_name, r)}
                        for r in records
                    ],
                ))
        return operations

    def generate_sync_script(self) -> Dict[str, Any]:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "operations": [op.to_dict() for op in self.sync_operations()],
        }

    def save_report(self, writer: SyncReportWriter):
        if self.report is None:
            raise RuntimeError("No comparison report generated yet")
        return writer.write_comparison_report(self.report)


class SelectivePromotionTool:
    """
    Upserts chosen development-only records into production.

    Args:
        production: Handle on the production database (upserts only)
        comparison_tool: Source of the current missing-in-production snapshot
    """

    def __init__(self, production, comparison_tool: DatabaseComparisonTool):
        self.production = production
        self.comparison_tool = comparison_tool

    @staticmethod
    def parse_item_id(item_id: str) -> Tuple[str, str]:
        """Split ``<table>-<recordId>``; the id is everything after the last dash."""
        table_name, sep, record_id = item_id.rpartition("-")
        if not sep or not table_name or not record_id:
            raise ValueError(f"Malformed item id: {item_id!r}")
        return table_name, record_id

    async def promote_record(self, table_name: str, record: Dict[str, Any]) -> None:
        """Upsert one record into production using production's declared columns."""
        primary_key = self.comparison_tool.primary_key(table_name)
        columns = await self.production.table_columns(table_name)
        if not columns:
            raise ValueError(f"Table {table_name} has no columns in production")

        statement = sql.upsert_row(self.production.schema, table_name, columns, primary_key)
        await self.production.execute(statement, *[record.get(c) for c in columns])
        log_audit_event(
            action="promote",
            resource_type=table_name,
            resource_id=str(record.get(primary_key)),
            details="development record upserted into production",
        )

    async def promote(self, item_ids: Iterable[str], refresh: bool = False) -> PromotionResult:
        """
        Promote every item. Each item yields exactly one result entry; nothing
        is raised for per-item failures.
        """
        if refresh or self.comparison_tool.results is None:
            await self.comparison_tool.generate_report()

        result = PromotionResult()
        for item_id in item_ids:
            try:
                table_name, record_id = self.parse_item_id(item_id)
            except ValueError:
                result.record_failure(item_id, RECORD_NOT_FOUND)
                continue

            record = self.comparison_tool.find_missing_record(table_name, record_id)
            if record is None:
                result.record_failure(item_id, RECORD_NOT_FOUND)
                continue

            try:
                await self.promote_record(table_name, record)
                logger.info(f"Successfully synced {table_name} record {record_id} to production")
                result.record_success(item_id)
            except Exception as e:
                logger.error(f"Error syncing {table_name} record {record_id}: {e}")
                result.record_failure(item_id, str(e))

        logger.info(
            f"Promotion finished: {result.successful} successful, "
            f"{result.failed} failed, {result.total} total"
        )
        return result
