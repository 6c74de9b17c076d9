#!/usr/bin/env python3
"""
Command line interface for production/development database synchronization.

Production is the permanent source of truth. Every command resolves the
environment first and refuses to open any connection when isolation between
the two databases cannot be guaranteed.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional, Tuple

from src.config.environment import EnvironmentResolver
from src.config.settings import Settings
from src.database.connection import Database, create_database, get_database_stats
from src.sync.comparator import TableComparator
from src.sync.exceptions import ConfigurationError
from src.sync.promotion import DatabaseComparisonTool, SelectivePromotionTool
from src.sync.registry import REPORT_TABLE_NAMES, TableRegistry, record_summary
from src.sync.reporting import SyncReportWriter, dumps_report
from src.sync.synchronizer import CorrectiveSynchronizer
from src.sync.validation import ValidationLoop
from src.system.logging_config import setup_logging

logger = logging.getLogger(__name__)

PRIORITY_MARKERS = {"HIGH": "[HIGH]", "MEDIUM": "[MEDIUM]", "INFO": "[INFO]"}


def _open_handles(settings: Settings) -> Tuple[Database, Database]:
    """Resolve both environments and build the two database handles."""
    tooling = EnvironmentResolver(settings).resolve_tooling()
    production = create_database(tooling.production, settings, allow_destructive=False)
    development = create_database(tooling.development, settings, allow_destructive=True)
    return production, development


async def _run_with_handles(settings: Settings, command) -> int:
    production, development = _open_handles(settings)
    try:
        await production.open()
        await development.open()
        return await command(production, development)
    finally:
        await production.close()
        await development.close()


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _registry(settings: Settings) -> TableRegistry:
    return TableRegistry.default(settings.sync.critical_tables)


async def validate_command(settings: Settings, args) -> int:
    async def command(production, development):
        registry = _registry(settings)
        loop = ValidationLoop(
            comparator=TableComparator(production, development, registry),
            synchronizer=CorrectiveSynchronizer(production, development, registry),
            max_retries=settings.sync.max_retries if args.max_retries is None else args.max_retries,
            retry_delay=settings.sync.retry_delay if args.retry_delay is None else args.retry_delay,
            report_writer=SyncReportWriter(settings.sync.report_dir),
        )
        report = await loop.run()
        return 0 if report.success else 1

    return await _run_with_handles(settings, command)


def _print_comparison(report: dict) -> None:
    print("\n" + "=" * 60)
    print("DATABASE COMPARISON REPORT")
    print("=" * 60)
    print(f"Generated: {report['timestamp']}")
    print(f"Total missing in Production: {report['summary']['total_missing_in_prod']}")
    print(f"Total missing in Development: {report['summary']['total_missing_in_dev']}")

    print("\nDETAILED BREAKDOWN:")
    for table, records in report["missing_in_prod"].items():
        if not records:
            continue
        print(f"\n   {table.upper()}:")
        print(f"      Missing in Prod: {len(records)}")
        for record in records[:5]:
            print(f"      - {record_summary(table, record)}")
        if len(records) > 5:
            print(f"      ... and {len(records) - 5} more")

    for table, error in report.get("errors", {}).items():
        print(f"\n   {table.upper()}: comparison failed: {error}")

    print("\nRECOMMENDATIONS:")
    for rec in report["recommendations"]:
        marker = PRIORITY_MARKERS.get(rec["priority"], rec["priority"])
        print(f"   {marker} {rec['type']}: {rec['message']}")


async def compare_command(settings: Settings, args) -> int:
    async def command(production, development):
        tool = DatabaseComparisonTool(production, development, _registry(settings))
        report = await tool.generate_report()
        _print_comparison(report)
        tool.save_report(SyncReportWriter(settings.sync.report_dir))
        if args.script:
            print(dumps_report(tool.generate_sync_script()))
        print("\nComparison complete. Production remains the source of truth.")
        print("No data has been modified in either database.")
        return 0

    return await _run_with_handles(settings, command)


async def promote_command(settings: Settings, args) -> int:
    async def command(production, development):
        tool = SelectivePromotionTool(
            production,
            DatabaseComparisonTool(production, development, _registry(settings)),
        )
        result = await tool.promote(args.items)
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.failed == 0 else 1

    return await _run_with_handles(settings, command)


async def sync_from_prod_command(settings: Settings, args) -> int:
    async def command(production, development):
        synchronizer = CorrectiveSynchronizer(production, development, _registry(settings))
        results = await synchronizer.sync_all_from_production()
        print(json.dumps([r.to_dict() for r in results], indent=2))
        return 0 if all(r.error is None for r in results) else 1

    return await _run_with_handles(settings, command)


async def stats_command(settings: Settings, args) -> int:
    async def command(production, development):
        database = production if args.side == "production" else development
        stats = await get_database_stats(database, REPORT_TABLE_NAMES)
        print(json.dumps(stats, indent=2))
        return 1 if "error" in stats else 0

    return await _run_with_handles(settings, command)


async def check_env_command(settings: Settings, args) -> int:
    resolver = EnvironmentResolver(settings)
    resolved = resolver.resolve_application(allow_placeholder=not args.strict)
    database = resolver.create_application_database(resolved)
    async with database:
        diagnostics = await database.test_connection()
    diagnostics["environment"] = resolved.environment.value
    diagnostics["placeholder"] = resolved.placeholder
    diagnostics["port"] = resolved.port
    diagnostics["dev_endpoints_enabled"] = resolved.environment.dev_endpoints_enabled
    print(dumps_report(diagnostics))
    return 0 if diagnostics["success"] or resolved.placeholder else 1


COMMANDS = {
    "validate": validate_command,
    "compare": compare_command,
    "promote": promote_command,
    "sync-from-prod": sync_from_prod_command,
    "stats": stats_command,
    "check-env": check_env_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crm-db-sync",
        description="Compare and synchronize the development database against production",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    validate_parser = subparsers.add_parser(
        "validate", help="Compare and correct development until it matches production"
    )
    validate_parser.add_argument("--max-retries", type=_positive_int, default=None, help="Comparison pass budget")
    validate_parser.add_argument("--retry-delay", type=float, default=None, help="Seconds between passes")

    compare_parser = subparsers.add_parser("compare", help="Read-only comparison report")
    compare_parser.add_argument("--script", action="store_true", help="Also print promotion proposals")

    promote_parser = subparsers.add_parser(
        "promote", help="Upsert selected development-only records into production"
    )
    promote_parser.add_argument("items", nargs="+", help="Item ids of the form <table>-<recordId>")

    subparsers.add_parser("sync-from-prod", help="Reload every tracked development table from production")

    stats_parser = subparsers.add_parser("stats", help="Row counts of the main tables")
    stats_parser.add_argument(
        "--side", choices=("production", "development"), default="development"
    )

    check_parser = subparsers.add_parser("check-env", help="Resolve the application environment")
    check_parser.add_argument(
        "--strict", action="store_true", help="Fail instead of using placeholder mode"
    )

    return parser


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    """Run one command and return its exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    settings = settings or Settings()
    setup_logging(settings)

    try:
        return asyncio.run(COMMANDS[args.command](settings, args))
    except ConfigurationError as e:
        logger.critical(f"Configuration error ({e.rule}): {e}")
        return 1
    except Exception as e:
        logger.error(f"Sync process failed: {e}")
        return 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
