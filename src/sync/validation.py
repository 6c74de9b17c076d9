"""
Production-to-development validation loop.

Compares every tracked table, corrects the ones that differ, waits, and
compares again until the environments converge or the retry budget runs out:

    Comparing -> Converged
    Comparing -> Correcting -> Comparing -> ... -> Converged | Exhausted
"""

import asyncio
import enum
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from src.sync.comparator import TableComparator
from src.sync.models import CorrectionResult, SyncReport, TableComparisonResult
from src.sync.reporting import SyncReportWriter
from src.sync.synchronizer import CorrectiveSynchronizer

logger = logging.getLogger(__name__)


class LoopState(str, enum.Enum):
    """Validation loop states."""
    COMPARING = "comparing"
    CORRECTING = "correcting"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


class ValidationLoop:
    """
    Retry-until-convergent synchronization of development against production.

    Args:
        comparator: Table comparator over both databases
        synchronizer: Corrective synchronizer over both databases
        max_retries: Maximum number of comparison passes
        retry_delay: Seconds to wait after a correction before re-comparing
        report_writer: Persists the final report; skipped when None
    """

    def __init__(
        self,
        comparator: TableComparator,
        synchronizer: CorrectiveSynchronizer,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        report_writer: Optional[SyncReportWriter] = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.comparator = comparator
        self.synchronizer = synchronizer
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.report_writer = report_writer
        self.state = LoopState.COMPARING
        self.report_path = None

    async def _compare(self) -> Tuple[List[TableComparisonResult], Dict[str, dict]]:
        results = await self.comparator.compare_all()
        summaries = {r.table: r.summary() for r in results}
        return results, summaries

    async def run(self) -> SyncReport:
        """Run the loop to a terminal state and return the frozen report."""
        logger.info("Starting Production-to-Development Sync Validation...")
        start_time = datetime.now(timezone.utc)
        attempt = 0
        summaries: Dict[str, dict] = {}
        corrections: List[CorrectionResult] = []
        self.state = LoopState.COMPARING

        while self.state is LoopState.COMPARING:
            attempt += 1
            logger.info(f"Sync Attempt {attempt}/{self.max_retries}")

            results, summaries = await self._compare()
            differing = [r for r in results if r.has_differences]

            if not differing:
                logger.info("SUCCESS: Development database matches Production exactly")
                self.state = LoopState.CONVERGED
                break

            total = sum(len(r.differences) for r in differing)
            logger.warning(
                f"Found {total} differences in {len(differing)} tables between "
                "Production and Development"
            )

            if attempt >= self.max_retries:
                logger.error("FAILED: Could not achieve exact sync after maximum retries")
                self.state = LoopState.EXHAUSTED
                break

            self.state = LoopState.CORRECTING
            corrections.extend(await self.synchronizer.correct_all(differing))

            logger.info(f"Waiting {self.retry_delay} seconds before re-validation...")
            await asyncio.sleep(self.retry_delay)
            self.state = LoopState.COMPARING

        report = SyncReport(
            start_time=start_time,
            end_time=datetime.now(timezone.utc),
            tables=summaries,
            attempts=attempt,
            success=self.state is LoopState.CONVERGED,
            corrections=tuple(corrections),
        )

        log_sync_report(report)
        if self.report_writer is not None:
            self.report_path = self.report_writer.write_sync_report(report)
        return report


def log_sync_report(report: SyncReport) -> None:
    """Console summary of a finished run."""
    logger.info("SYNCHRONIZATION REPORT")
    logger.info(f"Start Time: {report.start_time.isoformat()}")
    logger.info(f"End Time: {report.end_time.isoformat()}")
    logger.info(f"Duration: {report.duration_seconds:.2f} seconds")
    logger.info(f"Attempts: {report.attempts}")
    logger.info(f"Status: {'SUCCESS' if report.success else 'FAILED'}")
    for table, info in report.tables.items():
        logger.info(
            f"  {table}: {info['status']} (Prod: {info['prod_count']}, Dev: {info['dev_count']})"
        )
