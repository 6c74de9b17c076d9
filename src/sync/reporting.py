"""
Persistence of sync and comparison reports.

One JSON file per run, named with a UTC timestamp, written to the configured
report directory for audit purposes.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union
from uuid import UUID

from src.sync.models import SyncReport

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


def dumps_report(data: Dict[str, Any]) -> str:
    """Serialize a report with stable key order."""
    return json.dumps(data, indent=2, default=_json_default)


class SyncReportWriter:
    """Writes timestamped report files into ``report_dir``."""

    def __init__(self, report_dir: Union[str, Path]):
        self.report_dir = Path(report_dir)

    def _path(self, prefix: str, when: Optional[datetime] = None) -> Path:
        when = when or datetime.now(timezone.utc)
        stamp = when.strftime("%Y%m%dT%H%M%S%fZ")
        return self.report_dir / f"{prefix}-{stamp}.json"

    def _write(self, path: Path, data: Dict[str, Any]) -> Path:
        self.report_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(dumps_report(data), encoding="utf-8")
        logger.info(f"Detailed report saved to: {path}")
        return path

    def write_sync_report(self, report: SyncReport) -> Path:
        return self._write(self._path("sync-report", report.end_time), report.to_dict())

    def write_comparison_report(self, report: Dict[str, Any]) -> Path:
        return self._write(self._path("database-sync-report"), report)
