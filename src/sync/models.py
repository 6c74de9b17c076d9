"""
Data model for the environment isolation and sync subsystem.

Plain dataclasses and enumerations: environments, connection descriptors,
tracked tables, row differences, comparison results, sync reports and the
selective promotion results. Nothing here is persisted as application state;
reports are serialized to disk by ``src.sync.reporting``.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError


DEFAULT_SCHEMA = "public"
DEFAULT_POSTGRES_PORT = 5432


# ============================================================================
# Enumerations
# ============================================================================

class Environment(str, enum.Enum):
    """Process-wide deployment environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"

    @classmethod
    def from_flag(cls, flag: Optional[str]) -> "Environment":
        """Only an explicit ``development`` flag selects development."""
        if flag and flag.strip().lower() == cls.DEVELOPMENT.value:
            return cls.DEVELOPMENT
        return cls.PRODUCTION

    @property
    def is_development(self) -> bool:
        return self is Environment.DEVELOPMENT

    @property
    def dev_endpoints_enabled(self) -> bool:
        """Feature gate for development-only endpoints of the web layer."""
        return self is Environment.DEVELOPMENT


class DifferenceType(str, enum.Enum):
    """Kinds of difference between a production and a development table."""
    COUNT_MISMATCH = "COUNT_MISMATCH"
    MISSING_IN_DEV = "MISSING_IN_DEV"
    # Row exists in development only (extra in development)
    MISSING_IN_PRODUCTION = "MISSING_IN_PRODUCTION"
    FIELD_MISMATCH = "FIELD_MISMATCH"
    COMPARISON_ERROR = "COMPARISON_ERROR"


class TableStatus(str, enum.Enum):
    """Per-table status recorded in a sync report."""
    MATCH = "MATCH"
    MISMATCH = "MISMATCH"
    ERROR = "ERROR"


class PromotionStatus(str, enum.Enum):
    """Outcome of promoting one development record."""
    SUCCESS = "success"
    FAILED = "failed"


# ============================================================================
# Connections
# ============================================================================

def _strip_schema_param(url: str) -> Tuple[str, Optional[str]]:
    """Split a ``?schema=<name>`` qualifier off a connection URL."""
    parts = urlsplit(url)
    if not parts.query:
        return url, None

    schema = None
    kept = []
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key == "schema":
            schema = value or None
        else:
            kept.append((key, value))

    stripped = urlunsplit(parts._replace(query=urlencode(kept)))
    return stripped, schema


@dataclass(frozen=True)
class ConnectionDescriptor:
    """
    A connection string plus an optional schema qualifier.

    ``url`` never carries the ``schema`` query parameter; it is held in
    ``schema`` instead so the driver never sees it.
    """
    url: str
    schema: Optional[str] = None
    label: str = "database"

    @classmethod
    def from_url(cls, raw_url: str, label: str = "database") -> "ConnectionDescriptor":
        url, schema = _strip_schema_param(raw_url.strip())
        return cls(url=url, schema=schema, label=label)

    @property
    def effective_schema(self) -> str:
        """Schema every query on this connection runs in."""
        return self.schema or DEFAULT_SCHEMA

    @property
    def identity(self) -> Tuple[str, int, str, str]:
        """Normalized (host, port, database, schema) of the physical target."""
        try:
            parsed = make_url(self.url)
            host = (parsed.host or "localhost").lower()
            port = parsed.port or DEFAULT_POSTGRES_PORT
            database = parsed.database or ""
        except ArgumentError:
            # Not a URL (e.g. a bare DSN); fall back to the literal text
            host, port, database = self.url.strip().lower(), DEFAULT_POSTGRES_PORT, ""
        return host, port, database, self.effective_schema

    @property
    def redacted_url(self) -> str:
        """URL safe to log: the password is masked."""
        try:
            return make_url(self.url).render_as_string(hide_password=True)
        except ArgumentError:
            return self.url[:50] + "..."

    def same_target_as(self, other: "ConnectionDescriptor") -> bool:
        if self.url == other.url and self.schema == other.schema:
            return True
        return self.identity == other.identity


# ============================================================================
# Table registry entries
# ============================================================================

@dataclass(frozen=True)
class TrackedTable:
    """A table whose production and development copies are reconciled."""
    name: str
    primary_key: str = "id"
    key_fields: Tuple[str, ...] = ()
    critical: bool = False


# ============================================================================
# Differences and comparison results
# ============================================================================

@dataclass
class RowDifference:
    """One detected difference. Payload fields are set according to ``type``."""
    type: DifferenceType
    table: str
    record: Optional[Dict[str, Any]] = None
    record_id: Any = None
    field: Optional[str] = None
    prod_value: Any = None
    dev_value: Any = None
    production_count: Optional[int] = None
    development_count: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def count_mismatch(cls, table: str, production: int, development: int) -> "RowDifference":
        return cls(
            type=DifferenceType.COUNT_MISMATCH,
            table=table,
            production_count=production,
            development_count=development,
        )

    @classmethod
    def missing_in_dev(cls, table: str, record: Dict[str, Any], record_id: Any) -> "RowDifference":
        return cls(type=DifferenceType.MISSING_IN_DEV, table=table, record=record, record_id=record_id)

    @classmethod
    def missing_in_production(cls, table: str, record: Dict[str, Any], record_id: Any) -> "RowDifference":
        return cls(
            type=DifferenceType.MISSING_IN_PRODUCTION,
            table=table,
            record=record,
            record_id=record_id,
        )

    @classmethod
    def field_mismatch(
        cls, table: str, record_id: Any, field_name: str, prod_value: Any, dev_value: Any
    ) -> "RowDifference":
        return cls(
            type=DifferenceType.FIELD_MISMATCH,
            table=table,
            record_id=record_id,
            field=field_name,
            prod_value=prod_value,
            dev_value=dev_value,
        )

    @classmethod
    def comparison_error(cls, table: str, error: str) -> "RowDifference":
        return cls(type=DifferenceType.COMPARISON_ERROR, table=table, error=error)

    def to_dict(self) -> Dict[str, Any]:
        """Stable, JSON-friendly representation (only populated payload keys)."""
        data: Dict[str, Any] = {"type": self.type.value, "table": self.table}
        if self.type is DifferenceType.COUNT_MISMATCH:
            data["production"] = self.production_count
            data["development"] = self.development_count
        elif self.type is DifferenceType.FIELD_MISMATCH:
            data["field"] = self.field
            data["prod_value"] = self.prod_value
            data["dev_value"] = self.dev_value
            data["record_id"] = self.record_id
        elif self.type is DifferenceType.COMPARISON_ERROR:
            data["error"] = self.error
        else:
            data["record_id"] = self.record_id
            data["record"] = self.record
        return data


@dataclass
class TableComparisonResult:
    """Outcome of comparing one table across environments."""
    table: str
    production_count: int = 0
    development_count: int = 0
    differences: List[RowDifference] = field(default_factory=list)

    @property
    def has_differences(self) -> bool:
        return len(self.differences) > 0

    @property
    def has_error(self) -> bool:
        return any(d.type is DifferenceType.COMPARISON_ERROR for d in self.differences)

    @property
    def status(self) -> TableStatus:
        if self.has_error:
            return TableStatus.ERROR
        return TableStatus.MISMATCH if self.has_differences else TableStatus.MATCH

    def differences_of(self, difference_type: DifferenceType) -> List[RowDifference]:
        return [d for d in self.differences if d.type is difference_type]

    def summary(self) -> Dict[str, Any]:
        return {
            "prod_count": self.production_count,
            "dev_count": self.development_count,
            "differences": [d.to_dict() for d in self.differences],
            "status": self.status.value,
        }


@dataclass
class CorrectionResult:
    """Outcome of forcing one development table to match production."""
    table: str
    rows_copied: int = 0
    columns_used: int = 0
    skipped: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and not self.skipped

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "rows_copied": self.rows_copied,
            "columns_used": self.columns_used,
            "skipped": self.skipped,
            "error": self.error,
        }


@dataclass(frozen=True)
class SyncReport:
    """Immutable record of one validation loop run."""
    start_time: datetime
    end_time: datetime
    tables: Dict[str, Dict[str, Any]]
    attempts: int
    success: bool
    corrections: Tuple[CorrectionResult, ...] = ()

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_seconds": self.duration_seconds,
            "attempts": self.attempts,
            "success": self.success,
            "tables": self.tables,
            "corrections": [c.to_dict() for c in self.corrections],
        }


# ============================================================================
# Selective promotion
# ============================================================================

@dataclass
class SyncOperation:
    """Development-only records of one table proposed for promotion."""
    table: str
    records: List[Dict[str, Any]] = field(default_factory=list)
    action: str = "INSERT_FROM_DEV"

    @property
    def count(self) -> int:
        return len(self.records)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "action": self.action,
            "records": self.records,
            "count": self.count,
        }


@dataclass
class PromotionItemResult:
    """Result entry for one promoted item id."""
    item: str
    status: PromotionStatus
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"item": self.item, "status": self.status.value}
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class PromotionResult:
    """Aggregate result of a selective promotion request."""
    successful: int = 0
    failed: int = 0
    results: List[PromotionItemResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    def record_success(self, item: str) -> None:
        self.successful += 1
        self.results.append(PromotionItemResult(item=item, status=PromotionStatus.SUCCESS))

    def record_failure(self, item: str, error: str) -> None:
        self.failed += 1
        self.results.append(PromotionItemResult(item=item, status=PromotionStatus.FAILED, error=error))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "successful": self.successful,
            "failed": self.failed,
            "total": self.total,
            "results": [r.to_dict() for r in self.results],
        }
