"""
CRM Database Sync System.

Keeps the development deployment isolated from production data and
reconciles the development database against production:
- Environment resolution with isolation checks
- Table comparison on key fields
- Corrective truncate-and-reload of development tables
- Retry-until-convergent validation loop with persisted reports
- Selective promotion of development-only records into production
"""

from src.sync.exceptions import (
    ConfigurationError,
    EnvironmentIsolationError,
    ProductionWriteError,
    SyncError,
    UnsafeIdentifierError,
)
from src.sync.models import (
    # Enumerations
    Environment,
    DifferenceType,
    TableStatus,
    PromotionStatus,
    # Data classes
    ConnectionDescriptor,
    TrackedTable,
    RowDifference,
    TableComparisonResult,
    CorrectionResult,
    SyncReport,
    SyncOperation,
    PromotionItemResult,
    PromotionResult,
)

__all__ = [
    # Exceptions
    "SyncError",
    "ConfigurationError",
    "EnvironmentIsolationError",
    "UnsafeIdentifierError",
    "ProductionWriteError",
    # Enumerations
    "Environment",
    "DifferenceType",
    "TableStatus",
    "PromotionStatus",
    # Data classes
    "ConnectionDescriptor",
    "TrackedTable",
    "RowDifference",
    "TableComparisonResult",
    "CorrectionResult",
    "SyncReport",
    "SyncOperation",
    "PromotionItemResult",
    "PromotionResult",
]
