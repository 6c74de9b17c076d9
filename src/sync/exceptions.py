"""
Exceptions raised by the environment isolation and sync subsystem.

Only configuration-class errors are allowed to escape a component; every
other failure is captured in a result object by the component that hit it.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for sync subsystem errors."""
    pass


class ConfigurationError(SyncError):
    """Unsafe or incomplete environment configuration. Always fatal."""

    def __init__(self, message: str, rule: Optional[str] = None):
        super().__init__(message)
        self.rule = rule


class EnvironmentIsolationError(ConfigurationError):
    """Development configuration could reach production data."""
    pass


class UnsafeIdentifierError(ConfigurationError):
    """A table, column or schema name failed the identifier allow-list."""
    pass


class ProductionWriteError(SyncError):
    """A destructive statement was about to target the production database."""
    pass
