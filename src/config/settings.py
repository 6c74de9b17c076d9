"""
CRM Database Sync Configuration Settings
"""
import os
from typing import List, Optional
from dataclasses import dataclass, field

from dotenv import load_dotenv


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default value"""
    return os.getenv(key, default)


def get_env_int(key: str, default: int = 0) -> int:
    """Get environment variable as integer"""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get environment variable as float"""
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean"""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on')


def get_env_list(key: str, default: str = "") -> List[str]:
    """Get comma separated environment variable as a list"""
    raw = os.getenv(key, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class DatabaseSettings:
    """Database configuration settings"""

    # Connection strings, one per environment
    database_url_dev: Optional[str] = field(default_factory=lambda: get_env("DATABASE_URL_DEV") or None)
    database_url_prod: Optional[str] = field(default_factory=lambda: get_env("DATABASE_URL_PROD") or None)
    database_url: Optional[str] = field(default_factory=lambda: get_env("DATABASE_URL") or None)

    # asyncpg ssl mode: disable, prefer, require, verify-ca, verify-full
    # Unset keeps the sslmode given in the connection URL
    database_ssl: Optional[str] = field(default_factory=lambda: get_env("DATABASE_SSL") or None)

    # Connection pool settings
    database_pool_min_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MIN_SIZE", 1))
    database_pool_max_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MAX_SIZE", 5))
    database_command_timeout: float = field(default_factory=lambda: get_env_float("DATABASE_COMMAND_TIMEOUT", 60.0))


@dataclass
class SyncSettings:
    """Production/development synchronization settings"""

    max_retries: int = field(default_factory=lambda: get_env_int("SYNC_MAX_RETRIES", 3))
    retry_delay: float = field(default_factory=lambda: get_env_float("SYNC_RETRY_DELAY", 2.0))
    critical_tables: List[str] = field(
        default_factory=lambda: get_env_list(
            "SYNC_CRITICAL_TABLES", "customers,customer_notes,customer_files"
        )
    )
    report_dir: str = field(default_factory=lambda: get_env("SYNC_REPORT_DIR", "./reports"))


@dataclass
class AppSettings:
    """Application configuration settings"""

    app_name: str = field(default_factory=lambda: get_env("APP_NAME", "Vantix CRM"))
    app_version: str = field(default_factory=lambda: get_env("APP_VERSION", "1.3.0"))
    environment: str = field(default_factory=lambda: get_env("ENVIRONMENT", "production"))
    debug: bool = field(default_factory=lambda: get_env_bool("DEBUG", False))
    log_level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: get_env("LOG_DIR", "logs"))

    # Each environment listens on its own port
    port: int = field(default_factory=lambda: get_env_int("PORT", 5000))
    dev_port: int = field(default_factory=lambda: get_env_int("DEV_PORT", 3000))


@dataclass
class Settings:
    """Main settings class that combines all configuration sections"""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    app: AppSettings = field(default_factory=AppSettings)


# Load .env file if it exists
load_dotenv()

# Global settings instance
settings = Settings()
