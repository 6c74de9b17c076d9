"""
Database connection management for the CRM sync subsystem.

``Database`` is the capability object handed to every sync component. It wraps
an asyncpg pool and, when its descriptor carries a schema qualifier, scopes
every logical query to that schema on the same pooled connection that runs it.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

import asyncpg
from pydantic import BaseModel, Field

from src.config.settings import Settings
from src.sync import sql
from src.sync.exceptions import ProductionWriteError
from src.sync.models import ConnectionDescriptor

logger = logging.getLogger(__name__)


class PoolOptions(BaseModel):
    """asyncpg pool options."""
    min_size: int = Field(default=1, ge=0)
    max_size: int = Field(default=5, ge=1)
    command_timeout: float = Field(default=60.0, gt=0)
    # disable, allow, prefer, require, verify-ca, verify-full; None defers to the URL's sslmode
    ssl: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "PoolOptions":
        return cls(
            min_size=settings.database.database_pool_min_size,
            max_size=settings.database.database_pool_max_size,
            command_timeout=settings.database.database_command_timeout,
            ssl=settings.database.database_ssl,
        )


class Database:
    """
    Query-executing handle bound to one connection descriptor.

    Each call acquires its own pooled connection and releases it on every
    exit path. With a schema qualifier the sequence is acquire, set the
    search path, execute, release; the search path is set before every query
    so a connection's previous state in the pool never matters. Without a
    qualifier calls are delegated straight to the pool.

    ``allow_destructive=False`` makes the handle refuse TRUNCATE/DROP before
    anything reaches the server; production handles are always built that way.
    """

    def __init__(
        self,
        descriptor: ConnectionDescriptor,
        options: Optional[PoolOptions] = None,
        allow_destructive: bool = True,
    ):
        self.descriptor = descriptor
        self.options = options or PoolOptions()
        self.allow_destructive = allow_destructive
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def schema(self) -> str:
        return self.descriptor.effective_schema

    @property
    def label(self) -> str:
        return self.descriptor.label

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    async def open(self) -> None:
        """Create the pool and probe it with ``SELECT 1``."""
        if self._pool is not None:
            return
        try:
            pool_kwargs: Dict[str, Any] = {
                "min_size": self.options.min_size,
                "max_size": self.options.max_size,
                "command_timeout": self.options.command_timeout,
            }
            if self.options.ssl:
                pool_kwargs["ssl"] = self.options.ssl
            self._pool = await asyncpg.create_pool(dsn=self.descriptor.url, **pool_kwargs)
            await self.fetchval("SELECT 1")
            logger.info(
                f"Connected to {self.label} database: {self.descriptor.redacted_url} "
                f"(schema {self.schema})"
            )
        except Exception as e:
            logger.error(f"Failed to connect to {self.label} database: {e}")
            await self.close()
            raise

    async def close(self) -> None:
        """Close the pool."""
        if self._pool is not None:
            pool, self._pool = self._pool, None
            await pool.close()
            logger.info(f"{self.label.capitalize()} database connections closed")

    async def __aenter__(self) -> "Database":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError(f"{self.label} database is not open")
        return self._pool

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire one connection scoped to this handle's schema."""
        pool = self._require_pool()
        async with pool.acquire() as conn:
            if self.descriptor.schema:
                await conn.execute(sql.set_search_path(self.descriptor.schema))
            yield conn

    async def _run(self, method: str, query: str, *args: Any) -> Any:
        if not self.allow_destructive and sql.is_destructive(query):
            raise ProductionWriteError(
                f"Refusing destructive statement on {self.label} database: {query}"
            )
        if not self.descriptor.schema:
            return await getattr(self._require_pool(), method)(query, *args)
        async with self.connection() as conn:
            return await getattr(conn, method)(query, *args)

    async def fetch(self, query: str, *args: Any) -> List[Dict[str, Any]]:
        rows = await self._run("fetch", query, *args)
        return [dict(row) for row in rows]

    async def fetchrow(self, query: str, *args: Any) -> Optional[Dict[str, Any]]:
        row = await self._run("fetchrow", query, *args)
        return dict(row) if row is not None else None

    async def fetchval(self, query: str, *args: Any) -> Any:
        return await self._run("fetchval", query, *args)

    async def execute(self, query: str, *args: Any) -> str:
        return await self._run("execute", query, *args)

    async def table_exists(self, table: str) -> bool:
        return bool(await self.fetchval(sql.TABLE_EXISTS, self.schema, table))

    async def table_columns(self, table: str) -> List[str]:
        rows = await self.fetch(sql.TABLE_COLUMNS, self.schema, table)
        return [row["column_name"] for row in rows]

    async def test_connection(self) -> Dict[str, Any]:
        """Probe the connection and return diagnostics."""
        start_time = time.time()
        result: Dict[str, Any] = {
            "success": False,
            "database": self.label,
            "url": self.descriptor.redacted_url,
            "schema": self.schema,
            "latency_ms": 0,
            "error": None,
            "details": {},
        }

        try:
            result["details"]["server_time"] = await self.fetchval("SELECT NOW()")
            rows = await self.fetch(sql.SCHEMA_TABLES, self.schema)
            result["details"]["tables"] = [row["table_name"] for row in rows]
            result["success"] = True
        except Exception as e:
            logger.error(f"{self.label} database connection test failed: {e}")
            result["error"] = str(e)

        result["latency_ms"] = (time.time() - start_time) * 1000
        return result


def create_database(
    descriptor: ConnectionDescriptor,
    settings: Settings,
    allow_destructive: bool = True,
) -> Database:
    """Build a ``Database`` using the pool options from settings."""
    return Database(
        descriptor,
        options=PoolOptions.from_settings(settings),
        allow_destructive=allow_destructive,
    )


async def get_database_stats(database: Database, tables: Iterable[str]) -> Dict[str, Any]:
    """Row counts per table on one database handle."""
    stats: Dict[str, Any] = {}
    try:
        for table in tables:
            count = await database.fetchval(sql.count_rows(database.schema, table))
            stats[table] = int(count or 0)
        return stats
    except Exception as e:
        logger.error(f"Failed to get {database.label} database stats: {e}")
        return {"error": str(e)}
