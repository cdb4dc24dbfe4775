"""PostgreSQL connection pool management for followdeck.

The ledger and the credential vault both live in one PostgreSQL database.
PostgreSQL serializes conflicting writers, so the engine keeps no in-process
locks around persisted state; each write operation runs in its own
transaction on a pooled connection.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import asyncpg

from presence.errors import PersistenceFailure

logger = logging.getLogger(__name__)

# Driver-level failures that mean "the store did not do what we asked".
STORAGE_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    TimeoutError,
)


@asynccontextmanager
async def translate_errors(action: str) -> AsyncIterator[None]:
    """Re-raise storage failures inside the block as ``PersistenceFailure``."""
    try:
        yield
    except STORAGE_ERRORS as e:
        logger.error(f"Failed to {action}: {type(e).__name__}: {e}")
        raise PersistenceFailure(f"Failed to {action}") from e


@dataclass
class PoolConfig:
    """Database pool configuration with sensible defaults."""

    min_size: int = 1
    max_size: int = 5
    timeout: float = 5.0
    command_timeout: float = 15.0
    max_inactive_connection_lifetime: float = 60.0
    max_retries: int = 3
    retry_delay: float = 2.0
    ssl: bool = False


class DatabaseManager:
    """Owns the asyncpg pool shared by the ledger, the vault and migrations.

    ``connect`` retries with exponential backoff so the API can start before
    PostgreSQL accepts connections.
    """

    APPLICATION_NAME = "followdeck"

    def __init__(self, database_url: str, config: PoolConfig | None = None):
        self.database_url = database_url
        self.config = config or PoolConfig()
        self._pool: asyncpg.Pool | None = None

    def _pool_kwargs(self) -> dict[str, Any]:
        cfg = self.config
        kwargs: dict[str, Any] = {
            "dsn": self.database_url,
            "min_size": cfg.min_size,
            "max_size": cfg.max_size,
            "timeout": cfg.timeout,
            "command_timeout": cfg.command_timeout,
            "max_inactive_connection_lifetime": cfg.max_inactive_connection_lifetime,
            "server_settings": {"application_name": self.APPLICATION_NAME},
        }
        if cfg.ssl:
            kwargs["ssl"] = "require"
        return kwargs

    @property
    def target(self) -> str:
        """``host:port/dbname`` without credentials, for log lines."""
        parsed = urlparse(self.database_url)
        return f"{parsed.hostname or 'unknown'}:{parsed.port or 5432}/{parsed.path.lstrip('/')}"

    async def _open_verified_pool(self) -> asyncpg.Pool:
        pool = await asyncpg.create_pool(**self._pool_kwargs())
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except BaseException:
            await pool.close()
            raise
        return pool

    async def connect(self) -> None:
        if self._pool is not None:
            logger.warning("Database pool already open")
            return

        cfg = self.config
        for attempt in range(1, cfg.max_retries + 1):
            try:
                self._pool = await self._open_verified_pool()
            except STORAGE_ERRORS as e:
                if attempt == cfg.max_retries:
                    logger.error(
                        f"Could not reach {self.target} after {attempt} attempts: "
                        f"{type(e).__name__}: {e}"
                    )
                    raise
                delay = cfg.retry_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Database attempt {attempt}/{cfg.max_retries} failed "
                    f"({type(e).__name__}: {e}), retrying in {delay}s"
                )
                await asyncio.sleep(delay)
            else:
                logger.info(f"Database pool open (target={self.target}, max={cfg.max_size})")
                return

    async def disconnect(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        await pool.close()
        logger.info("Database pool closed")

    async def check_health(self) -> bool:
        """Whether the pool can run a query right now."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire(timeout=2.0) as conn:
                await conn.fetchval("SELECT 1")
        except STORAGE_ERRORS as e:
            logger.warning(f"Database health check failed: {type(e).__name__}: {e}")
            return False
        return True

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool
