"""Numbered SQL migrations tracked in ``schema_migrations``."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path

import asyncpg

from presence.database import translate_errors

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"

# Held for the whole run so two API processes starting together apply each file once.
MIGRATION_LOCK_KEY = 7_201_456

TRACKING_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version    TEXT PRIMARY KEY,
        name       TEXT NOT NULL,
        checksum   TEXT NOT NULL DEFAULT '',
        applied_at TIMESTAMPTZ DEFAULT NOW()
    )
"""

SELECT_APPLIED_SQL = "SELECT version, checksum FROM schema_migrations"

RECORD_SQL = "INSERT INTO schema_migrations (version, name, checksum) VALUES ($1, $2, $3)"

LOCK_SQL = "SELECT pg_advisory_lock($1)"
UNLOCK_SQL = "SELECT pg_advisory_unlock($1)"


@dataclass(frozen=True)
class Migration:
    version: str
    name: str
    sql: str

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.sql.encode("utf-8")).hexdigest()

    @classmethod
    def from_path(cls, path: Path) -> Migration:
        return cls(version=path.stem, name=path.name, sql=path.read_text(encoding="utf-8"))


def discover(migrations_dir: Path = VERSIONS_DIR) -> list[Migration]:
    """Migration files in ``NNN_description.sql`` order."""
    return [Migration.from_path(p) for p in sorted(migrations_dir.glob("*.sql"))]


class MigrationRunner:
    """Apply pending migrations, each in its own transaction.

    A file whose content changed after it was applied is not re-run; its
    checksum mismatch is logged so the drift is visible.
    """

    def __init__(self, pool: asyncpg.Pool, migrations_dir: Path = VERSIONS_DIR) -> None:
        self.pool = pool
        self.migrations_dir = migrations_dir

    async def _applied(self, conn: asyncpg.Connection) -> dict[str, str]:
        await conn.execute(TRACKING_TABLE_SQL)
        rows = await conn.fetch(SELECT_APPLIED_SQL)
        return {row["version"]: row["checksum"] for row in rows}

    async def pending(self) -> list[str]:
        """Versions on disk that the database has not recorded."""
        async with translate_errors("read migration state"):
            async with self.pool.acquire() as conn:
                applied = await self._applied(conn)
        return [m.version for m in discover(self.migrations_dir) if m.version not in applied]

    async def run_pending(self) -> list[str]:
        """Apply every pending migration and return the versions applied."""
        migrations = discover(self.migrations_dir)
        if not migrations:
            logger.info(f"No migration files found in {self.migrations_dir}")
            return []

        newly_applied: list[str] = []
        async with translate_errors("apply migrations"):
            async with self.pool.acquire() as conn:
                await conn.execute(LOCK_SQL, MIGRATION_LOCK_KEY)
                try:
                    applied = await self._applied(conn)
                    for migration in migrations:
                        recorded = applied.get(migration.version)
                        if recorded is None:
                            await self._apply_one(conn, migration)
                            newly_applied.append(migration.version)
                        elif recorded and recorded != migration.checksum:
                            logger.warning(
                                f"Migration {migration.name} changed after it was applied"
                            )
                finally:
                    await conn.execute(UNLOCK_SQL, MIGRATION_LOCK_KEY)

        if newly_applied:
            logger.info(f"Applied {len(newly_applied)} migration(s): {', '.join(newly_applied)}")
        else:
            logger.info("Database schema is up to date")
        return newly_applied

    async def _apply_one(self, conn: asyncpg.Connection, migration: Migration) -> None:
        logger.info(f"Applying migration {migration.name}")
        async with conn.transaction():
            await conn.execute(migration.sql)
            await conn.execute(RECORD_SQL, migration.version, migration.name, migration.checksum)
