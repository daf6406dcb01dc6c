"""
ssmctl Persistence - Database connection.

SQLite database with async support via aiosqlite.
"""

from __future__ import annotations

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite
from loguru import logger

from ssmctl.core.exceptions import DatabaseError, IntegrityError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


# =============================================================================
# SQLite datetime adapters for Python 3.12+ compatibility
# =============================================================================


def _adapt_datetime(val: datetime) -> str:
    """Adapt datetime to a fixed-width ISO string so text ordering is time ordering."""
    if val.tzinfo is None:
        val = val.replace(tzinfo=timezone.utc)
    return val.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _convert_datetime(val: bytes) -> datetime:
    """Convert ISO format string to datetime."""
    parsed = datetime.fromisoformat(val.decode())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("TIMESTAMP", _convert_datetime)

# Schema version for migrations
SCHEMA_VERSION = 1


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


class Database:
    """
    SQLite database connection manager.

    One connection per process. Write transactions are serialized with an
    asyncio.Lock so concurrent discovery units never interleave statements
    inside each other's transaction.
    """

    def __init__(self, path: Path) -> None:
        """
        Initialize database.

        Args:
            path: Database file path.
        """
        self.path = path
        self._connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open database connection and initialize schema."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._connection = await aiosqlite.connect(
                self.path,
                detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
            )
            self._connection.row_factory = aiosqlite.Row
            await self._connection.execute("PRAGMA foreign_keys = ON")
            await self._connection.execute("PRAGMA busy_timeout = 5000")
            await self._init_schema()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to open database {self.path}: {e}") from e

        logger.debug(f"🗄️ Database connected: {self.path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.debug("🗄️ Database connection closed")

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @property
    def connection(self) -> aiosqlite.Connection:
        """Get current connection."""
        if not self._connection:
            raise RuntimeError("Database not connected")
        return self._connection

    async def _init_schema(self) -> None:
        """Create or upgrade the schema."""
        conn = self.connection
        await conn.executescript(
            """
            -- Merged instance records, unique per (instance_id, region, profile)
            CREATE TABLE IF NOT EXISTS instances (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                instance_id TEXT NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                region TEXT NOT NULL,
                profile TEXT NOT NULL,
                account_id TEXT NOT NULL DEFAULT '',
                state TEXT NOT NULL DEFAULT '',
                platform TEXT NOT NULL DEFAULT '',
                last_seen TIMESTAMP NOT NULL,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL,
                UNIQUE (instance_id, region, profile)
            );

            -- Tags are owned by instance_id and replaced wholesale
            CREATE TABLE IF NOT EXISTS tags (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                instance_id TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS regions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                region TEXT UNIQUE NOT NULL,
                enabled INTEGER NOT NULL DEFAULT 1
            );

            CREATE TABLE IF NOT EXISTS profiles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                profile TEXT UNIQUE NOT NULL,
                enabled INTEGER NOT NULL DEFAULT 1
            );

            -- Internal state
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );

            -- Indexes
            CREATE INDEX IF NOT EXISTS idx_instances_name ON instances(name);
            CREATE INDEX IF NOT EXISTS idx_instances_state ON instances(state);
            CREATE INDEX IF NOT EXISTS idx_instances_last_seen ON instances(last_seen);
            CREATE INDEX IF NOT EXISTS idx_instances_account ON instances(account_id);
            CREATE INDEX IF NOT EXISTS idx_tags_instance ON tags(instance_id);
            """
        )
        await conn.commit()

        async with conn.execute("SELECT value FROM meta WHERE key = 'schema_version'") as cursor:
            row = await cursor.fetchone()

        current = int(row["value"]) if row else 0
        if current < SCHEMA_VERSION:
            await self._migrate(current)

    async def _migrate(self, from_version: int) -> None:
        """Run schema upgrades from `from_version` to SCHEMA_VERSION."""
        conn = self.connection
        # Version 1 is the base schema created above.
        await conn.execute(
            "INSERT OR REPLACE INTO meta (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )
        await conn.commit()
        logger.info(f"🗄️ Migrated database from version {from_version} to {SCHEMA_VERSION}")

    async def execute(self, query: str, params: tuple[Any, ...] | None = None) -> aiosqlite.Cursor:
        """Execute a query."""
        try:
            return await self.connection.execute(query, params or ())
        except sqlite3.IntegrityError as e:
            raise IntegrityError(str(e)) from e
        except sqlite3.Error as e:
            raise DatabaseError(f"Database operation failed: {e}") from e

    async def executemany(self, query: str, params: list[tuple[Any, ...]]) -> aiosqlite.Cursor:
        """Execute a query with multiple parameter sets."""
        try:
            return await self.connection.executemany(query, params)
        except sqlite3.IntegrityError as e:
            raise IntegrityError(str(e)) from e
        except sqlite3.Error as e:
            raise DatabaseError(f"Database operation failed: {e}") from e

    async def fetchall(self, query: str, params: tuple[Any, ...] | None = None) -> list[aiosqlite.Row]:
        """Execute a query and return all rows."""
        cursor = await self.execute(query, params)
        try:
            return list(await cursor.fetchall())
        finally:
            await cursor.close()

    async def fetchone(self, query: str, params: tuple[Any, ...] | None = None) -> aiosqlite.Row | None:
        """Execute a query and return the first row."""
        cursor = await self.execute(query, params)
        try:
            return await cursor.fetchone()
        finally:
            await cursor.close()

    async def commit(self) -> None:
        """Commit current transaction."""
        try:
            await self.connection.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Commit failed: {e}") from e

    async def rollback(self) -> None:
        """Rollback current transaction."""
        await self.connection.rollback()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Database]:
        """
        Serialized transaction with automatic rollback on error.

        Usage:
            async with db.transaction():
                await db.execute(...)
                await db.execute(...)
        """
        async with self._write_lock:
            try:
                yield self
                await self.commit()
            except BaseException:
                await self.rollback()
                raise
