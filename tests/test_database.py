"""Tests for database module."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest

from ssmctl.persistence.database import (
    SCHEMA_VERSION,
    Database,
    DatabaseError,
    IntegrityError,
)

if TYPE_CHECKING:
    from pathlib import Path


class TestDatabase:
    """Tests for Database class."""

    @pytest.mark.asyncio
    async def test_connect_creates_tables(self, database: Database) -> None:
        """Test that connect creates required tables."""
        rows = await database.fetchall("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row["name"] for row in rows}

        assert {"instances", "tags", "regions", "profiles", "meta"} <= tables

    @pytest.mark.asyncio
    async def test_schema_version_recorded(self, database: Database) -> None:
        row = await database.fetchone("SELECT value FROM meta WHERE key = 'schema_version'")
        assert row is not None
        assert int(row["value"]) == SCHEMA_VERSION

    @pytest.mark.asyncio
    async def test_transaction_commit(self, database: Database) -> None:
        """Test transaction commits on success."""
        async with database.transaction():
            await database.execute("INSERT INTO regions (region, enabled) VALUES (?, ?)", ("us-east-1", 1))

        row = await database.fetchone("SELECT enabled FROM regions WHERE region = ?", ("us-east-1",))
        assert row is not None
        assert row["enabled"] == 1

    @pytest.mark.asyncio
    async def test_transaction_rollback(self, database: Database) -> None:
        """Test transaction rolls back on error."""
        with pytest.raises(ValueError):
            async with database.transaction():
                await database.execute("INSERT INTO regions (region, enabled) VALUES (?, ?)", ("eu-west-1", 1))
                raise ValueError("boom")

        row = await database.fetchone("SELECT region FROM regions WHERE region = ?", ("eu-west-1",))
        assert row is None

    @pytest.mark.asyncio
    async def test_integrity_error(self, database: Database) -> None:
        """Unique violations surface as IntegrityError."""
        async with database.transaction():
            await database.execute("INSERT INTO profiles (profile) VALUES (?)", ("dev",))

        with pytest.raises(IntegrityError):
            async with database.transaction():
                await database.execute("INSERT INTO profiles (profile) VALUES (?)", ("dev",))

    @pytest.mark.asyncio
    async def test_bad_sql_raises_database_error(self, database: Database) -> None:
        with pytest.raises(DatabaseError):
            await database.execute("SELECT * FROM no_such_table")

    @pytest.mark.asyncio
    async def test_timestamps_round_trip_as_utc(self, database: Database) -> None:
        """Naive and aware datetimes come back as aware UTC."""
        local = datetime(2024, 5, 1, 10, 0, tzinfo=timezone(timedelta(hours=2)))
        async with database.transaction():
            await database.execute(
                "INSERT INTO instances (instance_id, region, profile, last_seen, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                ("i-1", "us-east-1", "dev", local, local, local),
            )

        row = await database.fetchone("SELECT last_seen FROM instances")
        assert row is not None
        assert row["last_seen"] == local
        assert row["last_seen"].tzinfo == timezone.utc

    @pytest.mark.asyncio
    async def test_data_survives_reconnect(self, temp_db_path: Path) -> None:
        async with Database(temp_db_path) as db:
            async with db.transaction():
                await db.execute("INSERT INTO regions (region) VALUES (?)", ("ap-southeast-2",))

        async with Database(temp_db_path) as db:
            row = await db.fetchone("SELECT region FROM regions")
            assert row is not None
            assert row["region"] == "ap-southeast-2"

    def test_connection_requires_connect(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "x.db")
        with pytest.raises(RuntimeError):
            _ = db.connection
