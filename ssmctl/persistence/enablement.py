"""
ssmctl Persistence - Region and profile enablement.

Two small tables with the same shape: (name UNIQUE, enabled). Seeded once
when empty and afterwards changed only by explicit enable/disable calls.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from ssmctl.persistence.models import EnablementRow

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ssmctl.persistence.database import Database


class EnablementRepository:
    """Base repository for a (name, enabled) table."""

    table: str = ""
    column: str = ""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def enabled(self) -> list[str]:
        """Names of enabled rows, sorted."""
        rows = await self.db.fetchall(
            f"SELECT {self.column} AS name FROM {self.table} WHERE enabled = 1 ORDER BY {self.column}"
        )
        return [row["name"] for row in rows]

    async def all(self) -> list[EnablementRow]:
        """All rows, enabled or not, sorted by name."""
        rows = await self.db.fetchall(
            f"SELECT {self.column} AS name, enabled FROM {self.table} ORDER BY {self.column}"
        )
        return [EnablementRow(name=row["name"], enabled=bool(row["enabled"])) for row in rows]

    async def count(self) -> int:
        row = await self.db.fetchone(f"SELECT COUNT(*) AS count FROM {self.table}")
        return row["count"] if row else 0

    async def enable(self, name: str) -> None:
        """Enable a row, creating it if needed."""
        async with self.db.transaction():
            await self._upsert(name, True)
        logger.debug(f"✅ Enabled {self.column} {name}")

    async def disable(self, name: str) -> bool:
        """
        Disable a row.

        Returns:
            False if the row does not exist.
        """
        async with self.db.transaction():
            cursor = await self.db.execute(
                f"UPDATE {self.table} SET enabled = 0 WHERE {self.column} = ?", (name,)
            )
            changed = cursor.rowcount > 0
            await cursor.close()
        logger.debug(f"🚫 Disabled {self.column} {name} (found={changed})")
        return changed

    async def set_enabled(self, names: Iterable[str]) -> None:
        """Enable exactly `names` (creating missing rows) and disable every other row."""
        wanted = list(dict.fromkeys(names))
        async with self.db.transaction():
            await self.db.execute(f"UPDATE {self.table} SET enabled = 0")
            for name in wanted:
                await self._upsert(name, True)
        logger.info(f"⚙️ Enabled {len(wanted)} {self.column}(s): {', '.join(wanted)}")

    async def initialize(self, defaults: Iterable[str]) -> bool:
        """
        Seed the table with `defaults`, all enabled, if it is empty.

        Returns:
            True if the table was seeded.
        """
        if await self.count() > 0:
            return False

        names = list(dict.fromkeys(defaults))
        async with self.db.transaction():
            for name in names:
                await self._upsert(name, True)
        logger.info(f"⚙️ Initialized {len(names)} {self.column}(s)")
        return True

    async def _upsert(self, name: str, enabled: bool) -> None:
        cursor = await self.db.execute(
            f"INSERT INTO {self.table} ({self.column}, enabled) VALUES (?, ?) "
            f"ON CONFLICT ({self.column}) DO UPDATE SET enabled = excluded.enabled",
            (name, int(enabled)),
        )
        await cursor.close()


class RegionRepository(EnablementRepository):
    """Regions selected for discovery."""

    table = "regions"
    column = "region"


class ProfileRepository(EnablementRepository):
    """AWS profiles selected for discovery."""

    table = "profiles"
    column = "profile"
