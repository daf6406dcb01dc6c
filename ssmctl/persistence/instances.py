"""
ssmctl Persistence - Instance repository.

Batch upsert, filtered listing, name resolution and TTL eviction over the
instances/tags tables.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from loguru import logger

from ssmctl.persistence.database import utc_now
from ssmctl.persistence.models import InstanceFilter, InstanceRecord, Tag

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime, timedelta

    import aiosqlite

    from ssmctl.persistence.database import Database


# Agent "Online" first, then compute "running" (any case), then the rest.
# Within a rank the most recently seen, then most recently updated, wins.
RESOLUTION_ORDER = """
    CASE
        WHEN state = 'Online' THEN 0
        WHEN lower(state) = 'running' THEN 1
        ELSE 2
    END ASC,
    last_seen DESC,
    updated_at DESC
"""

NAME_SEPARATOR = "."

_UPSERT_SQL = """
    INSERT INTO instances (
        instance_id, name, region, profile, account_id, state, platform,
        last_seen, created_at, updated_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (instance_id, region, profile) DO UPDATE SET
        name = excluded.name,
        account_id = excluded.account_id,
        state = excluded.state,
        platform = excluded.platform,
        last_seen = excluded.last_seen,
        updated_at = excluded.updated_at
"""

_COLUMNS = (
    "instance_id, name, region, profile, account_id, state, platform, "
    "last_seen, created_at, updated_at"
)


class InstanceRepository:
    """
    Repository for cached instance records.

    All writes go through Database.transaction(), so a batch is all-or-nothing
    and concurrent batches are serialized.
    """

    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now) -> None:
        """
        Args:
            db: Connected database.
            clock: Source of "now" for last_seen and TTL cutoffs.
        """
        self.db = db
        self._clock = clock

    # =========================================================================
    # Writes
    # =========================================================================

    async def upsert_batch(self, records: Sequence[InstanceRecord]) -> int:
        """
        Upsert records in a single transaction.

        Tags are replaced wholesale only for records that carry tags; a record
        with no tags leaves the stored tags of that instance_id alone.

        Returns:
            Number of records written.
        """
        if not records:
            return 0

        now = self._clock()
        async with self.db.transaction():
            for record in records:
                await self.db.execute(
                    _UPSERT_SQL,
                    (
                        record.instance_id,
                        record.name,
                        record.region,
                        record.profile,
                        record.account_id,
                        record.state,
                        record.platform,
                        now,
                        now,
                        now,
                    ),
                )
                record.last_seen = now

                if record.tags:
                    await self.db.execute(
                        "DELETE FROM tags WHERE instance_id = ?", (record.instance_id,)
                    )
                    await self.db.executemany(
                        "INSERT INTO tags (instance_id, key, value) VALUES (?, ?, ?)",
                        [(record.instance_id, t.key, t.value) for t in record.tags],
                    )

        logger.debug(f"🗄️ Upserted {len(records)} instance(s)")
        return len(records)

    async def delete_stale(self, ttl: timedelta) -> int:
        """
        Delete records whose last_seen is older than now - ttl.

        Returns:
            Number of records deleted.
        """
        cutoff = self._clock() - ttl
        async with self.db.transaction():
            cursor = await self.db.execute("DELETE FROM instances WHERE last_seen < ?", (cutoff,))
            count = cursor.rowcount
            await cursor.close()
            if count > 0:
                await self._delete_orphan_tags()

        if count > 0:
            logger.info(f"🧹 Deleted {count} stale instance(s) (not seen since {cutoff:%Y-%m-%d %H:%M:%S})")
        return count

    async def delete_by_state(self, state: str) -> int:
        """Delete every record whose state equals `state` exactly."""
        async with self.db.transaction():
            cursor = await self.db.execute("DELETE FROM instances WHERE state = ?", (state,))
            count = cursor.rowcount
            await cursor.close()
            if count > 0:
                await self._delete_orphan_tags()

        if count > 0:
            logger.info(f"🧹 Deleted {count} instance(s) in state {state}")
        return count

    async def _delete_orphan_tags(self) -> None:
        cursor = await self.db.execute(
            "DELETE FROM tags WHERE instance_id NOT IN (SELECT instance_id FROM instances)"
        )
        await cursor.close()

    # =========================================================================
    # Reads
    # =========================================================================

    async def list(self, filter: InstanceFilter | None = None) -> list[InstanceRecord]:
        """
        List records matching every supplied predicate.

        Ordered by profile, region, name. Tags are not loaded.
        """
        clauses: list[str] = []
        params: list[str] = []

        if filter is not None:
            if filter.profile is not None:
                clauses.append("profile = ?")
                params.append(filter.profile)
            if filter.region is not None:
                clauses.append("region = ?")
                params.append(filter.region)
            if filter.name is not None:
                clauses.append("name LIKE ? ESCAPE '\\'")
                params.append(f"%{_escape_like(filter.name)}%")
            if filter.state is not None:
                clauses.append("state = ?")
                params.append(filter.state)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = await self.db.fetchall(
            f"SELECT {_COLUMNS} FROM instances {where} "
            "ORDER BY profile ASC, region ASC, name ASC",
            tuple(params),
        )
        return [_row_to_record(row) for row in rows]

    async def find_by_name(self, name: str) -> InstanceRecord | None:
        """
        Resolve a name to the best cached record.

        Exact name first, ordered by RESOLUTION_ORDER. If nothing matches and
        the name has a dot, retry with the part before the first dot so that
        "db01" and "db01.internal.example" resolve to the same host.

        Returns:
            The best record with tags loaded, or None.
        """
        record = await self._first_by_name(name)
        if record is not None:
            return record

        base, sep, _ = name.partition(NAME_SEPARATOR)
        if sep and base:
            record = await self._first_by_name(base)
            if record is not None:
                logger.debug(f"🔎 Resolved '{name}' via base name '{base}'")
                return record

        return None

    async def _first_by_name(self, name: str) -> InstanceRecord | None:
        row = await self.db.fetchone(
            f"SELECT {_COLUMNS} FROM instances WHERE name = ? ORDER BY {RESOLUTION_ORDER} LIMIT 1",
            (name,),
        )
        if row is None:
            return None
        record = _row_to_record(row)
        record.tags = await self._load_tags(record.instance_id)
        return record

    async def find_by_id(self, instance_id: str) -> InstanceRecord | None:
        """Find a record by instance ID (most recently seen first)."""
        row = await self.db.fetchone(
            f"SELECT {_COLUMNS} FROM instances WHERE instance_id = ? "
            "ORDER BY last_seen DESC LIMIT 1",
            (instance_id,),
        )
        if row is None:
            return None
        record = _row_to_record(row)
        record.tags = await self._load_tags(instance_id)
        return record

    async def _load_tags(self, instance_id: str) -> list[Tag]:
        rows = await self.db.fetchall(
            "SELECT key, value FROM tags WHERE instance_id = ? ORDER BY key",
            (instance_id,),
        )
        return [Tag(key=row["key"], value=row["value"]) for row in rows]

    async def complete_names(self, prefix: str, limit: int = 200) -> list[str]:
        """Distinct non-empty names starting with `prefix`."""
        rows = await self.db.fetchall(
            "SELECT DISTINCT name FROM instances "
            "WHERE name != '' AND name LIKE ? ESCAPE '\\' ORDER BY name LIMIT ?",
            (f"{_escape_like(prefix)}%", limit),
        )
        return [row["name"] for row in rows]

    async def stats(self) -> dict[str, int]:
        """
        Record counts: "total", "profile_<name>" and "region_<name>".
        """
        stats: dict[str, int] = defaultdict(int)

        row = await self.db.fetchone("SELECT COUNT(*) AS count FROM instances")
        stats["total"] = row["count"] if row else 0

        for column in ("profile", "region"):
            rows = await self.db.fetchall(
                f"SELECT {column} AS label, COUNT(*) AS count FROM instances GROUP BY {column}"
            )
            for r in rows:
                stats[f"{column}_{r['label']}"] = r["count"]

        return dict(stats)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_record(row: aiosqlite.Row) -> InstanceRecord:
    return InstanceRecord(
        instance_id=row["instance_id"],
        name=row["name"],
        region=row["region"],
        profile=row["profile"],
        account_id=row["account_id"],
        state=row["state"],
        platform=row["platform"],
        last_seen=row["last_seen"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
