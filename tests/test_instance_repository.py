"""Tests for the instance repository: upsert, listing, resolution, eviction."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from ssmctl.persistence.models import InstanceFilter, InstanceRecord, Tag

if TYPE_CHECKING:
    from ssmctl.persistence.database import Database
    from ssmctl.persistence.instances import InstanceRepository
    from tests.fakes import FakeClock


def record(
    instance_id: str,
    name: str = "",
    region: str = "us-east-1",
    profile: str = "dev",
    state: str = "running",
    tags: dict[str, str] | None = None,
) -> InstanceRecord:
    return InstanceRecord(
        instance_id=instance_id,
        region=region,
        profile=profile,
        name=name,
        account_id="111122223333",
        state=state,
        platform="Linux/UNIX",
        tags=[Tag(k, v) for k, v in (tags or {}).items()],
    )


async def tag_count(database: Database) -> int:
    row = await database.fetchone("SELECT COUNT(*) AS count FROM tags")
    return row["count"] if row else 0


class TestUpsert:
    """Tests for upsert_batch."""

    @pytest.mark.asyncio
    async def test_empty_batch_is_noop(self, instances: InstanceRepository) -> None:
        assert await instances.upsert_batch([]) == 0
        assert (await instances.stats())["total"] == 0

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, instances: InstanceRepository, clock: FakeClock) -> None:
        """Upserting the same batch twice leaves one row with a fresh last_seen."""
        await instances.upsert_batch([record("i-1", "web")])
        first = await instances.find_by_id("i-1")
        assert first is not None

        clock.advance(timedelta(minutes=5))
        await instances.upsert_batch([record("i-1", "web")])

        rows = await instances.list()
        assert len(rows) == 1
        assert rows[0].last_seen == clock.now
        assert rows[0].created_at == first.created_at

    @pytest.mark.asyncio
    async def test_upsert_sets_last_seen_on_input(self, instances: InstanceRepository, clock: FakeClock) -> None:
        batch = [record("i-1", "web")]
        await instances.upsert_batch(batch)
        assert batch[0].last_seen == clock.now

    @pytest.mark.asyncio
    async def test_same_id_in_two_profiles_is_two_rows(self, instances: InstanceRepository) -> None:
        await instances.upsert_batch([record("i-1", "web", profile="dev"), record("i-1", "web", profile="ops")])
        assert len(await instances.list()) == 2

    @pytest.mark.asyncio
    async def test_updates_mutable_fields(self, instances: InstanceRepository) -> None:
        await instances.upsert_batch([record("i-1", "web", state="running")])
        await instances.upsert_batch([record("i-1", "web-renamed", state="stopped")])

        found = await instances.find_by_id("i-1")
        assert found is not None
        assert found.name == "web-renamed"
        assert found.state == "stopped"


class TestTags:
    """Tag replacement rules."""

    @pytest.mark.asyncio
    async def test_tagless_upsert_preserves_tags(self, instances: InstanceRepository) -> None:
        """A record without tags does not wipe the stored ones."""
        await instances.upsert_batch([record("i-1", "web", tags={"Name": "web", "env": "prod"})])
        await instances.upsert_batch([record("i-1", "web")])

        found = await instances.find_by_name("web")
        assert found is not None
        assert found.tag("env") == "prod"
        assert len(found.tags) == 2

    @pytest.mark.asyncio
    async def test_tagged_upsert_replaces_tags(self, instances: InstanceRepository) -> None:
        await instances.upsert_batch([record("i-1", "web", tags={"env": "prod", "team": "a"})])
        await instances.upsert_batch([record("i-1", "web", tags={"env": "staging"})])

        found = await instances.find_by_name("web")
        assert found is not None
        assert [(t.key, t.value) for t in found.tags] == [("env", "staging")]

    @pytest.mark.asyncio
    async def test_list_does_not_load_tags(self, instances: InstanceRepository) -> None:
        await instances.upsert_batch([record("i-1", "web", tags={"env": "prod"})])
        rows = await instances.list()
        assert rows[0].tags == []


class TestList:
    """Filtered listing."""

    @pytest.fixture
    async def seeded(self, instances: InstanceRepository) -> InstanceRepository:
        await instances.upsert_batch(
            [
                record("i-3", "zeta", region="us-west-2", profile="dev"),
                record("i-1", "alpha", region="us-east-1", profile="prod", state="stopped"),
                record("i-2", "beta", region="us-east-1", profile="dev"),
                record("mi-4", "alpha_db", region="us-east-1", profile="dev", state="Online"),
            ]
        )
        return instances

    @pytest.mark.asyncio
    async def test_order_is_profile_region_name(self, seeded: InstanceRepository) -> None:
        rows = await seeded.list()
        assert [(r.profile, r.region, r.name) for r in rows] == [
            ("dev", "us-east-1", "alpha_db"),
            ("dev", "us-east-1", "beta"),
            ("dev", "us-west-2", "zeta"),
            ("prod", "us-east-1", "alpha"),
        ]

    @pytest.mark.asyncio
    async def test_filters_combine(self, seeded: InstanceRepository) -> None:
        rows = await seeded.list(InstanceFilter(profile="dev", region="us-east-1"))
        assert {r.instance_id for r in rows} == {"i-2", "mi-4"}

        rows = await seeded.list(InstanceFilter(state="stopped"))
        assert [r.instance_id for r in rows] == ["i-1"]

    @pytest.mark.asyncio
    async def test_name_is_substring_match(self, seeded: InstanceRepository) -> None:
        rows = await seeded.list(InstanceFilter(name="lph"))
        assert {r.instance_id for r in rows} == {"i-1", "mi-4"}

    @pytest.mark.asyncio
    async def test_name_wildcards_are_literal(self, seeded: InstanceRepository) -> None:
        rows = await seeded.list(InstanceFilter(name="_"))
        assert [r.instance_id for r in rows] == ["mi-4"]

        assert await seeded.list(InstanceFilter(name="%")) == []

    @pytest.mark.asyncio
    async def test_complete_names(self, seeded: InstanceRepository) -> None:
        assert await seeded.complete_names("al") == ["alpha", "alpha_db"]
        assert await seeded.complete_names("alpha_") == ["alpha_db"]
        assert await seeded.complete_names("nope") == []


class TestResolution:
    """find_by_name ranking and fallback."""

    @pytest.mark.asyncio
    async def test_online_beats_running_beats_rest(self, instances: InstanceRepository) -> None:
        await instances.upsert_batch(
            [
                record("i-1", "web", region="us-east-1", state="ConnectionLost"),
                record("i-2", "web", region="us-east-2", state="running"),
                record("mi-3", "web", region="eu-west-1", state="Online"),
            ]
        )
        found = await instances.find_by_name("web")
        assert found is not None
        assert found.instance_id == "mi-3"

    @pytest.mark.asyncio
    async def test_running_is_case_insensitive(self, instances: InstanceRepository) -> None:
        await instances.upsert_batch(
            [
                record("i-1", "api", region="us-east-1", state="stopped"),
                record("i-2", "api", region="us-east-2", state="RUNNING"),
            ]
        )
        found = await instances.find_by_name("api")
        assert found is not None
        assert found.instance_id == "i-2"

    @pytest.mark.asyncio
    async def test_recency_breaks_ties(self, instances: InstanceRepository, clock: FakeClock) -> None:
        """Same rank: the most recently seen record wins."""
        await instances.upsert_batch([record("mi-old", "db", region="us-east-1", state="Online")])
        clock.advance(timedelta(hours=1))
        await instances.upsert_batch([record("mi-new", "db", region="us-west-2", state="Online")])

        found = await instances.find_by_name("db")
        assert found is not None
        assert found.instance_id == "mi-new"

    @pytest.mark.asyncio
    async def test_dotted_name_falls_back_to_base(self, instances: InstanceRepository) -> None:
        await instances.upsert_batch([record("i-1", "db01", tags={"Name": "db01"})])

        found = await instances.find_by_name("db01.internal.example.com")
        assert found is not None
        assert found.instance_id == "i-1"
        assert found.tag("Name") == "db01"

    @pytest.mark.asyncio
    async def test_exact_match_preferred_over_base(self, instances: InstanceRepository) -> None:
        await instances.upsert_batch(
            [record("i-1", "db01", state="Online"), record("i-2", "db01.prod", state="stopped")]
        )
        found = await instances.find_by_name("db01.prod")
        assert found is not None
        assert found.instance_id == "i-2"

    @pytest.mark.asyncio
    async def test_miss_returns_none(self, instances: InstanceRepository) -> None:
        await instances.upsert_batch([record("i-1", "web")])
        assert await instances.find_by_name("nope") is None
        assert await instances.find_by_name("nope.example.com") is None
        assert await instances.find_by_name(".web") is None


class TestEviction:
    """delete_stale and delete_by_state."""

    @pytest.mark.asyncio
    async def test_delete_stale_uses_ttl(
        self, instances: InstanceRepository, database: Database, clock: FakeClock
    ) -> None:
        await instances.upsert_batch([record("i-old", "old", tags={"env": "prod"})])
        clock.advance(timedelta(hours=25))
        await instances.upsert_batch([record("i-new", "new")])

        deleted = await instances.delete_stale(timedelta(hours=24))

        assert deleted == 1
        assert [r.instance_id for r in await instances.list()] == ["i-new"]
        assert await tag_count(database) == 0

    @pytest.mark.asyncio
    async def test_delete_stale_keeps_fresh(self, instances: InstanceRepository, clock: FakeClock) -> None:
        await instances.upsert_batch([record("i-1", "web")])
        clock.advance(timedelta(hours=23))
        assert await instances.delete_stale(timedelta(hours=24)) == 0
        assert len(await instances.list()) == 1

    @pytest.mark.asyncio
    async def test_delete_by_state_is_exact(self, instances: InstanceRepository) -> None:
        await instances.upsert_batch(
            [
                record("mi-1", "a", state="ConnectionLost"),
                record("mi-2", "b", state="connectionlost"),
                record("mi-3", "c", state="Online"),
            ]
        )
        assert await instances.delete_by_state("ConnectionLost") == 1
        assert {r.instance_id for r in await instances.list()} == {"mi-2", "mi-3"}

    @pytest.mark.asyncio
    async def test_tags_kept_while_id_still_cached(
        self, instances: InstanceRepository, database: Database
    ) -> None:
        """Tags are shared by instance_id; deleting one copy keeps the other's tags."""
        await instances.upsert_batch(
            [
                record("i-1", "web", profile="dev", state="stopped", tags={"env": "prod"}),
                record("i-1", "web", profile="ops", state="running"),
            ]
        )
        await instances.delete_by_state("stopped")
        assert await tag_count(database) == 1


class TestStats:
    @pytest.mark.asyncio
    async def test_stats_counts(self, instances: InstanceRepository) -> None:
        await instances.upsert_batch(
            [
                record("i-1", "a", profile="dev", region="us-east-1"),
                record("i-2", "b", profile="dev", region="eu-west-1"),
                record("i-3", "c", profile="prod", region="us-east-1"),
            ]
        )
        stats = await instances.stats()
        assert stats["total"] == 3
        assert stats["profile_dev"] == 2
        assert stats["profile_prod"] == 1
        assert stats["region_us-east-1"] == 2
        assert stats["region_eu-west-1"] == 1
