"""
ssmctl Discovery - Orchestrator.

Scans every (profile, region) pair concurrently under a fixed ceiling,
writes each pair's merged records in one transaction, then evicts stale
records once. A failing pair is logged and counted; it never stops its
siblings.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from ssmctl.core.exceptions import DiscoveryCancelledError, DiscoveryError
from ssmctl.discovery.convert import merge_unit

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import timedelta

    from ssmctl.aws.client import AWSClient
    from ssmctl.persistence.enablement import RegionRepository
    from ssmctl.persistence.instances import InstanceRepository

DEFAULT_MAX_CONCURRENT = 5


class ClientProvider(Protocol):
    """Anything that hands out per profile/region inventory clients."""

    async def get_client(self, profile: str, region: str) -> AWSClient: ...


@dataclass
class UnitFailure:
    """A (profile, region) unit that failed, and why."""

    profile: str
    region: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.profile}/{self.region}: {self.error}"


@dataclass
class UnitResult:
    """Exactly one of these is posted by every scheduled unit."""

    profile: str
    region: str
    records: int = 0
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DiscoveryOutcome:
    """Result of one discover() call."""

    units: list[UnitResult] = field(default_factory=list)
    stale_deleted: int = 0
    duration: float = 0.0

    @property
    def succeeded(self) -> int:
        return sum(1 for u in self.units if u.ok)

    @property
    def failures(self) -> list[UnitFailure]:
        return [UnitFailure(u.profile, u.region, u.error) for u in self.units if u.error is not None]

    @property
    def records_written(self) -> int:
        return sum(u.records for u in self.units)

    @property
    def ok(self) -> bool:
        return all(u.ok for u in self.units)

    def raise_for_failures(self) -> None:
        """
        Raises:
            DiscoveryError: If any unit failed (message carries only the count).
        """
        failures = self.failures
        if failures:
            raise DiscoveryError(len(failures), failures)

    def summary(self) -> str:
        return (
            f"{self.succeeded}/{len(self.units)} units ok, "
            f"{self.records_written} records, {self.stale_deleted} stale removed, "
            f"{self.duration:.1f}s"
        )


class DiscoveryService:
    """
    Fan-out scanner over profiles x regions.

    The semaphore is shared by every discover() call on this service, so the
    ceiling is system-wide rather than per profile.
    """

    def __init__(
        self,
        clients: ClientProvider,
        instances: InstanceRepository,
        regions: RegionRepository,
        ttl: timedelta,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    ) -> None:
        """
        Args:
            clients: Client handle cache.
            instances: Instance repository (the only writer target).
            regions: Region enablement, used when no regions are given.
            ttl: Stale-entry threshold applied after every scan.
            max_concurrent: Units allowed in flight at once.
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.clients = clients
        self.instances = instances
        self.regions = regions
        self.ttl = ttl
        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def discover(
        self,
        profiles: Iterable[str],
        regions: Iterable[str] | None = None,
        cancel: asyncio.Event | None = None,
    ) -> DiscoveryOutcome:
        """
        Scan every profile x region pair and refresh the cache.

        Args:
            profiles: Profiles to scan.
            regions: Regions to scan; empty or None means the enabled regions.
            cancel: Once set, units still waiting for a slot fail with
                DiscoveryCancelledError. Running units finish normally.

        Returns:
            DiscoveryOutcome with one UnitResult per pair. Call
            raise_for_failures() to turn failures into a DiscoveryError.

        Raises:
            DatabaseError: If reading enabled regions or evicting stale
                records fails.
        """
        profile_list = list(dict.fromkeys(profiles))
        region_list = list(dict.fromkeys(regions or []))
        if not region_list:
            region_list = await self.regions.enabled()

        pairs = list(itertools.product(profile_list, region_list))
        logger.info(
            f"🔍 Starting instance discovery: {len(profile_list)} profile(s) x "
            f"{len(region_list)} region(s), {self.max_concurrent} at a time"
        )

        started = time.monotonic()
        results = await asyncio.gather(
            *[self._run_unit(profile, region, cancel) for profile, region in pairs]
        )

        outcome = DiscoveryOutcome(units=list(results))
        outcome.stale_deleted = await self.cleanup_stale()
        outcome.duration = time.monotonic() - started

        if outcome.ok:
            logger.info(f"✅ Instance discovery completed: {outcome.summary()}")
        else:
            logger.warning(
                f"⚠️ Instance discovery completed with {len(outcome.failures)} errors: "
                f"{outcome.summary()}"
            )
        return outcome

    async def _run_unit(
        self, profile: str, region: str, cancel: asyncio.Event | None
    ) -> UnitResult:
        """Run one unit under the semaphore. Never raises an Exception."""
        unit_log = logger.bind(profile=profile, region=region)
        try:
            await self._acquire_slot(profile, region, cancel)
        except DiscoveryCancelledError as e:
            unit_log.warning(f"⚠️ {e}")
            return UnitResult(profile, region, error=e)

        try:
            records = await self.discover_unit(profile, region)
        except Exception as e:
            unit_log.warning(f"⚠️ Failed to discover instances in {profile}/{region}: {e}")
            return UnitResult(profile, region, error=e)
        finally:
            self._semaphore.release()

        return UnitResult(profile, region, records=records)

    async def _acquire_slot(
        self, profile: str, region: str, cancel: asyncio.Event | None
    ) -> None:
        """
        Wait for a semaphore slot, giving up if `cancel` is set first.

        Raises:
            DiscoveryCancelledError: If cancelled before a slot was obtained.
        """
        if cancel is None:
            await self._semaphore.acquire()
            return
        if cancel.is_set():
            raise DiscoveryCancelledError(profile, region)

        acquire = asyncio.ensure_future(self._semaphore.acquire())
        cancelled = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({acquire, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            # The caller was cancelled: never leave a permit behind.
            if acquire.done() and not acquire.cancelled():
                self._semaphore.release()
            else:
                acquire.cancel()
            raise
        finally:
            cancelled.cancel()

        if acquire.done() and not acquire.cancelled():
            if not cancel.is_set():
                return
            # Got a slot but the scan was cancelled at the same time: hand it back.
            self._semaphore.release()
            raise DiscoveryCancelledError(profile, region)

        acquire.cancel()
        try:
            await acquire
        except asyncio.CancelledError:
            pass
        else:
            self._semaphore.release()
        raise DiscoveryCancelledError(profile, region)

    async def discover_unit(self, profile: str, region: str) -> int:
        """
        Scan one profile/region and write the merged batch.

        Returns:
            Number of records written.
        """
        logger.debug(f"🔍 Discovering instances in {profile}/{region}")

        client = await self.clients.get_client(profile, region)
        compute = await client.list_compute_instances()
        agent = await client.list_agent_instances()

        batch = merge_unit(compute, agent, region, profile, client.account_id)
        written = await self.instances.upsert_batch(batch)

        logger.debug(
            f"🔍 {profile}/{region}: {len(compute)} EC2, {len(agent)} SSM, {written} written"
        )
        return written

    async def cleanup_stale(self) -> int:
        """Evict records older than the TTL."""
        return await self.instances.delete_stale(self.ttl)
