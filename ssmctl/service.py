"""
ssmctl Service - Facade used by the CLI.

Owns the database connection, the client cache, the discovery service and
the session launcher for one process.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from ssmctl.aws.client import ClientManager
from ssmctl.aws.profiles import DEFAULT_REGIONS, list_available_profiles
from ssmctl.aws.session import SessionLauncher
from ssmctl.core.exceptions import InstanceNotFoundError, RemoteError
from ssmctl.discovery.orchestrator import DiscoveryService
from ssmctl.persistence.database import Database
from ssmctl.persistence.enablement import ProfileRepository, RegionRepository
from ssmctl.persistence.instances import InstanceRepository
from ssmctl.persistence.models import InstanceFilter

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Callable, Iterable, Sequence

    from ssmctl.aws.session import PortMapping
    from ssmctl.config.models import Config
    from ssmctl.discovery.orchestrator import DiscoveryOutcome
    from ssmctl.persistence.models import InstanceRecord

CONNECTION_LOST = "ConnectionLost"


class Service:
    """
    Application service.

    Usage:
        async with Service(config) as svc:
            await svc.sync_instances()
    """

    def __init__(
        self,
        config: Config,
        clients: ClientManager | None = None,
        launcher: SessionLauncher | None = None,
        profile_source: Callable[[], list[str]] = list_available_profiles,
    ) -> None:
        self.config = config
        self.db = Database(config.database.path)
        self.clients = clients if clients is not None else ClientManager()
        self.launcher = launcher if launcher is not None else SessionLauncher(config.aws.session_command)
        self.instances = InstanceRepository(self.db)
        self.regions = RegionRepository(self.db)
        self.profiles = ProfileRepository(self.db)
        self.discovery = DiscoveryService(
            clients=self.clients,
            instances=self.instances,
            regions=self.regions,
            ttl=config.discovery.ttl_delta,
            max_concurrent=config.aws.max_concurrent_sessions,
        )
        self.profile_source = profile_source

    async def open(self) -> None:
        """Connect the database and seed enablement tables on first run."""
        await self.db.connect()
        await self.regions.initialize(DEFAULT_REGIONS)
        if await self.profiles.count() == 0:
            await self.profiles.initialize(self.profile_source())

    async def close(self) -> None:
        await self.db.close()

    async def __aenter__(self) -> Service:
        await self.open()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # =========================================================================
    # Discovery
    # =========================================================================

    async def sync_instances(
        self,
        profile: str | None = None,
        region: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> DiscoveryOutcome:
        """
        Discover instances for one or all enabled profiles and regions.

        Raises:
            DiscoveryError: If any profile/region unit failed.
        """
        logger.info("🔄 Starting instance synchronization")

        profiles = [profile] if profile else await self.profiles.enabled()
        regions = [region] if region else []

        outcome = await self.discovery.discover(profiles, regions, cancel=cancel)
        outcome.raise_for_failures()

        logger.info("✅ Instance synchronization completed")
        return outcome

    async def validate_profiles(self, profiles: Iterable[str]) -> dict[str, str]:
        """
        Check credentials for each profile.

        Returns:
            Mapping of profile to account ID. Profiles whose credentials are
            missing or rejected are logged and left out.
        """
        accounts: dict[str, str] = {}
        for profile in profiles:
            try:
                accounts[profile] = await self.clients.validate_credentials(profile)
            except RemoteError as e:
                logger.warning(f"⚠️ Profile validation failed: {e}")
        return accounts

    # =========================================================================
    # Cache queries
    # =========================================================================

    async def list_instances(self, filter: InstanceFilter | None = None) -> list[InstanceRecord]:
        return await self.instances.list(filter or InstanceFilter())

    async def stats(self) -> dict[str, int]:
        return await self.instances.stats()

    async def is_empty(self) -> bool:
        return (await self.stats()).get("total", 0) == 0

    async def clean(self, state: str = CONNECTION_LOST) -> int:
        """Remove instances in `state` (ConnectionLost by default)."""
        return await self.instances.delete_by_state(state)

    async def resolve(self, name: str) -> InstanceRecord:
        """
        Resolve a name, or failing that an instance ID, to a cached instance.

        Raises:
            InstanceNotFoundError: If nothing matches.
        """
        instance = await self.instances.find_by_name(name)
        if instance is None:
            instance = await self.instances.find_by_id(name)
        if instance is None:
            raise InstanceNotFoundError(name)
        return instance

    # =========================================================================
    # Sessions
    # =========================================================================

    async def connect(self, name: str) -> InstanceRecord:
        """Resolve `name` and open an interactive session to it."""
        instance = await self.resolve(name)
        logger.info(
            f"🌐 Connecting to {instance.display_name} ({instance.instance_id}) "
            f"via {instance.profile}/{instance.region}"
        )
        client = await self.clients.get_client(instance.profile, instance.region)
        await self.launcher.start_session(client, instance.instance_id)
        return instance

    async def port_forward(self, name: str, mapping: PortMapping) -> InstanceRecord:
        """Resolve `name` and forward one port until the session exits."""
        return await self.port_forward_many(name, [mapping])

    async def port_forward_many(self, name: str, mappings: Sequence[PortMapping]) -> InstanceRecord:
        """Resolve `name` and forward every mapping until the sessions exit."""
        instance = await self.resolve(name)
        logger.info(
            f"🌐 Port forwarding to {instance.display_name} ({instance.instance_id}): "
            + ", ".join(f"{m.local_port}->{m.remote_port}" for m in mappings)
        )
        client = await self.clients.get_client(instance.profile, instance.region)
        await self.launcher.start_port_forwarding_many(client, instance.instance_id, mappings)
        return instance
