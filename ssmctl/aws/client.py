"""
ssmctl AWS - Client handles.

One AWSClient per (profile, region) holding EC2, SSM and STS clients and the
account ID. ClientManager memoizes them for the life of the process.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ssmctl.core.exceptions import RemoteError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator

UNKNOWN_ACCOUNT = "unknown"

_EXHAUSTED = object()


async def _iter_pages(pages: Iterator[dict[str, Any]]) -> AsyncIterator[dict[str, Any]]:
    """Pull pages from a blocking botocore page iterator one at a time in a worker thread."""
    while True:
        page = await asyncio.to_thread(next, pages, _EXHAUSTED)
        if page is _EXHAUSTED:
            return
        yield page


class AWSClient:
    """
    Remote inventory handle for one profile/region.

    The listing methods are lazy async iterators; every page request runs in
    a worker thread and is not interrupted by cancellation.
    """

    def __init__(
        self,
        profile: str,
        region: str,
        session: boto3.session.Session,
        account_id: str = UNKNOWN_ACCOUNT,
    ) -> None:
        self.profile = profile
        self.region = region
        self.session = session
        self.account_id = account_id
        self.ec2 = session.client("ec2")
        self.ssm = session.client("ssm")
        self.sts = session.client("sts")

    def __repr__(self) -> str:
        return f"AWSClient(profile={self.profile!r}, region={self.region!r}, account_id={self.account_id!r})"

    async def iter_compute_instances(self) -> AsyncIterator[dict[str, Any]]:
        """EC2 instances, flattened out of their reservations."""
        pages = iter(self.ec2.get_paginator("describe_instances").paginate())
        async for page in _iter_pages(pages):
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    yield instance

    async def iter_agent_instances(self) -> AsyncIterator[dict[str, Any]]:
        """SSM managed instances (InstanceInformationList entries)."""
        pages = iter(self.ssm.get_paginator("describe_instance_information").paginate())
        async for page in _iter_pages(pages):
            for info in page.get("InstanceInformationList", []):
                yield info

    async def list_compute_instances(self) -> list[dict[str, Any]]:
        """All EC2 instances (every page)."""
        return [instance async for instance in self.iter_compute_instances()]

    async def list_agent_instances(self) -> list[dict[str, Any]]:
        """All SSM managed instances (every page)."""
        return [info async for info in self.iter_agent_instances()]

    async def get_instance_information(self, instance_id: str) -> dict[str, Any] | None:
        """SSM information for one instance, or None if SSM does not know it."""

        def _describe() -> dict[str, Any]:
            return self.ssm.describe_instance_information(
                Filters=[{"Key": "InstanceIds", "Values": [instance_id]}]
            )

        response = await asyncio.to_thread(_describe)
        infos = response.get("InstanceInformationList", [])
        return infos[0] if infos else None

    async def get_account_id(self) -> str:
        """Account ID from STS GetCallerIdentity."""
        response = await asyncio.to_thread(self.sts.get_caller_identity)
        account = response.get("Account")
        if not account:
            raise RemoteError(self.profile, self.region, "caller identity has no account ID")
        return account


def _default_session_factory(profile: str, region: str) -> boto3.session.Session:
    return boto3.session.Session(profile_name=profile, region_name=region)


class ClientManager:
    """
    Process-wide cache of AWSClient handles keyed by "profile:region".

    Lookups take a lock-free fast path; a miss takes a per-key lock and checks
    again before building, so concurrent first use builds one handle.
    """

    def __init__(
        self,
        session_factory: Callable[[str, str], boto3.session.Session] = _default_session_factory,
    ) -> None:
        self._session_factory = session_factory
        self._clients: dict[str, AWSClient] = {}
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._locks_lock = asyncio.Lock()

    @staticmethod
    def _key(profile: str, region: str) -> str:
        return f"{profile}:{region}"

    async def _get_key_lock(self, key: str) -> asyncio.Lock:
        async with self._locks_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._key_locks[key] = lock
            return lock

    async def get_client(self, profile: str, region: str) -> AWSClient:
        """
        Cached handle for profile/region, created on first use.

        Raises:
            RemoteError: If the profile cannot be loaded.
        """
        key = self._key(profile, region)

        client = self._clients.get(key)
        if client is not None:
            return client

        lock = await self._get_key_lock(key)
        async with lock:
            client = self._clients.get(key)
            if client is not None:
                return client

            client = await self._create_client(profile, region)
            self._clients[key] = client

        logger.debug(f"🔌 Created AWS client {profile}/{region} (account={client.account_id})")
        return client

    async def _create_client(self, profile: str, region: str) -> AWSClient:
        try:
            session = await asyncio.to_thread(self._session_factory, profile, region)
            client = AWSClient(profile, region, session)
        except (BotoCoreError, ClientError) as e:
            raise RemoteError(profile, region, f"failed to load AWS config: {e}") from e

        try:
            client.account_id = await client.get_account_id()
        except (BotoCoreError, ClientError, RemoteError) as e:
            logger.warning(f"⚠️ Failed to get account ID for {profile}/{region}: {e}")
            client.account_id = UNKNOWN_ACCOUNT

        return client

    async def validate_credentials(self, profile: str, region: str = "us-east-1") -> str:
        """
        Check that a profile has working credentials.

        Returns:
            The account ID.

        Raises:
            RemoteError: If the credentials are missing or rejected.
        """
        client = await self.get_client(profile, region)
        try:
            return await client.get_account_id()
        except (BotoCoreError, ClientError) as e:
            raise RemoteError(profile, region, f"invalid credentials: {e}") from e
