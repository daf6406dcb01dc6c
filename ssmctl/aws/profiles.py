"""
ssmctl AWS - Profile and region enumeration.
"""

from __future__ import annotations

import asyncio

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

# Regions offered when the remote list cannot be fetched.
STATIC_REGIONS = [
    "us-east-1", "us-east-2", "us-west-1", "us-west-2",
    "eu-west-1", "eu-west-2", "eu-central-1",
    "ap-southeast-1", "ap-southeast-2", "ap-northeast-1",
    "ca-central-1", "sa-east-1",
]

# Regions enabled on a fresh database.
DEFAULT_REGIONS = [
    "us-east-1", "us-east-2", "us-west-1", "us-west-2",
    "eu-west-1", "eu-central-1",
    "ap-southeast-1", "ap-southeast-2",
    "ca-central-1", "sa-east-1",
]

DEFAULT_PROFILE = "default"


def list_available_profiles() -> list[str]:
    """
    Profiles found in the local AWS config and credentials files.

    Honors AWS_CONFIG_FILE / AWS_SHARED_CREDENTIALS_FILE. Falls back to
    ["default"] when nothing is configured.
    """
    try:
        profiles = boto3.session.Session().available_profiles
    except BotoCoreError as e:
        logger.warning(f"⚠️ Could not read AWS profiles: {e}")
        profiles = []

    if not profiles:
        return [DEFAULT_PROFILE]
    return sorted(set(profiles))


def list_available_regions() -> list[str]:
    """Static region list."""
    return list(STATIC_REGIONS)


async def list_available_regions_dynamic(
    profile: str | None = None,
    timeout: float = 15.0,
) -> list[str]:
    """
    Regions reported by EC2 DescribeRegions (AllRegions=True), sorted.

    Raises:
        BotoCoreError, ClientError, TimeoutError: on remote failure; callers
        fall back to list_available_regions().
    """

    def _describe() -> list[str]:
        session = boto3.session.Session(profile_name=profile or None, region_name="us-east-1")
        response = session.client("ec2").describe_regions(AllRegions=True)
        return sorted(r["RegionName"] for r in response.get("Regions", []) if r.get("RegionName"))

    return await asyncio.wait_for(asyncio.to_thread(_describe), timeout=timeout)


async def regions_with_fallback(profile: str | None = None) -> list[str]:
    """Dynamic region list, or the static list if the remote call fails."""
    try:
        regions = await list_available_regions_dynamic(profile)
    except (BotoCoreError, ClientError, TimeoutError) as e:
        logger.warning(f"⚠️ Falling back to static region list: {e}")
        return list_available_regions()
    return regions or list_available_regions()
