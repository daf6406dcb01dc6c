"""
ssmctl Discovery - Merge & convert.

Turns EC2 and SSM representations of the same fleet into InstanceRecords.
EC2 covers every instance and carries tags; SSM only knows instances with a
running agent and reports no tags. An EC2 instance that also runs the agent
shows up in both, so SSM entries carrying an EC2 ID are dropped.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from loguru import logger

from ssmctl.persistence.models import InstanceRecord, Tag

if TYPE_CHECKING:
    from collections.abc import Iterable

NAME_TAG = "Name"


class SourceKind(str, Enum):
    """Which inventory an instance ID belongs to, judged by its prefix."""

    COMPUTE = "compute"  # i-0123...
    MANAGED = "managed"  # mi-0123... (hybrid / on-prem, registered with SSM)
    UNKNOWN = "unknown"


_PREFIXES = (
    ("mi-", SourceKind.MANAGED),
    ("i-", SourceKind.COMPUTE),
)


def classify_instance_id(instance_id: str) -> SourceKind:
    """Classify an instance ID by prefix."""
    for prefix, kind in _PREFIXES:
        if instance_id.startswith(prefix):
            return kind
    return SourceKind.UNKNOWN


def convert_compute_instance(
    raw: dict[str, Any], region: str, profile: str, account_id: str
) -> InstanceRecord:
    """EC2 DescribeInstances entry -> InstanceRecord (name from the Name tag)."""
    record = InstanceRecord(
        instance_id=raw["InstanceId"],
        region=region,
        profile=profile,
        account_id=account_id,
        state=(raw.get("State") or {}).get("Name", ""),
        platform=raw.get("PlatformDetails") or "",
    )

    for tag in raw.get("Tags") or []:
        key, value = tag.get("Key"), tag.get("Value")
        if key is None or value is None:
            continue
        if key == NAME_TAG:
            record.name = value
        record.tags.append(Tag(key=key, value=value))

    return record


def convert_agent_instance(
    raw: dict[str, Any], region: str, profile: str, account_id: str
) -> InstanceRecord:
    """SSM InstanceInformation entry -> InstanceRecord (no tags)."""
    return InstanceRecord(
        instance_id=raw["InstanceId"],
        region=region,
        profile=profile,
        account_id=account_id,
        state=raw.get("PingStatus") or "",
        name=raw.get("Name") or raw.get("ComputerName") or "",
        platform=raw.get("PlatformName") or "",
    )


def merge_unit(
    compute: Iterable[dict[str, Any]],
    agent: Iterable[dict[str, Any]],
    region: str,
    profile: str,
    account_id: str,
) -> list[InstanceRecord]:
    """
    Convert one profile/region worth of both sources into a single batch.

    Every EC2 instance is kept. SSM entries are kept unless their ID is an
    EC2 ID; IDs of an unrecognized scheme are kept too.
    """
    records = [
        convert_compute_instance(raw, region, profile, account_id)
        for raw in compute
        if raw.get("InstanceId")
    ]

    dropped = 0
    for raw in agent:
        instance_id = raw.get("InstanceId")
        if not instance_id:
            continue
        kind = classify_instance_id(instance_id)
        if kind is SourceKind.COMPUTE:
            dropped += 1
            continue
        if kind is SourceKind.UNKNOWN:
            logger.debug(f"🔎 Keeping SSM instance with unrecognized ID scheme: {instance_id}")
        records.append(convert_agent_instance(raw, region, profile, account_id))

    if dropped:
        logger.debug(f"🔎 {profile}/{region}: skipped {dropped} SSM entries already covered by EC2")
    return records
