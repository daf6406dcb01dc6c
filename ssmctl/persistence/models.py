"""
ssmctl Persistence - Record types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Tag:
    """Instance tag. Owned by one instance_id."""

    key: str
    value: str


@dataclass
class InstanceRecord:
    """
    Merged instance record.

    Unique on (instance_id, region, profile): an instance ID is only unique
    inside one region of one account, and a shared instance can show up
    under several profiles.
    """

    instance_id: str
    region: str
    profile: str
    name: str = ""
    account_id: str = ""
    state: str = ""
    platform: str = ""
    last_seen: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tags: list[Tag] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str, str]:
        """Unique key."""
        return (self.instance_id, self.region, self.profile)

    @property
    def display_name(self) -> str:
        """Name, or the instance ID when the instance has no name."""
        return self.name or self.instance_id

    def tag(self, key: str) -> str | None:
        """Value of a tag, if present."""
        for tag in self.tags:
            if tag.key == key:
                return tag.value
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "instance_id": self.instance_id,
            "name": self.name,
            "region": self.region,
            "profile": self.profile,
            "account_id": self.account_id,
            "state": self.state,
            "platform": self.platform,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
            "tags": [{"key": t.key, "value": t.value} for t in self.tags],
        }


@dataclass
class InstanceFilter:
    """Optional predicates for listing instances. Name is a substring match."""

    profile: str | None = None
    region: str | None = None
    name: str | None = None
    state: str | None = None


@dataclass
class EnablementRow:
    """Region or profile enablement flag."""

    name: str
    enabled: bool = True
