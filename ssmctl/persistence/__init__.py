"""
ssmctl Persistence - Local instance cache.
"""

from ssmctl.persistence.database import SCHEMA_VERSION, Database, utc_now
from ssmctl.persistence.enablement import ProfileRepository, RegionRepository
from ssmctl.persistence.instances import InstanceRepository
from ssmctl.persistence.models import EnablementRow, InstanceFilter, InstanceRecord, Tag

__all__ = [
    "Database",
    "EnablementRow",
    "InstanceFilter",
    "InstanceRecord",
    "InstanceRepository",
    "ProfileRepository",
    "RegionRepository",
    "SCHEMA_VERSION",
    "Tag",
    "utc_now",
]
