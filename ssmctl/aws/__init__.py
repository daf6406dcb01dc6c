"""
ssmctl AWS - Remote inventory clients and session launch.
"""

from ssmctl.aws.client import UNKNOWN_ACCOUNT, AWSClient, ClientManager
from ssmctl.aws.profiles import (
    DEFAULT_REGIONS,
    STATIC_REGIONS,
    list_available_profiles,
    list_available_regions,
    list_available_regions_dynamic,
    regions_with_fallback,
)
from ssmctl.aws.session import PortMapping, SessionLauncher

__all__ = [
    "AWSClient",
    "ClientManager",
    "DEFAULT_REGIONS",
    "PortMapping",
    "STATIC_REGIONS",
    "SessionLauncher",
    "UNKNOWN_ACCOUNT",
    "list_available_profiles",
    "list_available_regions",
    "list_available_regions_dynamic",
    "regions_with_fallback",
]
