"""
ssmctl Core - Shared error types.
"""

from ssmctl.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    DiscoveryCancelledError,
    DiscoveryError,
    InstanceNotFoundError,
    IntegrityError,
    PersistenceError,
    RemoteError,
    SessionError,
    SsmctlError,
)

__all__ = [
    "ConfigurationError",
    "DatabaseError",
    "DiscoveryCancelledError",
    "DiscoveryError",
    "InstanceNotFoundError",
    "IntegrityError",
    "PersistenceError",
    "RemoteError",
    "SessionError",
    "SsmctlError",
]
