"""
Core Exceptions - Unified error hierarchy for ssmctl.

Remote errors stay inside one discovery unit, persistence errors are fatal
to the operation that raised them, and a name that resolves to nothing is
not an error at the store level.
"""


class SsmctlError(Exception):
    """Base exception for all ssmctl errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(SsmctlError):
    """A required setting is missing or invalid."""
    pass


# =============================================================================
# Persistence Errors
# =============================================================================

class PersistenceError(SsmctlError):
    """Local cache operation failed."""
    pass


class DatabaseError(PersistenceError):
    """Database operation failed (transaction, schema, I/O)."""
    pass


class IntegrityError(DatabaseError):
    """Raised when a unique constraint is violated."""
    pass


# =============================================================================
# Remote Errors
# =============================================================================

class RemoteError(SsmctlError):
    """A call to the remote inventory failed for one profile/region."""

    def __init__(self, profile: str, region: str, reason: str):
        super().__init__(
            f"Remote call failed for {profile}/{region}: {reason}",
            {"profile": profile, "region": region}
        )
        self.profile = profile
        self.region = region
        self.reason = reason


class DiscoveryCancelledError(SsmctlError):
    """Discovery was cancelled before the unit obtained a slot."""

    def __init__(self, profile: str, region: str):
        super().__init__(
            f"Discovery cancelled before {profile}/{region} started",
            {"profile": profile, "region": region}
        )
        self.profile = profile
        self.region = region


class DiscoveryError(SsmctlError):
    """Discovery finished but one or more units failed."""

    def __init__(self, failed_units: int, failures: list | None = None):
        super().__init__(f"discovery completed with {failed_units} errors")
        self.failed_units = failed_units
        self.failures = failures or []


# =============================================================================
# Session Errors
# =============================================================================

class InstanceNotFoundError(SsmctlError):
    """No cached instance matches the requested name."""

    def __init__(self, name: str):
        super().__init__(f"instance '{name}' not found", {"name": name})
        self.name = name


class SessionError(SsmctlError):
    """The session client could not be started or the target is unreachable."""
    pass
