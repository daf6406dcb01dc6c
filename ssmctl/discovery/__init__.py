"""
ssmctl Discovery - Fan-out scan and source merging.
"""

from ssmctl.discovery.convert import (
    SourceKind,
    classify_instance_id,
    convert_agent_instance,
    convert_compute_instance,
    merge_unit,
)
from ssmctl.discovery.orchestrator import (
    DiscoveryOutcome,
    DiscoveryService,
    UnitFailure,
    UnitResult,
)

__all__ = [
    "DiscoveryOutcome",
    "DiscoveryService",
    "SourceKind",
    "UnitFailure",
    "UnitResult",
    "classify_instance_id",
    "convert_agent_instance",
    "convert_compute_instance",
    "merge_unit",
]
