"""
ssmctl Setup - First-run wizard.
"""

from ssmctl.setup.wizard import (
    SetupResult,
    check_first_run,
    run_setup_wizard,
    select_items,
    update_regions,
)

__all__ = [
    "SetupResult",
    "check_first_run",
    "run_setup_wizard",
    "select_items",
    "update_regions",
]
