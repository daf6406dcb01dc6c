"""
ssmctl Setup - First-run configuration wizard.

Selects the profiles and regions to scan, then runs the initial sync.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from ssmctl.aws.profiles import regions_with_fallback
from ssmctl.core.exceptions import DiscoveryError
from ssmctl.ui.console import parse_selection

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ssmctl.service import Service
    from ssmctl.ui.console import ConsoleUI


@dataclass
class SetupResult:
    """Result of setup wizard."""

    profiles: list[str] = field(default_factory=list)
    regions: list[str] = field(default_factory=list)
    instances_synced: int = 0
    sync_errors: int = 0
    completed: bool = False


async def select_items(
    ui: ConsoleUI,
    label: str,
    items: Sequence[str],
    current: Sequence[str] = (),
) -> list[str]:
    """
    Ask for "all" or a comma-separated list of indexes.

    Returns the chosen items; an empty or invalid selection keeps `current`
    (or everything when nothing is current).
    """
    if not items:
        return []

    ui.newline()
    ui.info(f"Available {label}:")
    for index, item in enumerate(items, start=1):
        marker = "[success]*[/success]" if item in current else " "
        ui.print(f"  {marker} {index:>2}. {item}")

    choice = await ui.prompt_choice(f"Scan all {label}", choices=["all", "select"], default="all")
    if choice == "all":
        return list(items)

    answer = await ui.prompt(f"Numbers of the {label} to enable (e.g. 1,3,4)")
    chosen = [items[i] for i in parse_selection(answer, len(items))]
    if not chosen:
        fallback = [item for item in items if item in current] or list(items)
        ui.warning(f"No valid selection, keeping {len(fallback)} {label}")
        return fallback
    return chosen


async def run_profile_setup(ui: ConsoleUI, service: Service) -> list[str]:
    """
    Choose the AWS profiles to scan.

    Offers the profiles in the local AWS files (re-read on every run) plus
    any already stored, then checks credentials for the selection. A profile
    that fails the check is still enabled; the user is warned.
    """
    rows = await service.profiles.all()
    names = sorted({row.name for row in rows} | set(service.profile_source()))
    current = [row.name for row in rows if row.enabled]

    selected = await select_items(ui, "profiles", names, current)
    await service.profiles.set_enabled(selected)
    logger.info(f"⚙️ Enabled profiles: {', '.join(selected)}")

    accounts = await service.validate_profiles(selected)
    for profile in selected:
        if profile in accounts:
            ui.muted(f"  {profile}: account {accounts[profile]}")
        else:
            ui.warning(f"Could not verify credentials for profile {profile}")
    return selected


async def run_region_setup(ui: ConsoleUI, service: Service, profile: str | None = None) -> list[str]:
    """
    Choose the regions to scan.

    The list comes from the EC2 region API when reachable, the static list
    otherwise.
    """
    ui.info("Fetching region list...")
    available = await regions_with_fallback(profile)
    current = await service.regions.enabled()

    selected = await select_items(ui, "regions", available, current)
    await service.regions.set_enabled(selected)
    logger.info(f"⚙️ Enabled regions: {', '.join(selected)}")
    return selected


async def run_setup_wizard(ui: ConsoleUI, service: Service, sync: bool = True) -> SetupResult:
    """
    Run the complete setup wizard.

    Args:
        ui: Console UI.
        service: Opened application service.
        sync: Run the initial discovery once the selection is saved.

    Returns:
        SetupResult with the selection and sync totals.
    """
    result = SetupResult()

    ui.panel(
        """
Welcome to ssmctl!

This wizard will configure:
  1. The AWS profiles to scan
  2. The regions to scan
  3. The initial instance cache
        """,
        title="ssmctl Setup",
        style="info",
    )

    ui.newline()
    ui.info("Step 1: AWS profiles")
    result.profiles = await run_profile_setup(ui, service)

    ui.newline()
    ui.info("Step 2: Regions")
    first_profile = result.profiles[0] if result.profiles else None
    result.regions = await run_region_setup(ui, service, first_profile)

    if sync and result.profiles and result.regions:
        ui.newline()
        ui.info("Step 3: Initial sync")
        try:
            outcome = await service.sync_instances()
            result.instances_synced = outcome.records_written
        except DiscoveryError as e:
            result.sync_errors = e.failed_units
            ui.warning(str(e))
            for failure in e.failures:
                ui.muted(f"  {failure}")

    result.completed = True

    ui.panel(
        f"""
Setup complete!

- Profiles: {len(result.profiles)}
- Regions: {len(result.regions)}
- Instances cached: {result.instances_synced}

Run `ssmctl list` to see your instances.
        """,
        title="Setup Complete",
        style="success",
    )

    return result


async def update_regions(ui: ConsoleUI, service: Service) -> list[str]:
    """Re-run the region selection against the current region list."""
    profiles = await service.profiles.enabled()
    return await run_region_setup(ui, service, profiles[0] if profiles else None)


async def check_first_run(service: Service) -> bool:
    """First run means nothing has been cached yet."""
    return await service.is_empty()
