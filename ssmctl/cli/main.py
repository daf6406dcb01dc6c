"""
ssmctl CLI - Command line interface.

`ssmctl NAME` is shorthand for `ssmctl connect NAME`.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import click
from click.shell_completion import CompletionItem
from loguru import logger

from ssmctl import __version__
from ssmctl.aws.session import PortMapping
from ssmctl.config.loader import DEFAULT_CONFIG_PATH, load_config, save_config
from ssmctl.core.exceptions import DiscoveryError, SsmctlError
from ssmctl.persistence.database import Database
from ssmctl.persistence.instances import InstanceRepository
from ssmctl.persistence.models import InstanceFilter
from ssmctl.service import CONNECTION_LOST, Service
from ssmctl.setup.wizard import check_first_run, run_setup_wizard, update_regions
from ssmctl.ui.console import ConsoleUI
from ssmctl.utils.logger import setup_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ssmctl.config.models import Config
    from ssmctl.persistence.enablement import EnablementRepository
    from ssmctl.persistence.models import InstanceRecord

T = TypeVar("T")

MANAGED_PREFIX = "mi-"
ONLINE_STATE = "online"

# Commands that never trigger the first-run wizard
NO_AUTO_SETUP = frozenset({"sync", "setup", "update-regions", "regions", "profiles"})

ui = ConsoleUI()


@dataclass
class CliState:
    """Objects shared by every command."""

    config: Config
    config_path: Path
    verbose: bool = False


class DefaultConnectGroup(click.Group):
    """Group that treats an unknown first argument as an instance name."""

    default_command = "connect"

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        if args and not args[0].startswith("-") and self.get_command(ctx, args[0]) is None:
            args = [self.default_command, *args]
        return super().resolve_command(ctx, args)


def run_with_service(config: Config, func: Callable[[Service], Awaitable[T]]) -> T:
    """
    Run `func` against an opened Service on a fresh event loop.

    SsmctlError is reported and turned into exit code 1.
    """

    async def _runner() -> T:
        async with Service(config) as service:
            return await func(service)

    try:
        return asyncio.run(_runner())
    except SsmctlError as e:
        logger.debug(f"❌ Command failed: {e}")
        ui.error(str(e))
        sys.exit(1)


def complete_instance_names(
    ctx: click.Context, param: click.Parameter, incomplete: str
) -> list[CompletionItem]:
    """Complete instance names from the local cache."""
    root = ctx.find_root()
    config_path = root.params.get("config_path") or DEFAULT_CONFIG_PATH
    # no log output while the shell is completing
    logger.disable("ssmctl")

    async def _names() -> list[str]:
        config = load_config(Path(config_path))
        async with Database(config.database.path) as db:
            return await InstanceRepository(db).complete_names(incomplete)

    try:
        names = asyncio.run(_names())
    except SsmctlError:
        return []
    return [CompletionItem(name) for name in names]


def filter_default_view(records: list[InstanceRecord]) -> list[InstanceRecord]:
    """Managed instances that are online."""
    return [
        r for r in records
        if r.instance_id.startswith(MANAGED_PREFIX) and r.state.lower() == ONLINE_STATE
    ]


async def _apply_enablement(
    repo: EnablementRepository, add: tuple[str, ...], remove: tuple[str, ...], label: str
) -> None:
    for name in add:
        await repo.enable(name)
        ui.success(f"Enabled {label} {name}")
    for name in remove:
        if await repo.disable(name):
            ui.success(f"Disabled {label} {name}")
        else:
            ui.warning(f"Unknown {label}: {name}")


# =============================================================================
# Root group
# =============================================================================


@click.group(cls=DefaultConnectGroup, invoke_without_command=True)
@click.version_option(version=__version__, prog_name="ssmctl")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.ssmctl/config.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging on stderr")
@click.option("--add-region", multiple=True, help="Enable a region and exit")
@click.option("--remove-region", multiple=True, help="Disable a region and exit")
@click.option("--add-profile", multiple=True, help="Enable a profile and exit")
@click.option("--remove-profile", multiple=True, help="Disable a profile and exit")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    verbose: bool,
    add_region: tuple[str, ...],
    remove_region: tuple[str, ...],
    add_profile: tuple[str, ...],
    remove_profile: tuple[str, ...],
) -> None:
    """
    ssmctl - Find and connect to EC2 and SSM managed instances.

    \b
    Examples:
      ssmctl web-01                  Connect to an instance by name
      ssmctl list                    Show cached instances
      ssmctl sync                    Refresh the instance cache
    """
    path = config_path or DEFAULT_CONFIG_PATH
    try:
        config = load_config(path)
    except SsmctlError as e:
        ui.error(str(e))
        sys.exit(1)

    setup_logger(verbose=verbose, config=config.logging)
    ctx.obj = CliState(config=config, config_path=path, verbose=verbose)

    if add_region or remove_region or add_profile or remove_profile:

        async def _quick(service: Service) -> None:
            await _apply_enablement(service.regions, add_region, remove_region, "region")
            await _apply_enablement(service.profiles, add_profile, remove_profile, "profile")

        run_with_service(config, _quick)
        ctx.exit(0)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)

    if ctx.invoked_subcommand not in NO_AUTO_SETUP and sys.stdin.isatty():
        _auto_setup(ctx.obj)


def _auto_setup(state: CliState) -> None:
    """Run the wizard when the cache is empty."""

    async def _maybe_setup(service: Service) -> None:
        if not await check_first_run(service):
            return
        ui.info("No cached instances yet, starting setup.")
        await run_setup_wizard(ui, service)

    run_with_service(state.config, _maybe_setup)
    if not state.config_path.exists():
        save_config(state.config, state.config_path)


# =============================================================================
# Sessions
# =============================================================================


@cli.command()
@click.argument("name", shell_complete=complete_instance_names)
@click.pass_obj
def connect(state: CliState, name: str) -> None:
    """Open a session to the instance NAME."""
    run_with_service(state.config, lambda service: service.connect(name))


@cli.command()
@click.argument("name", shell_complete=complete_instance_names)
@click.option(
    "--port",
    "-p",
    "ports",
    multiple=True,
    required=True,
    help="LOCAL:REMOTE (or PORT for both), repeatable",
)
@click.pass_obj
def forward(state: CliState, name: str, ports: tuple[str, ...]) -> None:
    """Forward local ports to the instance NAME."""
    try:
        mappings = [PortMapping.parse(p) for p in ports]
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--port") from e

    run_with_service(state.config, lambda service: service.port_forward_many(name, mappings))


# =============================================================================
# Cache
# =============================================================================


@cli.command("list")
@click.option("--profile", default=None, help="Only this profile")
@click.option("--region", default=None, help="Only this region")
@click.option("--name", default=None, help="Name contains")
@click.option("--state", "state_filter", default=None, help="Exact state")
@click.option("--all", "-a", "show_all", is_flag=True, help="All instances and columns")
@click.option("--json", "as_json", is_flag=True, help="JSON output")
@click.pass_obj
def list_cmd(
    state: CliState,
    profile: str | None,
    region: str | None,
    name: str | None,
    state_filter: str | None,
    show_all: bool,
    as_json: bool,
) -> None:
    """List cached instances."""
    query = InstanceFilter(profile=profile, region=region, name=name, state=state_filter)
    records = run_with_service(state.config, lambda service: service.list_instances(query))

    if not show_all:
        records = filter_default_view(records)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2))
        return

    if not records:
        ui.muted("No instances found. Run `ssmctl sync` or use --all.")
        return

    ui.instances(records, show_all=show_all)


@cli.command()
@click.option("--profile", default=None, help="Only this profile")
@click.option("--region", default=None, help="Only this region")
@click.pass_obj
def sync(state: CliState, profile: str | None, region: str | None) -> None:
    """Refresh the instance cache from AWS."""

    async def _sync(service: Service) -> bool:
        cancel = asyncio.Event()
        loop = asyncio.get_running_loop()
        # Ctrl-C stops units waiting for a slot; running units finish
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signal.SIGINT, cancel.set)
        try:
            outcome = await service.sync_instances(profile, region, cancel=cancel)
        except DiscoveryError as e:
            ui.error(str(e))
            for failure in e.failures:
                ui.muted(f"  {failure}")
            return False
        finally:
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(signal.SIGINT)
        ui.success(outcome.summary())
        return True

    if not run_with_service(state.config, _sync):
        sys.exit(1)


@cli.command()
@click.option("--state", "target_state", default=CONNECTION_LOST, show_default=True, help="State to remove")
@click.pass_obj
def clean(state: CliState, target_state: str) -> None:
    """Remove cached instances in a given state."""
    count = run_with_service(state.config, lambda service: service.clean(target_state))
    ui.success(f"Removed {count} instance(s) with state {target_state}")


@cli.command()
@click.pass_obj
def stats(state: CliState) -> None:
    """Show cache statistics."""
    data = run_with_service(state.config, lambda service: service.stats())
    rows = [[key, str(value)] for key, value in sorted(data.items()) if key != "total"]
    ui.table(["KEY", "COUNT"], [["total", str(data.get("total", 0))], *rows])


# =============================================================================
# Setup and enablement
# =============================================================================


@cli.command()
@click.option("--no-sync", is_flag=True, help="Skip the initial sync")
@click.pass_obj
def setup(state: CliState, no_sync: bool) -> None:
    """Choose profiles and regions, then sync."""
    run_with_service(state.config, lambda service: run_setup_wizard(ui, service, sync=not no_sync))
    if not state.config_path.exists():
        path = save_config(state.config, state.config_path)
        ui.muted(f"Configuration written to {path}")


@cli.command("update-regions")
@click.pass_obj
def update_regions_cmd(state: CliState) -> None:
    """Re-select regions from the current AWS region list."""
    selected = run_with_service(state.config, lambda service: update_regions(ui, service))
    ui.success(f"{len(selected)} region(s) enabled")


def _enablement_group(label: str, attr: str) -> click.Group:
    """Build the `regions`/`profiles` command group."""

    def _repo(service: Service) -> Any:
        return getattr(service, attr)

    @click.group(name=attr, help=f"Manage {label}s used by sync.")
    def group() -> None:
        pass

    @group.command("list", help=f"Show {label}s and whether they are enabled.")
    @click.pass_obj
    def list_rows(state: CliState) -> None:
        rows = run_with_service(state.config, lambda service: _repo(service).all())
        ui.enablement(rows, label)

    @group.command(help=f"Enable {label}s.")
    @click.argument("names", nargs=-1, required=True)
    @click.pass_obj
    def enable(state: CliState, names: tuple[str, ...]) -> None:
        run_with_service(
            state.config, lambda service: _apply_enablement(_repo(service), names, (), label)
        )

    @group.command(help=f"Disable {label}s.")
    @click.argument("names", nargs=-1, required=True)
    @click.pass_obj
    def disable(state: CliState, names: tuple[str, ...]) -> None:
        run_with_service(
            state.config, lambda service: _apply_enablement(_repo(service), (), names, label)
        )

    return group


cli.add_command(_enablement_group("region", "regions"))
cli.add_command(_enablement_group("profile", "profiles"))


def main() -> None:
    """Console script entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
