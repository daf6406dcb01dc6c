"""Tests for the setup wizard."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from ssmctl.config.models import Config
from ssmctl.service import Service
from ssmctl.setup import wizard
from ssmctl.setup.wizard import check_first_run, run_setup_wizard, select_items, update_regions
from tests.fakes import FakeAWSClient, FakeClientProvider, ec2_instance

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path


class ScriptedUI:
    """ConsoleUI double that answers prompts from a script."""

    def __init__(self, *answers: str) -> None:
        self.answers = list(answers)
        self.messages: list[str] = []

    def _record(self, message: Any = "", *args: Any, **kwargs: Any) -> None:
        self.messages.append(str(message))

    print = panel = success = error = warning = info = muted = _record

    def newline(self) -> None:
        pass

    async def prompt(self, message: str, default: str = "") -> str:
        return self.answers.pop(0)

    async def prompt_choice(self, message: str, choices: list[str], default: str | None = None) -> str:
        return self.answers.pop(0)


@pytest.fixture
async def service(temp_db_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[Service, None]:
    async def regions(profile: str | None = None) -> list[str]:
        return ["eu-west-1", "us-east-1", "us-west-2"]

    monkeypatch.setattr(wizard, "regions_with_fallback", regions)

    provider = FakeClientProvider()
    provider.add(FakeAWSClient("dev", "us-east-1", compute=[ec2_instance("i-1", name="web")]))
    config = Config.model_validate({"database": {"path": str(temp_db_path)}})
    async with Service(config, clients=provider, profile_source=lambda: ["dev", "prod", "qa"]) as svc:
        yield svc


class TestSelectItems:
    @pytest.mark.asyncio
    async def test_all(self) -> None:
        assert await select_items(ScriptedUI("all"), "regions", ["a", "b"]) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_indexes(self) -> None:
        ui = ScriptedUI("select", "3,1")
        assert await select_items(ui, "regions", ["a", "b", "c"]) == ["c", "a"]

    @pytest.mark.asyncio
    async def test_invalid_selection_keeps_current(self) -> None:
        ui = ScriptedUI("select", "9")
        assert await select_items(ui, "regions", ["a", "b", "c"], current=["b"]) == ["b"]

    @pytest.mark.asyncio
    async def test_nothing_to_choose(self) -> None:
        assert await select_items(ScriptedUI(), "regions", []) == []


class TestWizard:
    @pytest.mark.asyncio
    async def test_full_run(self, service: Service) -> None:
        assert await check_first_run(service)

        ui = ScriptedUI("select", "1", "select", "2")
        result = await run_setup_wizard(ui, service)

        assert result.completed
        assert result.profiles == ["dev"]
        assert result.regions == ["us-east-1"]
        assert result.instances_synced == 1
        assert result.sync_errors == 0
        assert await service.profiles.enabled() == ["dev"]
        assert await service.regions.enabled() == ["us-east-1"]
        assert not await check_first_run(service)

    @pytest.mark.asyncio
    async def test_without_sync(self, service: Service) -> None:
        result = await run_setup_wizard(ScriptedUI("all", "all"), service, sync=False)

        assert result.profiles == ["dev", "prod", "qa"]
        assert result.regions == ["eu-west-1", "us-east-1", "us-west-2"]
        assert result.instances_synced == 0
        assert await check_first_run(service)

    @pytest.mark.asyncio
    async def test_new_local_profile_offered(self, service: Service) -> None:
        """Profiles added to the AWS files after the first run show up."""
        service.profile_source = lambda: ["dev", "prod", "qa", "staging"]

        result = await run_setup_wizard(ScriptedUI("all", "all"), service, sync=False)

        assert result.profiles == ["dev", "prod", "qa", "staging"]
        assert await service.profiles.enabled() == ["dev", "prod", "qa", "staging"]

    @pytest.mark.asyncio
    async def test_unverified_profile_warned_but_enabled(self, service: Service) -> None:
        service.clients.invalid_profiles.add("prod")
        ui = ScriptedUI("select", "1,2", "all")

        result = await run_setup_wizard(ui, service, sync=False)

        assert result.profiles == ["dev", "prod"]
        assert "Could not verify credentials for profile prod" in ui.messages
        assert "  dev: account 111122223333" in ui.messages

    @pytest.mark.asyncio
    async def test_update_regions(self, service: Service) -> None:
        selected = await update_regions(ScriptedUI("select", "1,3"), service)

        assert selected == ["eu-west-1", "us-west-2"]
        assert await service.regions.enabled() == ["eu-west-1", "us-west-2"]
