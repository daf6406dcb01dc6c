"""Tests for profile and region enumeration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from botocore.exceptions import NoCredentialsError

from ssmctl.aws import profiles as profiles_module
from ssmctl.aws.profiles import (
    STATIC_REGIONS,
    list_available_profiles,
    list_available_regions,
    regions_with_fallback,
)

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def aws_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> tuple[Path, Path]:
    config = tmp_path / "config"
    credentials = tmp_path / "credentials"
    monkeypatch.setenv("AWS_CONFIG_FILE", str(config))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(credentials))
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    monkeypatch.delenv("AWS_DEFAULT_PROFILE", raising=False)
    return config, credentials


class TestProfiles:
    """Profiles from the AWS config and credentials files."""

    def test_profiles_from_both_files(self, aws_files: tuple[Path, Path]) -> None:
        config, credentials = aws_files
        config.write_text("[default]\nregion = us-east-1\n\n[profile dev]\nregion = eu-west-1\n")
        credentials.write_text("[prod]\naws_access_key_id = x\naws_secret_access_key = y\n\n[dev]\n")

        assert list_available_profiles() == ["default", "dev", "prod"]

    def test_no_files_means_default(self, aws_files: tuple[Path, Path]) -> None:
        assert list_available_profiles() == ["default"]


class TestRegions:
    """Static list and dynamic fallback."""

    def test_static_list_is_a_copy(self) -> None:
        regions = list_available_regions()
        regions.append("moon-1")
        assert "moon-1" not in STATIC_REGIONS

    @pytest.mark.asyncio
    async def test_dynamic_list_used_when_available(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def dynamic(profile: str | None = None, timeout: float = 15.0) -> list[str]:
            return ["af-south-1", "us-east-1"]

        monkeypatch.setattr(profiles_module, "list_available_regions_dynamic", dynamic)
        assert await regions_with_fallback("dev") == ["af-south-1", "us-east-1"]

    @pytest.mark.asyncio
    async def test_falls_back_on_remote_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def dynamic(profile: str | None = None, timeout: float = 15.0) -> list[str]:
            raise NoCredentialsError()

        monkeypatch.setattr(profiles_module, "list_available_regions_dynamic", dynamic)
        assert await regions_with_fallback() == STATIC_REGIONS

    @pytest.mark.asyncio
    async def test_falls_back_on_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def dynamic(profile: str | None = None, timeout: float = 15.0) -> list[str]:
            raise TimeoutError

        monkeypatch.setattr(profiles_module, "list_available_regions_dynamic", dynamic)
        assert await regions_with_fallback() == STATIC_REGIONS
