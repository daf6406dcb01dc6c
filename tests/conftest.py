"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from loguru import logger

from ssmctl.persistence.database import Database
from ssmctl.persistence.enablement import ProfileRepository, RegionRepository
from ssmctl.persistence.instances import InstanceRepository
from tests.fakes import FakeClientProvider, FakeClock

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Iterator

# Use pytest-asyncio's built-in event loop management
# See: https://pytest-asyncio.readthedocs.io/en/latest/concepts.html
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(scope="session")
def event_loop_policy() -> asyncio.AbstractEventLoopPolicy:
    """Return the event loop policy to use for tests."""
    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture(autouse=True)
def _reset_logger() -> Iterator[None]:
    """Drop any sinks a test installed via setup_logger."""
    yield
    logger.remove()
    logger.enable("ssmctl")


@pytest.fixture
async def temp_db_path() -> AsyncGenerator[Path, None]:
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
async def database(temp_db_path: Path) -> AsyncGenerator[Database, None]:
    """Create a test database."""
    db = Database(temp_db_path)
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def instances(database: Database, clock: FakeClock) -> InstanceRepository:
    return InstanceRepository(database, clock=clock)


@pytest.fixture
def regions(database: Database) -> RegionRepository:
    return RegionRepository(database)


@pytest.fixture
def profiles(database: Database) -> ProfileRepository:
    return ProfileRepository(database)


@pytest.fixture
def provider() -> FakeClientProvider:
    return FakeClientProvider()
