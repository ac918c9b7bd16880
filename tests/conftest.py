"""
Pytest configuration and shared fixtures.
"""

import logging
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from bip.api.main import create_app
from bip.config import Settings
from bip.observability.logging import clear_context
from bip.store import Registry


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    """Directory holding the durable job state for one test."""
    return tmp_path / "bip_data"


@pytest.fixture
def registry(data_root: Path) -> Registry:
    """A registry recovered from an empty data root."""
    return Registry.recover(data_root, fsync=False)


@pytest.fixture
def restart(data_root: Path):
    """Simulate a process restart: recover a fresh registry from the same root."""

    def _restart(requeue_in_flight: bool = True) -> Registry:
        return Registry.recover(
            data_root,
            fsync=False,
            requeue_in_flight=requeue_in_flight,
        )

    return _restart


@pytest.fixture
def test_settings(data_root: Path) -> Settings:
    """Create test settings."""
    return Settings(
        data_root=data_root,
        fsync_writes=False,
        log_level="DEBUG",
        log_format="console",
    )


@pytest.fixture
def app(registry: Registry) -> FastAPI:
    """Create a FastAPI app serving the test registry."""
    return create_app(registry)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_data() -> bytes:
    """A binary job payload."""
    return bytes(range(11))


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo any logging configuration a test installs on the root logger."""
    root_logger = logging.getLogger()
    handlers, level = root_logger.handlers[:], root_logger.level
    yield
    root_logger.handlers = handlers
    root_logger.setLevel(level)
    structlog.reset_defaults()
    clear_context()
