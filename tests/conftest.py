"""Pytest configuration and shared fixtures for mochi-tools tests.

This module provides common fixtures used across all test modules,
including tool fixture directories, test app creation and async client setup.
"""

from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from mochi_tools import create_app
from mochi_tools.config import MochiToolsSettings

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """Directory holding the tool source fixtures."""
    return FIXTURES_DIR


@pytest.fixture
def tools_dir() -> Path:
    """Built-in tools fixture directory."""
    return FIXTURES_DIR / "tools"


@pytest.fixture
def override_dir() -> Path:
    """Override tools fixture directory."""
    return FIXTURES_DIR / "tools_override"


@pytest.fixture
def test_settings(tmp_path):
    """Create test settings pointing at the fixture tool directories.

    Args:
        tmp_path: Pytest fixture providing a temporary directory.

    Returns:
        MochiToolsSettings: Settings instance configured for testing.
    """
    return MochiToolsSettings(
        host="127.0.0.1",
        port=8000,
        data_dir=str(tmp_path),
        tools_dir=str(FIXTURES_DIR / "tools"),
        user_tools_dir=str(FIXTURES_DIR / "tools_override"),
        log_level="DEBUG",
        cors_origins=["*"],
    )


@pytest.fixture
def test_app(test_settings):
    """Create a FastAPI test application instance.

    Args:
        test_settings: Test settings fixture.

    Returns:
        FastAPI: Configured test application.
    """
    return create_app(settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints.

    Args:
        test_app: Test application fixture.

    Yields:
        AsyncClient: Async HTTP client for making test requests.
    """
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
