"""
Pytest Configuration and Global Fixtures.

This file is automatically loaded by pytest and provides:
- Shared fixtures available to all tests
- Pytest markers configuration
"""

import sys
from pathlib import Path
from typing import Generator

import pytest

# Ensure the project root is importable for ``src``, ``config`` and ``apps``
sys.path.insert(0, str(Path(__file__).parent.parent))


# =============================================================================
# Re-export fixtures from helpers module
# =============================================================================

from tests.helpers.fixtures import (
    # Classes
    FakeCivitaiClient,
    FakeProvider,
    TestStoreContext,
    # Functions
    build_tree,
    failed,
    http_error,
    make_safetensors,
    sidecar_info,
)


# =============================================================================
# Pytest Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "lint: static checks over the source tree (no runtime imports)"
    )


# =============================================================================
# Function-Scoped Fixtures
# =============================================================================

@pytest.fixture
def fake_civitai_client() -> FakeCivitaiClient:
    """Create a fresh FakeCivitaiClient instance."""
    return FakeCivitaiClient()


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Create an available FakeProvider with an empty response queue."""
    return FakeProvider()


@pytest.fixture
def test_store_context(
    fake_civitai_client: FakeCivitaiClient,
    fake_provider: FakeProvider,
) -> Generator[TestStoreContext, None, None]:
    """Create an isolated test store context."""
    with TestStoreContext(civitai_client=fake_civitai_client, ai_provider=fake_provider) as ctx:
        yield ctx


# =============================================================================
# Collection Hooks
# =============================================================================

def pytest_collection_modifyitems(config, items):
    """Automatically mark tests under tests/lint."""
    for item in items:
        rel_path = item.path.relative_to(Path(__file__).parent)
        if "lint" in rel_path.parts:
            item.add_marker(pytest.mark.lint)
