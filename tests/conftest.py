"""Pytest configuration and shared fixtures for all tests.

This module provides:
- Test configuration and markers
- In-memory store fixtures (sync and async flavors of the store contract)
- Tool registry and executor fixtures
"""

import pytest
from _pytest.config import Config

from bookcrafter_agent.application.services.tool_executor import ToolExecutor
from bookcrafter_agent.application.services.tool_registry import ToolRegistry
from tests.fixtures.store import AsyncInMemoryStore, InMemoryStore

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config: Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "asyncio: Async tests")


# ============================================================================
# STORE FIXTURES
# ============================================================================


@pytest.fixture
def store() -> InMemoryStore:
    """Provide a synchronous in-memory store with sample books and entities."""
    return InMemoryStore()


@pytest.fixture
def async_store(store: InMemoryStore) -> AsyncInMemoryStore:
    """Provide the same data behind coroutine methods."""
    return AsyncInMemoryStore(store)


# ============================================================================
# TOOL FIXTURES
# ============================================================================


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry.default()


@pytest.fixture
def executor(registry: ToolRegistry) -> ToolExecutor:
    return ToolExecutor(registry)
