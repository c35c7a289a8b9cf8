"""Pytest configuration and shared fixtures for post cache tests.

This module provides:
- Basic pytest configuration
- In-memory Fast Cache and durable store doubles
- A fully wired PostService over those doubles
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root to Python path to allow imports from postcache and tests
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from postcache.cache.keys import CacheKeys
from postcache.config import CacheSettings
from postcache.services.post_service import build_post_service
from tests.fixtures.fakes import FakeCache, FakePostStore


# ==================== Pytest Configuration ====================

def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers",
        "unit: mark test as a unit test (fast, isolated)"
    )
    config.addinivalue_line(
        "markers",
        "integration: mark test as an integration test (multiple components)"
    )


# ==================== Environment Fixtures ====================

@pytest.fixture(scope="function", autouse=True)
def isolate_environment():
    """Isolate each test by preventing environment variable pollution."""
    original_env = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ==================== Component Fixtures ====================

@pytest.fixture
def settings() -> CacheSettings:
    """Cache settings with the documented defaults."""
    settings = CacheSettings()
    settings.post_ttl = 3600
    settings.list_ttl = 600
    settings.trending_ttl = 300
    settings.search_ttl = 600
    settings.like_marker_ttl = 86400 * 30
    settings.view_flush_batch = 10
    settings.view_counter_ttl = 86400 * 7
    settings.key_prefix = ""
    settings.list_max_page_size = 100
    settings.trending_default_limit = 10
    return settings


@pytest.fixture
def keys(settings) -> CacheKeys:
    return CacheKeys(settings.key_prefix)


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def store() -> FakePostStore:
    return FakePostStore()


@pytest.fixture
def service(cache, store, settings):
    """PostService wired over the in-memory doubles."""
    return build_post_service(cache, store, settings)


@pytest.fixture
def post(store):
    """One published post already in the store."""
    return store.seed(slug="hello-world", title="Hello World", tags=["intro", "cache"])
