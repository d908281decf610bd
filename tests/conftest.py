"""
Shared test fixtures.

The sync is exercised against FakeShopify (tests/fakes.py), an in-memory
store exposing the same typed operations as ShopifyClient.
"""

import sys
from pathlib import Path

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

import pytest

from config import SyncConfig
from sync_engine import SyncEngine
from tests.fakes import FakeClock, FakeShopify


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(
        domain="test-shop.myshopify.com",
        token="shpat_test",
        api_version="2025-01",
        location_id=1001,
        primary_locale="it",
    )


@pytest.fixture
def fake_shop() -> FakeShopify:
    return FakeShopify()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(fake_shop, sync_config, fake_clock) -> SyncEngine:
    return SyncEngine(fake_shop, sync_config, clock=fake_clock)
