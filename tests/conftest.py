from __future__ import annotations

import pytest

from txqueue_mcp import config
from txqueue_mcp.tracking.deferred import DeferredRunner
from txqueue_mcp.tracking.notifications import NotificationBus
from txqueue_mcp.tracking.store import RecordStore


@pytest.fixture(autouse=True)
def _fresh_settings() -> None:
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()


@pytest.fixture
def bus() -> NotificationBus:
    notification_bus = NotificationBus(max_workers=2, max_subscribers_per_id=5)
    yield notification_bus
    notification_bus.close()


@pytest.fixture
def store(bus: NotificationBus) -> RecordStore:
    return RecordStore(bus=bus, max_history=100)


@pytest.fixture
def runner(store: RecordStore) -> DeferredRunner:
    deferred = DeferredRunner(store, max_workers=4)
    yield deferred
    deferred.shutdown(wait=True)
