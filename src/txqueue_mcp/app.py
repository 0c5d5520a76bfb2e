"""Application context assembly."""

from __future__ import annotations

from dataclasses import dataclass

from txqueue_mcp.config import Settings, load_settings
from txqueue_mcp.tracking.deferred import DeferredRunner
from txqueue_mcp.tracking.notifications import NotificationBus
from txqueue_mcp.tracking.store import RecordStore


@dataclass
class AppContext:
    """Owner of the record store and the services built around it.

    Built once by the process entry point and handed to every component that
    needs it. Tests build their own with fresh state.
    """

    settings: Settings
    bus: NotificationBus
    store: RecordStore
    runner: DeferredRunner

    def close(self) -> None:
        self.runner.shutdown(wait=True)
        self.bus.close(wait=True)


def build_app_context(settings: Settings | None = None) -> AppContext:
    settings = settings or load_settings()
    bus = NotificationBus(
        max_workers=settings.queue.notification_workers,
        max_subscribers_per_id=settings.queue.max_subscribers_per_id,
    )
    store = RecordStore(bus=bus, max_history=settings.queue.max_history)
    runner = DeferredRunner(store, max_workers=settings.queue.background_workers)
    return AppContext(settings=settings, bus=bus, store=store, runner=runner)
