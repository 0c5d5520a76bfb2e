"""Per-record change notifications.

Mutations publish a snapshot of the record they produced. Delivery runs on a
small thread pool so a slow handler never stalls the mutating caller. For any
single record id, snapshots reach handlers in the order they were published;
different ids are delivered independently of one another.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

from txqueue_mcp.errors import NotificationBusClosed, SubscriptionLimitError
from txqueue_mcp.tracking.models import OperationRecord, ProgressRecord

logger = logging.getLogger(__name__)

OperationHandler = Callable[[OperationRecord], None]
ProgressHandler = Callable[[ProgressRecord], None]


class Channel(str, Enum):
    OPERATION = "operation"
    PROGRESS = "progress"


_Key = tuple[Channel, str]


@dataclass(eq=False)
class _Registration:
    key: _Key
    handler: Callable[[object], None]
    active: bool = True


@dataclass
class _Delivery:
    registrations: list[_Registration]
    snapshot: OperationRecord | ProgressRecord


@dataclass
class _KeyQueue:
    items: deque[_Delivery] = field(default_factory=deque)
    draining: bool = False


class Subscription:
    """Handle for one handler registration.

    Calling the handle, or its :meth:`unsubscribe` method, removes exactly this
    registration. Repeated calls are no-ops.
    """

    def __init__(self, bus: NotificationBus, registration: _Registration) -> None:
        self._bus = bus
        self._registration = registration

    @property
    def active(self) -> bool:
        return self._registration.active

    def unsubscribe(self) -> None:
        self._bus._remove(self._registration)

    def __call__(self) -> None:
        self.unsubscribe()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class NotificationBus:
    def __init__(self, max_workers: int = 4, max_subscribers_per_id: int = 100) -> None:
        self._max_subscribers_per_id = max_subscribers_per_id
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="txqueue-notify",
        )
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._subscribers: dict[_Key, list[_Registration]] = {}
        self._queues: dict[_Key, _KeyQueue] = {}
        self._outstanding = 0
        self._closed = False

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe_operation(self, operation_id: str, handler: OperationHandler) -> Subscription:
        """Call ``handler`` with the record after every update of ``operation_id``."""
        return self._add((Channel.OPERATION, operation_id), handler)

    def subscribe_progress(self, task_id: str, handler: ProgressHandler) -> Subscription:
        """Call ``handler`` with the record after every write of ``task_id``."""
        return self._add((Channel.PROGRESS, task_id), handler)

    def subscriber_count(self, channel: Channel, key: str) -> int:
        with self._lock:
            return len(self._subscribers.get((channel, key), ()))

    def _add(self, key: _Key, handler: Callable[..., None]) -> Subscription:
        with self._lock:
            if self._closed:
                raise NotificationBusClosed("Notification bus is closed")
            registrations = self._subscribers.setdefault(key, [])
            if len(registrations) >= self._max_subscribers_per_id:
                raise SubscriptionLimitError(key[1], self._max_subscribers_per_id)
            registration = _Registration(key=key, handler=handler)
            registrations.append(registration)
        return Subscription(self, registration)

    def _remove(self, registration: _Registration) -> None:
        with self._lock:
            if not registration.active:
                return
            registration.active = False
            registrations = self._subscribers.get(registration.key)
            if registrations is None:
                return
            registrations.remove(registration)
            if not registrations:
                del self._subscribers[registration.key]

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish_operation(self, record: OperationRecord) -> None:
        self._publish((Channel.OPERATION, record.id), record)

    def publish_progress(self, task_id: str, record: ProgressRecord) -> None:
        self._publish((Channel.PROGRESS, task_id), record)

    def _publish(self, key: _Key, snapshot: OperationRecord | ProgressRecord) -> None:
        with self._lock:
            if self._closed:
                logger.debug("Dropping %s notification for %s: bus closed", key[0].value, key[1])
                return
            registrations = list(self._subscribers.get(key, ()))
            if not registrations:
                return
            queue = self._queues.setdefault(key, _KeyQueue())
            queue.items.append(_Delivery(registrations=registrations, snapshot=snapshot))
            self._outstanding += 1
            if queue.draining:
                return
            queue.draining = True
        try:
            self._executor.submit(self._drain, key)
        except RuntimeError:
            # Executor shut down between the closed check and the submit.
            with self._lock:
                dropped = self._queues.pop(key, None)
                self._outstanding -= len(dropped.items) if dropped else 0
                self._idle.notify_all()
            logger.debug("Dropping %s notification for %s: bus closed", key[0].value, key[1])

    def _drain(self, key: _Key) -> None:
        while True:
            with self._lock:
                queue = self._queues[key]
                if not queue.items:
                    queue.draining = False
                    del self._queues[key]
                    return
                delivery = queue.items.popleft()
            try:
                self._deliver(key, delivery)
            finally:
                with self._lock:
                    self._outstanding -= 1
                    if self._outstanding == 0:
                        self._idle.notify_all()

    def _deliver(self, key: _Key, delivery: _Delivery) -> None:
        for registration in delivery.registrations:
            # Handlers removed after the publish must not see it.
            if not registration.active:
                continue
            try:
                registration.handler(delivery.snapshot.detached())
            except Exception:
                logger.exception(
                    "Notification handler failed for %s %s", key[0].value, key[1]
                )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def flush(self, timeout: float | None = None) -> bool:
        """Block until every published notification has been delivered.

        Returns False if ``timeout`` expired first.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout=timeout)

    def close(self, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if wait:
            self.flush()
        self._executor.shutdown(wait=wait)
        with self._lock:
            for registrations in self._subscribers.values():
                for registration in registrations:
                    registration.active = False
            self._subscribers.clear()
