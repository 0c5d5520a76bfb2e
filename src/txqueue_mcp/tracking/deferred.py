"""Submit-now, finish-later execution of background work.

Every submission follows the same steps:

1. The record is written synchronously and its id obtained before any work runs.
2. The id is returned to the caller straight away.
3. The work runs on a worker thread (or an asyncio task for the ``spawn_*``
   variants), never inline.
4. Whatever happens to the work, exactly one terminal write reaches the store:
   the returned value completes the record, an :class:`OperationFailed` fails
   it with its payload, and any other exception fails it with a payload built
   from the exception.

Work functions only get non-terminal capabilities (an external reference for
operations, milestones for progress) so the terminal write stays with the
runner.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from txqueue_mcp.errors import OperationFailed
from txqueue_mcp.tracking.models import (
    OperationRecord,
    ProgressRecord,
    ProgressState,
)
from txqueue_mcp.tracking.notifications import NotificationBus, Subscription
from txqueue_mcp.tracking.store import RecordStore

logger = logging.getLogger(__name__)


class OperationHandle:
    """What background work may do to its own operation record."""

    def __init__(self, store: RecordStore, operation_id: str) -> None:
        self._store = store
        self.operation_id = operation_id

    def set_external_ref(self, ref: str) -> None:
        self._store.set_external_ref(self.operation_id, ref)


class ProgressReporter:
    """Reports intermediate milestones of a background computation."""

    def __init__(self, store: RecordStore, task_id: str) -> None:
        self._store = store
        self.task_id = task_id

    def update(self, message: str, progress: int) -> None:
        self._store.set_progress(
            self.task_id,
            ProgressRecord(state=ProgressState.PROCESSING, message=message, progress=progress),
        )


def failure_from_exception(exc: BaseException) -> object:
    if isinstance(exc, OperationFailed):
        return exc.payload
    return {"error": type(exc).__name__, "message": str(exc)}


def _failure_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def _fallback_failure(exc: BaseException) -> dict[str, str]:
    return {"error": type(exc).__name__, "message": _failure_message(exc)}


class DeferredRunner:
    def __init__(self, store: RecordStore, max_workers: int = 8) -> None:
        self._store = store
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="txqueue-work",
        )
        self._tasks: set[asyncio.Task[None]] = set()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def store(self) -> RecordStore:
        return self._store

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def submit_operation(
        self,
        kind: str,
        input: object,
        work: Callable[[OperationHandle], object],
    ) -> str:
        """Record a pending operation and run ``work`` on a worker thread."""
        operation_id = self._store.create_operation(kind, input)
        handle = OperationHandle(self._store, operation_id)
        try:
            self._submit(self._run_operation, handle, work)
        except RuntimeError as exc:
            self._store.fail_operation(operation_id, failure_from_exception(exc))
            raise
        return operation_id

    def spawn_operation(
        self,
        kind: str,
        input: object,
        work: Callable[[OperationHandle], Awaitable[object]],
    ) -> str:
        """Async counterpart of :meth:`submit_operation`.

        Must be called from a running event loop; the work becomes a task on it.
        """
        loop = asyncio.get_running_loop()
        operation_id = self._store.create_operation(kind, input)
        handle = OperationHandle(self._store, operation_id)
        self._track(loop.create_task(self._run_operation_async(handle, work)))
        return operation_id

    def _run_operation(
        self,
        handle: OperationHandle,
        work: Callable[[OperationHandle], object],
    ) -> None:
        try:
            output = work(handle)
        except BaseException as exc:
            self._fail_operation(handle.operation_id, exc)
            if not isinstance(exc, Exception):
                raise
        else:
            self._complete_operation(handle.operation_id, output)

    async def _run_operation_async(
        self,
        handle: OperationHandle,
        work: Callable[[OperationHandle], Awaitable[object]],
    ) -> None:
        try:
            output = await work(handle)
        except BaseException as exc:
            self._fail_operation(handle.operation_id, exc)
            if not isinstance(exc, Exception):
                raise
        else:
            self._complete_operation(handle.operation_id, output)

    def _complete_operation(self, operation_id: str, output: object) -> None:
        try:
            self._store.complete_operation(operation_id, output)
        except Exception as exc:
            logger.error(
                "Recording the result of operation %s failed", operation_id, exc_info=exc
            )
            self._store.fail_operation(operation_id, _fallback_failure(exc))

    def _fail_operation(self, operation_id: str, exc: BaseException) -> None:
        if isinstance(exc, OperationFailed):
            logger.warning("Operation %s failed: %s", operation_id, exc)
        else:
            logger.error(
                "Operation %s raised %s", operation_id, type(exc).__name__, exc_info=exc
            )
        try:
            self._store.fail_operation(operation_id, failure_from_exception(exc))
        except Exception as record_exc:
            logger.error(
                "Recording the failure of operation %s failed", operation_id, exc_info=record_exc
            )
            self._store.fail_operation(operation_id, _fallback_failure(exc))

    # ------------------------------------------------------------------
    # Progress tasks
    # ------------------------------------------------------------------

    def submit_progress(
        self,
        task_id: str,
        work: Callable[[ProgressReporter], object],
        label: str = "Task",
    ) -> str:
        """Record a pending task under ``task_id`` and run ``work`` on a worker thread."""
        self._start_progress(task_id, label)
        reporter = ProgressReporter(self._store, task_id)
        try:
            self._submit(self._run_progress, reporter, work, label)
        except RuntimeError as exc:
            self._fail_progress(task_id, exc)
            raise
        return task_id

    def spawn_progress(
        self,
        task_id: str,
        work: Callable[[ProgressReporter], Awaitable[object]],
        label: str = "Task",
    ) -> str:
        loop = asyncio.get_running_loop()
        self._start_progress(task_id, label)
        reporter = ProgressReporter(self._store, task_id)
        self._track(loop.create_task(self._run_progress_async(reporter, work, label)))
        return task_id

    def _start_progress(self, task_id: str, label: str) -> None:
        self._store.set_progress(
            task_id,
            ProgressRecord(state=ProgressState.PENDING, message=f"{label} started", progress=0),
        )

    def _run_progress(
        self,
        reporter: ProgressReporter,
        work: Callable[[ProgressReporter], object],
        label: str,
    ) -> None:
        try:
            result = work(reporter)
        except BaseException as exc:
            self._fail_progress(reporter.task_id, exc)
            if not isinstance(exc, Exception):
                raise
        else:
            self._complete_progress(reporter.task_id, result, label)

    async def _run_progress_async(
        self,
        reporter: ProgressReporter,
        work: Callable[[ProgressReporter], Awaitable[object]],
        label: str,
    ) -> None:
        try:
            result = await work(reporter)
        except BaseException as exc:
            self._fail_progress(reporter.task_id, exc)
            if not isinstance(exc, Exception):
                raise
        else:
            self._complete_progress(reporter.task_id, result, label)

    def _complete_progress(self, task_id: str, result: object, label: str) -> None:
        try:
            self._store.set_progress(
                task_id,
                ProgressRecord(
                    state=ProgressState.COMPLETED,
                    message=f"{label} completed",
                    progress=100,
                    result=result,
                ),
            )
        except Exception as exc:
            self._fail_progress(task_id, exc)

    def _fail_progress(self, task_id: str, exc: BaseException) -> None:
        if isinstance(exc, OperationFailed):
            logger.warning("Task %s failed: %s", task_id, exc)
        else:
            logger.error("Task %s raised %s", task_id, type(exc).__name__, exc_info=exc)
        self._store.set_progress(
            task_id,
            ProgressRecord(
                state=ProgressState.FAILED,
                message=f"Error: {_failure_message(exc)}",
                progress=0,
            ),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _submit(self, fn: Callable[..., None], *args: object) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Deferred runner is shut down")
            self._executor.submit(fn, *args)

    def _track(self, task: asyncio.Task[None]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_spawned(self) -> None:
        """Wait for every task started by the ``spawn_*`` methods to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting thread work; optionally wait for running work to finish.

        Pending asyncio tasks belong to their event loop and are left alone.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait)


# Eviction and delete_progress publish nothing, so waiters re-read the store
# at this interval to notice a record that disappeared.
_RECHECK_INTERVAL = 0.25

_Record = TypeVar("_Record", OperationRecord, ProgressRecord)


def _wait_until_settled(
    subscribe: Callable[[str, Callable[[_Record], None]], Subscription],
    fetch: Callable[[str], _Record | None],
    key: str,
    timeout: float | None,
) -> _Record | None:
    done = threading.Event()

    def _on_update(record: _Record) -> None:
        if record.is_terminal:
            done.set()

    deadline = None if timeout is None else time.monotonic() + timeout
    with subscribe(key, _on_update):
        while True:
            record = fetch(key)
            if record is None or record.is_terminal:
                return record
            if deadline is None:
                done.wait(_RECHECK_INTERVAL)
                continue
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return record
            done.wait(min(remaining, _RECHECK_INTERVAL))


def wait_for_operation(
    store: RecordStore,
    bus: NotificationBus,
    operation_id: str,
    timeout: float | None = None,
) -> OperationRecord | None:
    """Block until the operation is terminal, gone, or ``timeout`` expires.

    Returns the latest record, or None when the id is unknown or was evicted
    (including an eviction that happens while waiting).
    """
    return _wait_until_settled(bus.subscribe_operation, store.get_operation, operation_id, timeout)


def wait_for_progress(
    store: RecordStore,
    bus: NotificationBus,
    task_id: str,
    timeout: float | None = None,
) -> ProgressRecord | None:
    """Block until the task reaches a terminal state, is gone, or ``timeout`` expires."""
    return _wait_until_settled(bus.subscribe_progress, store.get_progress, task_id, timeout)
