"""In-memory store for operation and progress records."""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from txqueue_mcp.tracking.ids import new_operation_id
from txqueue_mcp.tracking.models import (
    OperationRecord,
    OperationState,
    ProgressRecord,
    detach,
)
from txqueue_mcp.tracking.notifications import NotificationBus
from txqueue_mcp.utils.time import utc_now

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 100


class RecordStore:
    """Thread-safe holder of operation and progress records.

    Every method is atomic with respect to the others. Records are frozen and
    replaced as a whole on each mutation, and callers only ever receive copies (deep
    wherever the payload allows it), so a reader can never observe a
    half-applied update. Payloads are opaque: any object is accepted.

    Mutators and getters treat an unknown id as "nothing to do": they never
    raise. Operation records are capped at ``max_history``; once a completion
    or failure pushes the count over the cap, the oldest records by creation
    time are dropped whatever their state. That includes operations still
    pending or confirming.
    """

    def __init__(
        self,
        bus: NotificationBus | None = None,
        max_history: int = DEFAULT_MAX_HISTORY,
        id_factory: Callable[[], str] = new_operation_id,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self._bus = bus
        self._max_history = max_history
        self._id_factory = id_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._operations: dict[str, OperationRecord] = {}
        self._progress: dict[str, ProgressRecord] = {}
        self._sequence = itertools.count()

    @property
    def max_history(self) -> int:
        return self._max_history

    # ------------------------------------------------------------------
    # Operation records
    # ------------------------------------------------------------------

    def create_operation(self, kind: str, input: object) -> str:
        owned_input = detach(input)
        with self._lock:
            operation_id = self._id_factory()
            while operation_id in self._operations:
                operation_id = self._id_factory()
            self._operations[operation_id] = OperationRecord(
                id=operation_id,
                kind=kind,
                input=owned_input,
                state=OperationState.PENDING,
                created_at=self._clock(),
                sequence=next(self._sequence),
            )
        logger.debug("Created %s operation %s", kind, operation_id)
        return operation_id

    def set_external_ref(self, operation_id: str, ref: str) -> None:
        """Attach the external reference (e.g. a transaction hash).

        Moves a pending record to confirming. Later calls overwrite the
        reference without changing the state.
        """
        with self._lock:
            current = self._operations.get(operation_id)
            if current is None:
                return
            self._warn_if_terminal(current, "set_external_ref")
            state = current.state
            if state is OperationState.PENDING:
                state = OperationState.CONFIRMING
            updated = replace(current, external_ref=ref, state=state)
            self._operations[operation_id] = updated
        self._publish_operation(updated)

    def complete_operation(self, operation_id: str, output: object) -> None:
        """Mark the operation confirmed. A ``None`` output is stored as ``{}``."""
        owned_output = detach(output) if output is not None else {}
        with self._lock:
            current = self._operations.get(operation_id)
            if current is None:
                return
            self._warn_if_terminal(current, "complete_operation")
            updated = replace(
                current,
                state=OperationState.CONFIRMED,
                output=owned_output,
                failure=None,
                completed_at=self._clock(),
            )
            self._operations[operation_id] = updated
            self._evict_locked()
        self._publish_operation(updated)

    def fail_operation(self, operation_id: str, failure: object) -> None:
        """Mark the operation failed. A ``None`` failure is stored as ``{}``."""
        owned_failure = detach(failure) if failure is not None else {}
        with self._lock:
            current = self._operations.get(operation_id)
            if current is None:
                return
            self._warn_if_terminal(current, "fail_operation")
            updated = replace(
                current,
                state=OperationState.FAILED,
                failure=owned_failure,
                output=None,
                completed_at=None,
            )
            self._operations[operation_id] = updated
            self._evict_locked()
        self._publish_operation(updated)

    def get_operation(self, operation_id: str) -> OperationRecord | None:
        with self._lock:
            record = self._operations.get(operation_id)
        return record.detached() if record is not None else None

    def list_operations(self) -> list[OperationRecord]:
        """Snapshot of all operation records, oldest first."""
        with self._lock:
            records = sorted(self._operations.values(), key=_eviction_key)
        return [record.detached() for record in records]

    def operation_count(self) -> int:
        with self._lock:
            return len(self._operations)

    # ------------------------------------------------------------------
    # Progress records
    # ------------------------------------------------------------------

    def set_progress(self, task_id: str, record: ProgressRecord) -> None:
        """Create or fully replace the progress record for ``task_id``."""
        owned = record.detached()
        with self._lock:
            self._progress[task_id] = owned
        if self._bus is not None:
            self._bus.publish_progress(task_id, owned)

    def get_progress(self, task_id: str) -> ProgressRecord | None:
        with self._lock:
            record = self._progress.get(task_id)
        return record.detached() if record is not None else None

    def delete_progress(self, task_id: str) -> None:
        with self._lock:
            self._progress.pop(task_id, None)

    def list_progress(self) -> dict[str, ProgressRecord]:
        with self._lock:
            records = dict(self._progress)
        return {task_id: record.detached() for task_id, record in records.items()}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _publish_operation(self, record: OperationRecord) -> None:
        if self._bus is not None:
            self._bus.publish_operation(record)

    @staticmethod
    def _warn_if_terminal(current: OperationRecord, action: str) -> None:
        if current.is_terminal:
            logger.warning(
                "%s on operation %s which is already %s; overwriting",
                action,
                current.id,
                current.state.value,
            )

    def _evict_locked(self) -> None:
        excess = len(self._operations) - self._max_history
        if excess <= 0:
            return
        oldest = sorted(self._operations.values(), key=_eviction_key)[:excess]
        for record in oldest:
            del self._operations[record.id]
            if record.is_terminal:
                logger.debug("Evicted %s operation %s", record.state.value, record.id)
            else:
                logger.warning(
                    "Evicted operation %s while still %s (history limit %d)",
                    record.id,
                    record.state.value,
                    self._max_history,
                )


def _eviction_key(record: OperationRecord) -> tuple[datetime, int]:
    return (record.created_at, record.sequence)
