"""Operation and progress tracking for deferred background work."""

from txqueue_mcp.tracking.deferred import (
    DeferredRunner,
    OperationHandle,
    ProgressReporter,
    wait_for_operation,
    wait_for_progress,
)
from txqueue_mcp.tracking.ids import new_operation_id, new_task_id
from txqueue_mcp.tracking.models import (
    OperationRecord,
    OperationState,
    ProgressRecord,
    ProgressState,
)
from txqueue_mcp.tracking.notifications import Channel, NotificationBus, Subscription
from txqueue_mcp.tracking.store import RecordStore
from txqueue_mcp.tracking.transactions import PendingTransaction, submit_transaction

__all__ = [
    "Channel",
    "DeferredRunner",
    "NotificationBus",
    "OperationHandle",
    "OperationRecord",
    "OperationState",
    "PendingTransaction",
    "ProgressRecord",
    "ProgressReporter",
    "ProgressState",
    "RecordStore",
    "Subscription",
    "new_operation_id",
    "new_task_id",
    "submit_transaction",
    "wait_for_operation",
    "wait_for_progress",
]
