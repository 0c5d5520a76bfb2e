"""Rendering of queue records for pollers."""

from __future__ import annotations

from txqueue_mcp.tracking.models import OperationRecord, OperationState, ProgressRecord
from txqueue_mcp.utils.serialization import to_jsonable


def render_operation(record: OperationRecord) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": record.id,
        "status": record.state.value,
        "type": record.kind,
        "params": to_jsonable(record.input),
        "timestamp": record.created_at.isoformat(),
    }
    if record.external_ref is not None:
        payload["hash"] = record.external_ref
    if record.state is OperationState.CONFIRMED:
        payload["result"] = to_jsonable(record.output if record.output is not None else {})
    elif record.state is OperationState.FAILED:
        payload["error"] = to_jsonable(record.failure if record.failure is not None else {})
    if record.completed_at is not None:
        payload["confirmationTimestamp"] = record.completed_at.isoformat()
    return payload


def render_progress(task_id: str, record: ProgressRecord) -> dict[str, object]:
    return {
        "id": task_id,
        "status": record.state.value,
        "message": record.message,
        "progress": record.progress,
        "result": to_jsonable(record.result),
    }
