"""Status tools: poll transactions and background tasks by id."""

from __future__ import annotations

from txqueue_mcp.app import AppContext
from txqueue_mcp.mcp_runtime import ToolResult, ToolSpec
from txqueue_mcp.tools._schemas import (
    LIST_TRANSACTIONS_SCHEMA,
    TASK_STATUS_SCHEMA,
    TRANSACTION_STATUS_SCHEMA,
)
from txqueue_mcp.tools.base import found_reply, not_found_reply, reply, validate_or_raise
from txqueue_mcp.tracking.serialization import render_operation, render_progress


def get_transaction_status(ctx: AppContext, payload: dict[str, object]) -> ToolResult:
    """Return the current record of one transaction.

    Unknown and evicted ids both come back as ``found: false``.
    """
    validate_or_raise("get_transaction_status", TRANSACTION_STATUS_SCHEMA, payload)
    transaction_id = str(payload["transactionId"])
    record = ctx.store.get_operation(transaction_id)
    if record is None:
        return not_found_reply("transactionId", transaction_id)
    return found_reply("transaction", render_operation(record))


def list_transactions(ctx: AppContext, payload: dict[str, object]) -> ToolResult:
    validate_or_raise("list_transactions", LIST_TRANSACTIONS_SCHEMA, payload)
    status = payload.get("status")
    raw_limit = payload.get("limit", 100)
    limit = raw_limit if isinstance(raw_limit, int) else 100

    records = ctx.store.list_operations()
    if status is not None:
        records = [record for record in records if record.state.value == status]
    records = records[-limit:]
    transactions = [render_operation(record) for record in records]
    return reply({"count": len(transactions), "transactions": transactions})


def get_task_status(ctx: AppContext, payload: dict[str, object]) -> ToolResult:
    validate_or_raise("get_task_status", TASK_STATUS_SCHEMA, payload)
    task_id = str(payload["taskId"])
    record = ctx.store.get_progress(task_id)
    if record is None:
        return not_found_reply("taskId", task_id)
    return found_reply("task", render_progress(task_id, record))


def build_status_tools(ctx: AppContext) -> list[ToolSpec]:
    return [
        ToolSpec(
            name="get_transaction_status",
            description=(
                "Get the status of a submitted transaction. "
                "Required: 'transactionId' (string). "
                "Status moves pending -> confirming (hash known) -> confirmed, or failed. "
                "'found: false' means the id is unknown or aged out of history."
            ),
            input_schema=TRANSACTION_STATUS_SCHEMA,
            handler=lambda payload: get_transaction_status(ctx, payload),
        ),
        ToolSpec(
            name="list_transactions",
            description=(
                "List tracked transactions, oldest first. "
                "Optional: 'status' (pending/confirming/confirmed/failed), 'limit' (int)."
            ),
            input_schema=LIST_TRANSACTIONS_SCHEMA,
            handler=lambda payload: list_transactions(ctx, payload),
        ),
        ToolSpec(
            name="get_task_status",
            description=(
                "Get progress of a background analysis task. "
                "Required: 'taskId' (string). Returns status, message, progress (0-100) "
                "and the result once completed."
            ),
            input_schema=TASK_STATUS_SCHEMA,
            handler=lambda payload: get_task_status(ctx, payload),
        ),
    ]
