from __future__ import annotations

import pytest

from txqueue_mcp.app import AppContext
from txqueue_mcp.config import Settings
from txqueue_mcp.tools import get_tool_registry
from txqueue_mcp.tools.status import (
    get_task_status,
    get_transaction_status,
    list_transactions,
)
from txqueue_mcp.tracking.deferred import DeferredRunner
from txqueue_mcp.tracking.models import ProgressRecord, ProgressState
from txqueue_mcp.tracking.notifications import NotificationBus
from txqueue_mcp.tracking.store import RecordStore


@pytest.fixture
def ctx(bus: NotificationBus, store: RecordStore, runner: DeferredRunner) -> AppContext:
    return AppContext(settings=Settings(), bus=bus, store=store, runner=runner)


def test_get_transaction_status_found(ctx: AppContext) -> None:
    tx_id = ctx.store.create_operation("deposit", {"amount": "10", "token": "USDC"})
    ctx.store.set_external_ref(tx_id, "0xdead")

    result = get_transaction_status(ctx, {"transactionId": tx_id})

    payload = result.structured_content
    assert payload["found"] is True
    assert payload["transaction"]["status"] == "confirming"
    assert payload["transaction"]["hash"] == "0xdead"
    assert '"confirming"' in result.content[0]["text"]


def test_get_transaction_status_not_found(ctx: AppContext) -> None:
    result = get_transaction_status(ctx, {"transactionId": "tx_missing"})
    assert result.structured_content == {"found": False, "transactionId": "tx_missing"}


def test_get_transaction_status_validates_input(ctx: AppContext) -> None:
    with pytest.raises(ValueError, match="Input validation failed"):
        get_transaction_status(ctx, {})
    with pytest.raises(ValueError, match="Input validation failed"):
        get_transaction_status(ctx, {"transactionId": "tx_1", "extra": True})


def test_list_transactions_filters_and_limits(ctx: AppContext) -> None:
    ids = [ctx.store.create_operation("deposit", {"n": n}) for n in range(4)]
    ctx.store.complete_operation(ids[0], {"ok": True})
    ctx.store.complete_operation(ids[2], {"ok": True})

    everything = list_transactions(ctx, {}).structured_content
    assert everything["count"] == 4
    assert [item["id"] for item in everything["transactions"]] == ids

    confirmed = list_transactions(ctx, {"status": "confirmed"}).structured_content
    assert [item["id"] for item in confirmed["transactions"]] == [ids[0], ids[2]]

    newest = list_transactions(ctx, {"limit": 1}).structured_content
    assert [item["id"] for item in newest["transactions"]] == [ids[3]]


def test_list_transactions_rejects_unknown_status(ctx: AppContext) -> None:
    with pytest.raises(ValueError, match="Input validation failed"):
        list_transactions(ctx, {"status": "mined"})


def test_get_task_status(ctx: AppContext) -> None:
    ctx.store.set_progress(
        "analysis-1",
        ProgressRecord(state=ProgressState.PROCESSING, message="Fetching", progress=40),
    )

    found = get_task_status(ctx, {"taskId": "analysis-1"}).structured_content
    assert found["found"] is True
    assert found["task"]["progress"] == 40
    assert found["task"]["status"] == "processing"

    missing = get_task_status(ctx, {"taskId": "analysis-2"}).structured_content
    assert missing == {"found": False, "taskId": "analysis-2"}


def test_registry_handlers_are_bound_to_context(ctx: AppContext) -> None:
    registry = get_tool_registry(ctx)
    assert set(registry) == {"get_transaction_status", "list_transactions", "get_task_status"}

    tx_id = ctx.store.create_operation("deposit", {})
    result = registry["get_transaction_status"].handler({"transactionId": tx_id})
    assert result.structured_content["transaction"]["id"] == tx_id
