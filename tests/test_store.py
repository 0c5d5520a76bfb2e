from __future__ import annotations

import logging
import re
import threading

import pytest

from txqueue_mcp.tracking.ids import new_operation_id, new_task_id
from txqueue_mcp.tracking.models import (
    OperationState,
    ProgressRecord,
    ProgressState,
)
from txqueue_mcp.tracking.store import RecordStore


def test_deposit_lifecycle(store: RecordStore) -> None:
    tx_id = store.create_operation("deposit", {"amount": "10", "token": "USDC"})

    record = store.get_operation(tx_id)
    assert record is not None
    assert record.state is OperationState.PENDING
    assert record.kind == "deposit"
    assert record.external_ref is None
    assert record.completed_at is None

    store.set_external_ref(tx_id, "0xdead")
    record = store.get_operation(tx_id)
    assert record.state is OperationState.CONFIRMING
    assert record.external_ref == "0xdead"

    store.complete_operation(tx_id, {"amountDeposited": "10"})
    record = store.get_operation(tx_id)
    assert record.state is OperationState.CONFIRMED
    assert record.output["amountDeposited"] == "10"
    assert record.failure is None
    assert record.completed_at is not None
    assert record.completed_at >= record.created_at


def test_complete_directly_from_pending(store: RecordStore) -> None:
    tx_id = store.create_operation("approve", {})
    store.complete_operation(tx_id, {"ok": True})

    record = store.get_operation(tx_id)
    assert record.state is OperationState.CONFIRMED
    assert record.external_ref is None


def test_fail_from_confirming(store: RecordStore) -> None:
    tx_id = store.create_operation("withdraw", {"amount": "1"})
    store.set_external_ref(tx_id, "0x1")
    store.fail_operation(tx_id, {"message": "reverted"})

    record = store.get_operation(tx_id)
    assert record.state is OperationState.FAILED
    assert record.failure == {"message": "reverted"}
    assert record.output is None
    assert record.completed_at is None


def test_unknown_id_mutators_are_noops(store: RecordStore) -> None:
    store.set_external_ref("missing", "0xabc")
    store.complete_operation("missing", {"x": 1})
    store.fail_operation("missing", {"x": 1})
    store.delete_progress("missing")

    assert store.get_operation("missing") is None
    assert store.get_progress("missing") is None
    assert store.list_operations() == []


def test_external_ref_overwrites_while_confirming(store: RecordStore) -> None:
    tx_id = store.create_operation("deposit", {})
    store.set_external_ref(tx_id, "0x1")
    store.set_external_ref(tx_id, "0x2")

    record = store.get_operation(tx_id)
    assert record.state is OperationState.CONFIRMING
    assert record.external_ref == "0x2"


def test_terminal_overwrite_keeps_output_xor_failure(
    store: RecordStore, caplog: pytest.LogCaptureFixture
) -> None:
    tx_id = store.create_operation("deposit", {})
    store.fail_operation(tx_id, {"message": "timeout"})

    with caplog.at_level(logging.WARNING, logger="txqueue_mcp.tracking.store"):
        store.complete_operation(tx_id, {"hash": "0x1"})

    record = store.get_operation(tx_id)
    assert record.state is OperationState.CONFIRMED
    assert record.output == {"hash": "0x1"}
    assert record.failure is None
    assert "already failed" in caplog.text

    store.fail_operation(tx_id, {"message": "late failure"})
    record = store.get_operation(tx_id)
    assert record.state is OperationState.FAILED
    assert record.output is None
    assert record.completed_at is None


def test_external_ref_on_terminal_record_does_not_reopen_it(
    store: RecordStore, caplog: pytest.LogCaptureFixture
) -> None:
    tx_id = store.create_operation("deposit", {})
    store.complete_operation(tx_id, {"ok": True})

    with caplog.at_level(logging.WARNING, logger="txqueue_mcp.tracking.store"):
        store.set_external_ref(tx_id, "0xlate")

    record = store.get_operation(tx_id)
    assert record.state is OperationState.CONFIRMED
    assert record.external_ref == "0xlate"
    assert record.output == {"ok": True}
    assert "set_external_ref" in caplog.text


def test_reads_are_isolated_from_callers(store: RecordStore) -> None:
    params = {"amount": "10", "token": "USDC"}
    tx_id = store.create_operation("deposit", params)
    params["amount"] = "999"

    record = store.get_operation(tx_id)
    assert record.input["amount"] == "10"

    record.input["amount"] = "42"
    assert store.get_operation(tx_id).input["amount"] == "10"

    listed = store.list_operations()
    listed[0].input["token"] = "DAI"
    assert store.get_operation(tx_id).input["token"] == "USDC"


def test_list_operations_oldest_first(store: RecordStore) -> None:
    ids = [store.create_operation("deposit", {"n": n}) for n in range(5)]
    assert [record.id for record in store.list_operations()] == ids
    assert store.operation_count() == 5


def test_progress_overwrite_not_merge(store: RecordStore) -> None:
    store.set_progress(
        "analysis-1",
        ProgressRecord(
            state=ProgressState.PROCESSING, message="step 1", progress=10, result={"a": 1}
        ),
    )
    store.set_progress(
        "analysis-1",
        ProgressRecord(state=ProgressState.PROCESSING, message="step 2", progress=90),
    )

    record = store.get_progress("analysis-1")
    assert record.progress == 90
    assert record.message == "step 2"
    assert record.result is None


def test_progress_delete_and_list(store: RecordStore) -> None:
    store.set_progress("a", ProgressRecord(state=ProgressState.PENDING, message="started"))
    store.set_progress("b", ProgressRecord(state=ProgressState.PENDING, message="started"))

    listed = store.list_progress()
    assert set(listed) == {"a", "b"}

    store.delete_progress("a")
    assert store.get_progress("a") is None
    assert set(store.list_progress()) == {"b"}
    # the earlier snapshot is unaffected
    assert set(listed) == {"a", "b"}


def test_operation_id_format() -> None:
    assert re.fullmatch(r"tx_\d+_[0-9a-z]{13}", new_operation_id())


def test_task_id_format() -> None:
    assert re.fullmatch(r"liquidity-\d+-\d{1,4}", new_task_id("liquidity"))


def test_generated_id_collisions_are_retried() -> None:
    ids = iter(["tx_a", "tx_a", "tx_b"])
    store = RecordStore(id_factory=lambda: next(ids))

    assert store.create_operation("deposit", {}) == "tx_a"
    assert store.create_operation("deposit", {}) == "tx_b"


def test_max_history_must_be_positive() -> None:
    with pytest.raises(ValueError, match="max_history"):
        RecordStore(max_history=0)


def test_concurrent_creates_produce_unique_ids() -> None:
    store = RecordStore(max_history=10)
    created: list[str] = []
    created_lock = threading.Lock()

    def _create() -> None:
        local = [store.create_operation("deposit", {}) for _ in range(50)]
        with created_lock:
            created.extend(local)

    threads = [threading.Thread(target=_create) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(created) == 400
    assert len(set(created)) == 400
    # eviction only runs on completion/failure
    assert store.operation_count() == 400


class TwoArgError(Exception):
    def __init__(self, code: int, reason: str) -> None:
        super().__init__(f"{code}: {reason}")
        self.code = code
        self.reason = reason


def test_uncopyable_input_is_accepted(store: RecordStore) -> None:
    signer = threading.Lock()
    tx_id = store.create_operation("deposit", {"signer": signer, "amount": "1"})

    record = store.get_operation(tx_id)
    assert record.state is OperationState.PENDING
    assert record.input["signer"] is signer
    assert record.input["amount"] == "1"


def test_exception_failure_payload_is_accepted(store: RecordStore) -> None:
    tx_id = store.create_operation("withdraw", {})
    store.fail_operation(tx_id, TwoArgError(7, "reverted"))

    record = store.get_operation(tx_id)
    assert record.state is OperationState.FAILED
    assert isinstance(record.failure, TwoArgError)
    assert record.failure.code == 7


def test_uncopyable_progress_result_is_accepted(store: RecordStore) -> None:
    store.set_progress(
        "analysis-1",
        ProgressRecord(
            state=ProgressState.COMPLETED,
            message="done",
            progress=100,
            result={"cursor": (n for n in range(3))},
        ),
    )

    assert store.get_progress("analysis-1").state is ProgressState.COMPLETED
    assert "cursor" in store.list_progress()["analysis-1"].result


def test_empty_terminal_payloads_are_stored_as_mappings(store: RecordStore) -> None:
    confirmed = store.create_operation("approve", {})
    failed = store.create_operation("approve", {})

    store.complete_operation(confirmed, None)
    store.fail_operation(failed, None)

    assert store.get_operation(confirmed).output == {}
    assert store.get_operation(failed).failure == {}
