"""Background submission of blockchain transactions.

The signing client is not part of this package. Callers hand in a
``broadcast`` callable that signs and sends the transaction and returns an
object exposing the transaction ``hash`` and a blocking ``wait`` for
confirmations (the shape most Ethereum clients return).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Protocol

from txqueue_mcp.tracking.deferred import DeferredRunner, OperationHandle
from txqueue_mcp.utils.time import utc_now_iso

logger = logging.getLogger(__name__)


class PendingTransaction(Protocol):
    hash: str

    def wait(self, confirmations: int) -> object: ...


def submit_transaction(
    runner: DeferredRunner,
    kind: str,
    params: Mapping[str, object],
    broadcast: Callable[[], PendingTransaction],
    *,
    describe: Callable[[object], Mapping[str, object]] | None = None,
    explorer_url: Callable[[str], str] | None = None,
    confirmations: int = 1,
) -> dict[str, object]:
    """Queue a transaction and return its tracking id without waiting.

    The record moves to confirming as soon as the hash is known and is
    confirmed once ``confirmations`` blocks have been observed. ``describe``
    turns the receipt into extra output fields (e.g. amounts decoded from
    event logs).
    """

    def _work(handle: OperationHandle) -> dict[str, object]:
        tx = broadcast()
        logger.info("%s transaction %s broadcast: %s", kind, handle.operation_id, tx.hash)
        handle.set_external_ref(tx.hash)

        receipt = tx.wait(confirmations)
        logger.info("%s transaction %s confirmed: %s", kind, handle.operation_id, tx.hash)

        output: dict[str, object] = {"hash": tx.hash}
        if explorer_url is not None:
            output["explorer"] = explorer_url(tx.hash)
        if describe is not None:
            output.update(describe(receipt))
        output["timestamp"] = utc_now_iso()
        return output

    transaction_id = runner.submit_operation(kind, dict(params), _work)
    return {"transactionId": transaction_id, "hash": "pending", "explorer": ""}
