"""Record types held by the queue store."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

logger = logging.getLogger(__name__)


def detach(value: object) -> object:
    """Return a copy of an opaque payload that the caller can no longer mutate.

    Payloads may hold objects that refuse to be deep-copied (locks, sockets,
    exceptions with extra constructor arguments). Those fall back to a shallow
    copy, and to the object itself when even that fails.
    """
    try:
        return copy.deepcopy(value)
    except Exception as exc:
        logger.debug("Payload of type %s not deep-copyable: %s", type(value).__name__, exc)
    try:
        return copy.copy(value)
    except Exception:
        return value


class OperationState(str, Enum):
    PENDING = "pending"
    CONFIRMING = "confirming"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationState.CONFIRMED, OperationState.FAILED)


class ProgressState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressState.COMPLETED, ProgressState.FAILED)


@dataclass(frozen=True)
class OperationRecord:
    """One externally visible unit of work, such as a blockchain transaction.

    ``external_ref`` holds the transaction hash once the network accepted it.
    ``output`` is only present in ``CONFIRMED`` (an empty mapping when the
    work produced nothing) and ``failure`` only in ``FAILED``. ``sequence``
    is the creation order and breaks ties between records created within the
    same clock tick.
    """

    id: str
    kind: str
    input: object
    state: OperationState
    created_at: datetime
    sequence: int
    external_ref: str | None = None
    output: object | None = None
    failure: object | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def detached(self) -> OperationRecord:
        return replace(
            self,
            input=detach(self.input),
            output=detach(self.output),
            failure=detach(self.failure),
        )


@dataclass(frozen=True)
class ProgressRecord:
    """Percentage based status of a multi-step background computation."""

    state: ProgressState
    message: str
    progress: int = 0
    result: object | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def detached(self) -> ProgressRecord:
        return replace(self, result=detach(self.result))
