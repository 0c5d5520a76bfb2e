"""Exceptions raised by the transaction queue."""

from __future__ import annotations


class TxQueueError(Exception):
    """Base exception for queue errors."""

    pass


class SubscriptionLimitError(TxQueueError):
    """Raised when an id already has the maximum number of live subscriptions."""

    def __init__(self, key: str, limit: int) -> None:
        super().__init__(f"Subscription limit of {limit} reached for '{key}'")
        self.key = key
        self.limit = limit


class NotificationBusClosed(TxQueueError):
    """Raised when subscribing on a bus that has been closed."""

    pass


class OperationFailed(TxQueueError):
    """Raised by background work to report a failure with an explicit payload.

    The deferred runner records ``payload`` as the operation's failure, or uses
    the message for a failed progress record.
    """

    def __init__(self, message: str, payload: object | None = None) -> None:
        super().__init__(message)
        self.payload = payload if payload is not None else {"message": message}
