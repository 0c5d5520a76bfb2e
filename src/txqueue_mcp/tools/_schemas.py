"""JSON Schema definitions for the status tools."""

from __future__ import annotations

from txqueue_mcp.tracking.models import OperationState

TRANSACTION_STATUS_SCHEMA = {
    "type": "object",
    "properties": {
        "transactionId": {
            "type": "string",
            "minLength": 1,
            "maxLength": 256,
            "description": "Id returned when the transaction was submitted (tx_...).",
        },
    },
    "required": ["transactionId"],
    "additionalProperties": False,
}

LIST_TRANSACTIONS_SCHEMA = {
    "type": "object",
    "properties": {
        "status": {
            "type": "string",
            "enum": [state.value for state in OperationState],
            "description": "Only return transactions in this state.",
        },
        "limit": {
            "type": "integer",
            "minimum": 1,
            "maximum": 1000,
            "default": 100,
            "description": "Maximum number of transactions to return, newest kept.",
        },
    },
    "additionalProperties": False,
}

TASK_STATUS_SCHEMA = {
    "type": "object",
    "properties": {
        "taskId": {
            "type": "string",
            "minLength": 1,
            "maxLength": 256,
            "description": "Id returned when the analysis task was started.",
        },
    },
    "required": ["taskId"],
    "additionalProperties": False,
}
