"""Identifier generators for queue records."""

from __future__ import annotations

import secrets
import string

from txqueue_mcp.utils.time import epoch_millis

_BASE36 = string.digits + string.ascii_lowercase


def new_operation_id() -> str:
    """Return an id of the form ``tx_<epoch ms>_<base36 suffix>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(13))
    return f"tx_{epoch_millis()}_{suffix}"


def new_task_id(prefix: str) -> str:
    """Return an id of the form ``<prefix>-<epoch ms>-<0..9999>``.

    Uniqueness is best effort; callers that need a guarantee should check the
    store before use.
    """
    return f"{prefix}-{epoch_millis()}-{secrets.randbelow(10_000)}"
