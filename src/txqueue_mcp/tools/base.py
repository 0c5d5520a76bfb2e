"""Reply helpers shared by the status tools.

Every lookup tool answers with ``found: true`` plus the rendered record, or
``found: false`` echoing the id it was asked about. Pollers must treat the
second form as final: the id is unknown or has been evicted.
"""

from __future__ import annotations

import json

from txqueue_mcp.mcp_runtime import ToolResult
from txqueue_mcp.utils.jsonschema import validate_payload
from txqueue_mcp.utils.serialization import json_default


def validate_or_raise(
    tool_name: str, schema: dict[str, object], payload: dict[str, object]
) -> None:
    errors = validate_payload(schema, payload)
    if errors:
        raise ValueError(f"Input validation failed for {tool_name}: " + "; ".join(errors))


def reply(payload: dict[str, object]) -> ToolResult:
    """Wrap ``payload`` as pretty JSON text plus the same structured content."""
    text = json.dumps(payload, indent=2, default=json_default)
    return ToolResult(content=[{"type": "text", "text": text}], structured_content=payload)


def found_reply(field: str, rendered: dict[str, object]) -> ToolResult:
    return reply({"found": True, field: rendered})


def not_found_reply(id_field: str, record_id: str) -> ToolResult:
    return reply({"found": False, id_field: record_id})
