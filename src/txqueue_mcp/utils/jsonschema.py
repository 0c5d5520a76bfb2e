"""JSON Schema validation wrapper."""

from __future__ import annotations

from jsonschema import Draft202012Validator


def validate_payload(schema: dict[str, object], payload: dict[str, object]) -> list[str]:
    """Validate payload against schema and return error messages.

    Args:
        schema: JSON Schema to validate against.
        payload: Data to validate.

    Returns:
        List of error message strings, sorted by the location of the error.
    """
    validator = Draft202012Validator(schema)
    errors = sorted(
        validator.iter_errors(payload),
        key=lambda error: [str(part) for part in error.path],
    )
    return [_format_error(error.message, list(error.path)) for error in errors]


def _format_error(message: str, path: list[object]) -> str:
    if not path:
        return message
    return ".".join(str(part) for part in path) + ": " + message
