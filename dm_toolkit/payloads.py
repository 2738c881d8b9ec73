"""Validation of free-form JSON payloads (stat blocks, table results, event data)."""

from typing import Any

from pydantic import JsonValue, TypeAdapter, ValidationError

from .errors import InvalidPayload

_JSON = TypeAdapter(JsonValue)


def ensure_json(value: Any, what: str = "payload") -> JsonValue:
    """Validate that ``value`` is a string, number, bool, null, list or map of those.

    Args:
        value: Value to validate
        what: Name of the value for error messages

    Raises:
        InvalidPayload: If the value contains anything else
    """
    try:
        return _JSON.validate_python(value)
    except ValidationError as e:
        raise InvalidPayload(f"{what} is not JSON data: {e.errors()[0]['msg']}") from e


def ensure_stat_bag(value: Any) -> dict[str, JsonValue] | None:
    """Validate an optional stat block; it must be a key-value map when present."""
    if value is None:
        return None
    if not isinstance(value, dict):
        raise InvalidPayload(f"Stat block must be a mapping, got {type(value).__name__}")
    return ensure_json(value, "stat block")
