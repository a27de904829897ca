"""Input sanitization. Never fails; always returns a cleaned copy.

Applying sanitize_input twice gives the same result as applying it once.
"""
from __future__ import annotations

import math
import os
from collections.abc import Mapping
from typing import Any

MAX_STRING_LENGTH = 1_000_000
MAX_COMMAND_LENGTH = 100_000


def sanitize_string(value: str, limit: int = MAX_STRING_LENGTH) -> str:
    """Strip NUL bytes and cap the length."""
    cleaned = value.replace("\x00", "")
    if len(cleaned) > limit:
        cleaned = cleaned[:limit]
    return cleaned


def sanitize_command(command: str) -> str:
    return sanitize_string(command, MAX_COMMAND_LENGTH).strip()


def sanitize_path(path: str) -> str:
    """Strip NULs and surrounding whitespace; normalize separators."""
    cleaned = sanitize_string(path).strip()
    if not cleaned:
        return cleaned
    return os.path.normpath(cleaned)


def _sanitize_number(value: int | float, schema: Mapping[str, Any]) -> int | float:
    if isinstance(value, float) and not math.isfinite(value):
        value = 0
    if "minimum" in schema and value < schema["minimum"]:
        value = schema["minimum"]
    if "maximum" in schema and value > schema["maximum"]:
        value = schema["maximum"]
    return value


def _sanitize_value(value: Any, schema: Mapping[str, Any], field_name: str | None) -> Any:
    if value is None:
        return schema.get("default")
    if isinstance(value, str):
        if field_name == "command":
            return sanitize_string(value, MAX_COMMAND_LENGTH)
        return sanitize_string(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return _sanitize_number(value, schema)
    if isinstance(value, (list, tuple)):
        items = schema.get("items")
        item_schema = items if isinstance(items, Mapping) else {}
        return [_sanitize_value(v, item_schema, None) for v in value]
    if isinstance(value, Mapping):
        if "properties" in schema:
            return sanitize_input(value, schema)
        return {k: _sanitize_value(v, {}, k) for k, v in value.items()}
    return value


def sanitize_input(input: Mapping[str, Any], schema: Mapping[str, Any]) -> dict[str, Any]:
    """Return a sanitized copy of *input* shaped by *schema*."""
    if not isinstance(input, Mapping):
        return {}
    properties: Mapping[str, Any] = schema.get("properties") or {}
    allow_extra = schema.get("additionalProperties", True) is not False
    result: dict[str, Any] = {}

    for name, value in input.items():
        prop_schema = properties.get(name)
        if prop_schema is None:
            if not allow_extra:
                continue
            prop_schema = {}
        result[name] = _sanitize_value(value, prop_schema, name)

    return result
