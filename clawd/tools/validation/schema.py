"""Structural validation of tool input against a declared schema.

Supports the JSON-Schema subset tools actually declare: ``type``
(single or list), ``properties``, ``required``, ``additionalProperties``,
``enum``, ``minimum``/``maximum``, ``minLength``/``maxLength``,
``pattern`` and array ``items``.
"""
from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def _type_matches(value: Any, expected: str) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected == "integer":
        if isinstance(value, bool):
            return False
        if isinstance(value, int):
            return True
        return isinstance(value, float) and math.isfinite(value) and value.is_integer()
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, (list, tuple))
    if expected == "object":
        return isinstance(value, Mapping)
    if expected == "null":
        return value is None
    # Unknown type names do not constrain the value.
    return True


def _check_value(value: Any, schema: Mapping[str, Any], path: str, errors: list[str]) -> None:
    expected = schema.get("type")
    if expected is not None:
        options = expected if isinstance(expected, list) else [expected]
        if not any(_type_matches(value, t) for t in options):
            errors.append(
                f"{path}: expected {' or '.join(options)}, got {_describe(value)}"
            )
            return

    if "enum" in schema and value not in schema["enum"]:
        allowed = ", ".join(repr(v) for v in schema["enum"])
        errors.append(f"{path}: must be one of {allowed}")

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if "minimum" in schema and value < schema["minimum"]:
            errors.append(f"{path}: must be >= {schema['minimum']}")
        if "maximum" in schema and value > schema["maximum"]:
            errors.append(f"{path}: must be <= {schema['maximum']}")

    if isinstance(value, str):
        if "minLength" in schema and len(value) < schema["minLength"]:
            errors.append(f"{path}: must be at least {schema['minLength']} characters")
        if "maxLength" in schema and len(value) > schema["maxLength"]:
            errors.append(f"{path}: must be at most {schema['maxLength']} characters")
        pattern = schema.get("pattern")
        if pattern:
            try:
                if re.search(pattern, value) is None:
                    errors.append(f"{path}: does not match pattern {pattern!r}")
            except re.error:
                errors.append(f"{path}: schema pattern {pattern!r} is invalid")

    if isinstance(value, (list, tuple)):
        items = schema.get("items")
        if isinstance(items, Mapping):
            for i, item in enumerate(value):
                _check_value(item, items, f"{path}[{i}]", errors)

    if isinstance(value, Mapping) and "properties" in schema:
        _check_object(value, schema, path, errors)


def _check_object(
    value: Mapping[str, Any],
    schema: Mapping[str, Any],
    path: str,
    errors: list[str],
) -> None:
    properties: Mapping[str, Any] = schema.get("properties") or {}
    prefix = f"{path}." if path else ""

    for name in schema.get("required") or []:
        if value.get(name) is None:
            errors.append(f"Missing required field: {prefix}{name}")

    for name, field_value in value.items():
        prop_schema = properties.get(name)
        if prop_schema is None:
            if schema.get("additionalProperties") is False:
                errors.append(f"Unknown field: {prefix}{name}")
            continue
        if field_value is None and name not in (schema.get("required") or []):
            continue
        _check_value(field_value, prop_schema, f"{prefix}{name}", errors)


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def validate_input(input: Any, schema: Mapping[str, Any]) -> ValidationResult:
    """Check *input* against *schema*. Never raises."""
    if not isinstance(input, Mapping):
        return ValidationResult(False, [f"Input must be an object, got {_describe(input)}"])
    errors: list[str] = []
    _check_object(input, schema, "", errors)
    return ValidationResult(valid=not errors, errors=errors)
