"""Validation pipeline: schema check, sanitization, security check."""
from __future__ import annotations

from .sanitize import sanitize_command, sanitize_input, sanitize_path
from .schema import ValidationResult, validate_input
from .security import SecurityCheckResult, check_security, upgrade_url

__all__ = [
    "SecurityCheckResult",
    "ValidationResult",
    "check_security",
    "sanitize_command",
    "sanitize_input",
    "sanitize_path",
    "upgrade_url",
    "validate_input",
]
