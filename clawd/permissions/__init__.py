"""Permission modes, rules, engine and allowlist store."""
from __future__ import annotations

from .manager import PermissionEngine, signature
from .modes import ToolCategory, categorize, is_read_only
from .rules import PermissionRule, parse_rules
from .store import PermissionStore

__all__ = [
    "PermissionEngine",
    "PermissionRule",
    "PermissionStore",
    "ToolCategory",
    "categorize",
    "is_read_only",
    "parse_rules",
    "signature",
]
