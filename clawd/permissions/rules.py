"""Permission rule strings.

A rule is ``Tool`` or ``Tool(pattern)``:

    Read                 every Read invocation
    Bash(git status)     exactly that command
    Bash(npm run *)      glob over the command
    Bash(git:*)          colon form; same as "git *" plus bare "git"
    Write(/tmp/*)        glob over the primary input field

Tool names and patterns are matched with fnmatch.
"""
from __future__ import annotations

import fnmatch
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .modes import SHELL_TOOLS

logger = logging.getLogger(__name__)

_RULE_RE = re.compile(r"^([\w*?\[\]-]+)(?:\((.+)\))?$")

# Input fields a non-shell rule pattern is matched against, in order.
PRIMARY_FIELDS = ("file_path", "filePath", "path", "url", "pattern")


@dataclass(frozen=True)
class PermissionRule:
    tool: str
    pattern: str | None = None
    source: str = ""

    @classmethod
    def parse(cls, text: str) -> PermissionRule:
        """Parse a rule string. Unparseable text becomes a literal tool rule."""
        raw = text.strip()
        match = _RULE_RE.match(raw)
        if match is None:
            logger.warning("Permission rule %r is not Tool or Tool(pattern); matching literally", raw)
            return cls(tool=raw, source=raw)
        return cls(tool=match.group(1), pattern=match.group(2), source=raw)

    def matches(self, tool_name: str, tool_input: Mapping[str, Any]) -> bool:
        if not fnmatch.fnmatchcase(tool_name, self.tool):
            return False
        if self.pattern is None:
            return True
        if tool_name in SHELL_TOOLS:
            return _match_command(str(tool_input.get("command") or ""), self.pattern)
        for field_name in PRIMARY_FIELDS:
            value = tool_input.get(field_name)
            if isinstance(value, str):
                return fnmatch.fnmatchcase(value, self.pattern)
        return False

    def __str__(self) -> str:
        if self.source:
            return self.source
        return self.tool if self.pattern is None else f"{self.tool}({self.pattern})"


def _match_command(command: str, pattern: str) -> bool:
    command = command.strip()
    if pattern.endswith(":*"):
        prefix = pattern[:-2]
        if command == prefix:
            return True
        pattern = f"{prefix} *"
    elif ":" in pattern and " " not in pattern:
        pattern = pattern.replace(":", " ")
    return fnmatch.fnmatchcase(command, pattern)


def parse_rules(texts: Iterable[str]) -> list[PermissionRule]:
    return [PermissionRule.parse(t) for t in texts if t and t.strip()]


def first_match(
    rules: Iterable[PermissionRule],
    tool_name: str,
    tool_input: Mapping[str, Any],
) -> PermissionRule | None:
    for rule in rules:
        if rule.matches(tool_name, tool_input):
            return rule
    return None
