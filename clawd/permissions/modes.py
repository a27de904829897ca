"""Tool classification used by the permission modes."""
from __future__ import annotations

from enum import Enum


class ToolCategory(str, Enum):
    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"
    NETWORK = "network"


TOOL_CATEGORIES: dict[str, ToolCategory] = {
    "Read": ToolCategory.READ,
    "Glob": ToolCategory.READ,
    "Grep": ToolCategory.READ,
    "Ls": ToolCategory.READ,
    "TodoRead": ToolCategory.READ,
    "Write": ToolCategory.WRITE,
    "Edit": ToolCategory.WRITE,
    "TodoWrite": ToolCategory.WRITE,
    "Bash": ToolCategory.EXECUTE,
    "WebFetch": ToolCategory.NETWORK,
}

# Tools plan mode lets through without asking.
READ_ONLY_TOOLS = frozenset({"Read", "Glob", "Grep", "Ls", "TodoRead"})

# Tools acceptEdits mode lets through without asking.
EDIT_TOOLS = frozenset({"Edit", "Write"})

SHELL_TOOLS = frozenset({"Bash"})


def categorize(tool_name: str) -> ToolCategory:
    """Category of a tool; unknown tools are treated as execute."""
    return TOOL_CATEGORIES.get(tool_name, ToolCategory.EXECUTE)


def is_read_only(tool_name: str) -> bool:
    return tool_name in READ_ONLY_TOOLS
