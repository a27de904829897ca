"""Tool contract, registry and executor."""
from __future__ import annotations

from .base import Tool, ToolContext, ToolResult, tool_definition
from .executor import ToolExecutor
from .registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolContext",
    "ToolExecutor",
    "ToolRegistry",
    "ToolResult",
    "tool_definition",
]
