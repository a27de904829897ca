"""Tool contract.

A tool is any object with ``name``, ``description``, ``input_schema``
and ``async execute(input) -> ToolResult``. There is no base class to
inherit from; the Tool protocol documents the shape and lets type
checkers verify it.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class ToolResult:
    """What a tool's execute() returns."""
    success: bool
    output: Any = ""
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, output: Any = "", **metadata: Any) -> ToolResult:
        return cls(success=True, output=output, metadata=metadata)

    @classmethod
    def fail(cls, error: str, output: Any = "", **metadata: Any) -> ToolResult:
        return cls(success=False, output=output, error=error, metadata=metadata)


@dataclass(frozen=True)
class ToolContext:
    """Per-session environment handed to builtin tools."""
    cwd: str = "."
    home: str = field(default_factory=lambda: os.path.expanduser("~"))

    def resolve(self, path: str) -> str:
        """Absolute, normalized form of *path* relative to cwd."""
        expanded = os.path.expanduser(path)
        if not os.path.isabs(expanded):
            expanded = os.path.join(os.path.abspath(self.cwd), expanded)
        return os.path.normpath(expanded)


@runtime_checkable
class Tool(Protocol):
    name: str
    description: str
    input_schema: dict[str, Any]

    async def execute(self, input: dict[str, Any]) -> ToolResult: ...


def tool_definition(tool: Tool) -> dict[str, Any]:
    """Definition sent to the model for one tool."""
    return {
        "name": tool.name,
        "description": tool.description,
        "input_schema": tool.input_schema,
    }
