"""Builtin tools and the default registry factory."""
from __future__ import annotations

from ..base import ToolContext
from ..registry import ToolRegistry
from .bash import BashTool
from .edit import EditTool
from .glob import GlobTool
from .grep import GrepTool
from .ls import LsTool
from .read import ReadTool
from .todo import TodoList, TodoReadTool, TodoWriteTool
from .webfetch import WebFetchTool
from .write import WriteTool

__all__ = [
    "BashTool",
    "EditTool",
    "GlobTool",
    "GrepTool",
    "LsTool",
    "ReadTool",
    "TodoList",
    "TodoReadTool",
    "TodoWriteTool",
    "WebFetchTool",
    "WriteTool",
    "build_default_registry",
]


def build_default_registry(cwd: str = ".", todos: TodoList | None = None) -> ToolRegistry:
    """Registry with every builtin tool bound to *cwd*.

    TodoWrite and TodoRead share *todos* (a fresh list by default).
    """
    context = ToolContext(cwd=cwd)
    todos = todos if todos is not None else TodoList()
    return ToolRegistry([
        ReadTool(context),
        WriteTool(context),
        EditTool(context),
        BashTool(context),
        GlobTool(context),
        GrepTool(context),
        LsTool(context),
        WebFetchTool(),
        TodoWriteTool(todos),
        TodoReadTool(todos),
    ])
