"""Tool registry: maps tool names to Tool instances."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from .base import Tool, tool_definition

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of tools the model may call.

    Registration is idempotent by name; registering a second tool
    under an existing name replaces the first.
    """

    def __init__(self, tools: Iterable[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool by its name (last registration wins)."""
        if tool.name in self._tools:
            logger.info("Tool re-registered, replacing previous: %s", tool.name)
        else:
            logger.debug("Tool registered: %s", tool.name)
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        """Remove a tool. Returns False if it was not registered."""
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def get_or_raise(self, name: str) -> Tool:
        """Get a tool by name, raising KeyError if not found."""
        tool = self._tools.get(name)
        if tool is None:
            available = ", ".join(self._tools.keys())
            raise KeyError(
                f"Tool '{name}' not found. "
                f"Available: {available or 'none'}"
            )
        return tool

    def has(self, name: str) -> bool:
        return name in self._tools

    def list_names(self) -> list[str]:
        """Return all registered tool names in registration order."""
        return list(self._tools.keys())

    @property
    def count(self) -> int:
        return len(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def get_definitions(self) -> list[dict[str, Any]]:
        """Tool definitions for one provider request, built fresh each call."""
        return [tool_definition(t) for t in self._tools.values()]

    def scoped(self, names: Iterable[str]) -> ToolRegistry:
        """A new registry holding only the listed tools.

        Unknown names are logged and skipped.
        """
        subset = ToolRegistry()
        for name in names:
            tool = self._tools.get(name)
            if tool is None:
                logger.warning("scoped(): unknown tool %r skipped", name)
                continue
            subset.register(tool)
        return subset
