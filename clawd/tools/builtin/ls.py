"""Ls tool: list one directory, directories first."""
from __future__ import annotations

import logging
import os
from typing import Any

from ..base import ToolContext, ToolResult

logger = logging.getLogger(__name__)


class LsTool:
    name = "Ls"
    description = "List the contents of a directory. Directories are listed first with a trailing '/'."
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Path to list (default: current directory)"},
            "detailed": {
                "type": "boolean",
                "description": "Show detailed information (size, type)",
                "default": False,
            },
        },
    }

    def __init__(self, context: ToolContext | None = None) -> None:
        self._context = context or ToolContext()

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        target = self._context.resolve(str(input.get("path") or "."))
        logger.debug("Listing directory: %s", target)
        try:
            with os.scandir(target) as it:
                entries = list(it)
        except OSError as exc:
            return ToolResult.fail(f"Ls failed: {exc}")

        if input.get("detailed"):
            lines = []
            for entry in entries:
                try:
                    if entry.is_symlink():
                        kind = "SYMLINK"
                    elif entry.is_dir():
                        kind = "DIR"
                    else:
                        kind = "FILE"
                    size = entry.stat().st_size
                    lines.append(f"{kind:<8} {entry.name} ({size} bytes)")
                except OSError:
                    lines.append(f"UNKNOWN  {entry.name}")
            return ToolResult.ok("\n".join(sorted(lines)), count=len(entries))

        dirs = sorted(e.name + "/" for e in entries if e.is_dir())
        files = sorted(e.name for e in entries if not e.is_dir())
        return ToolResult.ok(
            "\n".join([*dirs, *files]),
            count=len(entries),
            directories=len(dirs),
            files=len(files),
        )
