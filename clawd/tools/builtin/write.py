"""Write tool: create or overwrite a file."""
from __future__ import annotations

import logging
import os
from typing import Any

from ..base import ToolContext, ToolResult

logger = logging.getLogger(__name__)


class WriteTool:
    name = "Write"
    description = (
        "Write content to a file. Creates the file if it does not exist, "
        "or overwrites it if it does."
    )
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "file_path": {"type": "string", "description": "Absolute path to the file to write"},
            "content": {"type": "string", "description": "Content to write to the file"},
        },
        "required": ["file_path", "content"],
    }

    def __init__(self, context: ToolContext | None = None) -> None:
        self._context = context or ToolContext()

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        raw_path = str(input.get("file_path") or "").strip()
        if not raw_path:
            return ToolResult.fail("Missing or empty required field: file_path")
        content = input.get("content")
        if not isinstance(content, str):
            return ToolResult.fail("Content must be a string")

        path = self._context.resolve(raw_path)
        if os.path.isdir(path):
            return ToolResult.fail(f"Path is a directory: {path}")

        is_new = not os.path.exists(path)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as exc:
            logger.error("Failed to write %s: %s", path, exc)
            return ToolResult.fail(f"Failed to write file: {exc}")

        verb = "created" if is_new else "overwrote"
        logger.debug("Write %s %s (%d chars)", verb, path, len(content))
        return ToolResult.ok(
            f"Successfully {verb} {path}",
            file_path=path,
            bytes_written=len(content.encode("utf-8")),
            is_new_file=is_new,
        )
