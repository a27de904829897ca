"""Read tool: return a file's text, optionally a line window of it."""
from __future__ import annotations

import logging
import os
from typing import Any

from ..base import ToolContext, ToolResult

logger = logging.getLogger(__name__)

LARGE_FILE_BYTES = 10 * 1024 * 1024


class ReadTool:
    name = "Read"
    description = (
        "Read a file from the file system. Supports offset and limit "
        "for reading portions of files."
    )
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "file_path": {"type": "string", "description": "Absolute path to the file to read"},
            "offset": {
                "type": "integer",
                "description": "Line number to start reading from (default: 0)",
                "minimum": 0,
            },
            "limit": {
                "type": "integer",
                "description": "Maximum number of lines to read (default: entire file)",
                "minimum": 0,
            },
        },
        "required": ["file_path"],
    }

    def __init__(self, context: ToolContext | None = None) -> None:
        self._context = context or ToolContext()

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        raw_path = str(input.get("file_path") or "").strip()
        if not raw_path:
            return ToolResult.fail("File path cannot be empty")
        path = self._context.resolve(raw_path)

        if not os.path.exists(path):
            return ToolResult.fail(f"File not found: {path}")
        if not os.path.isfile(path):
            return ToolResult.fail(f"Path is not a file: {path}")

        size = os.path.getsize(path)
        if size > LARGE_FILE_BYTES:
            logger.warning("Reading large file (%d bytes): %s", size, path)

        try:
            with open(path, encoding="utf-8") as f:
                content = f.read()
        except UnicodeDecodeError:
            logger.warning("Failed to read as UTF-8, falling back to latin-1: %s", path)
            with open(path, encoding="latin-1") as f:
                content = f.read()
        except OSError as exc:
            return ToolResult.fail(f"Failed to read file: {exc}")

        lines = content.split("\n")
        offset = int(input.get("offset") or 0)
        limit = input.get("limit")
        if offset > 0 or limit is not None:
            start = min(offset, len(lines))
            end = len(lines) if limit is None else min(start + int(limit), len(lines))
            window = lines[start:end]
            return ToolResult.ok(
                "\n".join(window),
                lines_read=len(window),
                total_lines=len(lines),
                file_size=size,
            )
        return ToolResult.ok(content, total_lines=len(lines), file_size=size)
