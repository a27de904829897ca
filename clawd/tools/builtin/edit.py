"""Edit tool: exact string replacement inside an existing file."""
from __future__ import annotations

import logging
import os
from typing import Any

from ..base import ToolContext, ToolResult

logger = logging.getLogger(__name__)


class EditTool:
    name = "Edit"
    description = (
        "Perform exact string replacements in files. The oldString must match "
        "exactly, including whitespace and indentation. For new files, use the "
        "Write tool instead."
    )
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "filePath": {"type": "string", "description": "Absolute path to the file to modify"},
            "oldString": {"type": "string", "description": "The exact text to replace"},
            "newString": {"type": "string", "description": "The text to replace it with"},
            "replaceAll": {
                "type": "boolean",
                "description": "Replace all occurrences (default: false)",
                "default": False,
            },
        },
        "required": ["filePath", "oldString", "newString"],
    }

    def __init__(self, context: ToolContext | None = None) -> None:
        self._context = context or ToolContext()

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        raw_path = str(input.get("filePath") or "").strip()
        if not raw_path:
            return ToolResult.fail("File path cannot be empty")
        old = input.get("oldString")
        new = input.get("newString")
        if not isinstance(old, str) or not isinstance(new, str):
            return ToolResult.fail("oldString and newString must be strings")
        if not old:
            return ToolResult.fail("oldString cannot be empty")
        if old == new:
            return ToolResult.fail("oldString and newString are identical")
        replace_all = bool(input.get("replaceAll"))

        path = self._context.resolve(raw_path)
        if not os.path.isfile(path):
            return ToolResult.fail(f"File not found: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as exc:
            return ToolResult.fail(f"Failed to read file: {exc}")

        occurrences = content.count(old)
        if occurrences == 0:
            return ToolResult.fail(f"oldString not found in {path}")
        if occurrences > 1 and not replace_all:
            return ToolResult.fail(
                f"oldString appears {occurrences} times in {path}; "
                "provide more context to make it unique or set replaceAll"
            )

        if replace_all:
            updated = content.replace(old, new)
        else:
            updated = content.replace(old, new, 1)

        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(updated)
        except OSError as exc:
            logger.error("Failed to write %s: %s", path, exc)
            return ToolResult.fail(f"Failed to write file: {exc}")

        replaced = occurrences if replace_all else 1
        return ToolResult.ok(
            f"Replaced {replaced} occurrence(s) in {path}",
            file_path=path,
            replacements=replaced,
        )
