"""Grep tool: regex search over file contents."""
from __future__ import annotations

import asyncio
import logging
import os
import re
import threading
from typing import Any

from ..base import ToolContext, ToolResult
from .glob import find_files

logger = logging.getLogger(__name__)

MAX_FILES = 500
MAX_RESULTS = 1000
MAX_FILE_BYTES = 5 * 1024 * 1024


def search_files(
    root: str,
    files: list[str],
    regex: re.Pattern[str],
    stop: threading.Event | None = None,
) -> tuple[list[str], bool]:
    """``path:line:text`` matches in *files*, and whether MAX_RESULTS was hit.

    Blocking; checks *stop* between files.
    """
    results: list[str] = []
    for rel in files:
        if stop is not None and stop.is_set():
            logger.debug("Grep scan stopped after %d match(es)", len(results))
            break
        full = os.path.join(root, rel)
        try:
            if os.path.getsize(full) > MAX_FILE_BYTES:
                logger.debug("Skipping large file: %s", rel)
                continue
            with open(full, encoding="utf-8") as f:
                lines = f.read().split("\n")
        except (OSError, UnicodeDecodeError):
            logger.debug("Skipping unreadable file: %s", rel)
            continue

        for lineno, line in enumerate(lines, start=1):
            if regex.search(line):
                results.append(f"{rel}:{lineno}:{line}")
                if len(results) >= MAX_RESULTS:
                    return results, True
    return results, False


class GrepTool:
    name = "Grep"
    description = (
        "Search file contents with a regular expression. Returns matches as "
        "path:line:text. Narrow the search with a glob pattern."
    )
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "pattern": {"type": "string", "description": "Regular expression to search for"},
            "glob": {
                "type": "string",
                "description": "Glob pattern for files to search (default: **/*)",
                "default": "**/*",
            },
            "caseInsensitive": {
                "type": "boolean",
                "description": "Case-insensitive matching (default: false)",
                "default": False,
            },
        },
        "required": ["pattern"],
    }

    def __init__(self, context: ToolContext | None = None) -> None:
        self._context = context or ToolContext()

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        pattern = str(input.get("pattern") or "")
        if not pattern.strip():
            return ToolResult.fail("Pattern must be a non-empty string")
        flags = re.IGNORECASE if input.get("caseInsensitive") else 0
        try:
            regex = re.compile(pattern, flags)
        except re.error as exc:
            return ToolResult.fail(f"Invalid regex pattern: {exc}")

        root = os.path.abspath(self._context.cwd)
        file_glob = str(input.get("glob") or "**/*")
        try:
            files = await asyncio.to_thread(find_files, root, [file_glob])
        except (ValueError, OSError) as exc:
            return ToolResult.fail(f"Grep failed: {exc}")
        if not files:
            return ToolResult.ok("No files matched the glob pattern", count=0)

        if len(files) > MAX_FILES:
            logger.warning("Limiting grep to %d of %d files", MAX_FILES, len(files))
            files = files[:MAX_FILES]

        # the worker thread outlives a timeout or abort; tell it to stop
        stop = threading.Event()
        try:
            results, limited = await asyncio.to_thread(search_files, root, files, regex, stop)
        finally:
            stop.set()

        if not results:
            return ToolResult.ok("No matches found", count=0)
        text = "\n".join(results)
        if limited:
            text += f"\n\n[Results limited to {MAX_RESULTS} matches]"
        return ToolResult.ok(text, count=len(results), limited=limited)
