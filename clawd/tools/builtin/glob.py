"""Glob tool: find files by pattern, newest first."""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any

from ..base import ToolContext, ToolResult

logger = logging.getLogger(__name__)

IGNORED_DIRS = frozenset({"node_modules", "dist", ".git"})
MAX_FILES = 1000


def find_files(root: str, patterns: list[str]) -> list[str]:
    """Relative paths of regular files under *root* matching any pattern.

    Files inside node_modules, dist or .git are skipped.
    """
    base = Path(root)
    seen: set[str] = set()
    found: list[str] = []
    for pattern in patterns:
        for match in base.glob(pattern):
            rel = match.relative_to(base)
            if any(part in IGNORED_DIRS for part in rel.parts):
                continue
            if not match.is_file():
                continue
            key = rel.as_posix()
            if key not in seen:
                seen.add(key)
                found.append(key)
    return found


def _mtime(root: str, rel: str) -> float:
    try:
        return os.path.getmtime(os.path.join(root, rel))
    except OSError:
        return 0.0


def find_newest_first(root: str, patterns: list[str]) -> list[str]:
    files = find_files(root, patterns)
    files.sort(key=lambda rel: _mtime(root, rel), reverse=True)
    return files


class GlobTool:
    name = "Glob"
    description = (
        "Find files by pattern. Use glob patterns like **/*.py to search "
        "recursively. Returns matching file paths sorted by modification time."
    )
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "pattern": {"type": "string", "description": "The glob pattern to match files"},
            "includePatterns": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Additional patterns to include",
            },
        },
        "required": ["pattern"],
    }

    def __init__(self, context: ToolContext | None = None) -> None:
        self._context = context or ToolContext()

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        pattern = str(input.get("pattern") or "").strip()
        if not pattern:
            return ToolResult.fail("Pattern must be a non-empty string")
        patterns = [pattern, *(input.get("includePatterns") or [])]
        if any(not str(p).strip() for p in patterns):
            return ToolResult.fail("All patterns must be non-empty strings")

        root = os.path.abspath(self._context.cwd)
        logger.debug("Globbing %s under %s", patterns, root)
        try:
            files = await asyncio.to_thread(
                find_newest_first, root, [str(p) for p in patterns],
            )
        except (ValueError, OSError) as exc:
            return ToolResult.fail(f"Glob failed: {exc}")

        if not files:
            return ToolResult.ok("No files matched the pattern", count=0)

        if len(files) > MAX_FILES:
            logger.warning("Found %d files, limiting to %d", len(files), MAX_FILES)
            limited = files[:MAX_FILES]
            return ToolResult.ok(
                "\n".join(limited)
                + f"\n\n[Results limited to {MAX_FILES} of {len(files)} total files]",
                count=len(limited),
                total=len(files),
                limited=True,
            )
        return ToolResult.ok("\n".join(files), count=len(files))
