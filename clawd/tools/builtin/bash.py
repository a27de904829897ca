"""Bash tool: run a shell command in its own process group."""
from __future__ import annotations

import asyncio
import logging
import os
import signal
from typing import Any

from ..base import ToolContext, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 120_000
MAX_OUTPUT_BYTES = 51_200
MAX_OUTPUT_LINES = 2_000


def truncate_output(output: str) -> tuple[str, bool]:
    """Cap output by line count, then by size. Returns (text, truncated)."""
    lines = output.split("\n")
    if len(lines) > MAX_OUTPUT_LINES:
        head = "\n".join(lines[:MAX_OUTPUT_LINES])
        return f"{head}\n\n[Output truncated: {len(lines)} lines total]", True
    if len(output) > MAX_OUTPUT_BYTES:
        return (
            f"{output[:MAX_OUTPUT_BYTES]}\n\n[Output truncated: {len(output)} bytes total]",
            True,
        )
    return output, False


def _signal_process_group(proc: asyncio.subprocess.Process, sig: signal.Signals) -> bool:
    """Send a signal to the process group when available."""
    if proc.returncode is not None:
        return False
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, sig)
        else:
            proc.send_signal(sig)
        return True
    except ProcessLookupError:
        return False


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if not _signal_process_group(proc, signal.SIGKILL):
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


class BashTool:
    name = "Bash"
    description = (
        "Execute shell commands in the terminal. Use for running scripts, "
        "installing packages, building projects, and system operations. "
        "Commands run in the project directory."
    )
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "The shell command to execute"},
            "description": {
                "type": "string",
                "description": "Brief description of what this command does",
            },
            "timeout": {
                "type": "number",
                "description": "Timeout in milliseconds (default: 120000)",
                "minimum": 0,
            },
            "workdir": {"type": "string", "description": "Working directory for the command"},
        },
        "required": ["command"],
    }

    def __init__(self, context: ToolContext | None = None) -> None:
        self._context = context or ToolContext()

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        command = str(input.get("command") or "")
        if not command.strip():
            return ToolResult.fail("Command cannot be empty")

        timeout_ms = input.get("timeout")
        if timeout_ms is None:
            timeout_ms = DEFAULT_TIMEOUT_MS
        workdir = input.get("workdir") or self._context.cwd

        logger.debug("Executing command in %s: %s", workdir, command)
        try:
            proc = await asyncio.create_subprocess_exec(
                "bash", "-c", command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=workdir,
                start_new_session=True,
            )
        except (FileNotFoundError, NotADirectoryError, PermissionError) as exc:
            return ToolResult.fail(f"Command failed: {exc}")

        try:
            if timeout_ms > 0:
                stdout_b, stderr_b = await asyncio.wait_for(
                    proc.communicate(), timeout=timeout_ms / 1000.0
                )
            else:
                stdout_b, stderr_b = await proc.communicate()
        except asyncio.TimeoutError:
            logger.warning("Command timed out after %sms, killing process group %s", timeout_ms, proc.pid)
            await _kill(proc)
            return ToolResult.fail(
                f"Command timed out after {timeout_ms:g}ms",
                exit_code=None,
                timed_out=True,
            )
        except asyncio.CancelledError:
            logger.warning("Bash command cancelled, terminating process group %s", proc.pid)
            await _kill(proc)
            raise

        stdout = stdout_b.decode("utf-8", errors="replace")
        stderr = stderr_b.decode("utf-8", errors="replace")
        output = stdout + (f"\nSTDERR:\n{stderr}" if stderr else "")
        text, truncated = truncate_output(output)

        if proc.returncode != 0:
            return ToolResult.fail(
                f"Command exited with code {proc.returncode}",
                output=text,
                exit_code=proc.returncode,
                truncated=truncated,
            )
        return ToolResult.ok(text, exit_code=0, truncated=truncated)
