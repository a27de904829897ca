"""Tool executor: the validate -> sanitize -> security -> run pipeline.

execute() never raises for per-invocation problems. Unknown tools,
schema violations, security denials, timeouts and crashes all come
back as a failed ToolExecutionResult. Results are fresh per call and
never retried here.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any

from ..engine.models import ToolExecutionResult
from .registry import ToolRegistry
from .validation import check_security, sanitize_input, validate_input

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT = 120.0

ToolCall = tuple[str, Mapping[str, Any]]


def _stringify(output: Any) -> str:
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    try:
        return json.dumps(output, indent=2, default=str)
    except (TypeError, ValueError):
        return str(output)


class ToolExecutor:
    """Runs tools from a registry under validation and a per-call timeout."""

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        cwd: str = ".",
        home: str | None = None,
        timeout: float = DEFAULT_TOOL_TIMEOUT,
    ) -> None:
        self._registry = registry
        self._cwd = cwd
        self._home = home
        self._timeout = timeout
        self._call_seq = 0

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def default_timeout(self) -> float:
        return self._timeout

    async def execute(
        self,
        name: str,
        input: Mapping[str, Any] | None,
        timeout: float | None = None,
    ) -> ToolExecutionResult:
        """Run one tool invocation through the full pipeline."""
        started = time.monotonic()

        def _elapsed_ms() -> float:
            return (time.monotonic() - started) * 1000.0

        tool = self._registry.get(name)
        if tool is None:
            logger.warning("Tool not found: %s", name)
            return ToolExecutionResult(
                success=False, error=f"Tool not found: {name}", duration_ms=_elapsed_ms(),
            )

        raw_input: Any = {} if input is None else input
        validation = validate_input(raw_input, tool.input_schema)
        if not validation.valid:
            logger.info("Invalid input for %s: %s", name, "; ".join(validation.errors))
            return ToolExecutionResult(
                success=False,
                error=f"Invalid input: {'; '.join(validation.errors)}",
                duration_ms=_elapsed_ms(),
            )

        clean = sanitize_input(raw_input, tool.input_schema)

        security = check_security(name, clean, self._cwd, self._home)
        if not security.allowed:
            logger.warning("Security check failed for %s: %s", name, security.reason)
            return ToolExecutionResult(
                success=False,
                error=f"Security check failed: {security.reason}",
                duration_ms=_elapsed_ms(),
                security_denied=True,
            )

        limit = self._timeout if timeout is None else timeout
        self._call_seq += 1
        seq = self._call_seq
        logger.info("Tool start seq=%d tool=%s timeout_s=%.1f", seq, name, limit)
        try:
            if limit <= 0:
                result = await tool.execute(clean)
            else:
                result = await asyncio.wait_for(tool.execute(clean), timeout=limit)
        except asyncio.TimeoutError:
            logger.error("Tool timeout seq=%d tool=%s timeout_s=%.1f", seq, name, limit)
            return ToolExecutionResult(
                success=False,
                error=f"Tool execution timed out after {limit:g}s",
                duration_ms=_elapsed_ms(),
                timed_out=True,
            )
        except asyncio.CancelledError:
            logger.warning("Tool cancelled seq=%d tool=%s", seq, name)
            raise
        except Exception as exc:
            logger.exception("Tool crash seq=%d tool=%s", seq, name)
            return ToolExecutionResult(
                success=False,
                error=f"Execution failed: {exc}",
                duration_ms=_elapsed_ms(),
            )

        duration = _elapsed_ms()
        logger.info(
            "Tool end seq=%d tool=%s duration_ms=%.1f success=%s",
            seq, name, duration, result.success,
        )
        return ToolExecutionResult(
            success=bool(result.success),
            output=_stringify(result.output),
            error=result.error,
            duration_ms=duration,
            metadata=dict(result.metadata or {}),
        )

    async def execute_parallel(
        self,
        calls: Sequence[ToolCall],
        timeout: float | None = None,
    ) -> list[ToolExecutionResult]:
        """Run all calls concurrently; results keep the input order.

        One failing call never cancels its siblings.
        """
        return list(await asyncio.gather(
            *(self.execute(name, tool_input, timeout) for name, tool_input in calls)
        ))

    async def execute_sequential(
        self,
        calls: Sequence[ToolCall],
        timeout: float | None = None,
    ) -> list[ToolExecutionResult]:
        """Run calls one at a time, stopping after the first failure."""
        results: list[ToolExecutionResult] = []
        for name, tool_input in calls:
            result = await self.execute(name, tool_input, timeout)
            results.append(result)
            if not result.success:
                break
        return results
