"""Agent loop: one user message in, a bounded run of model/tool rounds out.

Per user message:

    1. append the user turn, trim the transcript to max_messages
    2. up to max_iterations rounds of
         stream one model response (text + tool invocations)
         no invocations  -> append the text, go idle, done
         invocations     -> permission check, execute in emission order,
                            append the assistant turn and one outcome turn
    3. cap reached -> MaxIterationsExceededError

Every invocation gets exactly one outcome, in invocation order, before
the provider is called again. Per-invocation failures (validation,
security, timeout, denial) become error outcomes; only transport-fatal
errors and the iteration cap escape process_user_message().

abort() sets a cancel flag. The decoder races every pending provider read
against it, and it is checked once per iteration and before each
invocation. A pending permission prompt is cancelled immediately.
Partial text is kept as the final turn.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from ..permissions import PermissionEngine
from ..tools import ToolExecutor, ToolRegistry
from .config import EngineConfig, EventCallback, PermissionCallback, fire_event
from .errors import AgentBusyError, MaxIterationsExceededError
from .lifecycle import is_active, validate_transition
from .models import (
    AgentRunResult,
    AgentState,
    ContentBlock,
    ConversationTurn,
    PermissionChoice,
    PermissionRequest,
    TextBlock,
    ToolInvocation,
    ToolOutcomeBlock,
)
from .prompts import build_system_prompt
from .providers.base import Provider
from .providers.retry import RetryPolicy, stream_with_retry
from .providers.streaming import StreamDecoder, StreamDone, TextDelta, ToolInvocationReady
from .transcript import Transcript

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "Tool execution produced no results"
ABORTED_MESSAGE = "Tool execution aborted by user"


class AgentLoop:
    """Drives one conversation. Owns its transcript and state; not shared."""

    def __init__(
        self,
        provider: Provider,
        registry: ToolRegistry,
        executor: ToolExecutor,
        permissions: PermissionEngine,
        config: EngineConfig | None = None,
        *,
        permission_callback: PermissionCallback | None = None,
        event_callback: EventCallback | None = None,
        decoder: StreamDecoder | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._provider = provider
        self._registry = registry
        self._executor = executor
        self._permissions = permissions
        self._config = config or EngineConfig()
        self._permission_callback = permission_callback
        self._event_callback = event_callback
        self._decoder = decoder or StreamDecoder()
        self._retry_policy = retry_policy or RetryPolicy(
            max_retries=self._config.max_retries,
            base_delay_seconds=self._config.retry_base_delay_seconds,
            max_delay_seconds=self._config.retry_max_delay_seconds,
        )
        self._transcript = Transcript(self._config.max_messages)
        self._state = AgentState.IDLE
        self._cancel_event = asyncio.Event()

    # ── Public surface ─────────────────────────────────────────

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def provider(self) -> Provider:
        return self._provider

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def permissions(self) -> PermissionEngine:
        return self._permissions

    @property
    def config(self) -> EngineConfig:
        return self._config

    def abort(self) -> bool:
        """Request cancellation of the current run. False if nothing is running."""
        if not is_active(self._state):
            return False
        logger.info("Abort requested in state %s", self._state.value)
        self._cancel_event.set()
        return True

    def reset(self) -> None:
        """Clear the transcript and the session allowlist."""
        if self._state != AgentState.IDLE:
            raise AgentBusyError(self._state.value)
        self._transcript.clear()
        self._permissions.reset_session()

    def system_prompt(self) -> str:
        if self._config.system_prompt:
            return self._config.system_prompt
        return build_system_prompt(self._config.cwd, self._registry.list_names())

    async def process_user_message(
        self,
        content: str | list[ContentBlock],
    ) -> AgentRunResult:
        """Run the loop for one user message until the model stops asking for tools."""
        if isinstance(content, str) and not content.strip():
            logger.warning("Ignoring empty user message")
            return AgentRunResult(text="")
        if self._state != AgentState.IDLE:
            raise AgentBusyError(self._state.value)

        self._cancel_event.clear()
        self._transcript.append(ConversationTurn.user(content))
        self._transcript.trim()

        await self._set_state(AgentState.PROCESSING)
        try:
            return await self._run()
        except Exception as exc:
            logger.error("Agent loop failed: %s", exc)
            await self._emit(
                "error", error=str(exc), error_type=type(exc).__name__,
            )
            raise
        finally:
            if self._state != AgentState.IDLE:
                await self._set_state(AgentState.IDLE)
            self._cancel_event.clear()

    # ── Internals ──────────────────────────────────────────────

    @property
    def _cancelled(self) -> bool:
        return self._cancel_event.is_set()

    async def _emit(self, event: str, **data: Any) -> None:
        await fire_event(self._event_callback, {"event": event, **data})

    async def _set_state(self, target: AgentState) -> None:
        if target == self._state:
            return
        validate_transition(self._state, target)
        old = self._state
        self._state = target
        logger.debug("Agent state %s -> %s", old.value, target.value)
        await self._emit("state_changed", old_state=old.value, new_state=target.value)

    async def _run(self) -> AgentRunResult:
        max_iterations = self._config.max_iterations
        tool_calls = 0
        for iteration in range(1, max_iterations + 1):
            if self._cancelled:
                return await self._finish_aborted("", iteration - 1, tool_calls)

            await self._set_state(AgentState.PROCESSING)
            logger.debug("Agent loop iteration %d/%d", iteration, max_iterations)

            await self._set_state(AgentState.STREAMING)
            text, invocations = await self._stream_response()

            if self._cancelled:
                if text:
                    self._transcript.append(ConversationTurn.assistant(text))
                if invocations:
                    logger.info(
                        "Discarding %d tool invocation(s) after abort", len(invocations),
                    )
                return await self._finish_aborted(text, iteration, tool_calls)

            if not invocations:
                if text:
                    self._transcript.append(ConversationTurn.assistant(text))
                else:
                    logger.warning("Empty response from model, ending turn")
                await self._set_state(AgentState.IDLE)
                await self._emit(
                    "complete", text=text, iterations=iteration, aborted=False,
                )
                return AgentRunResult(
                    text=text, iterations=iteration, tool_calls=tool_calls,
                )

            await self._set_state(AgentState.TOOL_PENDING)
            outcomes, executed = await self._run_round(invocations)
            tool_calls += executed

            blocks: list[ContentBlock] = [TextBlock(text)] if text else []
            blocks.extend(invocations)
            self._transcript.append(ConversationTurn.assistant(blocks))
            self._transcript.append(ConversationTurn.user(list(outcomes)))

            if self._cancelled:
                return await self._finish_aborted(text, iteration, tool_calls)

        logger.error(
            "Maximum iterations (%d) reached, stopping agent loop", max_iterations,
        )
        raise MaxIterationsExceededError(max_iterations)

    async def _finish_aborted(
        self, text: str, iterations: int, tool_calls: int,
    ) -> AgentRunResult:
        await self._set_state(AgentState.STOPPING)
        await self._set_state(AgentState.IDLE)
        await self._emit("complete", text=text, iterations=iterations, aborted=True)
        return AgentRunResult(
            text=text, iterations=iterations, aborted=True, tool_calls=tool_calls,
        )

    async def _stream_response(self) -> tuple[str, list[ToolInvocation]]:
        """Drive one provider response through the decoder."""
        tools = self._registry.get_definitions()
        turns = self._transcript.turns
        system_prompt = self.system_prompt()

        def open_stream():
            return self._provider.stream(
                turns,
                system_prompt=system_prompt,
                max_tokens=self._config.max_tokens,
                tools=tools or None,
                cancel_event=self._cancel_event,
            )

        raw_events = stream_with_retry(
            open_stream, self._retry_policy, cancel_event=self._cancel_event,
        )
        text_parts: list[str] = []
        invocations: list[ToolInvocation] = []
        async for event in self._decoder.decode(raw_events, self._cancel_event):
            if isinstance(event, TextDelta):
                text_parts.append(event.text)
                await self._emit("text_delta", text=event.text)
            elif isinstance(event, ToolInvocationReady):
                invocations.append(event.invocation)
            elif isinstance(event, StreamDone):
                logger.debug(
                    "Stream done: stop_reason=%s usage=%s", event.stop_reason, event.usage,
                )
        return "".join(text_parts), invocations

    async def _run_round(
        self, invocations: Sequence[ToolInvocation],
    ) -> tuple[list[ToolOutcomeBlock], int]:
        """Resolve every invocation to exactly one outcome, in order."""
        outcomes: list[ToolOutcomeBlock] = []
        executed = 0
        for index, invocation in enumerate(invocations):
            if self._cancelled:
                outcomes.extend(
                    ToolOutcomeBlock(inv.id, ABORTED_MESSAGE, is_error=True)
                    for inv in invocations[index:]
                )
                break

            await self._set_state(AgentState.TOOL_PENDING)
            if self._permissions.needs_approval(invocation):
                await self._set_state(AgentState.PERMISSION_PENDING)
                choice = await self._request_permission(invocation)
                if choice is None:
                    outcomes.extend(
                        ToolOutcomeBlock(inv.id, ABORTED_MESSAGE, is_error=True)
                        for inv in invocations[index:]
                    )
                    break
                if choice == PermissionChoice.DENY:
                    logger.info("Permission denied for %s (%s)", invocation.name, invocation.id)
                    outcomes.append(ToolOutcomeBlock(
                        invocation.id,
                        f"User denied permission to use {invocation.name}",
                        is_error=True,
                    ))
                    await self._set_state(AgentState.TOOL_PENDING)
                    continue
                if choice == PermissionChoice.ALLOW_SESSION:
                    self._permissions.allow_for_session(invocation)

            await self._set_state(AgentState.EXECUTING_TOOL)
            outcomes.append(await self._execute(invocation))
            executed += 1

        return self._fill_empty_outcomes(outcomes), executed

    async def _execute(self, invocation: ToolInvocation) -> ToolOutcomeBlock:
        await self._emit(
            "tool_start",
            tool_id=invocation.id,
            tool_name=invocation.name,
            arguments=dict(invocation.input),
        )
        result = await self._executor.execute(invocation.name, invocation.input)
        content = result.outcome_text()
        await self._emit(
            "tool_end",
            tool_id=invocation.id,
            tool_name=invocation.name,
            result=content,
            is_error=not result.success,
            duration_ms=result.duration_ms,
            timed_out=result.timed_out,
            security_denied=result.security_denied,
        )
        return ToolOutcomeBlock(invocation.id, content, is_error=not result.success)

    @staticmethod
    def _fill_empty_outcomes(outcomes: list[ToolOutcomeBlock]) -> list[ToolOutcomeBlock]:
        """Keep the next request well-formed when a round produced nothing usable."""
        if outcomes and all(not o.content.strip() for o in outcomes):
            logger.warning("Empty tool results, adding diagnostic outcome")
            return [
                ToolOutcomeBlock(o.invocation_id, NO_RESULTS_MESSAGE, is_error=True)
                for o in outcomes
            ]
        return outcomes

    async def _request_permission(
        self, invocation: ToolInvocation,
    ) -> PermissionChoice | None:
        """Ask the human. Returns None if the run was aborted while waiting."""
        request = PermissionRequest(
            invocation=invocation,
            reason=self._permissions.explain(invocation),
        )
        await self._emit(
            "permission_request",
            request_id=request.request_id,
            tool_id=invocation.id,
            tool_name=invocation.name,
            arguments=dict(invocation.input),
            reason=request.reason,
        )
        if self._permission_callback is None:
            logger.warning(
                "No permission callback configured; denying %s", invocation.name,
            )
            return PermissionChoice.DENY

        ask = asyncio.ensure_future(self._permission_callback(request))
        stop = asyncio.ensure_future(self._cancel_event.wait())
        try:
            await asyncio.wait({ask, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [t for t in (ask, stop) if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if self._cancelled:
            logger.info("Permission prompt for %s cancelled by abort", invocation.name)
            return None
        try:
            answer = ask.result()
        except Exception:
            logger.warning(
                "Permission callback failed for %s; denying", invocation.name, exc_info=True,
            )
            return PermissionChoice.DENY
        try:
            return PermissionChoice(answer)
        except ValueError:
            logger.warning("Unknown permission answer %r; denying", answer)
            return PermissionChoice.DENY
