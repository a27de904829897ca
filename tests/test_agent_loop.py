"""Tests for AgentLoop turn handling, permissions, iteration cap and abort."""
from __future__ import annotations

import asyncio

import pytest

from clawd.engine.agent_loop import NO_RESULTS_MESSAGE, AgentLoop
from clawd.engine.config import EngineConfig
from clawd.engine.errors import (
    AgentBusyError,
    AuthenticationError,
    MaxIterationsExceededError,
)
from clawd.engine.models import (
    AgentState,
    PermissionChoice,
    PermissionMode,
    Role,
    TextBlock,
    ToolInvocationBlock,
    ToolOutcomeBlock,
)
from clawd.engine.providers.retry import RetryPolicy
from clawd.permissions import PermissionEngine
from clawd.tools import ToolExecutor, ToolRegistry

from scripted import RecordingTool, ScriptedProvider, text_events, tool_events


def _make_loop(
    provider,
    tools,
    *,
    tmp_path,
    mode=PermissionMode.BYPASS,
    permission_callback=None,
    events=None,
    **config_kwargs,
):
    registry = ToolRegistry(tools)
    executor = ToolExecutor(registry, cwd=str(tmp_path), home=str(tmp_path))
    config = EngineConfig(cwd=str(tmp_path), **config_kwargs)

    async def _collect(event):
        events.append(event)

    return AgentLoop(
        provider,
        registry,
        executor,
        PermissionEngine(mode=mode),
        config,
        permission_callback=permission_callback,
        event_callback=_collect if events is not None else None,
        retry_policy=RetryPolicy(max_retries=0),
    )


@pytest.mark.asyncio
async def test_text_only_response_becomes_final_turn(tmp_path) -> None:
    provider = ScriptedProvider([text_events("Hello", " world")])
    events: list[dict] = []
    loop = _make_loop(provider, [], tmp_path=tmp_path, events=events)

    result = await loop.process_user_message("hi")

    assert result.text == "Hello world"
    assert result.iterations == 1
    assert loop.state == AgentState.IDLE
    last = loop.transcript.last
    assert last.role == Role.ASSISTANT
    assert last.content == "Hello world"
    assert [e["text"] for e in events if e["event"] == "text_delta"] == ["Hello", " world"]
    assert events[-1]["event"] == "complete"


@pytest.mark.asyncio
async def test_blank_input_is_ignored(tmp_path) -> None:
    provider = ScriptedProvider([text_events("unused")])
    loop = _make_loop(provider, [], tmp_path=tmp_path)

    result = await loop.process_user_message("   ")

    assert result.text == ""
    assert provider.calls == []
    assert len(loop.transcript) == 0


@pytest.mark.asyncio
async def test_outcomes_pair_with_invocations_in_order(tmp_path) -> None:
    first = RecordingTool("First", output="one")
    second = RecordingTool("Second", output="two")
    provider = ScriptedProvider([
        tool_events(
            ("call-1", "First", {"value": "a"}),
            ("call-2", "Second", {"value": "b"}),
            ("call-3", "Missing", {}),
            text="Working on it",
        ),
        text_events("Done"),
    ])
    loop = _make_loop(provider, [first, second], tmp_path=tmp_path)

    result = await loop.process_user_message("go")

    assert result.text == "Done"
    assert result.tool_calls == 3
    turns = loop.transcript.turns
    assistant, outcome_turn = turns[1], turns[2]
    assert isinstance(assistant.blocks[0], TextBlock)
    invocation_ids = [b.id for b in assistant.blocks if isinstance(b, ToolInvocationBlock)]
    outcomes = outcome_turn.outcomes
    assert outcome_turn.role == Role.USER
    assert [o.invocation_id for o in outcomes] == invocation_ids == ["call-1", "call-2", "call-3"]
    assert outcomes[0].content == "one"
    assert outcomes[1].content == "two"
    assert outcomes[2].is_error
    assert "Tool not found: Missing" in outcomes[2].content
    assert first.calls == [{"value": "a"}]
    # Second provider call sees the complete round
    assert len(provider.calls[1]["transcript"]) == 3


@pytest.mark.asyncio
async def test_plan_mode_runs_read_only_tool_without_prompt(tmp_path) -> None:
    glob_tool = RecordingTool(
        "Glob",
        output="a.ts",
        schema={"type": "object", "properties": {"pattern": {"type": "string"}}, "required": ["pattern"]},
    )
    asked: list = []

    async def _ask(request):
        asked.append(request)
        return PermissionChoice.DENY

    provider = ScriptedProvider([
        tool_events(("g1", "Glob", {"pattern": "*.ts"})),
        text_events("Found a.ts"),
    ])
    loop = _make_loop(
        provider, [glob_tool], tmp_path=tmp_path,
        mode=PermissionMode.PLAN, permission_callback=_ask,
    )

    result = await loop.process_user_message("list files")

    assert asked == []
    assert glob_tool.calls == [{"pattern": "*.ts"}]
    assert len(provider.calls) == 2
    assert result.text == "Found a.ts"


@pytest.mark.asyncio
async def test_security_denial_never_executes_tool(tmp_path) -> None:
    bash = RecordingTool(
        "Bash",
        schema={"type": "object", "properties": {"command": {"type": "string"}}, "required": ["command"]},
    )
    events: list[dict] = []
    provider = ScriptedProvider([
        tool_events(("b1", "Bash", {"command": "rm -rf /"})),
        text_events("ok"),
    ])
    loop = _make_loop(provider, [bash], tmp_path=tmp_path, events=events)

    await loop.process_user_message("clean up")

    assert bash.calls == []
    outcome = loop.transcript.turns[2].outcomes[0]
    assert outcome.is_error
    assert outcome.content.startswith("Security check failed")
    tool_end = next(e for e in events if e["event"] == "tool_end")
    assert tool_end["security_denied"] is True


@pytest.mark.asyncio
async def test_denied_invocation_gets_error_outcome(tmp_path) -> None:
    tool = RecordingTool("Write")
    seen: list = []

    async def _deny(request):
        seen.append(request.tool_name)
        return PermissionChoice.DENY

    provider = ScriptedProvider([
        tool_events(("w1", "Write", {"value": "x"})),
        text_events("understood"),
    ])
    loop = _make_loop(
        provider, [tool], tmp_path=tmp_path,
        mode=PermissionMode.DEFAULT, permission_callback=_deny,
    )

    await loop.process_user_message("write it")

    assert seen == ["Write"]
    assert tool.calls == []
    outcome = loop.transcript.turns[2].outcomes[0]
    assert outcome.is_error
    assert "denied" in outcome.content
    assert loop.state == AgentState.IDLE


@pytest.mark.asyncio
async def test_missing_permission_callback_denies(tmp_path) -> None:
    tool = RecordingTool("Write")
    provider = ScriptedProvider([
        tool_events(("w1", "Write", {"value": "x"})),
        text_events("fine"),
    ])
    loop = _make_loop(provider, [tool], tmp_path=tmp_path, mode=PermissionMode.DEFAULT)

    await loop.process_user_message("write it")

    assert tool.calls == []
    assert loop.transcript.turns[2].outcomes[0].is_error


@pytest.mark.asyncio
async def test_allow_session_skips_later_prompts(tmp_path) -> None:
    tool = RecordingTool("Write")
    prompts: list = []

    async def _allow_session(request):
        prompts.append(request.tool_name)
        return PermissionChoice.ALLOW_SESSION

    provider = ScriptedProvider([
        tool_events(("w1", "Write", {"value": "x"})),
        tool_events(("w2", "Write", {"value": "y"})),
        text_events("done"),
    ])
    loop = _make_loop(
        provider, [tool], tmp_path=tmp_path,
        mode=PermissionMode.DEFAULT, permission_callback=_allow_session,
    )

    await loop.process_user_message("write twice")

    assert prompts == ["Write"]
    assert len(tool.calls) == 2
    assert "Write" in loop.permissions.session_allowlist


@pytest.mark.asyncio
async def test_iteration_cap_raises_after_exactly_cap_calls(tmp_path) -> None:
    tool = RecordingTool("Echo")
    provider = ScriptedProvider([tool_events(("e", "Echo", {"value": "again"}))])
    events: list[dict] = []
    loop = _make_loop(provider, [tool], tmp_path=tmp_path, events=events, max_iterations=50)

    with pytest.raises(MaxIterationsExceededError) as exc_info:
        await loop.process_user_message("loop forever")

    assert exc_info.value.max_iterations == 50
    assert len(provider.calls) == 50
    assert len(tool.calls) == 50
    assert loop.state == AgentState.IDLE
    assert any(
        e["event"] == "error" and e["error_type"] == "MaxIterationsExceededError"
        for e in events
    )


@pytest.mark.asyncio
async def test_empty_round_gets_diagnostic_outcome(tmp_path) -> None:
    tool = RecordingTool("Quiet", output="")
    provider = ScriptedProvider([
        tool_events(("q1", "Quiet", {})),
        text_events("ok"),
    ])
    loop = _make_loop(provider, [tool], tmp_path=tmp_path)

    await loop.process_user_message("go")

    outcome = loop.transcript.turns[2].outcomes[0]
    assert outcome.content == NO_RESULTS_MESSAGE
    assert outcome.is_error


@pytest.mark.asyncio
async def test_fatal_transport_error_returns_to_idle(tmp_path) -> None:
    provider = ScriptedProvider([[AuthenticationError()]])
    events: list[dict] = []
    loop = _make_loop(provider, [], tmp_path=tmp_path, events=events)

    with pytest.raises(AuthenticationError):
        await loop.process_user_message("hi")

    assert loop.state == AgentState.IDLE
    assert any(e["event"] == "error" for e in events)


@pytest.mark.asyncio
async def test_abort_during_streaming_keeps_partial_text(tmp_path) -> None:
    tool = RecordingTool("Echo")
    gate = asyncio.Event()
    partial = text_events("Work in progr")[:3]
    half_built_tool = [
        {"type": "content_block_start", "index": 1,
         "content_block": {"type": "tool_use", "id": "t1", "name": "Echo", "input": {}}},
        {"type": "content_block_delta", "index": 1,
         "delta": {"type": "input_json_delta", "partial_json": '{"value": "x'}},
    ]
    provider = ScriptedProvider([partial + half_built_tool + [gate] + tool_events(("t1", "Echo", {}))])
    events: list[dict] = []
    loop = _make_loop(provider, [tool], tmp_path=tmp_path, events=events)

    task = asyncio.create_task(loop.process_user_message("start"))
    while not any(e["event"] == "text_delta" for e in events):
        await asyncio.sleep(0)
    assert loop.state == AgentState.STREAMING
    assert loop.abort() is True
    # the provider stays stalled on the gate; abort alone must end the run
    result = await asyncio.wait_for(task, timeout=2.0)
    assert not gate.is_set()

    assert result.aborted is True
    assert result.text == "Work in progr"
    assert tool.calls == []
    assert loop.state == AgentState.IDLE
    assert loop.transcript.last.content == "Work in progr"
    states = [e["new_state"] for e in events if e["event"] == "state_changed"]
    assert states[-2:] == ["stopping", "idle"]


@pytest.mark.asyncio
async def test_abort_cancels_pending_permission_prompt(tmp_path) -> None:
    tool = RecordingTool("Write")
    prompt_open = asyncio.Event()

    async def _never_answers(request):
        prompt_open.set()
        await asyncio.Event().wait()

    provider = ScriptedProvider([
        tool_events(("w1", "Write", {"value": "x"}), ("w2", "Write", {"value": "y"})),
    ])
    loop = _make_loop(
        provider, [tool], tmp_path=tmp_path,
        mode=PermissionMode.DEFAULT, permission_callback=_never_answers,
    )

    task = asyncio.create_task(loop.process_user_message("write"))
    await prompt_open.wait()
    assert loop.state == AgentState.PERMISSION_PENDING
    loop.abort()
    result = await task

    assert result.aborted is True
    assert tool.calls == []
    assert loop.state == AgentState.IDLE
    outcomes = loop.transcript.last.outcomes
    assert [o.invocation_id for o in outcomes] == ["w1", "w2"]
    assert all(o.is_error for o in outcomes)


@pytest.mark.asyncio
async def test_busy_loop_rejects_new_input(tmp_path) -> None:
    gate = asyncio.Event()
    provider = ScriptedProvider([[gate] + text_events("late")])
    loop = _make_loop(provider, [], tmp_path=tmp_path)

    task = asyncio.create_task(loop.process_user_message("first"))
    while loop.state != AgentState.STREAMING:
        await asyncio.sleep(0)

    with pytest.raises(AgentBusyError):
        await loop.process_user_message("second")
    with pytest.raises(AgentBusyError):
        loop.reset()

    gate.set()
    await task
    loop.reset()
    assert len(loop.transcript) == 0


@pytest.mark.asyncio
async def test_provider_receives_tool_definitions_and_system_prompt(tmp_path) -> None:
    provider = ScriptedProvider([text_events("hi")])
    loop = _make_loop(provider, [RecordingTool("Echo")], tmp_path=tmp_path)

    await loop.process_user_message("hello")

    call = provider.calls[0]
    assert [t["name"] for t in call["tools"]] == ["Echo"]
    assert "Echo" in call["system_prompt"]


@pytest.mark.asyncio
async def test_outcome_turn_renders_as_tool_results(tmp_path) -> None:
    provider = ScriptedProvider([
        tool_events(("e1", "Echo", {"value": "a"})),
        text_events("ok"),
    ])
    loop = _make_loop(provider, [RecordingTool("Echo")], tmp_path=tmp_path)

    await loop.process_user_message("go")

    wire = loop.transcript.to_api()
    assert wire[1]["content"][0] == {
        "type": "tool_use", "id": "e1", "name": "Echo", "input": {"value": "a"},
    }
    assert wire[2]["content"][0] == ToolOutcomeBlock("e1", "ok").to_api()
