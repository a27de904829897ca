"""Scripted provider and raw-event builders shared by the loop tests."""
from __future__ import annotations

import asyncio
import json
from typing import Any

from clawd.engine.providers.base import Provider
from clawd.tools.base import ToolResult


def text_events(*chunks: str, stop_reason: str = "end_turn") -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = [
        {"type": "message_start", "message": {"usage": {"input_tokens": 10}}},
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
    ]
    events += [
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": c}}
        for c in chunks
    ]
    events += [
        {"type": "content_block_stop", "index": 0},
        {"type": "message_delta", "delta": {"stop_reason": stop_reason}, "usage": {"output_tokens": 5}},
        {"type": "message_stop"},
    ]
    return events


def tool_events(
    *calls: tuple[str, str, dict[str, Any]],
    text: str | None = None,
) -> list[dict[str, Any]]:
    """One response with optional leading text and one tool_use block per call.

    Each input document is split in two fragments.
    """
    events: list[dict[str, Any]] = [{"type": "message_start", "message": {"usage": {}}}]
    index = 0
    if text:
        events += [
            {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}},
            {"type": "content_block_stop", "index": 0},
        ]
        index = 1
    for call_id, name, tool_input in calls:
        doc = json.dumps(tool_input)
        half = len(doc) // 2
        events += [
            {
                "type": "content_block_start",
                "index": index,
                "content_block": {"type": "tool_use", "id": call_id, "name": name, "input": {}},
            },
            {"type": "content_block_delta", "index": index,
             "delta": {"type": "input_json_delta", "partial_json": doc[:half]}},
            {"type": "content_block_delta", "index": index,
             "delta": {"type": "input_json_delta", "partial_json": doc[half:]}},
            {"type": "content_block_stop", "index": index},
        ]
        index += 1
    events += [
        {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {}},
        {"type": "message_stop"},
    ]
    return events


async def aiter_events(events):
    for event in events:
        yield event


class ScriptedProvider(Provider):
    """Replays one scripted response per stream() call.

    When the script runs out the last response repeats. A response entry
    that is an exception instance is raised at that point in the stream.
    An ``asyncio.Event`` entry is awaited before continuing.
    """

    def __init__(self, responses: list[list[Any]]) -> None:
        self._responses = responses
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "scripted"

    async def stream(
        self,
        transcript,
        *,
        system_prompt=None,
        max_tokens=8192,
        tools=None,
        cancel_event=None,
    ):
        self.calls.append({
            "transcript": list(transcript),
            "system_prompt": system_prompt,
            "tools": tools,
        })
        script = self._responses[min(len(self.calls), len(self._responses)) - 1]
        for event in script:
            if isinstance(event, BaseException):
                raise event
            if isinstance(event, asyncio.Event):
                await event.wait()
                continue
            yield event


class RecordingTool:
    """Minimal tool that records its calls."""

    def __init__(
        self,
        name: str = "Echo",
        output: str = "ok",
        schema: dict[str, Any] | None = None,
    ) -> None:
        self.name = name
        self.description = f"{name} test tool"
        self.input_schema = schema or {
            "type": "object",
            "properties": {"value": {"type": "string"}},
        }
        self._output = output
        self.calls: list[dict[str, Any]] = []

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        self.calls.append(dict(input))
        return ToolResult.ok(self._output)
