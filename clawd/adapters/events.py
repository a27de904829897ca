"""Event types emitted by the agent loop.

Each event corresponds to an event_callback dict fired by AgentLoop,
parsed into a typed dataclass for safe consumption by front ends.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class LoopEvent:
    """Base event from the agent loop."""
    event_type: str = ""


@dataclass
class StateChanged(LoopEvent):
    event_type: str = "state_changed"
    old_state: str = ""
    new_state: str = ""


@dataclass
class TextDelta(LoopEvent):
    event_type: str = "text_delta"
    text: str = ""


@dataclass
class ToolStart(LoopEvent):
    event_type: str = "tool_start"
    tool_id: str = ""
    tool_name: str = ""
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolEnd(LoopEvent):
    event_type: str = "tool_end"
    tool_id: str = ""
    tool_name: str = ""
    result: str = ""
    is_error: bool = False
    duration_ms: float = 0.0
    timed_out: bool = False
    security_denied: bool = False


@dataclass
class PermissionRequested(LoopEvent):
    event_type: str = "permission_request"
    request_id: str = ""
    tool_id: str = ""
    tool_name: str = ""
    arguments: dict[str, Any] = field(default_factory=dict)
    reason: str = ""


@dataclass
class LoopError(LoopEvent):
    event_type: str = "error"
    error: str = ""
    error_type: str = ""


@dataclass
class LoopComplete(LoopEvent):
    event_type: str = "complete"
    text: str = ""
    iterations: int = 0
    aborted: bool = False


_EVENT_MAP: dict[str, type[LoopEvent]] = {
    "state_changed": StateChanged,
    "text_delta": TextDelta,
    "tool_start": ToolStart,
    "tool_end": ToolEnd,
    "permission_request": PermissionRequested,
    "error": LoopError,
    "complete": LoopComplete,
}


def event_to_dict(event: LoopEvent) -> dict[str, Any]:
    """Convert a typed event dataclass to a plain dict for JSON serialization."""
    d: dict[str, Any] = {}
    for f in event.__dataclass_fields__:
        val = getattr(event, f)
        if val is not None:
            d[f] = val
    # Callback dicts use "event", not "event_type"
    if "event_type" in d:
        d["event"] = d.pop("event_type")
    return d


def dict_to_event(data: dict[str, Any]) -> LoopEvent:
    """Convert a loop callback dict to a typed event dataclass."""
    event_type = data.get("event", "")
    cls = _EVENT_MAP.get(event_type, LoopEvent)
    valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    if "event" in data and "event_type" not in filtered:
        filtered["event_type"] = data["event"]
    return cls(**filtered)
