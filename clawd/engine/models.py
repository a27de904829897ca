"""Core data models for the agent engine.

All dataclasses and enums shared by the loop, the decoder, the tool
pipeline and the permission engine. Single source of truth to avoid
circular imports.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union


class AgentState(str, Enum):
    """Agent loop states. See lifecycle.py for transition rules."""
    IDLE = "idle"
    PROCESSING = "processing"
    STREAMING = "streaming"
    TOOL_PENDING = "tool_pending"
    PERMISSION_PENDING = "permission_pending"
    EXECUTING_TOOL = "executing_tool"
    STOPPING = "stopping"


class PermissionMode(str, Enum):
    """How much autonomy the agent has when calling tools."""
    DEFAULT = "default"
    PLAN = "plan"
    ACCEPT_EDITS = "acceptEdits"
    DONT_ASK = "dontAsk"
    BYPASS = "bypassPermissions"


class PermissionChoice(str, Enum):
    """A human answer to a permission request."""
    ALLOW_ONCE = "allow_once"
    ALLOW_SESSION = "allow_session"
    DENY = "deny"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


def _make_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TextBlock:
    text: str

    def to_api(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ToolInvocationBlock:
    """A completed tool invocation requested by the model."""
    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)

    def to_api(self) -> dict[str, Any]:
        return {
            "type": "tool_use",
            "id": self.id,
            "name": self.name,
            "input": dict(self.input),
        }


@dataclass(frozen=True)
class ToolOutcomeBlock:
    """The result of one invocation, fed back to the model."""
    invocation_id: str
    content: str
    is_error: bool = False

    def to_api(self) -> dict[str, Any]:
        block: dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": self.invocation_id,
            "content": self.content,
        }
        if self.is_error:
            block["is_error"] = True
        return block


@dataclass(frozen=True)
class ImageBlock:
    media_type: str
    data: str
    source_type: str = "base64"

    def to_api(self) -> dict[str, Any]:
        source: dict[str, Any] = {"type": self.source_type}
        if self.source_type == "url":
            source["url"] = self.data
        else:
            source["media_type"] = self.media_type
            source["data"] = self.data
        return {"type": "image", "source": source}


ContentBlock = Union[TextBlock, ToolInvocationBlock, ToolOutcomeBlock, ImageBlock]

# Decoder output is the same record the loop stores in the transcript.
ToolInvocation = ToolInvocationBlock


@dataclass(frozen=True)
class ConversationTurn:
    """One appended transcript entry. Never mutated after append."""
    role: Role
    content: str | tuple[ContentBlock, ...]
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def user(cls, content: str | list[ContentBlock]) -> ConversationTurn:
        if isinstance(content, list):
            content = tuple(content)
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str | list[ContentBlock]) -> ConversationTurn:
        if isinstance(content, list):
            content = tuple(content)
        return cls(role=Role.ASSISTANT, content=content)

    @property
    def blocks(self) -> tuple[ContentBlock, ...]:
        if isinstance(self.content, str):
            return (TextBlock(self.content),)
        return self.content

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        if isinstance(self.content, str):
            return self.content
        return "".join(
            b.text for b in self.content if isinstance(b, TextBlock)
        )

    @property
    def invocations(self) -> list[ToolInvocationBlock]:
        return [b for b in self.blocks if isinstance(b, ToolInvocationBlock)]

    @property
    def outcomes(self) -> list[ToolOutcomeBlock]:
        return [b for b in self.blocks if isinstance(b, ToolOutcomeBlock)]

    def to_api(self) -> dict[str, Any]:
        """Render in the Messages API wire shape."""
        if isinstance(self.content, str):
            return {"role": self.role.value, "content": self.content}
        return {
            "role": self.role.value,
            "content": [b.to_api() for b in self.content],
        }


@dataclass
class ToolExecutionResult:
    """Normalized result of one executor call."""
    success: bool
    output: str = ""
    error: str | None = None
    duration_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)
    timed_out: bool = False
    security_denied: bool = False

    def outcome_text(self) -> str:
        """Text shown to the model for this result."""
        if self.success:
            return self.output
        if self.output and self.error:
            return f"{self.error}\n\n{self.output}"
        return self.error or self.output


@dataclass
class PermissionRequest:
    """A pending approval handed to the permission UI."""
    invocation: ToolInvocationBlock
    reason: str = ""
    request_id: str = field(default_factory=_make_id)

    @property
    def tool_name(self) -> str:
        return self.invocation.name

    @property
    def tool_input(self) -> dict[str, Any]:
        return self.invocation.input


@dataclass
class AgentRunResult:
    """What one call to AgentLoop.process_user_message produced."""
    text: str
    iterations: int = 0
    aborted: bool = False
    tool_calls: int = 0
