"""Agent loop state machine.

Defines valid transitions and enforces them. Invalid transitions
raise InvalidStateTransitionError rather than silently proceeding.

State Diagram:

    IDLE ──> PROCESSING ──> STREAMING ──┬──> IDLE  (no tool calls)
                ^                       │
                │                       └──> TOOL_PENDING ──┬──> PERMISSION_PENDING ──┐
                │                                           │                         │
                │                                           └──> EXECUTING_TOOL <─────┘
                │                                                     │
                └─────────────────────────────────────────────────────┘

    Any active state ──> STOPPING ──> IDLE  (abort)
    Any active state ──> IDLE                (fatal error)
"""
from __future__ import annotations

from .errors import InvalidStateTransitionError
from .models import AgentState

_ACTIVE = {
    AgentState.PROCESSING,
    AgentState.STREAMING,
    AgentState.TOOL_PENDING,
    AgentState.PERMISSION_PENDING,
    AgentState.EXECUTING_TOOL,
}

VALID_TRANSITIONS: dict[AgentState, set[AgentState]] = {
    AgentState.IDLE: {
        AgentState.PROCESSING,
    },
    AgentState.PROCESSING: {
        AgentState.STREAMING,
        AgentState.STOPPING,
        AgentState.IDLE,
    },
    AgentState.STREAMING: {
        AgentState.TOOL_PENDING,
        AgentState.STOPPING,
        AgentState.IDLE,
    },
    AgentState.TOOL_PENDING: {
        AgentState.PERMISSION_PENDING,
        AgentState.EXECUTING_TOOL,
        AgentState.PROCESSING,
        AgentState.STOPPING,
        AgentState.IDLE,
    },
    AgentState.PERMISSION_PENDING: {
        AgentState.EXECUTING_TOOL,
        AgentState.TOOL_PENDING,
        AgentState.STOPPING,
        AgentState.IDLE,
    },
    AgentState.EXECUTING_TOOL: {
        AgentState.TOOL_PENDING,
        AgentState.PROCESSING,
        AgentState.STOPPING,
        AgentState.IDLE,
    },
    AgentState.STOPPING: {
        AgentState.IDLE,
    },
}


def is_active(state: AgentState) -> bool:
    """True while a loop run owns the transcript."""
    return state in _ACTIVE or state == AgentState.STOPPING


def validate_transition(current: AgentState, target: AgentState) -> None:
    """Validate a state transition. Raises if invalid."""
    allowed = VALID_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidStateTransitionError(
            current.value,
            target.value,
            sorted(s.value for s in allowed),
        )
