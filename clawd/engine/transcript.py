"""Append-only conversation transcript for one agent loop.

Turns are stored in insertion order and never mutated after append.
A hard length cap trims the oldest turns; token-based compaction is
somebody else's job.
"""
from __future__ import annotations

import logging
from typing import Any

from .models import ConversationTurn, Role, ToolOutcomeBlock

logger = logging.getLogger(__name__)


class Transcript:
    """Owned by exactly one AgentLoop. Single-event-loop usage only."""

    def __init__(self, max_messages: int = 500) -> None:
        self._turns: list[ConversationTurn] = []
        self._max_messages = max_messages

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self):
        return iter(list(self._turns))

    @property
    def turns(self) -> list[ConversationTurn]:
        return list(self._turns)

    @property
    def last(self) -> ConversationTurn | None:
        return self._turns[-1] if self._turns else None

    def append(self, turn: ConversationTurn) -> None:
        """Add a turn to the end of the transcript."""
        self._turns.append(turn)

    def trim(self) -> int:
        """Drop the oldest turns beyond the cap. Returns how many were removed.

        The first surviving turn must be a plain user message; a leading
        assistant turn or a dangling tool-outcome turn would break the
        invocation/outcome pairing, so those are dropped too.
        """
        if self._max_messages <= 0 or len(self._turns) <= self._max_messages:
            return 0
        excess = len(self._turns) - self._max_messages
        logger.warning(
            "Transcript exceeds limit, removing %d oldest messages", excess,
        )
        del self._turns[:excess]
        removed = excess
        while self._turns and (
            self._turns[0].role != Role.USER
            or any(isinstance(b, ToolOutcomeBlock) for b in self._turns[0].blocks)
        ):
            self._turns.pop(0)
            removed += 1
        return removed

    def clear(self) -> None:
        self._turns.clear()

    def to_api(self) -> list[dict[str, Any]]:
        """Render every turn in the Messages API wire shape."""
        return [turn.to_api() for turn in self._turns]

    def export(self) -> list[ConversationTurn]:
        """Finalized turn list for persistence collaborators."""
        return list(self._turns)
