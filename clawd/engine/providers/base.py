"""Abstract base for model providers.

A provider turns a transcript into a stream of raw events in the
Anthropic Messages wire shape. It does not decode tool input, it
does not retry, and it knows nothing about the agent loop; those
jobs belong to StreamDecoder, stream_with_retry and AgentLoop.
"""
from __future__ import annotations

import abc
import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from ..models import ConversationTurn

logger = logging.getLogger(__name__)

# One raw provider event: {"type": "content_block_delta", "index": 0, "delta": {...}}
RawEvent = dict[str, Any]


class Provider(abc.ABC):
    """Abstract provider interface.

    Implementations wrap a specific streaming API:
    - AnthropicProvider: Anthropic Messages API (anthropic.AsyncAnthropic)
    - test doubles that replay scripted event lists
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Short provider name (e.g. 'anthropic')."""

    @abc.abstractmethod
    def stream(
        self,
        transcript: list[ConversationTurn],
        *,
        system_prompt: str | None = None,
        max_tokens: int = 8192,
        tools: list[dict[str, Any]] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[Any]:
        """Open one streaming request.

        Yields raw events (dicts or SDK objects with model_dump()).
        Raises provider errors before or during iteration.
        """

    async def shutdown(self) -> None:
        """Release any held clients. Default: no-op."""
        return None


def normalize_raw_event(raw: Any) -> RawEvent | None:
    """Coerce one provider event into a plain dict.

    SDK event objects expose model_dump(); plain dicts pass through.
    Anything else is reported as None so the caller can skip it.
    """
    if raw is None:
        return None
    if isinstance(raw, dict):
        return raw
    dump = getattr(raw, "model_dump", None)
    if callable(dump):
        try:
            data = dump()
        except Exception:
            logger.debug("model_dump() failed for %r", type(raw).__name__, exc_info=True)
            return None
        return data if isinstance(data, dict) else None
    return None
