"""Stream decoder: raw provider events in, decoded events out.

Tool input arrives as fragments of a JSON document spread over many
``input_json_delta`` events. Fragments are buffered per content-block
index and parsed exactly once, when the block stops. Fragments are
never parsed individually.

Decoded events:
    TextDelta            a piece of assistant text, emitted immediately
    ToolInvocationReady  one complete tool invocation (id, name, input)
    StreamDone           end of the stream (stop_reason, usage)
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Union

from ..errors import StreamError
from ..models import ToolInvocation
from .base import normalize_raw_event

logger = logging.getLogger(__name__)

_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolInvocationReady:
    invocation: ToolInvocation


@dataclass(frozen=True)
class StreamDone:
    stop_reason: str | None = None
    usage: dict[str, Any] = field(default_factory=dict)


DecodedEvent = Union[TextDelta, ToolInvocationReady, StreamDone]

_END = object()
_CANCELLED = object()


async def _pull(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END


async def _next_or_cancel(
    iterator: AsyncIterator[Any],
    stop: asyncio.Future | None,
) -> Any:
    """Next raw event, ``_END``, or ``_CANCELLED`` if *stop* fires first.

    A source stalled on the network is interrupted: the pending pull is
    cancelled, which raises CancelledError inside the source.
    """
    if stop is None:
        return await _pull(iterator)
    pull = asyncio.ensure_future(_pull(iterator))
    try:
        await asyncio.wait({pull, stop}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if not pull.done():
            pull.cancel()
            await asyncio.gather(pull, return_exceptions=True)
    if stop.done():
        if pull.done() and not pull.cancelled():
            pull.exception()
        return _CANCELLED
    return pull.result()


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def parse_tool_input(raw: str) -> dict[str, Any]:
    """Parse a fully buffered tool-input string.

    One attempt as-is, one attempt with trailing commas removed,
    then ``{}``. A document that parses to anything but an object
    counts as a failure.
    """
    if not raw.strip():
        return {}
    parsed = _loads_object(raw)
    if parsed is not None:
        return parsed
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", raw)
    if cleaned != raw:
        parsed = _loads_object(cleaned)
        if parsed is not None:
            logger.warning("Recovered malformed tool input by removing trailing commas")
            return parsed
    logger.warning(
        "Failed to parse tool input JSON, using empty input: %.200s", raw
    )
    return {}


@dataclass
class _PendingInvocation:
    id: str
    name: str
    prefilled: dict[str, Any] = field(default_factory=dict)
    fragments: list[str] = field(default_factory=list)

    def finish(self) -> ToolInvocation:
        if self.fragments:
            tool_input = parse_tool_input("".join(self.fragments))
        else:
            tool_input = dict(self.prefilled)
        return ToolInvocation(id=self.id, name=self.name, input=tool_input)


class StreamDecoder:
    """Turns raw provider events into TextDelta / ToolInvocationReady / StreamDone.

    One decode() call handles one provider response; per-response state
    lives inside the call, so a decoder instance can be reused.
    """

    async def decode(
        self,
        events: AsyncIterable[Any],
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[DecodedEvent]:
        pending: dict[int, _PendingInvocation] = {}
        stop_reason: str | None = None
        usage: dict[str, Any] = {}
        cancelled = False

        iterator = events.__aiter__()
        stop = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
        try:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break
                raw = await _next_or_cancel(iterator, stop)
                if raw is _END:
                    break
                if raw is _CANCELLED:
                    cancelled = True
                    break

                event = normalize_raw_event(raw)
                if event is None or not event.get("type"):
                    logger.warning("Skipping malformed stream event: %r", raw)
                    continue

                etype = event["type"]
                if etype == "message_start":
                    message = event.get("message") or {}
                    usage.update(message.get("usage") or {})

                elif etype == "content_block_start":
                    block = event.get("content_block")
                    index = event.get("index")
                    if not isinstance(block, dict) or index is None:
                        logger.warning("Skipping content_block_start without block: %r", event)
                        continue
                    if block.get("type") == "tool_use":
                        pending[index] = _PendingInvocation(
                            id=str(block.get("id") or ""),
                            name=str(block.get("name") or ""),
                            prefilled=block.get("input") if isinstance(block.get("input"), dict) else {},
                        )
                        logger.debug(
                            "Tool invocation started: %s (%s) at index %s",
                            block.get("name"), block.get("id"), index,
                        )
                    elif block.get("type") == "text" and block.get("text"):
                        yield TextDelta(block["text"])

                elif etype == "content_block_delta":
                    delta = event.get("delta")
                    if not isinstance(delta, dict):
                        logger.warning("Skipping content_block_delta without delta: %r", event)
                        continue
                    dtype = delta.get("type")
                    if dtype == "text_delta":
                        text = delta.get("text") or ""
                        if text:
                            yield TextDelta(text)
                    elif dtype == "input_json_delta":
                        target = pending.get(event.get("index"))
                        if target is None:
                            logger.warning(
                                "input_json_delta for unknown block index %s", event.get("index"),
                            )
                            continue
                        target.fragments.append(delta.get("partial_json") or "")
                    else:
                        logger.debug("Ignoring delta type %s", dtype)

                elif etype == "content_block_stop":
                    finished = pending.pop(event.get("index"), None)
                    if finished is not None:
                        yield ToolInvocationReady(finished.finish())

                elif etype == "message_delta":
                    delta = event.get("delta") or {}
                    if delta.get("stop_reason"):
                        stop_reason = delta["stop_reason"]
                    usage.update(event.get("usage") or {})

                elif etype == "message_stop":
                    pass

                elif etype == "error":
                    err = event.get("error") or {}
                    raise StreamError(
                        str(err.get("type") or "unknown_error"),
                        str(err.get("message") or "Unknown error"),
                    )

                else:
                    logger.debug("Ignoring stream event type %s", etype)
        finally:
            if stop is not None and not stop.done():
                stop.cancel()
                await asyncio.gather(stop, return_exceptions=True)
            if cancelled or pending:
                aclose = getattr(iterator, "aclose", None)
                if aclose is not None:
                    try:
                        await aclose()
                    except Exception:
                        logger.debug("Error closing provider stream", exc_info=True)

        if cancelled:
            if pending:
                logger.info("Stream cancelled; discarding %d partial tool invocation(s)", len(pending))
            return
        if pending:
            logger.warning(
                "Stream ended with %d unfinished tool invocation(s); discarding",
                len(pending),
            )
        yield StreamDone(stop_reason=stop_reason, usage=usage)
