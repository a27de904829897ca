"""Model providers, transport retry and the stream decoder."""
from __future__ import annotations

from .base import Provider, RawEvent, normalize_raw_event
from .retry import RetryPolicy, classify_error, stream_with_retry
from .streaming import (
    DecodedEvent,
    StreamDecoder,
    StreamDone,
    TextDelta,
    ToolInvocationReady,
    parse_tool_input,
)

__all__ = [
    "DecodedEvent",
    "Provider",
    "RawEvent",
    "RetryPolicy",
    "StreamDecoder",
    "StreamDone",
    "TextDelta",
    "ToolInvocationReady",
    "classify_error",
    "normalize_raw_event",
    "parse_tool_input",
    "stream_with_retry",
]
