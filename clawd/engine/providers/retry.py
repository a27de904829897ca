"""Transport retry policy for streaming provider calls.

Retryable: HTTP 429/500/502/503/504, connection resets and timeouts.
Everything else is fatal on the first failure. A retry is only
attempted while nothing from the failed attempt has been delivered
downstream, so already-streamed text is never replayed.
"""
from __future__ import annotations

import asyncio
import errno
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import anthropic

from ..errors import (
    AuthenticationError,
    ClawdError,
    InvalidRequestError,
    ProviderError,
    RateLimitedError,
    TransportError,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
_RETRYABLE_ERRNOS = frozenset({errno.ECONNRESET, errno.ETIMEDOUT})


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0

    def delay_for(self, retry_number: int) -> float:
        """Backoff before retry *retry_number* (1-based)."""
        exp = self.base_delay_seconds * (2 ** max(retry_number - 1, 0))
        return min(exp, self.max_delay_seconds)


@dataclass(frozen=True)
class ErrorClass:
    """Classification of one transport failure."""
    retryable: bool
    status: int | None
    message: str


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def _error_message(exc: BaseException) -> str:
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return str(exc) or type(exc).__name__


def classify_error(exc: BaseException) -> ErrorClass:
    """Decide whether *exc* is worth retrying."""
    if isinstance(exc, TransportError):
        return ErrorClass(exc.retryable, exc.status, str(exc))
    if isinstance(exc, ClawdError):
        return ErrorClass(False, getattr(exc, "status", None), str(exc))
    if isinstance(exc, (anthropic.APITimeoutError, anthropic.APIConnectionError)):
        return ErrorClass(True, None, _error_message(exc))
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionResetError)):
        return ErrorClass(True, None, str(exc) or type(exc).__name__)
    if isinstance(exc, OSError) and exc.errno in _RETRYABLE_ERRNOS:
        return ErrorClass(True, None, str(exc))

    status = _status_of(exc)
    if status is not None:
        return ErrorClass(status in RETRYABLE_STATUS_CODES, status, _error_message(exc))
    return ErrorClass(False, None, _error_message(exc))


def to_provider_error(
    exc: BaseException,
    classified: ErrorClass,
    attempts: int,
) -> ProviderError:
    """Translate a final transport failure into the clawd hierarchy."""
    if isinstance(exc, ProviderError) and not isinstance(exc, TransportError):
        return exc
    status = classified.status
    if status in (401, 403):
        return AuthenticationError()
    if status == 400:
        return InvalidRequestError(classified.message)
    if status == 429:
        return RateLimitedError(attempts)
    return TransportError(
        classified.message,
        status=status,
        retryable=classified.retryable,
        attempts=attempts,
    )


async def _backoff(delay: float, cancel_event: asyncio.Event | None) -> None:
    """Sleep *delay* seconds, waking early when *cancel_event* is set."""
    if cancel_event is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        pass


async def stream_with_retry(
    open_stream: Callable[[], AsyncIterator[Any]],
    policy: RetryPolicy | None = None,
    *,
    cancel_event: asyncio.Event | None = None,
    sleep: Callable[[float], Awaitable[Any]] | None = None,
) -> AsyncIterator[Any]:
    """Yield events from ``open_stream()``, reopening on retryable failures.

    Once the first event of an attempt has been yielded, any later
    failure of that attempt is fatal. A cancel during the backoff ends
    the stream without another attempt.
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        attempt += 1
        delivered = False
        try:
            async for event in open_stream():
                delivered = True
                yield event
            return
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            classified = classify_error(exc)
            retries_used = attempt - 1
            can_retry = (
                classified.retryable
                and not delivered
                and retries_used < policy.max_retries
                and not (cancel_event is not None and cancel_event.is_set())
            )
            if not can_retry:
                if delivered and classified.retryable:
                    logger.error(
                        "Stream failed after output was delivered, not retrying: %s",
                        classified.message,
                    )
                translated = to_provider_error(exc, classified, attempt)
                if translated is exc:
                    raise
                raise translated from exc
            delay = policy.delay_for(attempt)
            logger.warning(
                "Provider request failed (status=%s): %s. Retrying in %.1fs (%d/%d)",
                classified.status, classified.message, delay,
                attempt, policy.max_retries,
            )
            if sleep is not None:
                await sleep(delay)
            else:
                await _backoff(delay, cancel_event)
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Retry abandoned: stream cancelled during backoff")
                return
