"""Anthropic Messages API provider.

Streams raw events from ``client.messages.create(stream=True)``.
The SDK's own retries are disabled; transport retry is handled by
stream_with_retry so backoff and classification live in one place.
"""
from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from typing import Any

import anthropic

from ..errors import InvalidRequestError
from ..models import ConversationTurn
from .base import Provider

logger = logging.getLogger(__name__)

MAX_TOKENS_LIMIT = 200_000
DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicProvider(Provider):
    """Provider backed by anthropic.AsyncAnthropic."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        client: Any | None = None,
    ) -> None:
        self._model = model
        self._api_key = (
            api_key
            or os.getenv("CLAWD_API_KEY")
            or os.getenv("ANTHROPIC_API_KEY")
        )
        self._base_url = base_url or os.getenv("CLAWD_BASE_URL") or None
        self._client = client

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self) -> Any:
        if self._client is None:
            kwargs: dict[str, Any] = {"max_retries": 0}
            if self._api_key:
                kwargs["api_key"] = self._api_key
            if self._base_url:
                kwargs["base_url"] = self._base_url
            self._client = anthropic.AsyncAnthropic(**kwargs)
            logger.debug(
                "Created AsyncAnthropic client (base_url=%s)",
                self._base_url or "default",
            )
        return self._client

    @staticmethod
    def validate_request(
        transcript: list[ConversationTurn],
        max_tokens: int,
    ) -> None:
        if not transcript:
            raise InvalidRequestError("Messages array cannot be empty")
        if max_tokens < 1 or max_tokens > MAX_TOKENS_LIMIT:
            raise InvalidRequestError(
                f"max_tokens must be between 1 and {MAX_TOKENS_LIMIT}, got {max_tokens}"
            )

    async def stream(
        self,
        transcript: list[ConversationTurn],
        *,
        system_prompt: str | None = None,
        max_tokens: int = 8192,
        tools: list[dict[str, Any]] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[Any]:
        self.validate_request(transcript, max_tokens)

        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [turn.to_api() for turn in transcript],
            "stream": True,
        }
        if system_prompt:
            params["system"] = system_prompt
        if tools:
            params["tools"] = tools

        logger.info(
            "Anthropic request: model=%s messages=%d tools=%d",
            self._model, len(transcript), len(tools or []),
        )
        response = await self._get_client().messages.create(**params)
        try:
            async for event in response:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Anthropic stream cancelled")
                    break
                yield event
        finally:
            close = getattr(response, "close", None)
            if close is not None:
                try:
                    await close()
                except Exception:
                    logger.debug("Error closing Anthropic stream", exc_info=True)

    async def shutdown(self) -> None:
        if self._client is not None:
            close = getattr(self._client, "close", None)
            if close is not None:
                await close()
            self._client = None
