"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via CLAWD_* env vars,
a YAML settings file (see yaml_config.py), or CLI flags.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .models import PermissionMode

if TYPE_CHECKING:
    from .models import PermissionChoice, PermissionRequest

logger = logging.getLogger(__name__)


# Optional async callback for real-time event observation.
# Signature: async def callback(event: dict[str, Any]) -> None
EventCallback = Callable[[dict[str, Any]], Awaitable[None]]

# Async callback that asks a human about one tool invocation.
# Signature: async def callback(request: PermissionRequest) -> PermissionChoice
# Awaited without a timeout; the loop stays suspended until it returns.
PermissionCallback = Callable[["PermissionRequest"], Awaitable["PermissionChoice"]]


async def fire_event(
    callback: EventCallback | None,
    event: dict[str, Any],
) -> None:
    """Fire an event callback if set, silently swallowing errors."""
    if callback is None:
        return
    try:
        await callback(event)
    except Exception:
        logger.debug("Event callback failed for %s", event.get("event"), exc_info=True)


def parse_permission_mode(value: str | None) -> PermissionMode:
    """Parse a permission mode string to enum."""
    mapping = {
        "default": PermissionMode.DEFAULT,
        "plan": PermissionMode.PLAN,
        "acceptEdits": PermissionMode.ACCEPT_EDITS,
        "accept_edits": PermissionMode.ACCEPT_EDITS,
        "accept-edits": PermissionMode.ACCEPT_EDITS,
        "dontAsk": PermissionMode.DONT_ASK,
        "dont_ask": PermissionMode.DONT_ASK,
        "deny-by-default": PermissionMode.DONT_ASK,
        "bypassPermissions": PermissionMode.BYPASS,
        "bypass": PermissionMode.BYPASS,
    }
    if not value:
        return PermissionMode.DEFAULT
    mode = mapping.get(value.strip())
    if mode is None:
        logger.warning("Unknown permission mode %r, using default", value)
        return PermissionMode.DEFAULT
    return mode


@dataclass
class EngineConfig:
    """Agent engine configuration."""

    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8192
    system_prompt: str | None = None
    cwd: str = "."

    # Hard cap on provider calls per user message.
    max_iterations: int = 50
    # Hard cap on transcript length; oldest turns are trimmed first.
    max_messages: int = 500
    # Max wall-clock time for any single tool call.
    tool_timeout_seconds: float = 120.0

    # Transport retry policy for the streaming call.
    max_retries: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 10.0

    permission_mode: PermissionMode = PermissionMode.DEFAULT
    # Rule strings such as "Read", "Bash(git *)", "Bash(npm:*)".
    allow_rules: list[str] = field(default_factory=list)
    deny_rules: list[str] = field(default_factory=list)

    api_key: str | None = field(default=None, repr=False)
    base_url: str | None = None

    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Load configuration from CLAWD_* environment variables."""
        clawd_vars = sorted(
            k for k in os.environ if k.startswith("CLAWD_") and k != "CLAWD_API_KEY"
        )
        if clawd_vars:
            logger.info(
                "EngineConfig.from_env: CLAWD_* env overrides: %s",
                ", ".join(clawd_vars),
            )
        else:
            logger.debug("EngineConfig.from_env: no CLAWD_* env vars set, using defaults")

        config = cls(
            model=os.getenv("CLAWD_MODEL", cls.model),
            max_tokens=int(os.getenv("CLAWD_MAX_TOKENS", str(cls.max_tokens))),
            cwd=os.getenv("CLAWD_CWD", cls.cwd),
            max_iterations=int(os.getenv(
                "CLAWD_MAX_ITERATIONS", str(cls.max_iterations)
            )),
            max_messages=int(os.getenv(
                "CLAWD_MAX_MESSAGES", str(cls.max_messages)
            )),
            tool_timeout_seconds=float(os.getenv(
                "CLAWD_TOOL_TIMEOUT", str(cls.tool_timeout_seconds)
            )),
            permission_mode=parse_permission_mode(
                os.getenv("CLAWD_PERMISSION_MODE")
            ),
            api_key=(
                os.getenv("CLAWD_API_KEY")
                or os.getenv("ANTHROPIC_API_KEY")
                or None
            ),
            base_url=os.getenv("CLAWD_BASE_URL") or None,
            log_level=os.getenv("CLAWD_LOG_LEVEL", cls.log_level),
        )
        logger.info(
            "EngineConfig.from_env: model=%s mode=%s cwd=%s max_iterations=%d",
            config.model, config.permission_mode.value,
            config.cwd, config.max_iterations,
        )
        return config
