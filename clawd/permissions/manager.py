"""Permission engine: decides whether an invocation needs human approval.

Precedence, first match wins:

    1. signature in the session allowlist      -> no approval
    2. mode
         bypassPermissions                     -> no approval
         plan                                  -> approval unless read-only
         acceptEdits                           -> Edit/Write need none, others fall through
         dontAsk                               -> falls through; only an allow rule avoids asking
    3. an explicit deny rule matches           -> approval
    4. an explicit allow rule matches          -> no approval
    5. default                                 -> approval

A deny rule never rejects silently: it forces the human prompt, and the
human's answer is final.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ..engine.models import PermissionMode, ToolInvocation
from .modes import EDIT_TOOLS, SHELL_TOOLS, is_read_only
from .rules import PermissionRule, first_match, parse_rules

logger = logging.getLogger(__name__)


def signature(name: str, tool_input: Mapping[str, Any] | None) -> str:
    """Session-allowlist key: ``Bash:<command>`` for shell tools, else the name."""
    if name in SHELL_TOOLS:
        command = ""
        if tool_input is not None:
            command = str(tool_input.get("command") or "")
        return f"{name}:{command}"
    return name


class PermissionEngine:
    """Per-session permission state. One instance per AgentLoop."""

    def __init__(
        self,
        mode: PermissionMode = PermissionMode.DEFAULT,
        allow: Iterable[str] = (),
        deny: Iterable[str] = (),
    ) -> None:
        self._mode = mode
        self._allow: list[PermissionRule] = parse_rules(allow)
        self._deny: list[PermissionRule] = parse_rules(deny)
        self._session_allowlist: set[str] = set()

    @property
    def mode(self) -> PermissionMode:
        return self._mode

    def set_mode(self, mode: PermissionMode) -> None:
        if mode != self._mode:
            logger.info("Permission mode changed: %s -> %s", self._mode.value, mode.value)
        self._mode = mode

    @property
    def allow_rules(self) -> list[PermissionRule]:
        return list(self._allow)

    @property
    def deny_rules(self) -> list[PermissionRule]:
        return list(self._deny)

    def add_allow_rule(self, rule: str) -> None:
        self._allow.extend(parse_rules([rule]))

    def add_deny_rule(self, rule: str) -> None:
        self._deny.extend(parse_rules([rule]))

    @property
    def session_allowlist(self) -> set[str]:
        return set(self._session_allowlist)

    @staticmethod
    def signature(name: str, tool_input: Mapping[str, Any] | None) -> str:
        return signature(name, tool_input)

    def _decide(self, invocation: ToolInvocation) -> tuple[bool, str]:
        name = invocation.name
        tool_input = invocation.input or {}

        if signature(name, tool_input) in self._session_allowlist:
            return False, "allowed for this session"

        mode = self._mode
        if mode == PermissionMode.BYPASS:
            return False, "bypassPermissions mode"
        if mode == PermissionMode.PLAN:
            if is_read_only(name):
                return False, "plan mode: read-only tool"
            return True, "plan mode: tool is not read-only"
        if mode == PermissionMode.ACCEPT_EDITS and name in EDIT_TOOLS:
            return False, "acceptEdits mode"

        denied = first_match(self._deny, name, tool_input)
        if denied is not None:
            return True, f"matches deny rule {denied}"
        allowed = first_match(self._allow, name, tool_input)
        if allowed is not None:
            return False, f"matches allow rule {allowed}"
        if mode == PermissionMode.DONT_ASK:
            return True, "dontAsk mode: no allow rule matches"
        return True, "no rule matches"

    def needs_approval(self, invocation: ToolInvocation) -> bool:
        needed, reason = self._decide(invocation)
        logger.debug(
            "needs_approval tool=%s -> %s (%s)", invocation.name, needed, reason,
        )
        return needed

    def explain(self, invocation: ToolInvocation) -> str:
        """Short human-readable reason for the needs_approval() answer."""
        return self._decide(invocation)[1]

    def allow_for_session(self, invocation: ToolInvocation) -> None:
        sig = signature(invocation.name, invocation.input)
        self._session_allowlist.add(sig)
        logger.info("Session allowlist += %s", sig)

    def allow_signatures(self, signatures: Iterable[str]) -> None:
        """Merge previously exported signatures into the session allowlist."""
        self._session_allowlist.update(s for s in signatures if s)

    def reset_session(self) -> None:
        self._session_allowlist.clear()
