"""Security checks on sanitized tool input.

Runs after schema validation and sanitization, before execution.
A denial is terminal for the invocation; nothing here is advisory.
"""
from __future__ import annotations

import ipaddress
import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

SHELL_TOOLS = frozenset({"Bash"})
FILE_PATH_TOOLS = frozenset({"Read", "Write", "Edit"})
NETWORK_TOOLS = frozenset({"WebFetch"})

DANGEROUS_COMMAND_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"rm\s+(-rf?|-fr|--recursive)\s+[/~]", re.IGNORECASE),
    re.compile(r"mkfs\.", re.IGNORECASE),
    re.compile(r"dd\s+.+of=/dev", re.IGNORECASE),
    re.compile(r":\(\)\s*\{\s*:\|:&\s*\};:"),
    re.compile(r">\s*/dev/sd[a-z]", re.IGNORECASE),
    re.compile(r"chmod\s+777\s+/", re.IGNORECASE),
    re.compile(r"curl.*\|\s*(bash|sh)\b", re.IGNORECASE),
    re.compile(r"wget.*\|\s*(bash|sh)\b", re.IGNORECASE),
)

BLOCKED_PATHS = ("/etc/passwd", "/etc/shadow", "/etc/sudoers", "/root", "/.ssh")

BLOCKED_HOSTS = frozenset({
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "::1",
    "metadata.google.internal",
    "169.254.169.254",
})


@dataclass(frozen=True)
class SecurityCheckResult:
    allowed: bool
    reason: str | None = None


_ALLOWED = SecurityCheckResult(True)


def _is_within(path: str, root: str) -> bool:
    """Component-wise containment: /home/user2 is not inside /home/user."""
    try:
        return os.path.commonpath([path, root]) == root
    except ValueError:
        return False


def check_path(path: str, cwd: str, home: str | None = None) -> SecurityCheckResult:
    """A file path must be absolute, outside the blocked set and under home or cwd."""
    if not path or not os.path.isabs(path):
        return SecurityCheckResult(False, "Path must be absolute")

    resolved = os.path.normpath(path)
    for blocked in BLOCKED_PATHS:
        if _is_within(resolved, blocked):
            return SecurityCheckResult(False, f"Access to {blocked} is not allowed")

    home_dir = os.path.normpath(home or os.environ.get("HOME") or "/tmp")
    cwd_dir = os.path.normpath(os.path.abspath(cwd))
    if not (_is_within(resolved, home_dir) or _is_within(resolved, cwd_dir)):
        return SecurityCheckResult(
            False,
            "Path must be under home directory or current working directory",
        )
    return _ALLOWED


def check_command(command: str) -> SecurityCheckResult:
    for pattern in DANGEROUS_COMMAND_PATTERNS:
        if pattern.search(command):
            return SecurityCheckResult(
                False, "Command contains potentially dangerous operations"
            )
    return _ALLOWED


def _is_private_host(hostname: str) -> bool:
    try:
        addr = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    if addr.is_loopback or addr.is_link_local or addr.is_unspecified:
        return True
    if isinstance(addr, ipaddress.IPv4Address):
        return addr.is_private
    return False


def check_url(url: str) -> SecurityCheckResult:
    try:
        parsed = urlparse(url)
        hostname = (parsed.hostname or "").lower()
    except ValueError:
        return SecurityCheckResult(False, "Invalid URL")
    if parsed.scheme not in ("http", "https"):
        return SecurityCheckResult(False, "Only HTTP and HTTPS URLs are allowed")
    if not hostname:
        return SecurityCheckResult(False, "Invalid URL")
    if hostname in BLOCKED_HOSTS:
        return SecurityCheckResult(
            False, "Access to local network addresses is not allowed"
        )
    if _is_private_host(hostname):
        return SecurityCheckResult(
            False, "Access to private IP addresses is not allowed"
        )
    return _ALLOWED


def upgrade_url(url: str) -> str:
    """Rewrite plain http:// URLs to https://."""
    if url[:7].lower() == "http://":
        return "https://" + url[7:]
    return url


def check_security(
    tool_name: str,
    input: Mapping[str, Any],
    cwd: str,
    home: str | None = None,
) -> SecurityCheckResult:
    """Dispatch to the check for the tool's category. Unknown tools pass."""
    if tool_name in SHELL_TOOLS:
        result = check_command(str(input.get("command") or ""))
        if not result.allowed:
            return result
        workdir = input.get("workdir")
        if workdir:
            return check_path(str(workdir), cwd, home)
        return _ALLOWED

    if tool_name in FILE_PATH_TOOLS:
        path = input.get("file_path") or input.get("filePath") or ""
        return check_path(str(path), cwd, home)

    if tool_name in NETWORK_TOOLS:
        return check_url(str(input.get("url") or ""))

    return _ALLOWED
