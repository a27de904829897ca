"""Default system prompt."""
from __future__ import annotations

import os
import platform
from collections.abc import Iterable
from datetime import date


def build_system_prompt(
    cwd: str,
    tool_names: Iterable[str] = (),
    appended: str | None = None,
) -> str:
    """System prompt describing the environment and the available tools."""
    tools = ", ".join(tool_names) or "(none)"
    prompt = (
        "You are clawd, an agentic coding assistant that helps developers "
        "write, debug and understand code.\n"
        "\n"
        "## Environment\n"
        f"- Working directory: {os.path.abspath(cwd)}\n"
        f"- Platform: {platform.system().lower()}\n"
        f"- Date: {date.today().isoformat()}\n"
        "\n"
        "## Tools\n"
        f"Available tools: {tools}.\n"
        "- Use absolute paths for Read, Write and Edit.\n"
        "- Prefer Edit over rewriting whole files with Write.\n"
        "- Use Glob and Grep to find code before reading it.\n"
        "- Run tests after making changes.\n"
        "\n"
        "## Style\n"
        "Be concise but complete. Use markdown. If you are unsure, say so."
    )
    if appended:
        prompt += f"\n\n## Additional Instructions\n{appended}"
    return prompt
