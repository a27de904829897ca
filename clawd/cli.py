"""CLI entry point and composition root.

Usage:
    clawd                                  interactive session
    clawd "explain this repository"        one-shot prompt
    clawd -p "list the TODOs" --permission-mode plan
    clawd --allow "Bash(git *)" --deny "Bash(git push *)"
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Any, TextIO

import yaml
from rich.console import Console
from rich.text import Text

from . import __version__
from .adapters.events import (
    LoopError,
    PermissionRequested,
    TextDelta,
    ToolEnd,
    ToolStart,
    dict_to_event,
)
from .engine.agent_loop import AgentLoop
from .engine.config import EngineConfig, parse_permission_mode
from .engine.errors import ClawdError
from .engine.models import PermissionChoice, PermissionRequest
from .engine.providers.anthropic_provider import AnthropicProvider
from .engine.yaml_config import find_settings_file, load_yaml_config
from .permissions import PermissionEngine, PermissionStore
from .permissions.store import FILENAME as ALLOWLIST_FILENAME
from .tools.builtin import build_default_registry
from .tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

_PERMISSION_ANSWERS = {
    "y": PermissionChoice.ALLOW_ONCE,
    "a": PermissionChoice.ALLOW_SESSION,
    "n": PermissionChoice.DENY,
}

_HELP = (
    "/help            show this help\n"
    "/clear           clear the conversation and session allowlist\n"
    "/mode <mode>     switch permission mode (default, plan, acceptEdits, dontAsk, bypassPermissions)\n"
    "/allowlist                 show the session allowlist\n"
    "/allowlist export [path]   save it (default: .clawd/allowed_tools.json)\n"
    "/allowlist import [path]   merge a saved allowlist into this session\n"
    "/exit            quit"
)


def _summarize_args(arguments: dict[str, Any], limit: int = 120) -> str:
    for key in ("command", "file_path", "filePath", "path", "pattern", "url"):
        value = arguments.get(key)
        if isinstance(value, str) and value:
            return value if len(value) <= limit else value[: limit - 3] + "..."
    return ""


class ConsoleRenderer:
    """Renders loop events on a rich Console as they arrive."""

    def __init__(self, console: Console) -> None:
        self._console = console
        self._mid_line = False

    def _break_line(self) -> None:
        if self._mid_line:
            self._console.print()
            self._mid_line = False

    async def __call__(self, data: dict[str, Any]) -> None:
        event = dict_to_event(data)
        if isinstance(event, TextDelta):
            self._console.print(event.text, end="", markup=False, highlight=False)
            self._mid_line = not event.text.endswith("\n")
        elif isinstance(event, ToolStart):
            self._break_line()
            summary = _summarize_args(event.arguments)
            self._console.print(Text(f"● {event.tool_name} {summary}".rstrip(), style="dim"))
        elif isinstance(event, ToolEnd):
            status = "error" if event.is_error else "ok"
            style = "red dim" if event.is_error else "dim"
            self._console.print(
                Text(f"  └ {event.tool_name} {status} ({event.duration_ms:.0f}ms)", style=style)
            )
        elif isinstance(event, PermissionRequested):
            self._break_line()
        elif isinstance(event, LoopError):
            self._break_line()
            self._console.print(Text(f"Error: {event.error}", style="bold red"))
        elif event.event_type == "complete":
            self._break_line()


class LineReader:
    """The one stdin reader shared by the input prompt and permission prompts.

    At most one blocking readline runs at a time, on a daemon thread. A
    caller that stops waiting (an aborted permission prompt) leaves that
    read in flight, and the next caller receives its line instead of
    starting a second reader.
    """

    def __init__(self, console: Console, stream: TextIO | None = None) -> None:
        self._console = console
        self._stream = stream
        self._pending: asyncio.Future | None = None

    def _start_read(self) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        stream = self._stream or sys.stdin

        def _settle(line: str | None, exc: BaseException | None) -> None:
            if future.done():
                return
            if exc is not None:
                future.set_exception(exc)
            else:
                future.set_result(line)

        def _read() -> None:
            try:
                line, exc = stream.readline(), None
            except Exception as err:
                line, exc = None, err
            try:
                loop.call_soon_threadsafe(_settle, line, exc)
            except RuntimeError:
                # event loop already closed; nobody is waiting for this line
                pass

        threading.Thread(target=_read, name="clawd-stdin", daemon=True).start()
        return future

    async def readline(self, prompt: Text | str) -> str:
        """Print *prompt* and return the next line without its newline.

        Raises EOFError at end of input.
        """
        self._console.print(prompt, end="")
        if self._pending is None or self._pending.cancelled():
            self._pending = self._start_read()
        try:
            line = await asyncio.shield(self._pending)
        except asyncio.CancelledError:
            # the read stays pending for the next caller
            raise
        except Exception:
            self._pending = None
            raise
        self._pending = None
        if not line:
            raise EOFError
        return line.rstrip("\r\n")


def make_permission_callback(console: Console, reader: LineReader):
    """Permission prompt that reads its answer through *reader*."""

    prompt = Text.assemble(
        "Allow? [y] once, [a] for this session, [n] deny ",
        ("(y/a/n) ", "magenta"),
        ("(n)", "cyan"),
        ": ",
    )

    async def _ask(request: PermissionRequest) -> PermissionChoice:
        summary = _summarize_args(request.tool_input, limit=400)
        console.print(
            Text.assemble(
                ("Permission required: ", "bold yellow"),
                (request.tool_name, "bold"),
                (f"  {summary}" if summary else "", ""),
            )
        )
        if request.reason:
            console.print(Text(f"  ({request.reason})", style="dim"))
        while True:
            try:
                answer = (await reader.readline(prompt)).strip().lower() or "n"
            except EOFError:
                return PermissionChoice.DENY
            if answer in _PERMISSION_ANSWERS:
                return _PERMISSION_ANSWERS[answer]
            console.print(Text("Please select one of the available options", style="prompt.invalid"))

    return _ask


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clawd",
        description="Agentic coding assistant for the terminal",
    )
    parser.add_argument(
        "prompt",
        nargs="?",
        default=None,
        help="Run a single prompt and exit (omit for an interactive session)",
    )
    parser.add_argument(
        "-p", "--print",
        dest="print_prompt",
        default=None,
        help="One-shot mode: run this prompt, print the response, exit",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Model id (default: from config)",
    )
    parser.add_argument(
        "--permission-mode",
        default=None,
        help="default, plan, acceptEdits, dontAsk or bypassPermissions",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Maximum model calls per user message (default: 50)",
    )
    parser.add_argument(
        "--cwd",
        default=None,
        help="Working directory for tools (default: current dir)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML settings file (default: .clawd/settings.yaml, then ~/.clawd/settings.yaml)",
    )
    parser.add_argument(
        "--allow",
        action="append",
        default=[],
        metavar="RULE",
        help='Pre-approve a tool rule, e.g. "Read" or "Bash(git *)" (repeatable)',
    )
    parser.add_argument(
        "--deny",
        action="append",
        default=[],
        metavar="RULE",
        help='Always ask for a tool rule, e.g. "Bash(rm *)" (repeatable)',
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> EngineConfig:
    """Env, then settings file, then CLI flags."""
    config = EngineConfig.from_env()
    if args.cwd is not None:
        config.cwd = args.cwd

    settings_path = args.config or find_settings_file(config.cwd)
    if settings_path:
        config = load_yaml_config(settings_path, base=config)

    if args.model is not None:
        config.model = args.model
    if args.permission_mode is not None:
        config.permission_mode = parse_permission_mode(args.permission_mode)
    if args.max_iterations is not None:
        config.max_iterations = args.max_iterations
    if args.cwd is not None:
        config.cwd = args.cwd
    if args.allow:
        config.allow_rules = [*config.allow_rules, *args.allow]
    if args.deny:
        config.deny_rules = [*config.deny_rules, *args.deny]
    config.cwd = os.path.abspath(config.cwd)
    return config


def build_agent(
    config: EngineConfig,
    console: Console,
    provider: Any | None = None,
    reader: LineReader | None = None,
) -> AgentLoop:
    """Wire registry, executor, permission engine, provider and loop."""
    reader = reader or LineReader(console)
    registry = build_default_registry(config.cwd)
    executor = ToolExecutor(registry, cwd=config.cwd, timeout=config.tool_timeout_seconds)
    permissions = PermissionEngine(
        mode=config.permission_mode,
        allow=config.allow_rules,
        deny=config.deny_rules,
    )
    if provider is None:
        provider = AnthropicProvider(
            config.model, api_key=config.api_key, base_url=config.base_url,
        )
    return AgentLoop(
        provider,
        registry,
        executor,
        permissions,
        config,
        permission_callback=make_permission_callback(console, reader),
        event_callback=ConsoleRenderer(console),
    )


async def _run_message(agent: AgentLoop, text: str) -> bool:
    """Run one message with Ctrl-C mapped to abort. Returns False on a fatal error."""
    loop = asyncio.get_running_loop()
    handler_installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, agent.abort)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler not supported on this platform")
    try:
        await agent.process_user_message(text)
        return True
    except ClawdError as exc:
        logger.debug("Run failed: %s", exc, exc_info=True)
        return False
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def _allowlist_command(agent: AgentLoop, console: Console, args: list[str]) -> None:
    permissions = agent.permissions
    if not args:
        signatures = sorted(permissions.session_allowlist)
        if not signatures:
            console.print(Text("Session allowlist is empty.", style="dim"))
        for sig in signatures:
            console.print(Text(f"  {sig}", style="dim"), markup=False)
        return

    action = args[0]
    if action not in ("export", "import"):
        console.print(Text("Usage: /allowlist [export|import] [path]", style="yellow"))
        return
    if len(args) > 1:
        path = Path(os.path.expanduser(args[1]))
        if not path.is_absolute():
            path = Path(agent.config.cwd) / path
    else:
        path = Path(agent.config.cwd) / ".clawd" / ALLOWLIST_FILENAME
    store = PermissionStore(path)
    try:
        if action == "export":
            count = store.export(permissions)
            console.print(Text(f"Exported {count} signature(s) to {path}", style="dim"))
        else:
            count = store.import_into(permissions)
            console.print(Text(f"Imported {count} signature(s) from {path}", style="dim"))
    except OSError as exc:
        console.print(Text(f"Error: {exc}", style="bold red"))


def handle_command(agent: AgentLoop, console: Console, line: str) -> bool:
    """Run a slash command. Returns False when *line* is not one."""
    parts = line.split()
    name = parts[0] if parts else ""
    if name == "/help":
        console.print(_HELP, markup=False)
    elif name == "/clear":
        agent.reset()
        console.print(Text("Conversation cleared.", style="dim"))
    elif name == "/mode":
        if len(parts) > 1:
            agent.permissions.set_mode(parse_permission_mode(parts[1]))
        console.print(Text(f"Permission mode: {agent.permissions.mode.value}", style="dim"))
    elif name == "/allowlist":
        _allowlist_command(agent, console, parts[1:])
    else:
        return False
    return True


async def _interactive(agent: AgentLoop, console: Console, reader: LineReader) -> int:
    console.print(Text(f"clawd {__version__}  cwd: {agent.config.cwd}  (/help for commands)", style="dim"))
    prompt = Text("> ", style="bold cyan")
    while True:
        try:
            line = await reader.readline(prompt)
        except (EOFError, KeyboardInterrupt):
            console.print()
            return 0
        line = line.strip()
        if not line:
            continue
        if line in ("/exit", "/quit"):
            return 0
        if handle_command(agent, console, line):
            continue
        await _run_message(agent, line)


async def _main_async(args: argparse.Namespace, config: EngineConfig) -> int:
    console = Console()
    reader = LineReader(console)
    agent = build_agent(config, console, reader=reader)
    try:
        prompt = args.print_prompt or args.prompt
        if prompt:
            return 0 if await _run_message(agent, prompt) else 1
        return await _interactive(agent, console, reader)
    finally:
        await agent.provider.shutdown()


def main() -> None:
    args = build_parser().parse_args()

    try:
        config = resolve_config(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: failed to load settings: {exc}", file=sys.stderr)
        sys.exit(2)

    level = logging.DEBUG if args.verbose else getattr(
        logging, str(config.log_level).upper(), logging.WARNING
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        code = asyncio.run(_main_async(args, config))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
