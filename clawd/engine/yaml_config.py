"""YAML settings loader.

Settings are looked up in the project first, then in the user's home:

    <cwd>/.clawd/settings.yaml
    ~/.clawd/settings.yaml

Example YAML:
    engine:
      model: claude-sonnet-4-20250514
      max_tokens: 8192
      max_iterations: 50
      tool_timeout_seconds: 120
      log_level: INFO

    permissions:
      mode: acceptEdits
      allow:
        - Read
        - "Bash(git status)"
        - "Bash(npm run *)"
      deny:
        - "Bash(git push *)"

Values present in the file override the ones already on the base
config (usually EngineConfig.from_env()). CLI flags are applied last
by the caller.
"""
from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import yaml

from .config import EngineConfig, parse_permission_mode

logger = logging.getLogger(__name__)

SETTINGS_DIRNAME = ".clawd"
SETTINGS_FILENAME = "settings.yaml"

_ENGINE_FIELDS: dict[str, type] = {
    "model": str,
    "max_tokens": int,
    "system_prompt": str,
    "cwd": str,
    "max_iterations": int,
    "max_messages": int,
    "tool_timeout_seconds": float,
    "max_retries": int,
    "retry_base_delay_seconds": float,
    "retry_max_delay_seconds": float,
    "base_url": str,
    "log_level": str,
}


def global_settings_path() -> Path:
    """Return the user-level settings path (~/.clawd/settings.yaml)."""
    return Path.home() / SETTINGS_DIRNAME / SETTINGS_FILENAME


def find_settings_file(cwd: str | Path) -> Path | None:
    """Return the first settings file that exists, project before global."""
    project = Path(cwd) / SETTINGS_DIRNAME / SETTINGS_FILENAME
    for candidate in (project, global_settings_path()):
        if candidate.is_file():
            logger.debug("find_settings_file: using %s", candidate)
            return candidate
    return None


def _as_rule_list(value: object, section: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value if str(v).strip()]
    logger.warning("permissions.%s must be a list, got %s", section, type(value).__name__)
    return []


def load_yaml_config(
    path: str | Path,
    base: EngineConfig | None = None,
) -> EngineConfig:
    """Load a YAML settings file and overlay it on *base*.

    Raises FileNotFoundError / yaml.YAMLError for an unreadable file so
    the CLI can report it; unknown keys are logged and ignored.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error(
            "load_yaml_config: settings file not found at %s", path.absolute()
        )
        raise
    except yaml.YAMLError as exc:
        logger.error("load_yaml_config: YAML parse error in %s: %s", path, exc)
        raise

    if not isinstance(raw, dict):
        logger.warning("load_yaml_config: %s is not a mapping, ignoring", path)
        raw = {}

    top_sections = sorted(raw.keys())
    logger.info(
        "Parsed YAML settings %s, sections: %s",
        path, ", ".join(top_sections) if top_sections else "(empty)",
    )

    config = dataclasses.replace(base) if base is not None else EngineConfig()

    # ── Engine ─────────────────────────────────────────────────
    engine_raw = raw.get("engine", {}) or {}
    for key, value in engine_raw.items():
        caster = _ENGINE_FIELDS.get(key)
        if caster is None:
            logger.warning("load_yaml_config: unknown engine key %r ignored", key)
            continue
        if value is None:
            continue
        try:
            setattr(config, key, caster(value))
        except (TypeError, ValueError):
            logger.warning(
                "load_yaml_config: bad value for engine.%s: %r", key, value
            )

    # ── Permissions ────────────────────────────────────────────
    perms_raw = raw.get("permissions", {}) or {}
    if "mode" in perms_raw:
        config.permission_mode = parse_permission_mode(str(perms_raw["mode"]))
    if "allow" in perms_raw:
        config.allow_rules = [
            *config.allow_rules,
            *_as_rule_list(perms_raw.get("allow"), "allow"),
        ]
    if "deny" in perms_raw:
        config.deny_rules = [
            *config.deny_rules,
            *_as_rule_list(perms_raw.get("deny"), "deny"),
        ]

    return config
