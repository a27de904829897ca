"""Explicit export/import of the session allowlist.

The allowlist is never written implicitly. A caller that wants it to
survive the process exports it here and imports it on the next start.
The file is a sorted JSON list of signatures.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from .manager import PermissionEngine

logger = logging.getLogger(__name__)

FILENAME = "allowed_tools.json"


class PermissionStore:
    """Load and save session-allowlist signatures."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> set[str]:
        """Load signatures from the file; missing or corrupt files give an empty set."""
        if not self._path.exists():
            return set()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            if isinstance(data, list):
                return {str(s) for s in data if s}
            logger.warning("Ignoring %s: expected a JSON list", self._path)
        except (json.JSONDecodeError, OSError):
            logger.warning("Failed to load %s", self._path)
        return set()

    def save(self, signatures: set[str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(sorted(signatures), indent=2) + "\n", encoding="utf-8"
        )

    def export(self, engine: PermissionEngine) -> int:
        """Write the engine's allowlist. Returns the number of signatures."""
        signatures = engine.session_allowlist
        self.save(signatures)
        logger.info("Exported %d allowlist signature(s) to %s", len(signatures), self._path)
        return len(signatures)

    def import_into(self, engine: PermissionEngine) -> int:
        """Merge stored signatures into the engine's allowlist."""
        signatures = self.load()
        engine.allow_signatures(signatures)
        logger.info("Imported %d allowlist signature(s) from %s", len(signatures), self._path)
        return len(signatures)
