"""Persistent, line-delimited input history."""

from __future__ import annotations

import json
import os
from pathlib import Path

DEFAULT_HISTORY_PATH = "~/.config/k8s-agent/history/history.txt"
DEFAULT_JSON_PATH = "~/.config/k8s-agent/history/history.json"


def expand_path(path: str | os.PathLike) -> str:
    """Expand a leading ``~/`` to the user's home directory."""
    text = os.fspath(path)
    if text.startswith("~/"):
        try:
            home = Path.home()
        except RuntimeError:
            return text
        return str(home / text[2:])
    return text


class HistoryStore:
    """Reads and writes input history, one entry per line."""

    def __init__(self, path: str | os.PathLike = DEFAULT_HISTORY_PATH) -> None:
        self.path = os.fspath(path)

    @property
    def _file(self) -> Path:
        return Path(expand_path(self.path))

    def load(self) -> list[str]:
        """Return the stored entries; a missing file means no history."""
        try:
            data = self._file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        return [line for line in data.strip().split("\n") if line]

    def save(self, entries) -> None:
        """Replace the stored history with ``entries``."""
        target = self._file
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as handle:
            for entry in entries:
                handle.write(f"{entry}\n")

    def append(self, entry: str) -> None:
        """Add one entry to the end of the stored history."""
        target = self._file
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("a", encoding="utf-8") as handle:
            handle.write(f"{entry}\n")

    def clear(self) -> None:
        """Delete the history file if it exists."""
        self._file.unlink(missing_ok=True)

    def migrate_from_json(self, json_path: str | os.PathLike = DEFAULT_JSON_PATH) -> None:
        """Move a legacy JSON array of entries into this store."""
        source = Path(expand_path(json_path))
        if not source.exists():
            return
        entries = json.loads(source.read_text(encoding="utf-8"))
        if entries is None:
            entries = []
        if not isinstance(entries, list) or not all(isinstance(e, str) for e in entries):
            raise ValueError(f"{source}: expected a JSON array of strings")
        self.save(entries)
        try:
            source.unlink()
        except OSError:
            pass