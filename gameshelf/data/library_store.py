"""Persistent library of confirmed games."""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable
from dataclasses import asdict, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from gameshelf.models.library_entry import LibraryEntry
from gameshelf.models.metadata import ARTWORK_FIELDS, TEXT_FIELDS
from gameshelf.models.staged_game import StagedGame
from gameshelf.utils import write_json_atomic

_ENTRY_FIELDS = frozenset(f.name for f in fields(LibraryEntry))


def _entry_from_dict(data: dict[str, Any]) -> LibraryEntry:
    """Reconstruct a LibraryEntry, ignoring keys written by newer versions."""
    return LibraryEntry(**{k: v for k, v in data.items() if k in _ENTRY_FIELDS})


def entry_from_staged(staged: StagedGame) -> LibraryEntry:
    """Library record for a confirmed staging entry."""
    candidate = staged.candidate
    entry = LibraryEntry(
        id=staged.game_id,
        title=staged.title or candidate.display_name_guess,
        exe_path=candidate.executable_path or "",
        install_path=candidate.install_path,
        source_kind=candidate.source_kind.value,
        launch_target=candidate.launch.target,
        external_provider=staged.external.provider if staged.external else "",
        external_id=staged.external.provider_id if staged.external else "",
    )
    for name in TEXT_FIELDS + ARTWORK_FIELDS:
        setattr(entry, name, getattr(staged, name))
    return entry


class LibraryStore:
    """Confirmed games, persisted as ``library.json`` and keyed by game id."""

    SCHEMA_VERSION = 1

    def __init__(self, data_dir: Path) -> None:
        self._path = data_dir / "library.json"
        self._games: dict[str, LibraryEntry] = {}
        self._lock = threading.Lock()

    def load(self) -> None:
        """Replace the in-memory library with the file's contents; a missing file is empty."""
        games: dict[str, LibraryEntry] = {}
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            document = {}
        except (OSError, ValueError) as e:
            logger.error(f"Game library {self._path} unreadable, starting empty: {e}")
            document = {}

        stored = document.get("games", {}) if isinstance(document, dict) else {}
        for key, raw in stored.items():
            try:
                games[key] = _entry_from_dict(raw)
            except (TypeError, KeyError) as e:
                logger.warning(f"Skipping malformed library entry '{key}': {e}")
        with self._lock:
            self._games = games

    def save(self) -> None:
        with self._lock:
            document = {
                "version": self.SCHEMA_VERSION,
                "games": {key: asdict(entry) for key, entry in self._games.items()},
            }
        try:
            write_json_atomic(self._path, document)
        except OSError as e:
            logger.error(f"Failed to save game library: {e}")

    def list_all(self) -> list[LibraryEntry]:
        with self._lock:
            return list(self._games.values())

    def get(self, game_id: str) -> LibraryEntry | None:
        with self._lock:
            return self._games.get(game_id)

    def add(self, entry: LibraryEntry) -> None:
        """Add or update an entry."""
        entry.added_at = entry.added_at or datetime.now(timezone.utc).isoformat(timespec="seconds")
        with self._lock:
            self._games[entry.id] = entry

    def remove(self, game_id: str) -> None:
        with self._lock:
            self._games.pop(game_id, None)

    def commit(self, staged_games: Iterable[StagedGame]) -> list[LibraryEntry]:
        """Write confirmed staging entries into the library and save once."""
        added = [entry_from_staged(staged) for staged in staged_games]
        for entry in added:
            self.add(entry)
        if added:
            self.save()
            logger.info(f"Committed {len(added)} game(s) to the library")
        return added

    @property
    def count(self) -> int:
        return len(self._games)
