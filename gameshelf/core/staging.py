"""Staging queue — discovered games awaiting confirmation."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from typing import Any

from loguru import logger

from gameshelf.models.metadata import PartialMetadata
from gameshelf.models.provider_match import ProviderMatch
from gameshelf.models.scan_candidate import ScanCandidate
from gameshelf.models.staged_game import TRANSITIONS, ExternalRef, StagedGame, StageStatus

# Listener signature: (event, staged_game) where event is "added" or "updated"
StagingListener = Callable[[str, StagedGame], None]


class StagingError(Exception):
    """Illegal staging operation (unknown entry or forbidden status change)."""


class StagingQueue:
    """
    Append-only, thread-safe store of ``StagedGame`` records.

    Entries are handed out by reference.  Status changes go through
    ``transition()`` so the state machine is enforced in one place.
    """

    def __init__(self) -> None:
        self._entries: dict[str, StagedGame] = {}
        self._lock = threading.RLock()
        self._listeners: list[StagingListener] = []

    # ── Listeners ──

    def add_listener(self, listener: StagingListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StagingListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: str, staged: StagedGame) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, staged)
            except Exception as e:
                logger.error(f"Staging listener failed on '{event}': {e}")

    # ── Access ──

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, uuid: str) -> StagedGame | None:
        return self._entries.get(uuid)

    def _require(self, uuid: str) -> StagedGame:
        staged = self._entries.get(uuid)
        if staged is None:
            raise StagingError(f"Unknown staging entry: {uuid}")
        return staged

    def entries(self, status: StageStatus | None = None) -> list[StagedGame]:
        with self._lock:
            items = list(self._entries.values())
        if status is None:
            return items
        return [s for s in items if s.status == status]

    def pending_commit(self) -> list[StagedGame]:
        """Ready entries that the user has not ignored."""
        return [s for s in self.entries(StageStatus.READY) if not s.ignored]

    # ── Mutation ──

    def add(self, candidate: ScanCandidate, game_id: str | None = None) -> StagedGame:
        """Create a pending entry for *candidate*."""
        staged = StagedGame(
            candidate=candidate,
            game_id=game_id or candidate.synthesized_id(),
            title=candidate.display_name_guess,
        )
        with self._lock:
            self._entries[staged.uuid] = staged
        self._notify("added", staged)
        return staged

    def transition(self, uuid: str, status: StageStatus, error: str = "") -> StagedGame:
        """Move an entry to *status*; raises ``StagingError`` if the move is not allowed."""
        with self._lock:
            staged = self._require(uuid)
            if status not in TRANSITIONS[staged.status]:
                raise StagingError(
                    f"Illegal transition {staged.status} -> {status} for '{staged.title}'"
                )
            staged.status = status
            if error:
                staged.error = error
        self._notify("updated", staged)
        return staged

    def update(self, uuid: str, **changes: Any) -> StagedGame:
        """Set fields other than ``status`` on an entry."""
        if "status" in changes:
            raise StagingError("Use transition() to change status")
        with self._lock:
            staged = self._require(uuid)
            for name, value in changes.items():
                if not hasattr(staged, name):
                    raise StagingError(f"StagedGame has no field '{name}'")
                setattr(staged, name, value)
        self._notify("updated", staged)
        return staged

    def apply_metadata(self, uuid: str, metadata: PartialMetadata) -> StagedGame:
        """Copy the populated fields of *metadata* onto an entry."""
        with self._lock:
            staged = self._require(uuid)
            staged.apply_metadata(metadata)
        self._notify("updated", staged)
        return staged

    def ignore(self, uuid: str) -> None:
        self.update(uuid, ignored=True)

    def unignore(self, uuid: str) -> None:
        self.update(uuid, ignored=False)

    def discard(self, uuids: Iterable[str]) -> int:
        """Remove entries (after commit or on user request); returns how many were removed."""
        removed = 0
        with self._lock:
            for uuid in uuids:
                if self._entries.pop(uuid, None) is not None:
                    removed += 1
        return removed

    def rematch(self, uuid: str, match: ProviderMatch) -> StagedGame:
        """
        Re-open an ambiguous or failed entry with a user-chosen match.

        This starts a new run for the entry: it goes back to ``matched`` and
        the pipeline acquires metadata for it again.
        """
        with self._lock:
            staged = self._require(uuid)
            if staged.status not in (StageStatus.AMBIGUOUS, StageStatus.ERROR):
                raise StagingError(f"Cannot rematch '{staged.title}' in status {staged.status}")
            staged.external = ExternalRef(match.provider, match.provider_id, match.storefront_id)
            staged.title = match.title or staged.title
            staged.status = StageStatus.MATCHED
            staged.error = ""
            staged.search_results = []
        self._notify("updated", staged)
        return staged
