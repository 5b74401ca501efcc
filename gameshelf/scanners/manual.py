"""Manual-folder scanner — user-configured game directories."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from loguru import logger

from gameshelf.models.scan_candidate import LaunchKind, LaunchSpec, ScanCandidate, SourceKind
from gameshelf.scanners.base import SourceScanner
from gameshelf.scanners.executables import DEFAULT_MAX_DEPTH, find_executables, pick_main_executable

STEAM_APPID_FILE = "steam_appid.txt"


def read_steam_appid(folder: Path, exe: Path | None = None) -> str | None:
    """Numeric app id from ``steam_appid.txt`` beside the game or its executable."""
    places = [folder]
    if exe is not None and exe.parent != folder:
        places.append(exe.parent)
    for place in places:
        path = place / STEAM_APPID_FILE
        try:
            text = path.read_text(encoding="utf-8", errors="ignore").strip()
        except OSError:
            continue
        if text.isdigit():
            return text
    return None


class ManualFolderScanner(SourceScanner):
    """
    Scans folders listed in ``sources.manual_folders``.

    Each folder has a ``depth``: 0 means the folder itself is one game,
    N >= 1 means every directory N levels below it is a game.
    """

    source_kind = SourceKind.MANUAL_FOLDER

    def __init__(
        self,
        folders: list[dict[str, Any]] | None = None,
        default_depth: int = 1,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._folders = folders or []
        self._default_depth = default_depth
        self._max_depth = max_depth

    @property
    def name(self) -> str:
        return "manual"

    def _scan(self, root: Path | None) -> list[ScanCandidate]:
        if root is not None:
            return self.scan_folder(root, self._default_depth)

        candidates: list[ScanCandidate] = []
        for folder in self._folders:
            candidates.extend(
                self.scan_folder(Path(folder["path"]), int(folder.get("depth", self._default_depth)))
            )
        return candidates

    def scan_folder(self, folder: Path, depth: int) -> list[ScanCandidate]:
        """Candidates for one configured folder; unreadable folders yield []."""
        if not folder.is_dir():
            logger.warning(f"{self.name}: folder not found or not a directory: {folder}")
            return []

        game_dirs = [folder]
        for _ in range(max(0, depth)):
            next_level: list[Path] = []
            for parent in game_dirs:
                try:
                    next_level.extend(
                        p for p in sorted(parent.iterdir(), key=lambda p: p.name.lower())
                        if p.is_dir() and not p.name.startswith((".", "$"))
                    )
                except OSError as e:
                    logger.warning(f"{self.name}: cannot read {parent}: {e}")
            game_dirs = next_level

        candidates = []
        for game_dir in game_dirs:
            candidate = self._scan_game_dir(game_dir)
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    def _scan_game_dir(self, game_dir: Path) -> ScanCandidate | None:
        exe = pick_main_executable(game_dir, find_executables(game_dir, self._max_depth))
        if exe is None:
            logger.debug(f"{self.name}: no executable in {game_dir}")
            return None

        return ScanCandidate(
            source_kind=self.source_kind,
            display_name_guess=game_dir.name,
            install_path=str(game_dir),
            executable_path=str(exe),
            platform_specific_id=read_steam_appid(game_dir, exe),
            launch=LaunchSpec(LaunchKind.EXECUTABLE, str(exe)),
        )
