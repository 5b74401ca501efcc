"""Fixed-directory scanner — PC Game Pass library root (``XboxGames``)."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

from loguru import logger

from gameshelf.models.scan_candidate import LaunchKind, LaunchSpec, ScanCandidate, SourceKind
from gameshelf.scanners.base import SourceScanner
from gameshelf.scanners.executables import DEFAULT_MAX_DEPTH, find_executables, pick_main_executable
from gameshelf.scanners.franchises import FranchiseMap

# Sub-folders of the library root that are never games
SKIPPED_FOLDER_SUBSTRINGS: tuple[str, ...] = (
    "content",
    "metadata",
    "dlc",
    "pre-order",
    "preorder",
    "gamelaunchhelper",
    "launcher",
    "soundtrack",
    "artbook",
)


def is_skipped_folder(name: str) -> bool:
    lower = name.lower()
    return any(s in lower for s in SKIPPED_FOLDER_SUBSTRINGS)


def read_game_config(game_dir: Path) -> tuple[str, str]:
    """
    ``(identity_name, display_name)`` from ``Content/MicrosoftGame.config``.

    Either value is "" when missing or unusable.
    """
    config_path = game_dir / "Content" / "MicrosoftGame.config"
    if not config_path.is_file():
        return "", ""
    try:
        root = ET.parse(config_path).getroot()
    except (ET.ParseError, OSError) as e:
        logger.debug(f"Unreadable game config {config_path}: {e}")
        return "", ""

    identity = ""
    display = ""
    for elem in root.iter():
        tag = elem.tag.rsplit("}", 1)[-1]
        if tag == "Identity" and not identity:
            identity = elem.get("Name", "")
        elif tag == "ShellVisuals" and not display:
            display = elem.get("DefaultDisplayName", "")
    if display.lower().startswith("ms-resource:"):
        display = ""
    return identity, display


class GamePassDirectoryScanner(SourceScanner):
    """One level of an ``XboxGames`` root; each surviving folder is one game."""

    source_kind = SourceKind.GAME_PASS_DIRECTORY

    def __init__(
        self,
        library_root: str | Path | None = None,
        franchises: FranchiseMap | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._library_root = Path(library_root) if library_root else None
        self._franchises = franchises or FranchiseMap.load()
        self._max_depth = max_depth

    @property
    def name(self) -> str:
        return "gamepass-dir"

    @property
    def default_root(self) -> Path | None:
        return self._library_root

    def _scan(self, root: Path | None) -> list[ScanCandidate]:
        if root is None or not root.is_dir():
            logger.debug(f"{self.name}: library root {root} not present")
            return []

        try:
            entries = sorted(root.iterdir(), key=lambda p: p.name.lower())
        except OSError as e:
            logger.warning(f"{self.name}: cannot list {root}: {e}")
            return []

        candidates: list[ScanCandidate] = []
        for entry in entries:
            try:
                if not entry.is_dir():
                    continue
            except OSError:
                continue
            if is_skipped_folder(entry.name):
                logger.debug(f"{self.name}: skipping non-game folder {entry.name}")
                continue

            candidate = self._scan_game_folder(entry)
            if candidate is not None:
                candidates.append(candidate)

        return candidates

    def _scan_game_folder(self, folder: Path) -> ScanCandidate | None:
        exe = pick_main_executable(folder, find_executables(folder, self._max_depth))
        if exe is None:
            logger.debug(f"{self.name}: no executable in {folder}")
            return None

        identity, config_name = read_game_config(folder)
        mapped = self._franchises.resolve(folder.name)
        if mapped:
            logger.debug(f"{self.name}: '{folder.name}' mapped to '{mapped}'")
        display = mapped or config_name or folder.name

        return ScanCandidate(
            source_kind=self.source_kind,
            display_name_guess=display,
            install_path=str(folder),
            executable_path=str(exe),
            platform_specific_id=identity or None,
            launch=LaunchSpec(LaunchKind.EXECUTABLE, str(exe)),
        )
