"""Steam library scanner: libraryfolders.vdf and appmanifest_*.acf."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import vdf
from loguru import logger

from gameshelf.models.scan_candidate import LaunchKind, LaunchSpec, ScanCandidate, SourceKind
from gameshelf.scanners.base import SourceScanner
from gameshelf.scanners.executables import DEFAULT_MAX_DEPTH, find_executables, pick_main_executable

# Redistributables and runtimes that Steam installs like games
EXCLUDED_APP_IDS: frozenset[str] = frozenset({
    "228980",   # Steamworks Common Redistributables
    "1070560",  # Steam Linux Runtime
    "1391110",  # Steam Linux Runtime - Soldier
    "1493710",  # Proton Experimental
    "1628350",  # Steam Linux Runtime - Sniper
    "2180100",  # Proton Hotfix
})

# appmanifest StateFlags bits
STATE_UPDATE_REQUIRED = 1 << 1
STATE_FULLY_INSTALLED = 1 << 2
STATE_FILES_MISSING = 1 << 5
STATE_FILES_CORRUPT = 1 << 7
STATE_UNINSTALLING = 1 << 11
STATE_DOWNLOADING = 1 << 20

_PROBLEM_STATES = (
    STATE_UPDATE_REQUIRED
    | STATE_FILES_MISSING
    | STATE_FILES_CORRUPT
    | STATE_UNINSTALLING
    | STATE_DOWNLOADING
)


def _get_ci(mapping: dict[str, Any], key: str, default: Any = None) -> Any:
    # Valve files are not consistent about key case
    lower = key.lower()
    for k, v in mapping.items():
        if k.lower() == lower:
            return v
    return default


class SteamLibraryScanner(SourceScanner):
    """Installed Steam apps across every library folder."""

    source_kind = SourceKind.STEAM_LIBRARY

    def __init__(
        self,
        steam_path: str | Path | None = None,
        excluded_app_ids: frozenset[str] = EXCLUDED_APP_IDS,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._steam_path = Path(steam_path) if steam_path else None
        self._excluded = excluded_app_ids
        self._max_depth = max_depth

    @property
    def name(self) -> str:
        return "steam"

    @property
    def default_root(self) -> Path | None:
        return self._steam_path

    def library_folders(self, steam_path: Path) -> list[Path]:
        """The main Steam folder plus every library listed in libraryfolders.vdf."""
        libraries = [steam_path]
        vdf_path = steam_path / "steamapps" / "libraryfolders.vdf"
        if not vdf_path.is_file():
            logger.debug(f"{self.name}: no libraryfolders.vdf at {vdf_path}")
            return libraries

        try:
            parsed = vdf.loads(vdf_path.read_text(encoding="utf-8", errors="replace"))
        except (OSError, SyntaxError, ValueError) as e:
            logger.warning(f"{self.name}: cannot read {vdf_path}: {e}")
            return libraries

        folders = _get_ci(parsed, "libraryfolders", {})
        for key, value in folders.items():
            if not key.isdigit():
                continue
            # Old format: "1" "D:\\SteamLibrary"; new format: "1" { "path" ... }
            raw = value if isinstance(value, str) else _get_ci(value, "path", "")
            if not raw:
                continue
            path = Path(raw)
            if path not in libraries and path.is_dir():
                libraries.append(path)
        return libraries

    def _scan(self, root: Path | None) -> list[ScanCandidate]:
        if root is None or not root.is_dir():
            logger.debug(f"{self.name}: Steam folder {root} not present")
            return []

        candidates: list[ScanCandidate] = []
        seen: set[str] = set()
        for library in self.library_folders(root):
            steamapps = library / "steamapps"
            try:
                manifests = sorted(steamapps.glob("appmanifest_*.acf"))
            except OSError as e:
                logger.warning(f"{self.name}: cannot list {steamapps}: {e}")
                continue
            for manifest in manifests:
                candidate = self._read_manifest(manifest, steamapps)
                if candidate is None or candidate.platform_specific_id in seen:
                    continue
                seen.add(candidate.platform_specific_id)
                candidates.append(candidate)
        return candidates

    def _read_manifest(self, manifest: Path, steamapps: Path) -> ScanCandidate | None:
        try:
            parsed = vdf.loads(manifest.read_text(encoding="utf-8", errors="replace"))
        except (OSError, SyntaxError, ValueError) as e:
            logger.warning(f"{self.name}: skipping malformed manifest {manifest.name}: {e}")
            return None

        state = _get_ci(parsed, "AppState", parsed)
        app_id = str(_get_ci(state, "appid", "")).strip()
        title = str(_get_ci(state, "name", "")).strip()
        if not app_id.isdigit() or not title:
            logger.warning(f"{self.name}: manifest {manifest.name} lacks appid or name")
            return None

        if app_id in self._excluded:
            logger.debug(f"{self.name}: excluded app {title} ({app_id})")
            return None

        try:
            flags = int(_get_ci(state, "StateFlags", "0") or 0)
        except ValueError:
            flags = 0
        if not flags & STATE_FULLY_INSTALLED or flags & _PROBLEM_STATES:
            logger.debug(f"{self.name}: {title} ({app_id}) not fully installed (StateFlags {flags})")
            return None

        install_dir = str(_get_ci(state, "installdir", "") or title)
        install_path = steamapps / "common" / install_dir
        exe = None
        if install_path.is_dir():
            exe = pick_main_executable(
                install_path, find_executables(install_path, self._max_depth),
            )

        return ScanCandidate(
            source_kind=self.source_kind,
            display_name_guess=title,
            install_path=str(install_path),
            executable_path=str(exe) if exe else None,
            platform_specific_id=app_id,
            launch=LaunchSpec(LaunchKind.URI, f"steam://rungameid/{app_id}"),
        )
