"""Epic Games Launcher scanner: one JSON ``*.item`` manifest per installed game."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger

from gameshelf.models.scan_candidate import LaunchKind, LaunchSpec, ScanCandidate, SourceKind
from gameshelf.scanners.base import SourceScanner
from gameshelf.scanners.executables import DEFAULT_MAX_DEPTH, find_executables, pick_main_executable

# Launcher components and engine installs that carry manifests too
EXCLUDED_APP_NAMES: frozenset[str] = frozenset({"UE", "UnrealEngine", "EpicGamesLauncher"})


class EpicManifestScanner(SourceScanner):
    """Installed Epic games, read from the launcher's manifest folder."""

    source_kind = SourceKind.EPIC_MANIFEST

    def __init__(self, manifests_dir: str | Path | None = None, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self._manifests_dir = Path(manifests_dir) if manifests_dir else None
        self._max_depth = max_depth

    @property
    def name(self) -> str:
        return "epic"

    @property
    def default_root(self) -> Path | None:
        return self._manifests_dir

    def _scan(self, root: Path | None) -> list[ScanCandidate]:
        if root is None or not root.is_dir():
            logger.debug(f"{self.name}: manifest folder {root} not present")
            return []

        candidates: list[ScanCandidate] = []
        seen: set[str] = set()
        for manifest in sorted(root.glob("*.item")):
            candidate = self._read_manifest(manifest)
            if candidate is None or candidate.platform_specific_id in seen:
                continue
            seen.add(candidate.platform_specific_id)
            candidates.append(candidate)
        return candidates

    def _read_manifest(self, manifest: Path) -> ScanCandidate | None:
        try:
            data: dict[str, Any] = json.loads(manifest.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"{self.name}: skipping malformed manifest {manifest.name}: {e}")
            return None
        if not isinstance(data, dict):
            return None

        app_name = str(data.get("AppName") or "")
        title = str(data.get("DisplayName") or "").strip()
        install = str(data.get("InstallLocation") or "")
        if not app_name or not title or not install:
            logger.warning(f"{self.name}: manifest {manifest.name} lacks AppName, DisplayName or InstallLocation")
            return None
        if app_name in EXCLUDED_APP_NAMES or data.get("bIsIncompleteInstall"):
            logger.debug(f"{self.name}: skipping {title} ({app_name})")
            return None

        install_path = Path(install)
        if not install_path.is_dir():
            logger.debug(f"{self.name}: {title} install folder {install_path} is gone")
            return None

        exe = None
        launch_exe = str(data.get("LaunchExecutable") or "")
        if launch_exe and (install_path / launch_exe).is_file():
            exe = install_path / launch_exe
        else:
            exe = pick_main_executable(install_path, find_executables(install_path, self._max_depth))

        return ScanCandidate(
            source_kind=self.source_kind,
            display_name_guess=title,
            install_path=str(install_path),
            executable_path=str(exe) if exe else None,
            platform_specific_id=app_name,
            launch=LaunchSpec(
                LaunchKind.URI,
                f"com.epicgames.launcher://apps/{app_name}?action=launch&silent=true",
            ),
        )
