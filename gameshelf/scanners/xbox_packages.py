"""Registry-platform scanner — UWP / Game-Pass packages under WindowsApps."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path

from loguru import logger

from gameshelf.models.scan_candidate import LaunchKind, LaunchSpec, ScanCandidate, SourceKind
from gameshelf.scanners.base import SourceScanner
from gameshelf.scanners.executables import DEFAULT_MAX_DEPTH, find_executables, pick_main_executable
from gameshelf.scanners.filtering import GameFilter
from gameshelf.scanners.registry import NullRegistryQuery, PlatformRegistryQuery


def parse_package_folder(folder_name: str) -> tuple[str, str] | None:
    """
    Split a package folder name into ``(package_name, family_name)``.

    ``Name_Version_Arch_ResourceId_PublisherHash`` → ``("Name", "Name_PublisherHash")``.
    Returns None for names that are not package folders, and for resource
    packages (language / scale splits) which never hold a game.
    """
    parts = folder_name.split("_")
    if len(parts) != 5 or not parts[0] or not parts[4]:
        return None
    if parts[3]:
        return None
    return parts[0], f"{parts[0]}_{parts[4]}"


def _readable_package_name(package_name: str) -> str:
    # "Microsoft.MinecraftUWP" -> "Minecraft UWP"
    last = package_name.rsplit(".", 1)[-1]
    spaced = re.sub(r"(?<=[a-z])(?=[A-Z0-9])", " ", last)
    return spaced.strip() or package_name


def read_manifest_display_name(package_dir: Path) -> str:
    """DisplayName from AppxManifest.xml, or "" when absent or a resource reference."""
    manifest = package_dir / "AppxManifest.xml"
    if not manifest.is_file():
        return ""
    try:
        tree = ET.parse(manifest)
    except (ET.ParseError, OSError) as e:
        logger.debug(f"Unreadable manifest {manifest}: {e}")
        return ""
    for elem in tree.iter():
        if elem.tag.rsplit("}", 1)[-1] == "DisplayName" and elem.text:
            text = elem.text.strip()
            if text and not text.lower().startswith("ms-resource:"):
                return text
    return ""


class XboxPackageScanner(SourceScanner):
    """
    Emits installed packages that are registered with gaming services.

    When the registry lists at least one package, it is the only positive
    signal: packages outside the list are never emitted.  The heuristic
    ``GameFilter`` is consulted only when the registry exists but lists
    nothing.  Hosts without the registry yield no candidates.
    """

    source_kind = SourceKind.REGISTRY_PLATFORM

    def __init__(
        self,
        packages_root: str | Path | None = None,
        registry: PlatformRegistryQuery | None = None,
        game_filter: GameFilter | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._packages_root = Path(packages_root) if packages_root else None
        self._registry = registry or NullRegistryQuery()
        self._filter = game_filter or GameFilter()
        self._max_depth = max_depth

    @property
    def name(self) -> str:
        return "xbox-packages"

    @property
    def default_root(self) -> Path | None:
        return self._packages_root

    def _scan(self, root: Path | None) -> list[ScanCandidate]:
        if not self._registry.available:
            logger.debug(f"{self.name}: no gaming-services registry on this host")
            return []
        registered = self._registry.query_registered_games()
        if root is None or not root.is_dir():
            logger.debug(f"{self.name}: package root {root} not present")
            return []

        try:
            entries = sorted(root.iterdir(), key=lambda p: p.name.lower())
        except OSError as e:
            logger.warning(f"{self.name}: cannot list {root}: {e}")
            return []

        use_heuristic = not registered
        if use_heuristic:
            logger.info(f"{self.name}: registry lists no packages, using heuristic classifier")

        candidates: list[ScanCandidate] = []
        seen: set[str] = set()
        for entry in entries:
            parsed = parse_package_folder(entry.name)
            if parsed is None:
                continue
            package_name, family = parsed
            if family in seen:
                continue
            try:
                if not entry.is_dir():
                    continue
            except OSError:
                continue

            if not use_heuristic and family not in registered:
                continue

            exe = pick_main_executable(entry, find_executables(entry, self._max_depth))

            if use_heuristic and self._filter.is_likely_non_game(
                package_name, entry, exe.name if exe else "",
            ):
                continue

            seen.add(family)
            display = read_manifest_display_name(entry) or _readable_package_name(package_name)
            candidates.append(ScanCandidate(
                source_kind=self.source_kind,
                display_name_guess=display,
                install_path=str(entry),
                executable_path=str(exe) if exe else None,
                platform_specific_id=family,
                launch=LaunchSpec(LaunchKind.PACKAGE, f"shell:AppsFolder\\{family}!App"),
            ))
            logger.debug(f"{self.name}: found {display} ({family})")

        return candidates
