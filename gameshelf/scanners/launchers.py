"""Install-location detection for PC launchers (registry first, then well-known paths)."""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable
from pathlib import Path

from loguru import logger

# (hive name, key path, value name), tried in order
STEAM_REGISTRY_VALUES: tuple[tuple[str, str, str], ...] = (
    ("HKEY_CURRENT_USER", r"Software\Valve\Steam", "SteamPath"),
    ("HKEY_LOCAL_MACHINE", r"SOFTWARE\WOW6432Node\Valve\Steam", "InstallPath"),
    ("HKEY_LOCAL_MACHINE", r"SOFTWARE\Valve\Steam", "InstallPath"),
)
STEAM_DEFAULT_PATHS: tuple[str, ...] = (
    "C:\\Program Files (x86)\\Steam",
    "C:\\Program Files\\Steam",
    str(Path.home() / ".steam" / "steam"),
    str(Path.home() / ".local" / "share" / "Steam"),
)

# AppDataPath points at ...\EpicGamesLauncher\Data\, manifests live beneath it
EPIC_REGISTRY_VALUES: tuple[tuple[str, str, str], ...] = (
    ("HKEY_LOCAL_MACHINE", r"SOFTWARE\WOW6432Node\Epic Games\EpicGamesLauncher", "AppDataPath"),
    ("HKEY_LOCAL_MACHINE", r"SOFTWARE\Epic Games\EpicGamesLauncher", "AppDataPath"),
)
EPIC_DEFAULT_MANIFESTS = "C:\\ProgramData\\Epic\\EpicGamesLauncher\\Data\\Manifests"

RegistryReader = Callable[[str, str, str], "str | None"]


def read_registry_value(hive: str, key: str, value: str) -> str | None:
    """String value from the Windows registry; None off Windows or when absent."""
    if sys.platform != "win32":
        return None
    import winreg

    try:
        with winreg.OpenKey(getattr(winreg, hive), key) as handle:
            data, _kind = winreg.QueryValueEx(handle, value)
    except OSError:
        return None
    return data if isinstance(data, str) and data else None


def _first_existing(
    registry_values: Iterable[tuple[str, str, str]],
    default_paths: Iterable[str],
    reader: RegistryReader,
    suffix: str = "",
) -> Path | None:
    for hive, key, value in registry_values:
        raw = reader(hive, key, value)
        if raw:
            path = Path(raw) / suffix if suffix else Path(raw)
            if path.is_dir():
                return path
    for raw in default_paths:
        path = Path(raw)
        if path.is_dir():
            return path
    return None


def detect_steam_path(
    reader: RegistryReader = read_registry_value,
    default_paths: Iterable[str] = STEAM_DEFAULT_PATHS,
) -> Path | None:
    """The Steam client folder, or None when Steam is not installed."""
    path = _first_existing(STEAM_REGISTRY_VALUES, default_paths, reader)
    if path is None:
        logger.debug("Steam installation not found")
    else:
        logger.info(f"Steam detected at {path}")
    return path


def detect_epic_manifests(
    reader: RegistryReader = read_registry_value,
    default_paths: Iterable[str] = (EPIC_DEFAULT_MANIFESTS,),
) -> Path | None:
    """The Epic Games Launcher manifest folder, or None."""
    path = _first_existing(EPIC_REGISTRY_VALUES, default_paths, reader, suffix="Manifests")
    if path is None:
        logger.debug("Epic Games Launcher manifests not found")
    else:
        logger.info(f"Epic Games manifests detected at {path}")
    return path
