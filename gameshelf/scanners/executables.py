"""Executable discovery inside a game installation tree."""

from __future__ import annotations

import os
import re
from pathlib import Path

from loguru import logger

DEFAULT_MAX_DEPTH = 20

# Game-Pass titles are started through this helper; it is the correct entry point.
LAUNCH_HELPER = "gamelaunchhelper.exe"

# Helper binaries that are never the game itself
_EXCLUDED_EXE_NAMES: frozenset[str] = frozenset({
    "bootstrapper.exe",
    "crashreportclient.exe",
    "crashpad_handler.exe",
    "unitycrashhandler32.exe",
    "unitycrashhandler64.exe",
    "embark-crash-helper.exe",
    "battlenet.overlay.runtime.exe",
    "blizzardbrowser.exe",
    "blizzarderror.exe",
    "dxsetup.exe",
    "directxsetup.exe",
    "vc_redist.x64.exe",
    "vc_redist.x86.exe",
    "dotnetfx.exe",
    "ueprereqsetup_x64.exe",
})

# Installer / updater / bootstrapper filename patterns
_EXCLUDED_EXE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        r"uninstall",
        r"^unins\d+",
        r"setup",
        r"install",
        r"updater",
        r"bootstrap",
        r"crash",
        r"redist",
        r"prereq",
        r"cleanup",
        r"repair",
        r"launcher",
    )
)

# Directory names never descended into
_SKIPPED_DIR_NAMES: frozenset[str] = frozenset({
    ".git",
    "node_modules",
    "system volume information",
    "__installer",
    "_commonredist",
    "commonredist",
    "redist",
    "redistributables",
    "directx",
    "vcredist",
    "support",
})


def is_launch_helper(path: str | Path) -> bool:
    return Path(path).name.lower() == LAUNCH_HELPER


def is_excluded_executable(file_name: str) -> bool:
    """True for installer/updater/helper binaries; the launch helper is kept."""
    lower = file_name.lower()
    if lower == LAUNCH_HELPER:
        return False
    if lower in _EXCLUDED_EXE_NAMES:
        return True
    stem = lower[:-4] if lower.endswith(".exe") else lower
    return any(p.search(stem) for p in _EXCLUDED_EXE_PATTERNS)


def _skip_directory(name: str) -> bool:
    lower = name.lower()
    return lower.startswith("$") or lower in _SKIPPED_DIR_NAMES or "wingdk" in lower


def find_executables(root: str | Path, max_depth: int = DEFAULT_MAX_DEPTH) -> list[Path]:
    """
    Walk *root* up to *max_depth* directory levels and return candidate executables.

    Unreadable directories are skipped.  Symlinked directories are not followed,
    so link cycles cannot extend the walk.
    """
    root = Path(root)
    found: list[Path] = []
    stack: list[tuple[Path, int]] = [(root, 0)]

    while stack:
        current, depth = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            logger.debug(f"Skipping unreadable directory {current}: {e}")
            continue

        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    if depth < max_depth and not _skip_directory(entry.name):
                        stack.append((Path(entry.path), depth + 1))
                elif entry.is_file() and entry.name.lower().endswith(".exe"):
                    if is_excluded_executable(entry.name):
                        logger.trace(f"Excluded executable: {entry.path}")
                        continue
                    found.append(Path(entry.path))
            except OSError as e:
                logger.debug(f"Skipping unreadable entry {entry.path}: {e}")

    return found


def _preference_key(root: Path, exe: Path) -> tuple[int, int, int, str]:
    try:
        rel = exe.relative_to(root)
    except ValueError:
        rel = exe
    parent_parts = [p.lower() for p in rel.parts[:-1]]
    return (
        0 if is_launch_helper(exe) else 1,
        0 if "content" in parent_parts else 1,
        len(rel.parts) - 1,
        str(rel).lower(),
    )


def pick_main_executable(root: str | Path, executables: list[Path]) -> Path | None:
    """
    Choose the entry point among *executables*.

    Launch helper first, then anything under a ``content`` segment, then the
    shallowest path (name order breaks remaining ties).
    """
    if not executables:
        return None
    root = Path(root)
    return min(executables, key=lambda exe: _preference_key(root, exe))


def find_main_executable(root: str | Path, max_depth: int = DEFAULT_MAX_DEPTH) -> Path | None:
    """Walk *root* and return the preferred executable, or None."""
    return pick_main_executable(root, find_executables(root, max_depth))
