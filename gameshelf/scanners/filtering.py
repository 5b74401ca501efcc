"""Heuristic game / non-game classifier for generic app inventories."""

from __future__ import annotations

import os
import re
from pathlib import Path

from loguru import logger

# Below this many files an install is treated as a utility
SMALL_INSTALL_FILE_COUNT = 20

# Launch stubs are tiny; real game binaries are not
STUB_EXE_MAX_BYTES = 64 * 1024

_DATA_FILE_MIN_BYTES = 1024 * 1024

_DATA_EXTENSIONS: frozenset[str] = frozenset({
    ".pak", ".ucas", ".utoc", ".dat", ".bin", ".assets", ".resource",
    ".bank", ".bundle", ".wad", ".pck", ".arc", ".big", ".forge", ".rpf",
})

KNOWN_PUBLISHERS: frozenset[str] = frozenset({
    "ea", "activision", "ubisoft", "2k", "square", "squareenix", "rockstar",
    "bethesda", "capcom", "bandai", "bandainamco", "konami", "sega", "warner",
    "obsidian", "ninja", "rare", "inxile", "playground", "coalition", "remedy",
    "compulsion", "sloclap", "astragon", "mojang", "devolver", "paradox",
})

# Package-name prefixes of OS components and common desktop software
SYSTEM_APP_PATTERNS: tuple[str, ...] = (
    "microsoft.windows", "microsoft.office", "microsoft.edge", "microsoft.store",
    "microsoft.skype", "microsoft.msn", "microsoft.bing", "microsoft.photos",
    "microsoft.camera", "microsoft.clock", "microsoft.calculator",
    "microsoft.messaging", "microsoft.notes", "microsoft.mail", "microsoft.people",
    "microsoft.maps", "microsoft.net", "microsoft.vclibs", "microsoft.ui.xaml",
    "microsoft.advertising", "microsoft.services.store", "microsoft.gamingapp",
    "microsoft.gamingservices", "microsoft.xboxapp", "microsoft.xbox",
    "microsoft.zune", "microsoft.getstarted", "microsoft.todos",
    "adobe", "autodesk", "jetbrains", "sublimetext", "vscode", "visualstudio",
    "python", "nodejs", "docker", "videolan", "audacity", "ffmpeg",
)

OEM_VENDORS: frozenset[str] = frozenset({
    "intel", "nvidia", "amd", "realtek", "lenovo", "dell", "hp", "asus", "msi",
    "acer", "razer", "corsair", "logitech", "steelseries", "dolby", "dts",
    "synaptics", "waves", "appleinc", "google",
})

NON_GAME_KEYWORDS: tuple[str, ...] = (
    # media
    "music", "video", "tv", "movie", "movies", "media", "photo", "photos",
    "camera", "gallery", "clipchamp", "paint", "editor", "viewer", "player",
    # system and productivity
    "settings", "config", "update", "updater", "installer", "runtime", "driver",
    "service", "services", "keyboard", "language", "voice", "assistant", "copilot",
    "search", "mail", "outlook", "calendar", "news", "weather", "maps", "clock",
    "calculator", "store", "browser", "onedrive", "onenote", "teams", "office",
    "word", "excel", "powerpoint",
    # support
    "support", "help", "feedback", "repair", "firmware", "backup", "sync",
    "security", "defender", "antivirus", "control panel", "device manager",
    "task manager", "powershell", "terminal", "console", "shell",
    # hardware
    "audio", "chipset", "graphics", "network", "wifi", "bluetooth", "usb",
    # development and archives
    "compiler", "debugger", "ide", "studio", "winrar", "7zip", "archive",
    # utilities
    "tool", "tools", "utility", "helper", "launcher", "optimizer", "cleaner",
    "uninstaller", "manager", "monitor", "converter", "recorder", "codec",
    "directx", "vcredist", "redist", "bootstrapper", "gamelaunchhelper",
    # communication
    "whatsapp", "telegram", "discord", "slack", "zoom", "skype",
    # launchers and overlays
    "battle.net", "battlenet", "steam client", "epic games launcher", "origin",
    "ea desktop", "ubisoft connect", "gog galaxy", "xbox app", "game bar",
    "game overlay", "quick assist", "snipping", "sticky notes",
    "hdr calibration", "insider hub",
)


def _tokens(text: str) -> list[str]:
    # "Microsoft.WindowsCalculator" -> ["microsoft", "windows", "calculator"]
    spaced = re.sub(r"(?<=[a-z])(?=[A-Z])", " ", text)
    return [t for t in re.split(r"[^a-z0-9]+", spaced.lower()) if t]


class GameFilter:
    """
    Secondary classifier used when no registry signal exists.

    Checks run in a fixed order and the first decisive one wins:
    publisher allow-list, system/OEM deny-list, file-count threshold,
    keyword deny-list, shell-stub detection.
    """

    def __init__(
        self,
        publishers: frozenset[str] = KNOWN_PUBLISHERS,
        system_patterns: tuple[str, ...] = SYSTEM_APP_PATTERNS,
        oem_vendors: frozenset[str] = OEM_VENDORS,
        keywords: tuple[str, ...] = NON_GAME_KEYWORDS,
        small_file_count: int = SMALL_INSTALL_FILE_COUNT,
    ) -> None:
        self._publishers = publishers
        self._system_patterns = system_patterns
        self._oem_vendors = oem_vendors
        self._keywords = keywords
        self._small_file_count = small_file_count

    def known_publisher(self, name: str) -> str | None:
        for token in _tokens(name):
            for pub in self._publishers:
                if token == pub or (len(pub) >= 4 and token.startswith(pub)):
                    return pub
        return None

    def is_system_app(self, name: str, exe_name: str = "") -> bool:
        lower_name = name.lower()
        lower_exe = exe_name.lower()
        if any(p in lower_name or p in lower_exe for p in self._system_patterns):
            return True
        return any(t in self._oem_vendors for t in _tokens(name))

    def has_non_game_keyword(self, name: str, exe_name: str = "") -> bool:
        for text in (name, exe_name.lower().removesuffix(".exe")):
            if not text:
                continue
            tokens = _tokens(text)
            joined = f" {' '.join(tokens)} "
            for keyword in self._keywords:
                phrase = " ".join(_tokens(keyword))
                if f" {phrase} " in joined:
                    return True
        return False

    def is_small_install(self, folder: str | Path) -> bool:
        """True when *folder* holds fewer files than the utility threshold."""
        count = 0
        try:
            for _dirpath, _dirnames, filenames in os.walk(folder):
                count += len(filenames)
                if count >= self._small_file_count:
                    return False
        except OSError as e:
            logger.debug(f"Cannot count files in {folder}: {e}")
            return False
        return True

    @staticmethod
    def is_shell_stub(folder: str | Path) -> bool:
        """
        True when *folder* is an app shell rather than a game install.

        That is: no executable at all, or only small launch stubs with no
        game data next to them.
        """
        exe_sizes: list[int] = []
        has_data = False
        try:
            for dirpath, _dirnames, filenames in os.walk(folder):
                for name in filenames:
                    path = os.path.join(dirpath, name)
                    try:
                        size = os.path.getsize(path)
                    except OSError:
                        continue
                    ext = os.path.splitext(name)[1].lower()
                    if ext == ".exe":
                        exe_sizes.append(size)
                    elif ext in _DATA_EXTENSIONS or size >= _DATA_FILE_MIN_BYTES:
                        has_data = True
        except OSError as e:
            logger.debug(f"Cannot inspect {folder}: {e}")
            return False

        if not exe_sizes:
            return True
        return all(s < STUB_EXE_MAX_BYTES for s in exe_sizes) and not has_data

    def is_likely_non_game(
        self,
        name: str,
        folder_path: str | Path | None = None,
        exe_name: str = "",
    ) -> bool:
        """Return True if the app should be excluded from the candidate list."""
        publisher = self.known_publisher(name)
        if publisher:
            logger.debug(f"Keeping {name}: known publisher '{publisher}'")
            return False

        if self.is_system_app(name, exe_name):
            logger.debug(f"Excluding {name}: system/OEM app")
            return True

        if folder_path is not None and self.is_small_install(folder_path):
            logger.debug(f"Excluding {name}: fewer than {self._small_file_count} files")
            return True

        if self.has_non_game_keyword(name, exe_name):
            logger.debug(f"Excluding {name}: non-game keyword")
            return True

        if folder_path is not None and self.is_shell_stub(folder_path):
            logger.debug(f"Excluding {name}: shell stub without game data")
            return True

        return False
