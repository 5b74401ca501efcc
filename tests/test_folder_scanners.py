"""Tests for the manual-folder and Steam library scanners."""

from __future__ import annotations

from pathlib import Path

import pytest

from gameshelf.models.scan_candidate import LaunchKind, SourceKind
from gameshelf.scanners.base import ScanRootError, SourceScanner
from gameshelf.scanners.manual import ManualFolderScanner
from gameshelf.scanners.steam import SteamLibraryScanner


def _touch(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _manifest(app_id: str, name: str, installdir: str, state: int = 4) -> str:
    return f"""
"AppState"
{{
    "appid"        "{app_id}"
    "name"         "{name}"
    "StateFlags"   "{state}"
    "installdir"   "{installdir}"
}}
"""


class TestManualFolderScanner:
    def test_depth_zero_is_the_folder_itself(self, tmp_path: Path) -> None:
        game = tmp_path / "Portal"
        _touch(game / "portal.exe")
        scanner = ManualFolderScanner([{"path": str(game), "depth": 0}])

        candidates = scanner.scan()
        assert len(candidates) == 1
        assert candidates[0].display_name_guess == "Portal"
        assert candidates[0].source_kind == SourceKind.MANUAL_FOLDER
        assert candidates[0].launch.kind == LaunchKind.EXECUTABLE

    def test_depth_one_lists_subfolders(self, tmp_path: Path) -> None:
        _touch(tmp_path / "Alpha" / "alpha.exe")
        _touch(tmp_path / "Beta" / "bin" / "beta.exe")
        _touch(tmp_path / "Docs" / "readme.txt")
        _touch(tmp_path / ".hidden" / "x.exe")

        candidates = ManualFolderScanner([{"path": str(tmp_path), "depth": 1}]).scan()
        assert [c.display_name_guess for c in candidates] == ["Alpha", "Beta"]

    def test_steam_appid_file(self, tmp_path: Path) -> None:
        _touch(tmp_path / "TF2" / "hl2.exe")
        _touch(tmp_path / "TF2" / "steam_appid.txt", "440\n")

        candidate = ManualFolderScanner().scan(tmp_path)[0]
        assert candidate.platform_specific_id == "440"
        assert candidate.qualified_id == "steam-440"

    def test_missing_configured_folder_is_skipped(self, tmp_path: Path) -> None:
        _touch(tmp_path / "Alpha" / "alpha.exe")
        scanner = ManualFolderScanner([
            {"path": str(tmp_path / "gone"), "depth": 1},
            {"path": str(tmp_path), "depth": 1},
        ])
        assert len(scanner.scan()) == 1

    def test_validate_root(self, tmp_path: Path) -> None:
        assert SourceScanner.validate_root(tmp_path) == tmp_path
        with pytest.raises(ScanRootError):
            SourceScanner.validate_root(tmp_path / "gone")
        file_root = _touch(tmp_path / "file.txt")
        with pytest.raises(ScanRootError):
            SourceScanner.validate_root(file_root)


class TestSteamLibraryScanner:
    @pytest.fixture
    def steam(self, tmp_path: Path) -> Path:
        steam = tmp_path / "Steam"
        extra = tmp_path / "Library2"
        apps = steam / "steamapps"
        _touch(apps / "libraryfolders.vdf", f"""
"libraryfolders"
{{
    "0"
    {{
        "path"    "{steam.as_posix()}"
        "label"   ""
    }}
    "1"
    {{
        "path"    "{extra.as_posix()}"
    }}
}}
""")
        _touch(apps / "appmanifest_440.acf", _manifest("440", "Team Fortress 2", "Team Fortress 2"))
        _touch(apps / "common" / "Team Fortress 2" / "hl2.exe")
        _touch(apps / "appmanifest_1.acf", '"AppState" {')

        extra_apps = extra / "steamapps"
        _touch(extra_apps / "appmanifest_620.acf", _manifest("620", "Portal 2", "Portal 2"))
        _touch(extra_apps / "appmanifest_228980.acf", _manifest("228980", "Steamworks Common Redistributables", "Steamworks Shared"))
        _touch(extra_apps / "appmanifest_570.acf", _manifest("570", "Dota 2", "dota 2 beta", state=6))
        return steam

    def test_library_folders(self, steam: Path, tmp_path: Path) -> None:
        folders = SteamLibraryScanner().library_folders(steam)
        assert folders == [steam, tmp_path / "Library2"]

    def test_scan(self, steam: Path) -> None:
        candidates = {c.platform_specific_id: c for c in SteamLibraryScanner(steam).scan()}

        # 228980 is a redistributable, 570 needs an update, appmanifest_1 is malformed
        assert set(candidates) == {"440", "620"}

        tf2 = candidates["440"]
        assert tf2.source_kind == SourceKind.STEAM_LIBRARY
        assert tf2.display_name_guess == "Team Fortress 2"
        assert tf2.launch.kind == LaunchKind.URI
        assert tf2.launch.target == "steam://rungameid/440"
        assert tf2.executable_path.endswith("hl2.exe")
        assert tf2.qualified_id == "steam-440"

        # Installed folder absent: still a candidate, without an executable
        assert candidates["620"].executable_path is None

    def test_old_libraryfolders_format(self, tmp_path: Path) -> None:
        steam = tmp_path / "Steam"
        extra = tmp_path / "Games"
        extra.mkdir()
        _touch(steam / "steamapps" / "libraryfolders.vdf", f"""
"LibraryFolders"
{{
    "TimeNextStatsReport"  "1234"
    "1"  "{extra.as_posix()}"
}}
""")
        assert SteamLibraryScanner().library_folders(steam) == [steam, extra]

    def test_missing_steam_folder(self, tmp_path: Path) -> None:
        assert SteamLibraryScanner(tmp_path / "nope").scan() == []

    def test_manifest_with_platform_conditional(self, tmp_path: Path) -> None:
        steam = tmp_path / "Steam"
        _touch(steam / "steamapps" / "appmanifest_440.acf", """
// written by the Steam client
"AppState"
{
    "appid"        "440"
    "name"         "Team Fortress 2" [$WIN32]
    "StateFlags"   "4"
    "installdir"   "Team Fortress 2"
    "UserConfig"
    {
        "language"     "english"
    }
}
""")
        candidates = SteamLibraryScanner(steam).scan()
        assert [c.display_name_guess for c in candidates] == ["Team Fortress 2"]
        assert candidates[0].platform_specific_id == "440"

    def test_malformed_files_are_skipped(self, tmp_path: Path) -> None:
        steam = tmp_path / "Steam"
        apps = steam / "steamapps"
        _touch(apps / "libraryfolders.vdf", '"libraryfolders"\n{\n    "0"\n    {\n')
        _touch(apps / "appmanifest_1.acf", '"AppState"\n{\n    "appid"    "1"\n')
        _touch(apps / "appmanifest_620.acf", _manifest("620", "Portal 2", "Portal 2"))

        assert SteamLibraryScanner().library_folders(steam) == [steam]
        assert [c.platform_specific_id for c in SteamLibraryScanner(steam).scan()] == ["620"]
