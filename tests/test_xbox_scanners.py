"""Tests for the registry-platform and Game-Pass directory scanners."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from gameshelf.models.scan_candidate import LaunchKind, SourceKind
from gameshelf.scanners.franchises import FranchiseMap
from gameshelf.scanners.gamepass_dir import GamePassDirectoryScanner, read_game_config
from gameshelf.scanners.registry import (
    NullRegistryQuery,
    StaticRegistryQuery,
    default_registry_query,
    package_family_name,
)
from gameshelf.scanners.xbox_packages import XboxPackageScanner, parse_package_folder

GAME_PACKAGE = "Contoso.Adventure_1.2.0.0_x64__abc123xyz"
CALCULATOR_PACKAGE = "Microsoft.WindowsCalculator_11.2.0.0_x64__8wekyb3d8bbwe"

MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<Package xmlns="http://schemas.microsoft.com/appx/manifest/foundation/windows10">
  <Properties>
    <DisplayName>{name}</DisplayName>
  </Properties>
</Package>
"""

GAME_CONFIG = """<?xml version="1.0" encoding="utf-8"?>
<Game configVersion="1">
  <Identity Name="{identity}" Publisher="CN=Contoso" Version="1.0.0.0"/>
  <ShellVisuals DefaultDisplayName="{name}"/>
</Game>
"""

FRANCHISES = {
    "call of duty": [
        {"title": "Call of Duty: Modern Warfare III", "released": "2023-11-10"},
        {"title": "Call of Duty: Black Ops 6", "released": "2024-10-25"},
        {"title": "Call of Duty: Black Ops 7", "released": "2025-11-14"},
    ],
}


def _touch(path: Path, size: int = 16) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\0" * size)
    return path


def _package(root: Path, folder: str, display: str = "", big: bool = True) -> Path:
    package = root / folder
    _touch(package / "Game.exe", size=200 * 1024 if big else 1024)
    for i in range(25):
        _touch(package / "data" / f"chunk{i}.pak")
    if display:
        (package / "AppxManifest.xml").write_text(MANIFEST.format(name=display), encoding="utf-8")
    return package


class TestRegistry:
    def test_family_name_from_full_name(self) -> None:
        assert package_family_name(GAME_PACKAGE) == "Contoso.Adventure_abc123xyz"
        assert package_family_name("Contoso.Adventure_abc123xyz") == "Contoso.Adventure_abc123xyz"

    def test_static_query_normalizes(self) -> None:
        query = StaticRegistryQuery([GAME_PACKAGE])
        assert query.query_registered_games() == {"Contoso.Adventure_abc123xyz"}

    def test_configured_packages_override_host(self) -> None:
        query = default_registry_query(["Contoso.Adventure_abc123xyz"])
        assert isinstance(query, StaticRegistryQuery)

    def test_availability(self) -> None:
        assert StaticRegistryQuery().available
        assert not NullRegistryQuery().available


class TestXboxPackageScanner:
    def test_parse_package_folder(self) -> None:
        assert parse_package_folder(GAME_PACKAGE) == ("Contoso.Adventure", "Contoso.Adventure_abc123xyz")
        assert parse_package_folder("Contoso.Adventure_1.2.0.0_neutral_split.scale-100_abc123xyz") is None
        assert parse_package_folder("NotAPackage") is None

    def test_registry_is_the_whitelist(self, tmp_path: Path) -> None:
        _package(tmp_path, GAME_PACKAGE, display="Contoso Adventure")
        _package(tmp_path, "Contoso.OtherGame_1.0.0.0_x64__abc123xyz")
        _package(tmp_path, CALCULATOR_PACKAGE)

        scanner = XboxPackageScanner(
            tmp_path, registry=StaticRegistryQuery(["Contoso.Adventure_abc123xyz"]),
        )
        candidates = scanner.scan()

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.source_kind == SourceKind.REGISTRY_PLATFORM
        assert candidate.display_name_guess == "Contoso Adventure"
        assert candidate.platform_specific_id == "Contoso.Adventure_abc123xyz"
        assert candidate.launch.kind == LaunchKind.PACKAGE
        assert candidate.launch.target == "shell:AppsFolder\\Contoso.Adventure_abc123xyz!App"
        assert candidate.executable_path.endswith("Game.exe")

    def test_registered_but_not_installed(self, tmp_path: Path) -> None:
        _package(tmp_path, GAME_PACKAGE)
        scanner = XboxPackageScanner(tmp_path, registry=StaticRegistryQuery(["Other.Game_zzz"]))
        assert scanner.scan() == []

    def test_heuristic_excludes_deny_listed_app(self, tmp_path: Path) -> None:
        _package(tmp_path, CALCULATOR_PACKAGE)
        scanner = XboxPackageScanner(tmp_path, registry=StaticRegistryQuery())
        assert scanner.scan() == []

    def test_heuristic_keeps_game_install(self, tmp_path: Path) -> None:
        _package(tmp_path, GAME_PACKAGE)
        _package(tmp_path, CALCULATOR_PACKAGE)
        candidates = XboxPackageScanner(tmp_path, registry=StaticRegistryQuery()).scan()
        assert [c.platform_specific_id for c in candidates] == ["Contoso.Adventure_abc123xyz"]
        # No manifest: readable name from the package id
        assert candidates[0].display_name_guess == "Adventure"

    def test_host_without_registry_yields_nothing(self, tmp_path: Path) -> None:
        _package(tmp_path, GAME_PACKAGE, display="Contoso Adventure")
        assert not NullRegistryQuery().available
        assert XboxPackageScanner(tmp_path, registry=NullRegistryQuery()).scan() == []
        # The default registry is absent too unless one is passed in
        assert XboxPackageScanner(tmp_path).scan() == []

    def test_missing_root(self, tmp_path: Path) -> None:
        assert XboxPackageScanner(tmp_path / "nope").scan() == []


class TestFranchiseMap:
    def test_newest_released_title_wins(self) -> None:
        franchises = FranchiseMap(FRANCHISES, today=date(2025, 1, 1))
        assert franchises.resolve("Call of Duty") == "Call of Duty: Black Ops 6"

    def test_future_release_ignored(self) -> None:
        franchises = FranchiseMap(FRANCHISES, today=date(2024, 1, 1))
        assert franchises.resolve("call  of duty") == "Call of Duty: Modern Warfare III"

    def test_override_wins(self) -> None:
        franchises = FranchiseMap(FRANCHISES, overrides={"Call of Duty": "Call of Duty: Warzone"})
        assert franchises.resolve("Call of Duty") == "Call of Duty: Warzone"

    def test_unmapped(self) -> None:
        assert FranchiseMap(FRANCHISES).resolve("Contoso Adventure") is None

    def test_bundled_table_loads(self) -> None:
        assert FranchiseMap.load().resolve("Call of Duty").startswith("Call of Duty")

    def test_broken_table_is_empty(self, tmp_path: Path) -> None:
        broken = tmp_path / "franchises.json"
        broken.write_text("[", encoding="utf-8")
        assert FranchiseMap.load(broken).resolve("Call of Duty") is None


class TestGamePassDirectoryScanner:
    @pytest.fixture
    def library(self, tmp_path: Path) -> Path:
        root = tmp_path / "XboxGames"
        _touch(root / "Call of Duty" / "Content" / "gamelaunchhelper.exe")
        _touch(root / "Call of Duty" / "Content" / "cod.exe")

        adventure = root / "Contoso Adventure"
        _touch(adventure / "gamelaunchhelper.exe")
        _touch(adventure / "Content" / "Adventure.exe")
        (adventure / "Content" / "MicrosoftGame.config").write_text(
            GAME_CONFIG.format(identity="Contoso.Adventure", name="Contoso Adventure: Remastered"),
            encoding="utf-8",
        )

        _touch(root / "Contoso Adventure DLC" / "dlc.exe")
        _touch(root / "GameSave" / "readme.txt")
        return root

    @pytest.fixture
    def scanner(self) -> GamePassDirectoryScanner:
        return GamePassDirectoryScanner(franchises=FranchiseMap(FRANCHISES, today=date(2025, 1, 1)))

    def test_scan(self, scanner: GamePassDirectoryScanner, library: Path) -> None:
        candidates = {c.display_name_guess: c for c in scanner.scan(library)}

        assert set(candidates) == {"Call of Duty: Black Ops 6", "Contoso Adventure: Remastered"}

        cod = candidates["Call of Duty: Black Ops 6"]
        assert cod.source_kind == SourceKind.GAME_PASS_DIRECTORY
        assert cod.executable_path.endswith("gamelaunchhelper.exe")
        assert cod.platform_specific_id is None
        assert cod.launch.kind == LaunchKind.EXECUTABLE

        adventure = candidates["Contoso Adventure: Remastered"]
        assert adventure.platform_specific_id == "Contoso.Adventure"
        assert adventure.qualified_id == "xbox-Contoso.Adventure"

    def test_franchise_mapping_is_deterministic(self, library: Path) -> None:
        scanner = GamePassDirectoryScanner(franchises=FranchiseMap.load())
        first = [c.display_name_guess for c in scanner.scan(library)]
        second = [c.display_name_guess for c in scanner.scan(library)]
        assert first == second

    def test_read_game_config_missing(self, tmp_path: Path) -> None:
        assert read_game_config(tmp_path) == ("", "")
