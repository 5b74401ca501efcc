"""Persistent settings for scanning, providers, timeouts and the import pipeline."""

from __future__ import annotations

import copy
import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from gameshelf.utils import write_json_atomic

_instance: "Config | None" = None

_DEFAULT_DATA_DIR = Path.home() / "Documents" / "GameShelf"

DEFAULTS: dict[str, Any] = {
    "sources": {
        # Empty means detect from the registry and well-known folders
        "steam_path": "",
        "epic_manifests_path": "",
        "windows_apps_path": "C:\\Program Files\\WindowsApps",
        "xbox_games_path": "C:\\XboxGames",
        # [{"path": "D:\\Games", "depth": 1}]
        "manual_folders": [],
    },
    "scan": {
        "max_depth": 20,
        # {"call of duty": "Call of Duty: Black Ops 6"}
        "franchise_overrides": {},
        # Package-family names to treat as registered games
        "registered_packages": [],
    },
    "providers": {
        "proxy_protocol": "http",
        "proxy_host": "",
        "proxy_port": "",
        "igdb_client_id": "",
        "igdb_client_secret": "",
        "steamgriddb_api_key": "",
        "rawg_api_key": "",
        "steam_enabled": True,
        "search_order": ["igdb", "steamgriddb", "rawg"],
        # Minimum seconds between requests
        "rate_limits": {"igdb": 0.25, "steamgriddb": 0.25, "rawg": 0.25, "steam": 0.1},
    },
    # Seconds
    "timeouts": {"head": 5.0, "search": 30.0, "acquire": 30.0, "download": 60.0},
    "pipeline": {"max_workers": 4, "download_artwork": True, "cache_dir": ""},
}


def get_config() -> Config:
    """Process-wide Config, created on first use."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    global _instance
    _instance = None


def _merge_into(target: dict, overlay: dict) -> None:
    for key, value in overlay.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge_into(current, value)
        else:
            target[key] = value


class Config:
    """Settings stored as ``config.json`` in the data directory.

    User values are layered over ``DEFAULTS`` so keys added in later versions always
    have a value. Writes go through a temp file swapped into place.
    """

    def __init__(self, config_dir: Path | None = None) -> None:
        self._dir = Path(config_dir) if config_dir else _DEFAULT_DATA_DIR
        self._file = self._dir / "config.json"
        self._lock = threading.Lock()
        self._batching = False
        self._values: dict[str, Any] = copy.deepcopy(DEFAULTS)
        self._read_file()

    def _read_file(self) -> None:
        if not self._file.is_file():
            return
        try:
            stored = json.loads(self._file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable config {self._file}: {e}")
            return
        if isinstance(stored, dict):
            _merge_into(self._values, stored)
        else:
            logger.warning(f"Ignoring config {self._file}: top level is not an object")

    def _write_file(self) -> None:
        if self._batching:
            return
        with self._lock:
            try:
                write_json_atomic(self._file, self._values)
            except OSError as e:
                logger.error(f"Could not write config {self._file}: {e}")

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Group several ``set`` calls into one write."""
        self._batching = True
        try:
            yield
        finally:
            self._batching = False
            self._write_file()

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``"timeouts.head"``."""
        node: Any = self._values
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        *parents, leaf = key.split(".")
        node = self._values
        for part in parents:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[leaf] = value
        self._write_file()

    # ── Sources ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    def _optional_path(self, key: str) -> Path | None:
        raw = self.get(key, "")
        return Path(raw) if raw else None

    @property
    def steam_path(self) -> Path | None:
        return self._optional_path("sources.steam_path")

    @property
    def epic_manifests_path(self) -> Path | None:
        return self._optional_path("sources.epic_manifests_path")

    @property
    def windows_apps_path(self) -> Path | None:
        return self._optional_path("sources.windows_apps_path")

    @property
    def xbox_games_path(self) -> Path | None:
        return self._optional_path("sources.xbox_games_path")

    @property
    def manual_folders(self) -> list[dict[str, Any]]:
        """Configured folders as ``{"path", "depth"}`` dicts; a bare string means depth 1."""
        result = []
        for item in self.get("sources.manual_folders", []):
            if isinstance(item, str):
                item = {"path": item}
            if isinstance(item, dict) and item.get("path"):
                result.append({"path": item["path"], "depth": int(item.get("depth", 1))})
        return result

    @manual_folders.setter
    def manual_folders(self, value: list[dict[str, Any]]) -> None:
        self.set("sources.manual_folders", value)

    # ── Scanning ──

    @property
    def scan_config(self) -> dict[str, Any]:
        return self.get("scan", {})

    @property
    def max_scan_depth(self) -> int:
        return int(self.get("scan.max_depth", 20))

    @property
    def franchise_overrides(self) -> dict[str, str]:
        return dict(self.get("scan.franchise_overrides", {}))

    # ── Providers ──

    @property
    def provider_config(self) -> dict[str, Any]:
        return self.get("providers", {})

    @property
    def search_order(self) -> list[str]:
        return list(self.get("providers.search_order", []))

    @property
    def rate_limits(self) -> dict[str, float]:
        return dict(self.get("providers.rate_limits", {}))

    def timeout(self, name: str) -> float:
        fallback = DEFAULTS["timeouts"].get(name, 30.0)
        return float(self.get(f"timeouts.{name}", fallback))

    # ── Pipeline ──

    @property
    def max_workers(self) -> int:
        return max(1, int(self.get("pipeline.max_workers", 4)))

    @property
    def download_artwork(self) -> bool:
        return bool(self.get("pipeline.download_artwork", True))

    @property
    def cache_dir(self) -> Path:
        return self._optional_path("pipeline.cache_dir") or self._dir / "artwork"
