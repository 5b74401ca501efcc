"""Franchise folder-name mapping — generic folder name to a specific release."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any

from loguru import logger

from gameshelf.utils import fold_title

FRANCHISES_FILE = Path(__file__).with_name("franchises.json")


class FranchiseMap:
    """
    Maps folder names like "Call of Duty" to the newest released title.

    The table is data (``franchises.json``); each title carries a release
    date and the newest one not in the future wins.  Entries in
    *overrides* (from ``scan.franchise_overrides``) take precedence.
    """

    def __init__(
        self,
        table: dict[str, list[dict[str, Any]]] | None = None,
        overrides: dict[str, str] | None = None,
        today: date | None = None,
    ) -> None:
        self._table = {fold_title(k): v for k, v in (table or {}).items()}
        self._overrides = {fold_title(k): v for k, v in (overrides or {}).items()}
        self._today = today

    @classmethod
    def load(
        cls,
        path: Path = FRANCHISES_FILE,
        overrides: dict[str, str] | None = None,
    ) -> FranchiseMap:
        """Load the mapping table from *path*; a broken file yields an empty table."""
        table: dict[str, list[dict[str, Any]]] = {}
        try:
            with open(path, encoding="utf-8") as f:
                table = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Cannot load franchise table {path}: {e}")
        return cls(table, overrides)

    def resolve(self, folder_name: str) -> str | None:
        """Current title for *folder_name*, or None if it is not a franchise name."""
        key = fold_title(folder_name)
        if key in self._overrides:
            return self._overrides[key]

        releases = self._table.get(key)
        if not releases:
            return None

        cutoff = (self._today or date.today()).isoformat()
        released = [
            r for r in releases
            if r.get("title") and str(r.get("released", "")) <= cutoff
        ]
        if not released:
            return None
        newest = max(released, key=lambda r: (str(r.get("released", "")), r["title"]))
        return newest["title"]
