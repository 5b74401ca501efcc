"""Shared utility functions."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

_ILLEGAL_FILENAME = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def normalize_path(path: str | None) -> str:
    """Lower-case, forward-slash form of a path for equality checks."""
    if not path:
        return ""
    normalized = str(path).strip().replace("\\", "/").lower()
    # Keep a leading "//" (UNC share), collapse the rest
    prefix = "//" if normalized.startswith("//") else ""
    normalized = prefix + re.sub(r"/{2,}", "/", normalized[len(prefix):])
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")
    return normalized


def normalize_title(title: str) -> str:
    """Lower-case, punctuation-free, single-spaced title for fuzzy comparison."""
    cleaned = re.sub(r"[^\w\s]", "", title.lower().strip())
    return re.sub(r"\s+", " ", cleaned).strip()


def fold_title(title: str) -> str:
    """Case-insensitive form of a title with whitespace collapsed."""
    return re.sub(r"\s+", " ", title).strip().casefold()


def sanitize_filename(name: str) -> str:
    """Make a game id safe to use as a single path component."""
    name = _ILLEGAL_FILENAME.sub("_", name)
    name = re.sub(r"_{2,}", "_", re.sub(r" {2,}", " ", name))
    return name.strip(". ")


def write_json_atomic(path: Path, data: Any) -> None:
    """Write *data* as JSON next to *path*, then swap it in.

    Readers never observe a half-written file. Raises ``OSError`` on failure; the
    temporary file is removed first.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_name(path.name + ".tmp")
    try:
        staging.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        staging.replace(path)
    except OSError:
        staging.unlink(missing_ok=True)
        raise
