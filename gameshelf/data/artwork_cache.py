"""Artwork cache — local copies of acquired images, indexed by game and kind."""

from __future__ import annotations

import json
import shutil
import threading
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx
from loguru import logger

from gameshelf.models.metadata import CachedArtwork, ImageKind, PartialMetadata
from gameshelf.providers.http import http_client, with_retry
from gameshelf.utils import sanitize_filename, write_json_atomic

_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".ico", ".gif")

_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/x-icon": ".ico",
    "image/vnd.microsoft.icon": ".ico",
    "image/gif": ".gif",
}


def _extension(url: str, content_type: str = "") -> str:
    suffix = Path(urlparse(url).path).suffix.lower()
    if suffix in _IMAGE_EXTENSIONS:
        return suffix
    return _CONTENT_TYPES.get(content_type.split(";")[0].strip().lower(), ".jpg")


def _is_remote(value: str) -> bool:
    return value.startswith(("http://", "https://"))


class ArtworkCache:
    """
    Artwork cache on disk.

    Layout::

        <cache_dir>/index.json             {"<game_id>:<kind>": CachedArtwork}
        <cache_dir>/<game_id>/<kind><ext>

    A missing or unreadable index, or an index entry whose file is gone,
    means "not cached".  Writes for one ``(game_id, kind)`` are serialized;
    different keys proceed in parallel.
    """

    def __init__(
        self,
        cache_dir: Path,
        config: Any = None,
        transport: httpx.BaseTransport | None = None,
        download_timeout: float = 60.0,
    ) -> None:
        self._cache_dir = cache_dir
        self._index_path = cache_dir / "index.json"
        self._config = config
        self._transport = transport
        self._download_timeout = download_timeout
        self._index: dict[str, dict[str, Any]] | None = None
        self._index_lock = threading.Lock()
        self._key_locks: dict[str, threading.Lock] = {}
        self._key_locks_guard = threading.Lock()

    @staticmethod
    def _key(game_id: str, kind: str) -> str:
        return f"{game_id}:{kind}"

    def _game_dir(self, game_id: str) -> Path:
        return self._cache_dir / sanitize_filename(game_id)

    def _key_lock(self, key: str) -> threading.Lock:
        with self._key_locks_guard:
            return self._key_locks.setdefault(key, threading.Lock())

    # ── Index ──

    def _load_index(self) -> dict[str, dict[str, Any]]:
        # Caller holds _index_lock
        if self._index is None:
            self._index = {}
            if self._index_path.exists():
                try:
                    with open(self._index_path, encoding="utf-8") as f:
                        data = json.load(f)
                    if isinstance(data, dict):
                        self._index = data
                except (json.JSONDecodeError, OSError) as e:
                    logger.warning(f"Artwork index unreadable, treating cache as empty: {e}")
        return self._index

    def _save_index(self) -> None:
        # Caller holds _index_lock
        try:
            write_json_atomic(self._index_path, self._index or {})
        except OSError as e:
            logger.error(f"Failed to save artwork index: {e}")

    def lookup(self, game_id: str, kind: str) -> CachedArtwork | None:
        """Cached record for ``(game_id, kind)`` if its file is present."""
        with self._index_lock:
            raw = self._load_index().get(self._key(game_id, kind))
        if not raw:
            return None
        try:
            record = CachedArtwork(**raw)
        except TypeError:
            return None
        if not Path(record.path).is_file():
            return None
        return record

    def _record(self, record: CachedArtwork) -> None:
        with self._index_lock:
            self._load_index()[self._key(record.game_id, record.kind)] = asdict(record)
            self._save_index()

    # ── Caching ──

    def cache(
        self,
        game_id: str,
        metadata: PartialMetadata,
        force_refresh: bool = False,
    ) -> PartialMetadata:
        """
        Return a copy of *metadata* with artwork pointing at local ``file://`` copies.

        Already-cached kinds are not re-fetched unless *force_refresh*.  A
        failed download keeps the remote URL.
        """
        result = metadata.copy()
        for kind in ImageKind:
            value = result.image(kind)
            if not value or not _is_remote(value):
                continue
            local = self.cache_image(game_id, kind, value, force_refresh)
            if local is not None:
                result.set_image(kind, local.resolve().as_uri())
        return result

    def cache_image(
        self,
        game_id: str,
        kind: ImageKind | str,
        url: str,
        force_refresh: bool = False,
    ) -> Path | None:
        """Local path for one image, downloading it if needed; None on failure."""
        kind = str(kind)
        with self._key_lock(self._key(game_id, kind)):
            if not force_refresh:
                existing = self.lookup(game_id, kind)
                if existing is not None:
                    return Path(existing.path)

            try:
                content, content_type = self._download(url)
            except Exception as e:
                logger.warning(f"Failed to cache {kind} for {game_id}: {e}")
                return None

            game_dir = self._game_dir(game_id)
            game_dir.mkdir(parents=True, exist_ok=True)
            path = game_dir / f"{kind}{_extension(url, content_type)}"
            tmp = path.with_name(path.name + ".tmp")
            try:
                tmp.write_bytes(content)
                tmp.replace(path)
            except OSError as e:
                logger.warning(f"Failed to write {path}: {e}")
                tmp.unlink(missing_ok=True)
                return None

            # A refresh may change the extension; drop the stale file
            previous = self.lookup(game_id, kind)
            if previous is not None and Path(previous.path) != path:
                Path(previous.path).unlink(missing_ok=True)

            self._record(CachedArtwork(
                game_id=game_id,
                kind=kind,
                path=str(path),
                source_url=url,
                cached_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            ))
            logger.debug(f"Cached {kind} for {game_id} at {path}")
            return path

    def _download(self, url: str) -> tuple[bytes, str]:
        def fetch() -> tuple[bytes, str]:
            with http_client(self._config, self._transport, timeout=self._download_timeout) as client:
                resp = client.get(url)
                resp.raise_for_status()
                return resp.content, resp.headers.get("content-type", "")

        content, content_type = with_retry(fetch, label=f"download {url}")
        if not content:
            raise ValueError("empty response body")
        return content, content_type

    # ── Maintenance ──

    def clear(self, game_id: str | None = None) -> None:
        """Delete cached files and index entries for one game, or everything."""
        with self._index_lock:
            index = self._load_index()
            if game_id is None:
                index.clear()
                targets = [p for p in self._cache_dir.iterdir() if p.is_dir()] if self._cache_dir.exists() else []
            else:
                prefix = f"{game_id}:"
                for key in [k for k in index if k.startswith(prefix)]:
                    del index[key]
                targets = [self._game_dir(game_id)]
            self._save_index()

        for target in targets:
            shutil.rmtree(target, ignore_errors=True)
        logger.info(f"Artwork cache cleared ({game_id or 'all games'})")
