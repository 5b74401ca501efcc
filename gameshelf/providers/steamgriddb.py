"""SteamGridDB provider: community artwork catalog."""

from __future__ import annotations

import concurrent.futures
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from gameshelf.models.metadata import ImageKind, PartialMetadata
from gameshelf.models.provider_match import CatalogMatch
from gameshelf.models.resolution import ResolvedIdentity
from gameshelf.providers.base import MetadataProvider
from gameshelf.utils import fold_title

_API_BASE = "https://www.steamgriddb.com/api/v2"

# Grid sizes per artwork kind; one grids request covers both
_GRID_DIMENSIONS: dict[ImageKind, tuple[str, ...]] = {
    ImageKind.BOXART: ("600x900", "342x482", "660x930"),
    ImageKind.BANNER: ("920x430", "460x215"),
}

_ENDPOINT_PARAMS: dict[str, dict[str, str]] = {
    "grids": {"dimensions": ",".join(d for dims in _GRID_DIMENSIONS.values() for d in dims)},
    "heroes": {},
    "logos": {},
    "icons": {},
}

_ENDPOINT_KINDS: dict[str, ImageKind] = {
    "heroes": ImageKind.HERO,
    "logos": ImageKind.LOGO,
    "icons": ImageKind.ICON,
}

_UNWANTED_FLAGS = ("nsfw", "humor", "epilepsy")


def select_best_image(assets: list[dict[str, Any]]) -> dict[str, Any] | None:
    """
    Pick the best asset: official (locked) first, then score, then vote balance.

    Assets flagged nsfw / humor / epilepsy are never picked.
    """
    usable = [a for a in assets if a.get("url") and not any(a.get(f) for f in _UNWANTED_FLAGS)]
    if not usable:
        return None
    return min(
        usable,
        key=lambda a: (
            not a.get("lock", False),
            -(a.get("score") or 0),
            -((a.get("upvotes") or 0) - (a.get("downvotes") or 0)),
        ),
    )


def _dimensions(asset: dict[str, Any]) -> str:
    return f"{asset.get('width')}x{asset.get('height')}"


class SteamGridDBProvider(MetadataProvider):
    """SteamGridDB artwork provider (API key required)."""

    def __init__(
        self,
        api_key: str,
        config: Any = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        super().__init__(config, transport)

    @property
    def name(self) -> str:
        return "steamgriddb"

    @property
    def display_name(self) -> str:
        return "SteamGridDB"

    def is_available(self) -> bool:
        return bool(self._api_key)

    def _api_get(self, path: str, params: dict[str, str] | None = None) -> Any:
        body = self._get_json(
            f"{_API_BASE}/{path}",
            params=params or {},
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        if not body.get("success", False):
            return None
        return body.get("data")

    # ── Search ──

    def search_by_title(self, title: str, hint_id: str | None = None) -> list[CatalogMatch]:
        if hint_id and hint_id.isdigit():
            game = self.game_by_steam_id(hint_id)
            if game is not None:
                return [game]

        data = self._api_get(f"search/autocomplete/{quote(title, safe='')}") or []
        return [self._parse_match(g) for g in data if g.get("id")]

    def game_by_steam_id(self, app_id: str) -> CatalogMatch | None:
        try:
            data = self._api_get(f"games/steam/{app_id}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise
        if not data:
            return None
        match = self._parse_match(data)
        match.storefront_id = app_id
        return match

    @staticmethod
    def _parse_match(game: dict[str, Any]) -> CatalogMatch:
        release_date = ""
        ts = game.get("release_date")
        if ts:
            release_date = datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")
        return CatalogMatch(
            provider_id=str(game["id"]),
            title=game.get("name", ""),
            release_date=release_date,
            verified=bool(game.get("verified", False)),
            types=list(game.get("types", [])),
        )

    # ── Artwork ──

    def resolve_game_id(self, identity: ResolvedIdentity) -> str | None:
        """Catalog game id: by storefront id first, then by title."""
        if identity.provider == self.name and identity.provider_id:
            return identity.provider_id
        if identity.storefront_id:
            game = self.game_by_steam_id(identity.storefront_id)
            if game is not None:
                return game.provider_id
        wanted = fold_title(identity.title)
        for match in self.search_by_title(identity.title):
            if fold_title(match.title) == wanted:
                return match.provider_id
        return None

    def _fetch_assets(self, endpoint: str, game_id: str) -> list[dict[str, Any]]:
        try:
            return self._api_get(f"{endpoint}/game/{game_id}", _ENDPOINT_PARAMS[endpoint]) or []
        except httpx.HTTPError as e:
            logger.debug(f"SteamGridDB {endpoint} failed for {game_id}: {e}")
            return []

    def get_all_artwork(self, game_id: str) -> PartialMetadata:
        """Every artwork kind for one catalog game; the endpoints are queried concurrently."""
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=len(_ENDPOINT_PARAMS), thread_name_prefix="steamgriddb",
        ) as pool:
            futures = {
                endpoint: pool.submit(self._fetch_assets, endpoint, game_id)
                for endpoint in _ENDPOINT_PARAMS
            }
            assets = {endpoint: future.result() for endpoint, future in futures.items()}

        picks: dict[ImageKind, list[dict[str, Any]]] = {
            kind: [a for a in assets["grids"] if _dimensions(a) in dims]
            for kind, dims in _GRID_DIMENSIONS.items()
        }
        for endpoint, kind in _ENDPOINT_KINDS.items():
            picks[kind] = assets[endpoint]

        metadata = PartialMetadata()
        for kind, candidates in picks.items():
            best = select_best_image(candidates)
            if best:
                metadata.set_image(kind, best["url"])
                metadata.scores[kind.value] = float(best.get("score") or 0)
        metadata.tag_sources(self.name)
        return metadata

    def fetch_artwork(self, identity: ResolvedIdentity) -> PartialMetadata:
        game_id = self.resolve_game_id(identity)
        if not game_id:
            logger.debug(f"SteamGridDB: no catalog entry for {identity.title}")
            return PartialMetadata()
        return self.get_all_artwork(game_id)
