"""IGDB provider: title search, text metadata and cover art via the v4 API."""

from __future__ import annotations

import re
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
from loguru import logger

from gameshelf.models.metadata import PartialMetadata
from gameshelf.models.provider_match import IGDBMatch
from gameshelf.models.resolution import ResolvedIdentity
from gameshelf.providers.base import MetadataProvider
from gameshelf.utils import fold_title

_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
_API_BASE = "https://api.igdb.com/v4"
_IGDB_IMAGE_BASE = "https://images.igdb.com/igdb/image/upload"

# external_games.category for Steam
_EXTERNAL_STEAM = 1

_GAME_FIELDS = (
    "fields name, summary, first_release_date, genres.name, themes.name, "
    "game_modes.name, involved_companies.company.name, involved_companies.publisher, "
    "involved_companies.developer, cover.image_id, artworks.image_id, total_rating, "
    "age_ratings.category, age_ratings.rating, external_games.category, external_games.uid; "
)

# age_ratings.rating enum → label
_AGE_RATINGS: dict[int, str] = {
    1: "PEGI 3", 2: "PEGI 7", 3: "PEGI 12", 4: "PEGI 16", 5: "PEGI 18",
    6: "ESRB RP", 7: "ESRB EC", 8: "ESRB E", 9: "ESRB E10+", 10: "ESRB T",
    11: "ESRB M", 12: "ESRB AO",
}


def _clean_query(raw: str) -> str:
    """Collapse whitespace and escape quotes for an Apicalypse string literal."""
    cleaned = re.sub(r"\s+", " ", raw).strip()
    return cleaned.replace("\\", "").replace('"', '\\"')


@dataclass
class _AccessToken:
    value: str = ""
    expires_at: float = 0.0

    def valid(self) -> bool:
        return bool(self.value) and time.monotonic() < self.expires_at


class IGDBProvider(MetadataProvider):
    """Text metadata and cover art from IGDB.

    IGDB authenticates through Twitch client credentials; the bearer token is cached
    until shortly before it expires and shared by all worker threads.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        config: Any = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._credentials = {"client_id": client_id, "client_secret": client_secret}
        self._token = _AccessToken()
        self._token_lock = threading.Lock()
        super().__init__(config, transport)

    @property
    def name(self) -> str:
        return "igdb"

    @property
    def display_name(self) -> str:
        return "IGDB"

    def is_available(self) -> bool:
        return all(self._credentials.values())

    def _bearer(self) -> str:
        with self._token_lock:
            if not self._token.valid():
                self._token = self._fetch_token()
            return self._token.value

    def _fetch_token(self) -> _AccessToken:
        try:
            with self._http_client(timeout=15) as client:
                resp = client.post(
                    _TOKEN_URL, params={**self._credentials, "grant_type": "client_credentials"},
                )
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPError as e:
            logger.error(f"Twitch token request for IGDB failed: {e}")
            raise
        lifetime = float(payload.get("expires_in", 3600))
        # Refresh a minute early so in-flight queries never carry a stale token
        return _AccessToken(payload["access_token"], time.monotonic() + lifetime - 60)

    def _query(self, endpoint: str, body: str) -> list[dict[str, Any]]:
        resp = self._request(
            "POST",
            f"{_API_BASE}/{endpoint}",
            content=body,
            headers={
                "Client-ID": self._credentials["client_id"],
                "Authorization": f"Bearer {self._bearer()}",
            },
        )
        return resp.json()

    # ── Search ──

    def search_by_title(self, title: str, hint_id: str | None = None) -> list[IGDBMatch]:
        """Search IGDB; a Steam *hint_id* is tried first through external_games."""
        if hint_id and hint_id.isdigit():
            by_store = self.search_by_steam_id(hint_id)
            if by_store:
                return by_store

        body = f'{_GAME_FIELDS}search "{_clean_query(title)}"; limit 10;'
        return [self._parse_match(g) for g in self._query("games", body)]

    def search_by_steam_id(self, app_id: str) -> list[IGDBMatch]:
        body = (
            f'fields game; where uid = "{app_id}" & category = {_EXTERNAL_STEAM}; limit 1;'
        )
        refs = self._query("external_games", body)
        game_ids = [str(r["game"]) for r in refs if r.get("game")]
        if not game_ids:
            return []
        game = self._get_game(game_ids[0])
        return [self._parse_match(game)] if game else []

    def _get_game(self, game_id: str) -> dict[str, Any] | None:
        games = self._query("games", f"{_GAME_FIELDS}where id = {game_id};")
        return games[0] if games else None

    # ── Metadata ──

    def fetch_artwork(self, identity: ResolvedIdentity) -> PartialMetadata:
        """Text metadata and cover art for the identity."""
        game: dict[str, Any] | None = None
        if identity.provider == self.name and identity.provider_id:
            game = self._get_game(identity.provider_id)
        elif identity.storefront_id:
            matches = self.search_by_steam_id(identity.storefront_id)
            if matches:
                game = self._get_game(matches[0].provider_id)

        if game is None:
            body = f'{_GAME_FIELDS}search "{_clean_query(identity.title)}"; limit 10;'
            wanted = fold_title(identity.title)
            for candidate in self._query("games", body):
                if fold_title(candidate.get("name", "")) == wanted:
                    game = candidate
                    break

        if game is None:
            return PartialMetadata()
        return self._parse_metadata(game)

    # ── Parsing ──

    @staticmethod
    def _release_date(game: dict[str, Any]) -> str:
        ts = game.get("first_release_date")
        if not ts:
            return ""
        return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")

    @staticmethod
    def _steam_id(game: dict[str, Any]) -> str | None:
        for ext in game.get("external_games", []):
            if isinstance(ext, dict) and ext.get("category") == _EXTERNAL_STEAM:
                uid = str(ext.get("uid", ""))
                if uid.isdigit():
                    return uid
        return None

    @staticmethod
    def _companies(game: dict[str, Any], role: str) -> list[str]:
        names: list[str] = []
        for involvement in game.get("involved_companies", []):
            name = (involvement.get("company") or {}).get("name", "")
            if name and involvement.get(role) and name not in names:
                names.append(name)
        return names

    @staticmethod
    def _cover_url(game: dict[str, Any]) -> str:
        cover = game.get("cover", {})
        if isinstance(cover, dict) and cover.get("image_id"):
            return f"{_IGDB_IMAGE_BASE}/t_cover_big/{cover['image_id']}.jpg"
        return ""

    def _parse_match(self, game: dict[str, Any]) -> IGDBMatch:
        return IGDBMatch(
            provider_id=str(game.get("id", "")),
            title=game.get("name", ""),
            release_date=self._release_date(game),
            storefront_id=self._steam_id(game),
            summary=game.get("summary", ""),
            cover_url=self._cover_url(game),
        )

    def _parse_metadata(self, game: dict[str, Any]) -> PartialMetadata:
        developers = self._companies(game, "developer")
        publishers = self._companies(game, "publisher")

        hero = ""
        for art in game.get("artworks", []):
            if isinstance(art, dict) and art.get("image_id"):
                hero = f"{_IGDB_IMAGE_BASE}/t_1080p/{art['image_id']}.jpg"
                break

        age_rating = ""
        for ar in game.get("age_ratings", []):
            label = _AGE_RATINGS.get(ar.get("rating", 0)) if isinstance(ar, dict) else None
            if label:
                age_rating = label
                break

        rating = game.get("total_rating")
        metadata = PartialMetadata(
            description=game.get("summary", ""),
            release_date=self._release_date(game),
            genres=[g["name"] for g in game.get("genres", []) if isinstance(g, dict)],
            developers=developers,
            publishers=publishers,
            categories=[
                m["name"]
                for m in game.get("game_modes", []) + game.get("themes", [])
                if isinstance(m, dict) and m.get("name")
            ],
            age_rating=age_rating,
            rating=round(float(rating), 1) if rating is not None else None,
            box_art=self._cover_url(game),
            hero=hero,
        )
        metadata.tag_sources(self.name)
        return metadata
