"""RAWG provider — aggregator used as the last metadata fallback."""

from __future__ import annotations

from typing import Any

import httpx

from gameshelf.models.metadata import PartialMetadata
from gameshelf.models.provider_match import AggregatorMatch
from gameshelf.models.resolution import ResolvedIdentity
from gameshelf.providers.base import MetadataProvider
from gameshelf.utils import fold_title

_API_BASE = "https://api.rawg.io/api"


def _names(items: Any) -> list[str]:
    return [i["name"] for i in items or [] if isinstance(i, dict) and i.get("name")]


class RAWGProvider(MetadataProvider):
    """RAWG video game database (API key required)."""

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
        return "rawg"

    @property
    def display_name(self) -> str:
        return "RAWG"

    def is_available(self) -> bool:
        return bool(self._api_key)

    def _api_get(self, path: str, **params: Any) -> Any:
        params["key"] = self._api_key
        return self._get_json(f"{_API_BASE}/{path}", params=params)

    def search_by_title(self, title: str, hint_id: str | None = None) -> list[AggregatorMatch]:
        # RAWG has no storefront lookup; hint_id is ignored
        data = self._api_get("games", search=title, page_size=10)
        return [self._parse_match(g) for g in data.get("results", []) if g.get("id")]

    @staticmethod
    def _parse_match(game: dict[str, Any]) -> AggregatorMatch:
        return AggregatorMatch(
            provider_id=str(game["id"]),
            title=game.get("name", ""),
            release_date=game.get("released") or "",
            slug=game.get("slug", ""),
            rating=game.get("rating"),
            background_image=game.get("background_image") or "",
        )

    def fetch_artwork(self, identity: ResolvedIdentity) -> PartialMetadata:
        """Details for the identity, looked up by title only."""
        game_id = identity.provider_id if identity.provider == self.name else ""
        if not game_id:
            wanted = fold_title(identity.title)
            for match in self.search_by_title(identity.title):
                if fold_title(match.title) == wanted:
                    game_id = match.provider_id
                    break
        if not game_id:
            return PartialMetadata()

        game = self._api_get(f"games/{game_id}")
        return self._parse_metadata(game)

    def _parse_metadata(self, game: dict[str, Any]) -> PartialMetadata:
        esrb = game.get("esrb_rating") or {}
        rating = game.get("rating")
        metadata = PartialMetadata(
            description=(game.get("description_raw") or "").strip(),
            release_date=game.get("released") or "",
            genres=_names(game.get("genres")),
            developers=_names(game.get("developers")),
            publishers=_names(game.get("publishers")),
            categories=_names(game.get("tags"))[:10],
            age_rating=f"ESRB {esrb['name']}" if esrb.get("name") else "",
            rating=float(rating) if rating else None,
            box_art=game.get("background_image") or "",
            hero=game.get("background_image_additional") or "",
        )
        metadata.tag_sources(self.name)
        return metadata
