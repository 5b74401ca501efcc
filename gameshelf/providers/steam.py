"""Steam provider — storefront lookups and deterministic CDN artwork."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
from loguru import logger

from gameshelf.models.metadata import ImageKind, PartialMetadata
from gameshelf.models.provider_match import SteamMatch
from gameshelf.models.resolution import ResolvedIdentity
from gameshelf.providers.base import MetadataProvider

_STORE_API = "https://store.steampowered.com/api"
CDN_BASE = "https://cdn.cloudflare.steamstatic.com/steam/apps"

# Artwork kind → CDN file name
CDN_ASSETS: dict[ImageKind, str] = {
    ImageKind.BOXART: "library_600x900.jpg",
    ImageKind.BANNER: "header.jpg",
    ImageKind.HERO: "library_hero.jpg",
    ImageKind.LOGO: "logo.png",
}


def cdn_url(app_id: str, kind: ImageKind) -> str:
    return f"{CDN_BASE}/{app_id}/{CDN_ASSETS[kind]}"


def _parse_store_date(raw: str) -> str:
    # The store API returns e.g. "10 Oct, 2007" or "Oct 10, 2007"
    for fmt in ("%d %b, %Y", "%b %d, %Y", "%d %B, %Y", "%B %d, %Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(raw.strip(), fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    return ""


class SteamProvider(MetadataProvider):
    """Steam storefront; needs no credentials."""

    @property
    def name(self) -> str:
        return "steam"

    @property
    def display_name(self) -> str:
        return "Steam"

    def is_available(self) -> bool:
        if self._config is None:
            return True
        return bool(self._config.get("providers.steam_enabled", True))

    def search_by_title(self, title: str, hint_id: str | None = None) -> list[SteamMatch]:
        if hint_id and hint_id.isdigit():
            match = self.get_app(hint_id)
            if match is not None:
                return [match]

        data = self._get_json(
            f"{_STORE_API}/storesearch/",
            params={"term": title, "l": "english", "cc": "US"},
        )
        return [
            SteamMatch(
                provider_id=str(item["id"]),
                title=item.get("name", ""),
                storefront_id=str(item["id"]),
            )
            for item in data.get("items", [])
            if item.get("id")
        ]

    def get_app(self, app_id: str) -> SteamMatch | None:
        """Store details for one app id, or None when the store does not know it."""
        data = self._get_json(f"{_STORE_API}/appdetails", params={"appids": app_id})
        entry: dict[str, Any] = data.get(app_id, {}) if isinstance(data, dict) else {}
        if not entry.get("success"):
            return None
        details = entry.get("data", {})
        return SteamMatch(
            provider_id=app_id,
            title=details.get("name", ""),
            release_date=_parse_store_date(details.get("release_date", {}).get("date", "")),
            storefront_id=app_id,
        )

    def fetch_artwork(self, identity: ResolvedIdentity) -> PartialMetadata:
        """
        CDN artwork for the identity's storefront id.

        Every URL is verified with a HEAD request; only reachable ones are
        kept.  Never returns text fields.
        """
        metadata = PartialMetadata()
        app_id = identity.storefront_id
        if not app_id:
            return metadata

        timeout = self._timeout("head", 5.0)
        with self._http_client(timeout=timeout) as client:
            for kind in CDN_ASSETS:
                url = cdn_url(app_id, kind)
                if self._head_ok(client, url):
                    metadata.set_image(kind, url)
                    metadata.sources[kind.value] = self.name
        return metadata

    def _head_ok(self, client: httpx.Client, url: str) -> bool:
        self._limiter.wait()
        try:
            resp = client.head(url)
        except httpx.HTTPError as e:
            logger.debug(f"Steam CDN HEAD failed for {url}: {e}")
            return False
        if resp.status_code != 200:
            logger.debug(f"Steam CDN HEAD {resp.status_code} for {url}")
            return False
        return True
