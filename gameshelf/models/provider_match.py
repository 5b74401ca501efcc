"""Provider match models — one tagged variant per catalog."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ProviderMatch:
    """
    A candidate identity returned by a metadata provider for a title query.

    Subclasses carry provider-specific detail; the resolver only looks at the
    fields defined here.
    """

    provider: str = ""
    provider_id: str = ""
    title: str = ""
    release_date: str = ""  # YYYY-MM-DD, or "" when unknown
    storefront_id: str | None = None  # Steam app id when the provider knows it
    confidence: float = 0.0
    reasons: list[str] = field(default_factory=list)

    @property
    def has_storefront_id(self) -> bool:
        return bool(self.storefront_id)


@dataclass
class SteamMatch(ProviderMatch):
    """Identity taken directly from a Steam app id."""

    provider: str = "steam"


@dataclass
class IGDBMatch(ProviderMatch):
    """IGDB game record."""

    provider: str = "igdb"
    summary: str = ""
    cover_url: str = ""


@dataclass
class CatalogMatch(ProviderMatch):
    """SteamGridDB game record."""

    provider: str = "steamgriddb"
    verified: bool = False
    types: list[str] = field(default_factory=list)


@dataclass
class AggregatorMatch(ProviderMatch):
    """RAWG game record."""

    provider: str = "rawg"
    slug: str = ""
    rating: float | None = None
    background_image: str = ""
