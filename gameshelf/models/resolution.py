"""Identity resolution outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field

from gameshelf.models.provider_match import ProviderMatch


@dataclass
class ResolvedIdentity:
    """A confident canonical identity for one candidate."""

    match: ProviderMatch
    title: str
    is_variant: bool = False
    variant_label: str = ""

    @property
    def provider(self) -> str:
        return self.match.provider

    @property
    def provider_id(self) -> str:
        return self.match.provider_id

    @property
    def storefront_id(self) -> str | None:
        return self.match.storefront_id


@dataclass
class Ambiguous:
    """No confident match; ranked results are kept for manual selection."""

    query: str
    results: list[ProviderMatch] = field(default_factory=list)
    reason: str = ""
    is_variant: bool = False
    variant_label: str = ""


Resolution = ResolvedIdentity | Ambiguous
