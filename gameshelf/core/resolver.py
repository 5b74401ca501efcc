"""Identity resolver — canonical identity for a scan candidate."""

from __future__ import annotations

import re
from collections.abc import Iterable

from loguru import logger

from gameshelf.core.deadline import DeadlineExceeded, DeadlineRunner
from gameshelf.core.matcher import GameMatcher
from gameshelf.models.provider_match import ProviderMatch, SteamMatch
from gameshelf.models.resolution import Ambiguous, Resolution, ResolvedIdentity
from gameshelf.models.scan_candidate import ScanCandidate
from gameshelf.providers.base import MetadataProvider
from gameshelf.utils import fold_title

_TRADEMARKS_RE = re.compile(r"[\u2122\u00ae\u00a9]")

# (pattern, label), tried repeatedly until none matches
_NOISE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(p, re.IGNORECASE), label)
    for p, label in (
        (r"\s*[\(\[]\s*early\s+access\s*[\)\]]", "Early Access"),
        (r"\s*[\(\[]\s*(?:free\s+)?trial\s*[\)\]]\s*$", "Trial"),
        (r"\s*[\(\[]\s*demo\s*[\)\]]\s*$", "Demo"),
        (r"\s*[\(\[]\s*playtest\s*[\)\]]\s*$", "Playtest"),
        (r"\s*[\(\[]\s*beta\s*[\)\]]\s*$", "Beta"),
        (r"[\s:\-]+free\s+trial\s*$", "Free Trial"),
        (r"[\s:\-]+demo\s+version\s*$", "Demo"),
        (r"[\s:\-]+demo\s*$", "Demo"),
        (r"[\s:\-]+trial\s*$", "Trial"),
        (r"[\s:\-]+playtest\s*$", "Playtest"),
        (r"[\s:\-]+beta\s*$", "Beta"),
    )
)


def strip_noise(title: str) -> tuple[str, bool, str]:
    """
    Remove trademark signs and variant markers from a title.

    Returns ``(clean_title, is_variant, variant_label)``; the label is the
    first marker removed ("Demo", "Playtest", ...).
    """
    cleaned = re.sub(r"\s+", " ", _TRADEMARKS_RE.sub("", title)).strip()
    label = ""
    changed = True
    while changed:
        changed = False
        for pattern, marker in _NOISE_PATTERNS:
            stripped = pattern.sub("", cleaned, count=1).strip()
            if stripped != cleaned and stripped:
                cleaned = stripped
                label = label or marker
                changed = True
                break
    return cleaned, bool(label), label


def rank_matches(query: str, matches: Iterable[ProviderMatch]) -> list[ProviderMatch]:
    """
    Order matches best-first.

    Storefront id present, then newest release date, then exact title
    equality, then confidence.  Equal keys keep provider order.
    """
    wanted = fold_title(query)
    ranked = sorted(matches, key=lambda m: m.confidence, reverse=True)
    ranked.sort(key=lambda m: fold_title(m.title) != wanted)
    ranked.sort(key=lambda m: m.release_date or "", reverse=True)
    ranked.sort(key=lambda m: not m.has_storefront_id)
    return ranked


class IdentityResolver:
    """
    Resolves candidates against providers in fallback order.

    Only a title that equals the query (case-insensitive, whitespace
    collapsed) is adopted automatically; anything else is ``Ambiguous`` with
    the ranked results attached.
    """

    def __init__(
        self,
        providers: Iterable[MetadataProvider],
        search_order: list[str] | None = None,
        matcher: GameMatcher | None = None,
        search_timeout: float = 30.0,
        runner: DeadlineRunner | None = None,
    ) -> None:
        by_name = {p.name: p for p in providers}
        order = search_order or list(by_name)
        self._providers: list[MetadataProvider] = []
        for provider_name in order:
            provider = by_name.get(provider_name)
            if provider is None:
                continue
            if not provider.is_available():
                logger.info(f"{provider.display_name} unavailable (no credentials), skipped")
                continue
            self._providers.append(provider)
        self._matcher = matcher or GameMatcher()
        self._search_timeout = search_timeout
        self._runner = runner or DeadlineRunner(name="gameshelf-search")

    @property
    def providers(self) -> list[MetadataProvider]:
        return list(self._providers)

    def resolve(self, candidate: ScanCandidate) -> Resolution:
        if candidate.has_storefront_id:
            app_id = candidate.platform_specific_id
            _, is_variant, label = strip_noise(candidate.display_name_guess)
            logger.debug(f"Resolved {candidate.display_name_guess} by storefront id {app_id}")
            return ResolvedIdentity(
                match=SteamMatch(
                    provider_id=app_id,
                    title=candidate.display_name_guess,
                    storefront_id=app_id,
                    confidence=1.0,
                    reasons=["storefront id"],
                ),
                title=candidate.display_name_guess,
                is_variant=is_variant,
                variant_label=label,
            )

        query, is_variant, label = strip_noise(candidate.display_name_guess)
        return self.resolve_title(query, is_variant, label)

    def resolve_title(self, query: str, is_variant: bool = False, variant_label: str = "") -> Resolution:
        """Search providers for *query* and adopt the first exact title match."""
        if not self._providers:
            return Ambiguous(query, [], "no metadata providers available", is_variant, variant_label)

        wanted = fold_title(query)
        pooled: list[ProviderMatch] = []
        for provider in self._providers:
            matches = self._search(provider, query)
            if not matches:
                continue
            self._matcher.apply(query, matches)
            pooled.extend(matches)

            exact = [m for m in rank_matches(query, matches) if fold_title(m.title) == wanted]
            if exact:
                best = exact[0]
                logger.debug(f"Resolved '{query}' via {provider.name} ({best.provider_id})")
                return ResolvedIdentity(best, best.title, is_variant, variant_label)

        ranked = rank_matches(query, pooled)
        reason = "no exact title match" if ranked else "no search results"
        logger.debug(f"'{query}' is ambiguous: {reason} ({len(ranked)} result(s))")
        return Ambiguous(query, ranked, reason, is_variant, variant_label)

    def _search(self, provider: MetadataProvider, query: str) -> list[ProviderMatch]:
        try:
            return self._runner.call(self._search_timeout, provider.search_by_title, query)
        except DeadlineExceeded:
            logger.warning(f"{provider.display_name} search timed out for '{query}'")
        except Exception as e:
            logger.warning(f"{provider.display_name} search failed for '{query}': {e}")
        return []
