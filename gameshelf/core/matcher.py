"""Match scoring — confidence of a provider match for a title query."""

from __future__ import annotations

import difflib

from gameshelf.models.provider_match import ProviderMatch
from gameshelf.utils import normalize_title


def title_similarity(a: str, b: str) -> float:
    """Ratio in [0, 1] between two normalized titles."""
    if not a and not b:
        return 1.0
    return difflib.SequenceMatcher(None, a, b).ratio()


def word_overlap(a: str, b: str) -> float:
    words_a = set(a.split())
    words_b = set(b.split())
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / max(len(words_a), len(words_b))


class GameMatcher:
    """Scores provider matches against a query title (0 = unrelated, 1 = certain)."""

    def score(
        self,
        query: str,
        match: ProviderMatch,
        storefront_id: str | None = None,
    ) -> tuple[float, list[str]]:
        confidence = 0.0
        reasons: list[str] = []

        wanted = normalize_title(query)
        got = normalize_title(match.title)

        if wanted == got:
            confidence += 0.5
            reasons.append("exact title match")
        else:
            similarity = title_similarity(wanted, got)
            pct = f"{similarity * 100:.0f}%"
            if similarity > 0.9:
                confidence += 0.4
                reasons.append(f"very similar title ({pct})")
            elif similarity > 0.7:
                confidence += 0.2
                reasons.append(f"similar title ({pct})")
            elif similarity > 0.5:
                confidence += 0.1
                reasons.append(f"somewhat similar title ({pct})")
            else:
                reasons.append(f"low title similarity ({pct})")

            if word_overlap(wanted, got) < 0.3:
                confidence -= 0.2
                reasons.append("low word overlap")

        if storefront_id and match.storefront_id:
            if storefront_id == match.storefront_id:
                confidence += 0.4
                reasons.append("storefront id match")
            else:
                confidence -= 0.2
                reasons.append("storefront id mismatch")
        elif match.storefront_id:
            confidence += 0.1
            reasons.append("has storefront id")

        return max(0.0, min(1.0, confidence)), reasons

    def apply(
        self,
        query: str,
        matches: list[ProviderMatch],
        storefront_id: str | None = None,
    ) -> list[ProviderMatch]:
        """Fill ``confidence`` / ``reasons`` on every match in place and return them."""
        for match in matches:
            match.confidence, match.reasons = self.score(query, match, storefront_id)
        return matches
