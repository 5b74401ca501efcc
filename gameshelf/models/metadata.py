"""Acquired metadata models."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import StrEnum


class ImageKind(StrEnum):
    """Artwork kinds, mapped to ``PartialMetadata`` attribute names."""

    BOXART = "box_art"
    BANNER = "banner"
    LOGO = "logo"
    HERO = "hero"
    ICON = "icon"


TEXT_FIELDS: tuple[str, ...] = (
    "description",
    "release_date",
    "genres",
    "developers",
    "publishers",
    "categories",
    "age_rating",
    "rating",
)

ARTWORK_FIELDS: tuple[str, ...] = tuple(kind.value for kind in ImageKind)


def _is_empty(value: object) -> bool:
    return value is None or value == "" or value == []


@dataclass
class PartialMetadata:
    """
    Metadata for one resolved identity; any field may be missing.

    ``sources`` records which provider populated each field; ``scores`` keeps
    the catalog score of artwork picked from community uploads.
    """

    description: str = ""
    release_date: str = ""
    genres: list[str] = field(default_factory=list)
    developers: list[str] = field(default_factory=list)
    publishers: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    age_rating: str = ""
    rating: float | None = None
    box_art: str = ""
    banner: str = ""
    logo: str = ""
    hero: str = ""
    icon: str = ""
    sources: dict[str, str] = field(default_factory=dict)
    scores: dict[str, float] = field(default_factory=dict)

    def has_artwork(self) -> bool:
        return any(getattr(self, name) for name in ARTWORK_FIELDS)

    def has_text(self) -> bool:
        return any(not _is_empty(getattr(self, name)) for name in TEXT_FIELDS)

    def is_empty(self) -> bool:
        return not self.has_artwork() and not self.has_text()

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in TEXT_FIELDS + ARTWORK_FIELDS
            if _is_empty(getattr(self, name))
        ]

    def image(self, kind: ImageKind) -> str:
        return getattr(self, kind.value)

    def set_image(self, kind: ImageKind, value: str) -> None:
        setattr(self, kind.value, value)

    def tag_sources(self, source: str) -> None:
        """Record *source* for every populated field that has no source yet."""
        for name in TEXT_FIELDS + ARTWORK_FIELDS:
            if not _is_empty(getattr(self, name)):
                self.sources.setdefault(name, source)

    def merge(self, other: PartialMetadata, source: str = "") -> list[str]:
        """
        Fill empty fields from *other*; populated fields are never overwritten.

        Returns the names of fields that were filled.
        """
        filled: list[str] = []
        for f in fields(self):
            if f.name in ("sources", "scores"):
                continue
            mine = getattr(self, f.name)
            theirs = getattr(other, f.name)
            if _is_empty(mine) and not _is_empty(theirs):
                setattr(self, f.name, theirs)
                self.sources[f.name] = other.sources.get(f.name) or source
                if f.name in other.scores:
                    self.scores[f.name] = other.scores[f.name]
                filled.append(f.name)
        return filled

    def copy(self) -> PartialMetadata:
        clone = PartialMetadata()
        clone.merge(self)
        clone.sources = dict(self.sources)
        clone.scores = dict(self.scores)
        return clone


@dataclass
class CachedArtwork:
    """Local artwork cache record for one ``(game_id, kind)`` pair."""

    game_id: str
    kind: str
    path: str
    source_url: str = ""
    cached_at: str = ""
