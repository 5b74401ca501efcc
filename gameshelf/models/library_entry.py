"""Confirmed library entry model."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class LibraryEntry:
    """Game record stored in library.json."""

    id: str
    title: str = ""
    exe_path: str = ""
    install_path: str = ""
    source_kind: str = ""
    launch_target: str = ""
    external_provider: str = ""
    external_id: str = ""
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
    added_at: str = ""
