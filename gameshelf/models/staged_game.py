"""Staged game — the pipeline's working record for one candidate."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from uuid import uuid4

from gameshelf.models.metadata import ARTWORK_FIELDS, TEXT_FIELDS, PartialMetadata
from gameshelf.models.provider_match import ProviderMatch
from gameshelf.models.scan_candidate import ScanCandidate, SourceKind


class StageStatus(StrEnum):
    """Staging state machine: pending → scanning → matched|ambiguous → ready|error."""

    PENDING = "pending"
    SCANNING = "scanning"
    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"
    READY = "ready"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (StageStatus.READY, StageStatus.AMBIGUOUS, StageStatus.ERROR)


# Allowed forward transitions within one pipeline run
TRANSITIONS: dict[StageStatus, frozenset[StageStatus]] = {
    StageStatus.PENDING: frozenset({StageStatus.SCANNING, StageStatus.ERROR}),
    StageStatus.SCANNING: frozenset(
        {StageStatus.MATCHED, StageStatus.AMBIGUOUS, StageStatus.ERROR}
    ),
    StageStatus.MATCHED: frozenset(
        {StageStatus.READY, StageStatus.AMBIGUOUS, StageStatus.ERROR}
    ),
    StageStatus.AMBIGUOUS: frozenset(),
    StageStatus.READY: frozenset(),
    StageStatus.ERROR: frozenset(),
}


@dataclass
class ExternalRef:
    """Resolved external identity: provider name + provider-specific id."""

    provider: str
    provider_id: str
    storefront_id: str | None = None


@dataclass
class StagedGame:
    """
    Working record created from a surviving ``ScanCandidate``.

    Mutated in place by the pipeline; owned by the ``StagingQueue`` and handed
    to callers by reference for commit or discard.
    """

    candidate: ScanCandidate
    game_id: str
    uuid: str = field(default_factory=lambda: uuid4().hex)
    title: str = ""
    external: ExternalRef | None = None
    status: StageStatus = StageStatus.PENDING
    error: str = ""
    is_variant: bool = False
    variant_label: str = ""
    search_results: list[ProviderMatch] = field(default_factory=list)
    ignored: bool = False

    # Acquired text metadata
    description: str = ""
    release_date: str = ""
    genres: list[str] = field(default_factory=list)
    developers: list[str] = field(default_factory=list)
    publishers: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    age_rating: str = ""
    rating: float | None = None

    # Acquired artwork references (URL, file:// URI, or "")
    box_art: str = ""
    banner: str = ""
    logo: str = ""
    hero: str = ""
    icon: str = ""

    @property
    def source_kind(self) -> SourceKind:
        return self.candidate.source_kind

    @property
    def is_resolved(self) -> bool:
        return self.external is not None

    def apply_metadata(self, metadata: PartialMetadata) -> None:
        """Copy every populated field of *metadata* onto this entry."""
        for name in TEXT_FIELDS + ARTWORK_FIELDS:
            value = getattr(metadata, name)
            if value not in (None, "", []):
                setattr(self, name, value)
