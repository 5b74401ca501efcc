"""Application context — service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gameshelf.config import Config
    from gameshelf.core.acquirer import ArtworkAcquirer
    from gameshelf.core.pipeline import ImportPipeline
    from gameshelf.core.resolver import IdentityResolver
    from gameshelf.core.staging import StagingQueue
    from gameshelf.data.artwork_cache import ArtworkCache
    from gameshelf.data.library_store import LibraryStore
    from gameshelf.providers.base import MetadataProvider
    from gameshelf.scanners.base import SourceScanner


@dataclass
class AppContext:
    """
    Central service container.

    The presentation layer (CLI today) receives this once and reaches every
    service through it.
    """

    config: Config

    # Data
    library: LibraryStore
    cache: ArtworkCache
    queue: StagingQueue

    # Discovery and enrichment
    scanners: list[SourceScanner]
    resolver: IdentityResolver
    acquirer: ArtworkAcquirer
    pipeline: ImportPipeline
    providers: dict[str, MetadataProvider] = field(default_factory=dict)
