"""Import pipeline — scan, deduplicate, resolve, acquire, cache, stage."""

from __future__ import annotations

import concurrent.futures
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from gameshelf.core.acquirer import ArtworkAcquirer
from gameshelf.core.deduplicator import Deduplicator
from gameshelf.core.resolver import IdentityResolver
from gameshelf.core.staging import StagingError, StagingQueue
from gameshelf.data.artwork_cache import ArtworkCache
from gameshelf.data.library_store import LibraryStore, entry_from_staged
from gameshelf.models.provider_match import ProviderMatch
from gameshelf.models.resolution import Ambiguous, ResolvedIdentity
from gameshelf.models.scan_candidate import ScanCandidate
from gameshelf.models.staged_game import ExternalRef, StagedGame, StageStatus
from gameshelf.scanners.base import ScanRootError, SourceScanner
from gameshelf.scanners.manual import ManualFolderScanner

CANCELLED_MESSAGE = "import cancelled"


@dataclass
class ProgressEvent:
    """Per-candidate progress for the presentation layer."""

    current: int
    total: int
    title: str = ""
    message: str = ""


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class BatchResult:
    """Outcome of one ``ImportPipeline.run``."""

    scanned: int = 0
    duplicates: int = 0
    staged: list[StagedGame] = field(default_factory=list)
    cancelled: bool = False
    error: str = ""

    def count(self, status: StageStatus) -> int:
        return sum(1 for s in self.staged if s.status == status)

    @property
    def ready(self) -> int:
        return self.count(StageStatus.READY)

    @property
    def ambiguous(self) -> int:
        return self.count(StageStatus.AMBIGUOUS)

    @property
    def errors(self) -> int:
        return self.count(StageStatus.ERROR)


class ImportBatchError(Exception):
    """Batch-level failure; entries staged before the fault are left as they were."""

    def __init__(self, message: str, result: BatchResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class ImportPipeline:
    """
    Runs one import batch.

    Scanners run in parallel; each surviving candidate is resolved,
    acquired and cached on a bounded worker pool.  ``cancel()`` stops
    candidates that have not started yet; in-flight ones finish.
    """

    def __init__(
        self,
        scanners: Iterable[SourceScanner],
        library: LibraryStore,
        queue: StagingQueue,
        resolver: IdentityResolver,
        acquirer: ArtworkAcquirer,
        cache: ArtworkCache | None = None,
        max_workers: int = 4,
        folder_scanner: SourceScanner | None = None,
    ) -> None:
        self._scanners = list(scanners)
        self._library = library
        self._queue = queue
        self._resolver = resolver
        self._acquirer = acquirer
        self._cache = cache
        self._max_workers = max(1, max_workers)
        self._folder_scanner = folder_scanner or ManualFolderScanner()
        self._dedup = Deduplicator()
        self._cancel_event = threading.Event()
        self._progress_lock = threading.Lock()

    @property
    def queue(self) -> StagingQueue:
        return self._queue

    def cancel(self) -> None:
        """Request cancellation; candidates not yet started are never started."""
        self._cancel_event.set()
        logger.info("Import cancellation requested")

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    # ── Batch ──

    def run(
        self,
        folders: Iterable[str | Path] = (),
        progress: ProgressCallback | None = None,
        raise_on_error: bool = True,
    ) -> BatchResult:
        """
        Scan every source (plus ad-hoc *folders*), then stage the new candidates.

        Raises ``ImportBatchError`` on a fatal fault unless *raise_on_error*
        is False, in which case ``BatchResult.error`` carries the message.
        """
        self._cancel_event.clear()
        result = BatchResult()
        logger.info(
            f"Import started: providers [{', '.join(p.name for p in self._resolver.providers)}], "
            f"acquisition [{', '.join(self._acquirer.strategy_names)}]"
        )

        try:
            roots = [SourceScanner.validate_root(f) for f in folders]
        except ScanRootError as e:
            return self._fail(result, str(e), raise_on_error)

        candidates = self.scan_all(roots)
        result.scanned = len(candidates)

        known = self._library.list_all() + [entry_from_staged(s) for s in self._queue.entries()]
        survivors = self._dedup.filter(candidates, known)
        result.duplicates = len(candidates) - len(survivors)

        staged = [self._queue.add(c) for c in survivors]
        result.staged = staged

        fatal = self.process(staged, progress)
        result.cancelled = self.is_cancelled
        if fatal:
            return self._fail(result, fatal, raise_on_error)

        logger.info(
            f"Import finished: {result.ready} ready, {result.ambiguous} ambiguous, "
            f"{result.errors} error(s), {result.duplicates} duplicate(s)"
        )
        return result

    @staticmethod
    def _fail(result: BatchResult, message: str, raise_on_error: bool) -> BatchResult:
        result.error = message
        logger.error(f"Import failed: {message}")
        if raise_on_error:
            raise ImportBatchError(message, result)
        return result

    def scan_all(self, folders: Iterable[Path] = ()) -> list[ScanCandidate]:
        """Run every scanner in parallel; results keep scanner order."""
        jobs: list[tuple[SourceScanner, Path | None]] = [(s, None) for s in self._scanners]
        jobs.extend((self._folder_scanner, folder) for folder in folders)
        if not jobs:
            return []

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=len(jobs), thread_name_prefix="gameshelf-scan",
        ) as executor:
            futures = [executor.submit(scanner.scan, root) for scanner, root in jobs]
            candidates: list[ScanCandidate] = []
            for future in futures:
                candidates.extend(future.result())
        return candidates

    def process(
        self,
        staged: list[StagedGame],
        progress: ProgressCallback | None = None,
    ) -> str:
        """
        Resolve and acquire every entry on the worker pool.

        Returns the fatal error message, or "" when the batch completed.
        """
        total = len(staged)
        done = 0
        fatal = ""

        def report(entry: StagedGame) -> None:
            nonlocal done
            with self._progress_lock:
                done += 1
                current = done
            if progress is not None:
                try:
                    progress(ProgressEvent(current, total, entry.title, entry.status.value))
                except Exception as e:
                    logger.error(f"Progress callback failed: {e}")

        def work(entry: StagedGame) -> None:
            if self.is_cancelled:
                self._queue.transition(entry.uuid, StageStatus.ERROR, CANCELLED_MESSAGE)
            else:
                self.process_one(entry)
            report(entry)

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="gameshelf-import",
        ) as executor:
            futures = {executor.submit(work, entry): entry for entry in staged}
            for future in concurrent.futures.as_completed(futures):
                try:
                    future.result()
                except StagingError as e:
                    # Corrupt staging state: stop starting new work
                    if not fatal:
                        fatal = str(e)
                        self._cancel_event.set()
        return fatal

    # ── Per candidate ──

    def process_one(self, staged: StagedGame) -> None:
        """Drive one entry from ``pending`` to a terminal status."""
        self._queue.transition(staged.uuid, StageStatus.SCANNING)
        try:
            resolution = self._resolver.resolve(staged.candidate)
        except Exception as e:
            logger.error(f"Resolution failed for {staged.title}: {e}")
            self._queue.transition(staged.uuid, StageStatus.ERROR, f"resolution failed: {e}")
            return

        if isinstance(resolution, Ambiguous):
            self._queue.update(
                staged.uuid,
                search_results=resolution.results,
                is_variant=resolution.is_variant,
                variant_label=resolution.variant_label,
            )
            self._queue.transition(staged.uuid, StageStatus.AMBIGUOUS, resolution.reason)
            return

        self._queue.update(
            staged.uuid,
            title=resolution.title,
            external=ExternalRef(
                resolution.provider, resolution.provider_id, resolution.storefront_id,
            ),
            is_variant=resolution.is_variant,
            variant_label=resolution.variant_label,
        )
        self._queue.transition(staged.uuid, StageStatus.MATCHED)
        self.acquire_for(staged, resolution)

    def acquire_for(self, staged: StagedGame, identity: ResolvedIdentity) -> None:
        """Acquire, cache and apply metadata for a matched entry."""
        try:
            metadata = self._acquirer.acquire(identity)
        except Exception as e:
            logger.error(f"Acquisition failed for {staged.title}: {e}")
            self._queue.transition(staged.uuid, StageStatus.ERROR, f"acquisition failed: {e}")
            return

        if metadata.is_empty():
            self._queue.update(staged.uuid, search_results=[identity.match])
            self._queue.transition(
                staged.uuid, StageStatus.AMBIGUOUS, "no artwork or metadata found",
            )
            return

        if self._cache is not None:
            try:
                metadata = self._cache.cache(staged.game_id, metadata)
            except Exception as e:
                logger.warning(f"Artwork caching failed for {staged.title}, keeping remote URLs: {e}")

        self._queue.apply_metadata(staged.uuid, metadata)
        self._queue.transition(staged.uuid, StageStatus.READY)

    def rematch(self, uuid: str, match: ProviderMatch) -> StagedGame:
        """Re-open an ambiguous entry with a user-chosen match and acquire again."""
        staged = self._queue.rematch(uuid, match)
        identity = ResolvedIdentity(match, staged.title, staged.is_variant, staged.variant_label)
        self.acquire_for(staged, identity)
        return staged
