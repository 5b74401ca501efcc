"""Deduplicator — drop candidates already in the library or already seen."""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from gameshelf.models.library_entry import LibraryEntry
from gameshelf.models.scan_candidate import ScanCandidate
from gameshelf.utils import normalize_path


class Deduplicator:
    """
    Filters scan candidates against the confirmed library.

    A candidate is dropped when its qualified id, normalized executable path
    or normalized install path matches a library entry, or a candidate kept
    earlier in the same batch.  Pure function of its inputs.
    """

    def filter(
        self,
        candidates: Iterable[ScanCandidate],
        library_entries: Iterable[LibraryEntry],
    ) -> list[ScanCandidate]:
        ids: set[str] = set()
        exe_paths: set[str] = set()
        install_paths: set[str] = set()

        for entry in library_entries:
            if entry.id:
                ids.add(entry.id)
            if entry.exe_path:
                exe_paths.add(normalize_path(entry.exe_path))
            if entry.install_path:
                install_paths.add(normalize_path(entry.install_path))

        kept: list[ScanCandidate] = []
        dropped = 0
        for candidate in candidates:
            cid = candidate.qualified_id
            exe = normalize_path(candidate.executable_path)
            install = normalize_path(candidate.install_path)

            if (
                (cid and cid in ids)
                or (exe and exe in exe_paths)
                or (install and install in install_paths)
            ):
                dropped += 1
                logger.debug(f"Duplicate skipped: {candidate.display_name_guess} ({install})")
                continue

            kept.append(candidate)
            if cid:
                ids.add(cid)
            if exe:
                exe_paths.add(exe)
            if install:
                install_paths.add(install)

        if dropped:
            logger.info(f"Deduplicator: {dropped} duplicate(s) dropped, {len(kept)} kept")
        return kept
