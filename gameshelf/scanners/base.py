"""Abstract base class for installation-source scanners."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger

from gameshelf.models.scan_candidate import ScanCandidate, SourceKind


class ScanRootError(Exception):
    """A user-specified scan root is missing or is not a readable directory."""


class SourceScanner(ABC):
    """
    One installation ecosystem.

    ``scan()`` never raises: unreadable entries are skipped inside the
    subclass walk, and anything unexpected is logged and turned into an
    empty result.  Only ``validate_root()`` raises, for roots the user
    named explicitly.
    """

    source_kind: SourceKind

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in log lines (e.g. 'steam', 'xbox-packages')."""
        ...

    @property
    def default_root(self) -> Path | None:
        """Root scanned when ``scan()`` is called without one."""
        return None

    @abstractmethod
    def _scan(self, root: Path | None) -> list[ScanCandidate]:
        ...

    def scan(self, root: str | Path | None = None) -> list[ScanCandidate]:
        """Return zero or more candidates found under *root* (or the default root)."""
        target = Path(root) if root is not None else self.default_root
        try:
            candidates = self._scan(target)
        except Exception as e:
            logger.error(f"{self.name}: scan of {target} failed: {e}")
            return []
        logger.info(f"{self.name}: {len(candidates)} candidate(s) in {target}")
        return candidates

    @staticmethod
    def validate_root(root: str | Path) -> Path:
        """Return *root* as a Path, or raise ``ScanRootError`` if it cannot be scanned."""
        path = Path(root)
        if not path.exists():
            raise ScanRootError(f"Scan root does not exist: {path}")
        if not path.is_dir():
            raise ScanRootError(f"Scan root is not a directory: {path}")
        try:
            next(path.iterdir(), None)
        except OSError as e:
            raise ScanRootError(f"Scan root is not readable: {path} ({e})") from e
        return path
