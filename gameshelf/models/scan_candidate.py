"""Scan candidate models — raw facts about something installed on disk."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from uuid import uuid4


class SourceKind(StrEnum):
    """Installation ecosystem a candidate was found in."""

    REGISTRY_PLATFORM = "registry-platform"
    GAME_PASS_DIRECTORY = "game-pass-directory"
    MANUAL_FOLDER = "manual-folder"
    STEAM_LIBRARY = "steam-library"
    EPIC_MANIFEST = "epic-manifest"


class LaunchKind(StrEnum):
    """How a title is started on its native platform."""

    EXECUTABLE = "executable"
    URI = "uri"
    PACKAGE = "package"


# Id prefix for non-numeric platform ids (numeric ids are always Steam app ids)
_ID_PREFIX: dict[SourceKind, str] = {
    SourceKind.REGISTRY_PLATFORM: "xbox",
    SourceKind.GAME_PASS_DIRECTORY: "xbox",
    SourceKind.EPIC_MANIFEST: "epic",
}


@dataclass(frozen=True)
class LaunchSpec:
    """Launch parameters: exe path, protocol URI or AppsFolder id."""

    kind: LaunchKind = LaunchKind.EXECUTABLE
    target: str = ""
    arguments: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScanCandidate:
    """
    Output of a source scanner.

    ``display_name_guess`` is derived from folder/registry naming and is not
    authoritative.  ``platform_specific_id`` is an opaque id: a numeric
    storefront app id (Steam), a package-family name (Xbox / UWP)
    or an Epic catalog app name.
    """

    source_kind: SourceKind
    display_name_guess: str
    install_path: str
    executable_path: str | None = None
    platform_specific_id: str | None = None
    launch: LaunchSpec = field(default_factory=LaunchSpec)

    @property
    def has_storefront_id(self) -> bool:
        """True when the platform id is a numeric storefront app id."""
        pid = self.platform_specific_id
        return bool(pid) and pid.isdigit()

    @property
    def qualified_id(self) -> str | None:
        """Platform-qualified id (``steam-440``, ``xbox-Family_hash``), or None."""
        pid = self.platform_specific_id
        if not pid:
            return None
        if pid.isdigit():
            return f"steam-{pid}"
        return f"{_ID_PREFIX.get(self.source_kind, self.source_kind.value)}-{pid}"

    def synthesized_id(self) -> str:
        """Qualified id if available, otherwise a freshly generated one."""
        return self.qualified_id or uuid4().hex
