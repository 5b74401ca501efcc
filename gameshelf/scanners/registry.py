"""Platform registry query — which installed packages are registered games."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable

from loguru import logger

GAMING_SERVICES_KEY = r"SOFTWARE\Microsoft\GamingServices\PackageRepository\Package"


def package_family_name(package_full_name: str) -> str:
    """
    Convert a package full name to its family name.

    ``Name_Version_Arch_ResourceId_PublisherHash`` becomes ``Name_PublisherHash``.
    Inputs that are already family names are returned unchanged.
    """
    parts = package_full_name.split("_")
    if len(parts) < 3:
        return package_full_name
    return f"{parts[0]}_{parts[-1]}"


class PlatformRegistryQuery(ABC):
    """Source of officially registered gaming-services package families."""

    @property
    def available(self) -> bool:
        """False on hosts that have no gaming-services registry at all."""
        return True

    @abstractmethod
    def query_registered_games(self) -> set[str]:
        """Return package-family names; empty when there is no signal."""
        ...


class NullRegistryQuery(PlatformRegistryQuery):
    """Hosts without a gaming-services registry."""

    @property
    def available(self) -> bool:
        return False

    def query_registered_games(self) -> set[str]:
        return set()


class StaticRegistryQuery(PlatformRegistryQuery):
    """Fixed set of package families (tests and configured overrides)."""

    def __init__(self, families: Iterable[str] = ()) -> None:
        self._families = {package_family_name(f) for f in families}

    def query_registered_games(self) -> set[str]:
        return set(self._families)


class WindowsGamingServicesQuery(PlatformRegistryQuery):
    """Reads the GamingServices package repository under HKLM."""

    def query_registered_games(self) -> set[str]:
        try:
            import winreg
        except ImportError:
            logger.debug("winreg unavailable; no gaming-services registry")
            return set()

        families: set[str] = set()
        try:
            with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, GAMING_SERVICES_KEY) as root:
                index = 0
                while True:
                    try:
                        subkey = winreg.EnumKey(root, index)
                    except OSError:
                        break
                    index += 1
                    families.update(self._read_package_key(winreg, root, subkey))
        except OSError as e:
            logger.warning(f"Cannot read gaming-services registry: {e}")
            return set()

        logger.debug(f"Gaming-services registry lists {len(families)} package(s)")
        return families

    @staticmethod
    def _read_package_key(winreg, root, subkey: str) -> set[str]:
        # Each subkey holds one or more values whose data is a package full name
        found: set[str] = set()
        try:
            with winreg.OpenKey(root, subkey) as key:
                index = 0
                while True:
                    try:
                        _name, value, _kind = winreg.EnumValue(key, index)
                    except OSError:
                        break
                    index += 1
                    if isinstance(value, str) and "_" in value:
                        found.add(package_family_name(value))
        except OSError as e:
            logger.debug(f"Skipping registry key {subkey}: {e}")
        return found


def default_registry_query(registered_packages: Iterable[str] = ()) -> PlatformRegistryQuery:
    """
    Pick the registry query for this host.

    A non-empty *registered_packages* list (from config) overrides the host
    registry.
    """
    packages = list(registered_packages)
    if packages:
        return StaticRegistryQuery(packages)
    if sys.platform == "win32":
        return WindowsGamingServicesQuery()
    return NullRegistryQuery()
